"""Start the stack and register it with systemd."""
from __future__ import annotations

from dataclasses import dataclass

from .providers.docker import DockerProvider
from .providers.systemd import SystemdProvider
from .workspace import Workspace


@dataclass(slots=True)
class LaunchReport:
    """What the launcher changed."""

    pulled: bool = False
    started: bool = False
    unit_registered: bool = False
    unit_changed: bool = False
    unit_started: bool = False

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "pulled": self.pulled,
            "started": self.started,
            "unit_registered": self.unit_registered,
            "unit_changed": self.unit_changed,
            "unit_started": self.unit_started,
        }


@dataclass(slots=True)
class StackLauncher:
    """Pull images, bring the stack up, and keep it running across reboots."""

    docker: DockerProvider
    systemd: SystemdProvider
    project_name: str = "DNSSEC-Manager"

    def launch(self, workspace: Workspace, *, register_unit: bool = True) -> LaunchReport:
        """Run ``pull`` then ``up -d``; optionally install and start the unit."""
        report = LaunchReport()
        self.docker.pull(workspace.root, workspace.compose_file)
        report.pulled = True
        self.docker.up(workspace.root, workspace.compose_file)
        report.started = True

        if not register_unit:
            return report

        report.unit_changed = self.systemd.render_unit(self.unit_context(workspace))
        self.systemd.enable()
        report.unit_registered = True
        if not self.systemd.is_active():
            self.systemd.start()
            report.unit_started = True
        return report

    def unit_context(self, workspace: Workspace) -> dict[str, object]:
        """Return the template context for the stack unit."""
        return {
            "project_name": self.project_name,
            "working_directory": str(workspace.root),
            "compose_file": str(workspace.compose_file),
            "docker_bin": self.docker.resolved_binary(),
        }


__all__ = ["LaunchReport", "StackLauncher"]
