"""The provisioning pipeline.

:class:`StackInstaller` runs the steps in a fixed order and records each one on
the operation scope. Fatal problems surface as the owning component's exception;
non-fatal ones (firewall rules, lenient readiness timeouts) accumulate in
:attr:`InstallReport.warnings`. Nothing is rolled back on failure.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

from rich.console import Console
from rich.markup import escape

from .config import AppConfig
from .envfile import StackSettings
from .launcher import LaunchReport, StackLauncher
from .logging import OperationScope, StructuredLogger
from .ports import PortGuard, PortGuardOutcome
from .providers.artifacts import ArtifactFetcher, ArtifactFetchReport
from .providers.docker import DockerProvider
from .providers.firewall import FirewallProvider, FirewallReport
from .readiness import (
    DatabaseProber,
    ReadinessResult,
    ReadinessTarget,
    ReadinessWaiter,
    build_targets,
)
from .wizard import ConfigurationWizard, WizardState
from .workspace import Workspace, prepare_workspace

InstallMode = Literal["install", "reinstall", "update"]


class InstallationMissingError(RuntimeError):
    """Raised when update-only mode finds no existing installation."""


@dataclass(frozen=True, slots=True)
class InstallOptions:
    """Per-run choices parsed from the command line."""

    reinstall: bool = False
    update_only: bool = False
    fetch_policy: str | None = None
    readiness_policy: str | None = None
    show_secrets: bool = False

    @property
    def mode(self) -> InstallMode:
        """Return the pipeline mode implied by the flags."""
        if self.update_only:
            return "update"
        if self.reinstall:
            return "reinstall"
        return "install"


@dataclass(slots=True)
class InstallReport:
    """Everything the pipeline did, for the summary and the operation log."""

    mode: InstallMode
    workspace: Workspace
    settings: StackSettings | None = None
    wizard_state: WizardState | None = None
    generated: tuple[str, ...] = ()
    workspace_wiped: bool = False
    guard: PortGuardOutcome | None = None
    installed_components: list[str] = field(default_factory=list)
    artifacts: ArtifactFetchReport | None = None
    firewall: FirewallReport | None = None
    launch: LaunchReport | None = None
    readiness: list[ReadinessResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def changed(self) -> int:
        """Return a rough count of host changes made by this run."""
        count = len(self.installed_components)
        if self.wizard_state == "fresh":
            count += 1
        if self.guard is not None and self.guard.action == "stopped-stub":
            count += 1
        if self.artifacts is not None:
            count += len(self.artifacts.fetched)
        if self.firewall is not None:
            count += len(self.firewall.applied)
        if self.launch is not None and self.launch.unit_changed:
            count += 1
        return count

    def to_context(self) -> dict[str, object]:
        """Return a secret-free mapping for the operation log."""
        return {
            "mode": self.mode,
            "install_dir": str(self.workspace.root),
            "wizard_state": self.wizard_state,
            "generated": list(self.generated),
            "workspace_wiped": self.workspace_wiped,
            "port_guard": self.guard.action if self.guard else None,
            "installed_components": list(self.installed_components),
            "artifacts": [record.to_dict() for record in self.artifacts.records]
            if self.artifacts
            else [],
            "firewall": {
                "available": self.firewall.available,
                "applied": list(self.firewall.applied),
                "enabled": self.firewall.enabled,
            }
            if self.firewall
            else None,
            "launch": self.launch.to_dict() if self.launch else None,
            "readiness": [result.to_dict() for result in self.readiness],
        }


class StackInstaller:
    """Run the provisioning steps in order."""

    def __init__(
        self,
        config: AppConfig,
        workspace: Workspace,
        *,
        guard: PortGuard,
        wizard: ConfigurationWizard,
        docker: DockerProvider,
        fetcher: ArtifactFetcher,
        firewall: FirewallProvider,
        launcher: StackLauncher,
        waiter: ReadinessWaiter,
        http_probe: Callable[[str], bool],
        console: Console,
        logger: StructuredLogger | None = None,
    ) -> None:
        """Wire the pipeline's collaborators."""
        self.config = config
        self.workspace = workspace
        self.guard = guard
        self.wizard = wizard
        self.docker = docker
        self.fetcher = fetcher
        self.firewall = firewall
        self.launcher = launcher
        self.waiter = waiter
        self.http_probe = http_probe
        self.console = console
        self.logger = logger

    def run(self, options: InstallOptions, op: OperationScope) -> InstallReport:
        """Execute the pipeline and return what it did."""
        report = InstallReport(mode=options.mode, workspace=self.workspace)
        update_only = options.update_only

        # Workspace
        if update_only and not self.workspace.is_installed():
            raise InstallationMissingError(
                f"No installation found at {self.workspace.root}; run without --update first."
            )
        report.workspace_wiped = prepare_workspace(self.workspace, reinstall=options.reinstall)
        op.add_step(
            "workspace.prepare",
            detail=f"{'wiped and ' if report.workspace_wiped else ''}ready: {self.workspace.root}",
        )

        # Port 53
        if update_only:
            op.add_step("port.guard", status="skipped", detail="update-only")
        else:
            self._say(f"Checking port {self.config.resolver.port}...")
            report.guard = self.guard.ensure_free()
            if report.guard.action == "stopped-stub":
                self._say(
                    f"Stopped {self.config.resolver.stub_service} and wrote "
                    f"{self.config.resolver.resolv_conf}."
                )
            op.add_step("port.guard", detail=report.guard.action)

        # Configuration record
        outcome = self.wizard.run(self.workspace.env_file, reinstall=options.reinstall)
        report.settings = outcome.settings
        report.wizard_state = outcome.state
        report.generated = outcome.generated
        if self.logger is not None:
            self.logger.add_redactions(outcome.settings.secrets)
        if update_only:
            op.add_step("wizard", status="skipped", detail="update-only: loaded existing record")
        else:
            op.add_step("wizard", detail=outcome.state)

        # Dependencies
        self._say("Checking Docker...")
        report.installed_components = self.docker.ensure_installed()
        op.add_step(
            "dependencies",
            detail=", ".join(report.installed_components) or "already installed",
        )

        # Artifacts
        policy = options.fetch_policy or self.config.artifacts.fetch_policy
        report.artifacts = self.fetcher.fetch(
            self.workspace.compose_file,
            self.workspace.schema_file,
            policy=policy,
            force=options.reinstall,
        )
        op.add_step(
            "artifacts.fetch",
            detail=", ".join(f"{record.name}={record.status}" for record in report.artifacts.records),
        )

        # Firewall
        if update_only:
            op.add_step("firewall", status="skipped", detail="update-only")
        else:
            report.firewall = self.firewall.configure(self.config.firewall.rules)
            report.warnings.extend(report.firewall.warnings)
            if not report.firewall.available:
                op.add_step("firewall", status="skipped", detail="ufw not installed")
            elif report.firewall.warnings:
                op.add_step("firewall", status="warning", detail="; ".join(report.firewall.warnings))
            else:
                op.add_step("firewall", detail=", ".join(report.firewall.applied))

        # Launch
        self._say("Pulling images and starting the stack...")
        report.launch = self.launcher.launch(self.workspace, register_unit=not update_only)
        op.add_step("stack.launch", detail="pull, up -d")
        if update_only:
            op.add_step("systemd.unit", status="skipped", detail="update-only")
        else:
            op.add_step(
                "systemd.unit",
                detail=f"{'rendered' if report.launch.unit_changed else 'unchanged'}; "
                f"{'started' if report.launch.unit_started else 'already active'}",
            )

        # Readiness
        readiness_policy = options.readiness_policy or (
            self.config.readiness.update_policy if update_only else self.config.readiness.policy
        )
        report.readiness = self.waiter.wait(
            self._readiness_targets(outcome.settings),
            readiness_policy,
        )
        pending = [result for result in report.readiness if not result.ready]
        report.warnings.extend(result.timeout_message() for result in pending)
        op.add_step(
            "readiness",
            status="warning" if pending else "success",
            detail=", ".join(
                f"{result.name}={'up' if result.ready else 'timeout'}" for result in report.readiness
            ),
        )
        return report

    def _readiness_targets(self, settings: StackSettings) -> list[ReadinessTarget]:
        database = None
        if self.config.readiness.database.enabled:
            database = DatabaseProber(
                docker=self.docker,
                project_dir=self.workspace.root,
                compose_file=self.workspace.compose_file,
                service=self.config.readiness.database.service,
                client=self.config.readiness.database.client,
                password=settings.mysql_root_password,
            )
        return build_targets(
            self.config.readiness,
            settings,
            http=self.http_probe,
            database=database,
        )

    def _say(self, message: str) -> None:
        self.console.print(f"[bold cyan]==>[/bold cyan] {escape(message)}")


__all__ = [
    "InstallMode",
    "InstallOptions",
    "InstallReport",
    "InstallationMissingError",
    "StackInstaller",
]
