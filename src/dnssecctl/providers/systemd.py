"""Systemd provider for the stack unit and host services."""
from __future__ import annotations

import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from ..templates import TemplateEngine
from .commands import CommandError, CommandRunner


class SystemdError(RuntimeError):
    """Raised when systemd operations fail."""


@dataclass(slots=True)
class SystemdProvider:
    """Render the stack unit and drive ``systemctl``."""

    templates: TemplateEngine
    runner: CommandRunner = field(default_factory=CommandRunner)
    systemd_dir: Path = Path("/etc/systemd/system")
    unit_name: str = "dnssecmanager.service"
    systemctl_bin: str = "systemctl"

    @property
    def unit_path(self) -> Path:
        """Return the full path for the stack unit file."""
        return self.systemd_dir / self.unit_name

    def render_unit(self, context: Mapping[str, object]) -> bool:
        """Render the stack unit using *context*, reloading systemd on change."""
        changed = self.templates.render_to_path(
            "systemd/stack.service.j2",
            self.unit_path,
            context,
            mode=0o644,
        )
        if changed:
            self._reload_daemon()
        return changed

    def enable(self, unit: str | None = None) -> subprocess.CompletedProcess[str]:
        """Enable *unit* (defaults to the stack unit)."""
        return self._systemctl("enable", unit or self.unit_name)

    def disable(self, unit: str | None = None) -> subprocess.CompletedProcess[str]:
        """Disable *unit* (defaults to the stack unit)."""
        return self._systemctl("disable", unit or self.unit_name)

    def start(self, unit: str | None = None) -> subprocess.CompletedProcess[str]:
        """Start *unit* (defaults to the stack unit)."""
        return self._systemctl("start", unit or self.unit_name)

    def stop(self, unit: str | None = None) -> subprocess.CompletedProcess[str]:
        """Stop *unit* (defaults to the stack unit)."""
        return self._systemctl("stop", unit or self.unit_name)

    def is_active(self, unit: str | None = None) -> bool:
        """Return ``True`` when ``systemctl is-active --quiet`` succeeds."""
        try:
            result = self._systemctl("is-active", "--quiet", unit or self.unit_name, check=False)
        except SystemdError:
            return False
        return result.returncode == 0

    # ------------------------------------------------------------------
    def _reload_daemon(self) -> None:
        try:
            self._systemctl("daemon-reload")
        except SystemdError as exc:
            if "not found" in str(exc).lower():
                return
            raise

    def _systemctl(
        self,
        command: str,
        *extra: str,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        args = [self.systemctl_bin, command, *extra]
        try:
            return self.runner.run(args, check=check)
        except CommandError as exc:
            raise SystemdError(str(exc)) from exc


__all__ = ["SystemdError", "SystemdProvider"]
