"""UFW firewall provider.

Rule failures are collected rather than raised: a single unsupported rule must
not abort provisioning. A host without ``ufw`` is simply skipped.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from .commands import CommandError, CommandRunner


@dataclass(slots=True)
class FirewallReport:
    """Outcome of a firewall configuration pass."""

    available: bool
    applied: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    enabled: bool = False


@dataclass(slots=True)
class FirewallProvider:
    """Open the stack's ports with ``ufw``."""

    runner: CommandRunner = field(default_factory=CommandRunner)
    ufw_bin: str = "ufw"

    def available(self) -> bool:
        """Return ``True`` when the ufw binary can be resolved."""
        return self.runner.which(self.ufw_bin) is not None

    def is_active(self) -> bool:
        """Return ``True`` when ``ufw status`` reports an active firewall."""
        try:
            result = self.runner.run([self.ufw_bin, "status"], check=False)
        except CommandError:
            return False
        output = (result.stdout or "").lower()
        return "status: active" in output

    def configure(self, rules: Sequence[str]) -> FirewallReport:
        """Allow each rule and enable the firewall when inactive."""
        if not self.available():
            return FirewallReport(available=False)

        report = FirewallReport(available=True)
        for rule in rules:
            try:
                self.runner.run([self.ufw_bin, "allow", rule])
            except CommandError as exc:
                report.warnings.append(f"ufw allow {rule} failed: {exc}")
                continue
            report.applied.append(rule)

        if not self.is_active():
            try:
                self.runner.run([self.ufw_bin, "--force", "enable"])
            except CommandError as exc:
                report.warnings.append(f"ufw enable failed: {exc}")
            else:
                report.enabled = True
        return report


__all__ = ["FirewallProvider", "FirewallReport"]
