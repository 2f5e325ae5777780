"""Tests for the ufw firewall provider."""
from __future__ import annotations

from collections.abc import Sequence

from dnssecctl.providers.commands import CommandError, CommandRunner
from dnssecctl.providers.firewall import FirewallProvider


class DummyResult:
    """Simple stand-in for ``subprocess.CompletedProcess``."""

    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        """Initialise the dummy result."""
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class FakeUfw(CommandRunner):
    """Runner emulating ufw with configurable failures."""

    def __init__(
        self,
        *,
        installed: bool = True,
        active: bool = False,
        failing: Sequence[str] = (),
    ) -> None:
        """Configure the fake firewall state."""
        self.installed = installed
        self.active = active
        self.failing = set(failing)
        self.calls: list[tuple[str, ...]] = []

    def which(self, command: str) -> str | None:
        return "/usr/sbin/ufw" if self.installed else None

    def run(self, args: Sequence[str], **kwargs: object) -> DummyResult:  # type: ignore[override]
        argv = tuple(args)
        self.calls.append(argv)
        if argv[1:] == ("status",):
            return DummyResult(stdout=f"Status: {'active' if self.active else 'inactive'}\n")
        if argv[1] == "allow" and argv[2] in self.failing:
            raise CommandError(f"ufw allow {argv[2]} failed (exit 1): bad rule")
        return DummyResult()


def test_missing_ufw_is_skipped() -> None:
    """Hosts without ufw are left alone and produce no warning."""
    runner = FakeUfw(installed=False)

    report = FirewallProvider(runner=runner).configure(["80/tcp"])

    assert report.available is False
    assert report.warnings == []
    assert runner.calls == []


def test_rules_are_allowed_and_firewall_enabled() -> None:
    """Every rule is allowed, then an inactive firewall is enabled."""
    runner = FakeUfw()

    report = FirewallProvider(runner=runner).configure(["53/tcp", "53/udp"])

    assert report.applied == ["53/tcp", "53/udp"]
    assert report.enabled is True
    assert runner.calls == [
        ("ufw", "allow", "53/tcp"),
        ("ufw", "allow", "53/udp"),
        ("ufw", "status"),
        ("ufw", "--force", "enable"),
    ]


def test_active_firewall_is_not_re_enabled() -> None:
    """An already active firewall is not toggled."""
    runner = FakeUfw(active=True)

    report = FirewallProvider(runner=runner).configure(["443/tcp"])

    assert report.enabled is False
    assert ("ufw", "--force", "enable") not in runner.calls


def test_rule_failures_become_warnings() -> None:
    """A rejected rule is reported and the remaining rules still apply."""
    runner = FakeUfw(active=True, failing=["8081/tcp"])

    report = FirewallProvider(runner=runner).configure(["8081/tcp", "80/tcp"])

    assert report.applied == ["80/tcp"]
    assert len(report.warnings) == 1
    assert "8081/tcp" in report.warnings[0]
