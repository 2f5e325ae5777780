"""Port 53 ownership checks.

PowerDNS needs UDP/TCP port 53. On stock Ubuntu the ``systemd-resolved`` stub
listener holds it; that one is safe to stop. Anything else is left alone and
reported so the operator can decide.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from .config import ResolverConfig
from .providers.commands import CommandError, CommandRunner
from .providers.systemd import SystemdProvider
from .templates import TemplateEngine

LOGGER = logging.getLogger(__name__)

GuardAction = Literal["free", "stack", "stopped-stub"]

_USERS_PATTERN = re.compile(r'\("([^"]+)",pid=(\d+)')
# The kernel truncates process names to 15 characters.
_STUB_PREFIX = "systemd-resolve"


class PortBusyError(RuntimeError):
    """Raised when port 53 is held by a process the guard will not stop."""


@dataclass(frozen=True, slots=True)
class PortHolder:
    """A process listening on the guarded port."""

    name: str
    pid: int


@dataclass(frozen=True, slots=True)
class PortListing:
    """Result of inspecting the listening sockets on the guarded port."""

    sockets: int
    holders: tuple[PortHolder, ...] = ()

    @property
    def in_use(self) -> bool:
        """Return ``True`` when at least one socket listens on the port."""
        return self.sockets > 0

    @property
    def names(self) -> tuple[str, ...]:
        """Return the distinct holder process names in listing order."""
        seen: dict[str, None] = {}
        for holder in self.holders:
            seen.setdefault(holder.name, None)
        return tuple(seen)


@dataclass(frozen=True, slots=True)
class PortGuardOutcome:
    """What the guard found and did."""

    action: GuardAction
    holders: tuple[str, ...] = ()
    resolv_conf_written: bool = False


def parse_ss_output(output: str) -> PortListing:
    """Parse ``ss -H -l -n -p`` output into a :class:`PortListing`."""
    sockets = 0
    holders: list[PortHolder] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        sockets += 1
        for name, pid in _USERS_PATTERN.findall(line):
            holders.append(PortHolder(name=name, pid=int(pid)))
    return PortListing(sockets=sockets, holders=tuple(holders))


@dataclass(slots=True)
class PortGuard:
    """Detect and, where safe, free the DNS port before the stack starts."""

    config: ResolverConfig
    systemd: SystemdProvider
    templates: TemplateEngine
    runner: CommandRunner = field(default_factory=CommandRunner)

    def inspect(self) -> PortListing:
        """List TCP/UDP listeners on the configured port."""
        args = [
            self.config.ss_bin,
            "-H",
            "-l",
            "-n",
            "-p",
            "-t",
            "-u",
            "sport",
            "=",
            f":{self.config.port}",
        ]
        try:
            result = self.runner.run(args)
        except CommandError as exc:
            raise PortBusyError(
                f"Unable to inspect port {self.config.port}: {exc}"
            ) from exc
        return parse_ss_output(result.stdout or "")

    def ensure_free(self) -> PortGuardOutcome:
        """Apply the decision table and return the outcome.

        Raises :class:`PortBusyError` when an unrecognised process holds the
        port; nothing is killed in that case.
        """
        listing = self.inspect()
        if not listing.in_use:
            return PortGuardOutcome(action="free")

        names = listing.names
        if names and all(name in self.config.stack_processes for name in names):
            LOGGER.debug("port %s already held by the stack: %s", self.config.port, names)
            return PortGuardOutcome(action="stack", holders=names)

        if self._held_by_stub(names):
            self.systemd.stop(self.config.stub_service)
            self.systemd.disable(self.config.stub_service)
            self.write_fallback_resolv_conf()
            return PortGuardOutcome(action="stopped-stub", holders=names, resolv_conf_written=True)

        described = ", ".join(names) if names else "an unidentified process"
        raise PortBusyError(
            f"Port {self.config.port} is in use by {described}. "
            "Please free it manually and rerun."
        )

    def write_fallback_resolv_conf(self) -> None:
        """Point the host resolver at the configured public nameservers."""
        path = self.config.resolv_conf
        if path.is_symlink():
            # The stub's managed file; replace the link itself.
            path.unlink()
        self.templates.render_to_path(
            "resolver/resolv.conf.j2",
            path,
            {
                "nameservers": list(self.config.fallback_nameservers),
                "stub_service": self.config.stub_service,
                "port": self.config.port,
            },
            mode=0o644,
        )

    def _held_by_stub(self, names: Sequence[str]) -> bool:
        if names:
            return all(name.startswith(_STUB_PREFIX) for name in names)
        # Socket owners are hidden without privileges; fall back to the unit state.
        return self.systemd.is_active(self.config.stub_service)


__all__ = [
    "PortBusyError",
    "PortGuard",
    "PortGuardOutcome",
    "PortHolder",
    "PortListing",
    "parse_ss_output",
]
