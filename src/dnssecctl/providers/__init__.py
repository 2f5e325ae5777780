"""Provider interfaces for dnssecctl."""
from __future__ import annotations

from .artifacts import (
    ArtifactFetcher,
    ArtifactFetchError,
    ArtifactFetchReport,
    ArtifactRecord,
    Downloader,
)
from .commands import CommandError, CommandRunner
from .docker import DockerError, DockerProvider
from .firewall import FirewallProvider, FirewallReport
from .systemd import SystemdError, SystemdProvider

__all__ = [
    "ArtifactFetchError",
    "ArtifactFetchReport",
    "ArtifactFetcher",
    "ArtifactRecord",
    "CommandError",
    "CommandRunner",
    "Downloader",
    "DockerError",
    "DockerProvider",
    "FirewallProvider",
    "FirewallReport",
    "SystemdError",
    "SystemdProvider",
]
