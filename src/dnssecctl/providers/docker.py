"""Docker engine/compose provider."""
from __future__ import annotations

import logging
import platform
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..config import DockerConfig
from ..templates import write_atomic
from .artifacts import Downloader
from .commands import CommandError, CommandRunner

LOGGER = logging.getLogger(__name__)


class DockerError(RuntimeError):
    """Raised when docker installation or compose operations fail."""


@dataclass(slots=True)
class DockerProvider:
    """Install the container runtime and drive ``docker compose``."""

    config: DockerConfig
    downloader: Downloader
    runner: CommandRunner = field(default_factory=CommandRunner)

    # Detection ---------------------------------------------------------
    def engine_available(self) -> bool:
        """Return ``True`` when ``docker --version`` succeeds."""
        return self.runner.succeeds([self.config.docker_bin, "--version"])

    def compose_available(self) -> bool:
        """Return ``True`` when ``docker compose version`` succeeds."""
        return self.runner.succeeds([self.config.docker_bin, "compose", "version"])

    def resolved_binary(self) -> str:
        """Return the absolute docker path for unit files, falling back to the name."""
        resolved = self.runner.which(self.config.docker_bin)
        return resolved or self.config.docker_bin

    # Installation ------------------------------------------------------
    def ensure_installed(self) -> list[str]:
        """Install missing components and return the names installed."""
        installed: list[str] = []
        if not self.engine_available():
            self.install_engine()
            installed.append("docker-engine")
        if not self.compose_available():
            self.install_compose_plugin()
            installed.append("docker-compose-plugin")
        return installed

    def install_engine(self) -> None:
        """Download the upstream convenience script and run it through ``sh``."""
        script = self.downloader.get_bytes(self.config.install_script_url)
        try:
            self.runner.run(
                ["sh", "-s", "--"],
                input_text=script.decode("utf-8"),
                capture_output=True,
            )
        except CommandError as exc:
            raise DockerError(f"Docker engine installation failed: {exc}") from exc

    def compose_download_url(self) -> str:
        """Return the compose plugin URL for this host's OS/architecture."""
        return self.config.compose_url.format(
            version=self.config.compose_version,
            system=platform.system().lower(),
            machine=platform.machine(),
        )

    def install_compose_plugin(self) -> Path:
        """Download the compose plugin binary into the CLI plugin directory."""
        payload = self.downloader.get_bytes(self.compose_download_url())
        destination = self.config.plugin_dir / "docker-compose"
        write_atomic(destination, payload, mode=0o755)
        LOGGER.debug("installed compose plugin at %s", destination)
        return destination

    # Compose -----------------------------------------------------------
    def compose(
        self,
        project_dir: Path,
        compose_file: Path,
        *args: str,
        env: Mapping[str, str] | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        """Run ``docker compose -f <file> <args>`` inside *project_dir*."""
        argv: Sequence[str] = [
            self.config.docker_bin,
            "compose",
            "-f",
            str(compose_file),
            *args,
        ]
        try:
            return self.runner.run(argv, cwd=project_dir, env=env, check=check)
        except CommandError as exc:
            raise DockerError(str(exc)) from exc

    def pull(self, project_dir: Path, compose_file: Path) -> None:
        """Pull the latest images for the stack."""
        self.compose(project_dir, compose_file, "pull")

    def up(self, project_dir: Path, compose_file: Path) -> None:
        """Start or update the stack in detached mode."""
        self.compose(project_dir, compose_file, "up", "-d")


__all__ = ["DockerError", "DockerProvider"]
