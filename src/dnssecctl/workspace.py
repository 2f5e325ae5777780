"""Installation directory layout and preparation."""
from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from .config import AppConfig


@dataclass(frozen=True, slots=True)
class Workspace:
    """Absolute paths inside the installation directory."""

    root: Path
    env_file: Path
    compose_file: Path
    schema_file: Path
    logs_dir: Path
    transcript: Path

    @classmethod
    def from_config(cls, config: AppConfig) -> Workspace:
        """Derive the workspace layout from *config*."""
        root = config.install_dir.expanduser().absolute()
        return cls(
            root=root,
            env_file=root / config.env_file,
            compose_file=root / config.compose_file,
            schema_file=root / config.artifacts.schema_file,
            logs_dir=config.logs_dir,
            transcript=root / "install.log",
        )

    def is_installed(self) -> bool:
        """Return ``True`` when a configuration record already exists."""
        return self.env_file.is_file()


def prepare_workspace(workspace: Workspace, *, reinstall: bool) -> bool:
    """Ensure the installation directory exists, wiping it first on reinstall.

    Returns ``True`` when an existing tree was removed. ``OSError`` from the
    removal or creation propagates to the caller.
    """
    removed = False
    if reinstall and workspace.root.exists():
        shutil.rmtree(workspace.root)
        removed = True
    workspace.root.mkdir(parents=True, exist_ok=True)
    return removed


__all__ = ["Workspace", "prepare_workspace"]
