"""Tests for installation directory preparation."""
from __future__ import annotations

from pathlib import Path

from dnssecctl.config import load_config
from dnssecctl.workspace import Workspace, prepare_workspace


def _workspace(tmp_path: Path) -> Workspace:
    config = load_config(
        config_file=tmp_path / "missing.yml",
        env={"DNSSECCTL_INSTALL_DIR": str(tmp_path / "stack")},
    )
    return Workspace.from_config(config)


def test_layout_is_absolute_and_anchored(tmp_path: Path) -> None:
    """Every path lives under the installation directory."""
    workspace = _workspace(tmp_path)

    root = tmp_path / "stack"
    assert workspace.root == root
    assert workspace.env_file == root / ".env"
    assert workspace.compose_file == root / "docker-compose.yml"
    assert workspace.schema_file == root / "schema.sql"
    assert workspace.logs_dir == root / "logs"
    assert workspace.transcript == root / "install.log"
    assert workspace.is_installed() is False


def test_prepare_creates_directory(tmp_path: Path) -> None:
    """A missing directory is created without touching the process cwd."""
    workspace = _workspace(tmp_path)
    cwd = Path.cwd()

    removed = prepare_workspace(workspace, reinstall=False)

    assert removed is False
    assert workspace.root.is_dir()
    assert Path.cwd() == cwd


def test_prepare_keeps_existing_files(tmp_path: Path) -> None:
    """Without reinstall the existing tree is left alone."""
    workspace = _workspace(tmp_path)
    workspace.root.mkdir(parents=True)
    workspace.env_file.write_text("DOMAIN=dns.example.com\n")

    assert prepare_workspace(workspace, reinstall=False) is False
    assert workspace.env_file.exists()
    assert workspace.is_installed() is True


def test_reinstall_wipes_tree(tmp_path: Path) -> None:
    """Reinstall removes the directory recursively before recreating it."""
    workspace = _workspace(tmp_path)
    nested = workspace.root / "data" / "mysql"
    nested.mkdir(parents=True)
    workspace.env_file.write_text("DOMAIN=dns.example.com\n")

    assert prepare_workspace(workspace, reinstall=True) is True
    assert workspace.root.is_dir()
    assert list(workspace.root.iterdir()) == []
