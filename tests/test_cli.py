"""Tests for the dnssecctl command line."""
from __future__ import annotations

import json
from dataclasses import replace
from collections.abc import Callable
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from dnssecctl import get_version
from dnssecctl.cli import app
from dnssecctl.envfile import StackSettings
from dnssecctl.installer import InstallOptions, InstallReport, StackInstaller
from dnssecctl.logging import OperationScope
from dnssecctl.ports import PortBusyError
from dnssecctl.providers.docker import DockerError

runner = CliRunner()

SETTINGS = StackSettings(
    domain="dns.example.com",
    domain_dashboard="dashboard.example.com",
    email="ops@example.com",
    pdns_api_key="api-key-secret-value",
    pdns_db_password="db-secret-value",
    mysql_root_password="root-secret-value",
    dash_user="admin",
    dash_pass="dash-secret-value",
)


def _prepare_environment(
    tmp_path: Path,
    *,
    config_overrides: dict[str, object] | None = None,
) -> tuple[dict[str, str], Path]:
    install_dir = tmp_path / "stack"
    config: dict[str, object] = {
        "install_dir": str(install_dir),
        "runtime_dir": str(tmp_path / "run"),
        "templates_dir": str(tmp_path / "templates"),
        "systemd": {"unit_dir": str(tmp_path / "units")},
        "resolver": {"resolv_conf": str(tmp_path / "resolv.conf")},
    }
    if config_overrides:
        config.update(config_overrides)

    config_file = tmp_path / "config.yml"
    config_file.write_text(yaml.safe_dump(config), encoding="utf-8")
    env = {"DNSSECCTL_CONFIG_FILE": str(config_file)}
    return env, install_dir


def _operations(install_dir: Path) -> list[dict[str, object]]:
    path = install_dir / "logs" / "operations.jsonl"
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def _fake_run(
    warnings: list[str] | None = None,
    settings: StackSettings = SETTINGS,
) -> Callable[..., InstallReport]:
    def run(self: StackInstaller, options: InstallOptions, op: OperationScope) -> InstallReport:
        self.workspace.root.mkdir(parents=True, exist_ok=True)
        op.add_step("workspace.prepare", detail="ready")
        return InstallReport(
            mode=options.mode,
            workspace=self.workspace,
            settings=settings,
            wizard_state="existing",
            warnings=list(warnings or []),
        )

    return run


def _raising(exc: BaseException) -> Callable[..., InstallReport]:
    def run(self: StackInstaller, options: InstallOptions, op: OperationScope) -> InstallReport:
        self.workspace.root.mkdir(parents=True, exist_ok=True)
        raise exc

    return run


def test_version_flag() -> None:
    """``--version`` prints the package version and exits cleanly."""
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"dnssecctl {get_version()}" in result.stdout


def test_reinstall_and_update_are_exclusive(tmp_path: Path) -> None:
    """Combining the two mode flags is a validation error."""
    env, install_dir = _prepare_environment(tmp_path)
    install_dir.mkdir(parents=True)

    result = runner.invoke(app, ["--reinstall", "--update"], env=env)

    assert result.exit_code == 2
    assert "cannot be combined" in result.stdout
    record = _operations(install_dir)[-1]
    assert record["result"]["status"] == "error"  # type: ignore[index]
    assert record["result"]["rc"] == 2  # type: ignore[index]


@pytest.mark.parametrize(
    ("args", "message"),
    [
        (["--fetch-policy", "sometimes"], "--fetch-policy must be one of"),
        (["--readiness-policy", "explode"], "--readiness-policy must be one of"),
    ],
)
def test_invalid_policies_rejected(tmp_path: Path, args: list[str], message: str) -> None:
    """Unknown policy names exit with the validation code."""
    env, _ = _prepare_environment(tmp_path)

    result = runner.invoke(app, args, env=env)

    assert result.exit_code == 2
    assert message in result.stdout


def test_config_error_exits_with_validation_code(tmp_path: Path) -> None:
    """A malformed config file stops the run before anything else happens."""
    env, install_dir = _prepare_environment(
        tmp_path,
        config_overrides={"readiness": {"attempts": 0}},
    )

    result = runner.invoke(app, [], env=env)

    assert result.exit_code == 2
    assert "readiness.attempts" in result.stdout
    assert not install_dir.exists()


def test_success_prints_redacted_summary(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """The summary lists access details without leaking secrets."""
    env, install_dir = _prepare_environment(tmp_path)
    monkeypatch.setattr(StackInstaller, "run", _fake_run())

    result = runner.invoke(app, [], env=env)

    assert result.exit_code == 0, result.stdout
    assert "https://dns.example.com" in result.stdout
    assert "https://dashboard.example.com" in result.stdout
    assert "--show-secrets" in result.stdout
    assert "docker compose ps" in result.stdout
    assert SETTINGS.dash_pass not in result.stdout

    record = _operations(install_dir)[-1]
    assert record["command"] == "install"
    assert record["result"]["status"] == "success"  # type: ignore[index]
    assert record["steps"][0]["name"] == "workspace.prepare"  # type: ignore[index]

    transcript = (install_dir / "install.log").read_text(encoding="utf-8")
    assert "dns.example.com" in transcript


def test_show_secrets_reveals_values_on_screen_only(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """``--show-secrets`` affects the terminal, never the operation log."""
    env, install_dir = _prepare_environment(tmp_path)

    def run(self: StackInstaller, options: InstallOptions, op: OperationScope) -> InstallReport:
        assert self.logger is not None
        self.logger.add_redactions(SETTINGS.secrets)
        return _fake_run()(self, options, op)

    monkeypatch.setattr(StackInstaller, "run", run)

    result = runner.invoke(app, ["--show-secrets"], env=env)

    assert result.exit_code == 0, result.stdout
    assert SETTINGS.dash_pass in result.stdout
    raw = (install_dir / "logs" / "operations.jsonl").read_text(encoding="utf-8")
    assert SETTINGS.dash_pass not in raw
    transcript = (install_dir / "install.log").read_text(encoding="utf-8")
    assert SETTINGS.dash_pass not in transcript


def test_warnings_are_reported(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Non-fatal problems leave the exit code at zero and mark the log."""
    env, install_dir = _prepare_environment(tmp_path)
    monkeypatch.setattr(
        StackInstaller,
        "run",
        _fake_run(["Backend did not respond at http://localhost:5000 after 60 attempts."]),
    )

    result = runner.invoke(app, [], env=env)

    assert result.exit_code == 0
    assert "did not respond" in result.stdout
    record = _operations(install_dir)[-1]
    assert record["result"]["status"] == "warning"  # type: ignore[index]


def test_unknown_arguments_are_ignored(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Extra flags are logged and otherwise ignored."""
    env, install_dir = _prepare_environment(tmp_path)
    monkeypatch.setattr(StackInstaller, "run", _fake_run())

    result = runner.invoke(app, ["--frobnicate", "extra"], env=env)

    assert result.exit_code == 0, result.stdout
    assert "Ignoring unrecognised arguments" in result.stdout
    record = _operations(install_dir)[-1]
    assert record["args"]["ignored"] == ["--frobnicate", "extra"]  # type: ignore[index]


@pytest.mark.parametrize(
    ("exc", "code"),
    [
        (PortBusyError("Port 53 is in use by dnsmasq."), 3),
        (DockerError("compose pull failed"), 4),
        (DockerError("compose up failed: open [/opt/x/.env]: permission denied"), 4),
    ],
)
def test_errors_map_to_exit_codes(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    exc: BaseException,
    code: int,
) -> None:
    """Component failures translate to the documented exit codes."""
    env, install_dir = _prepare_environment(tmp_path)
    monkeypatch.setattr(StackInstaller, "run", _raising(exc))

    result = runner.invoke(app, [], env=env)

    assert result.exit_code == code
    assert str(exc) in result.stdout
    record = _operations(install_dir)[-1]
    assert record["result"]["rc"] == code  # type: ignore[index]


def test_update_without_installation(tmp_path: Path) -> None:
    """Update-only mode on a clean host exits with the validation code."""
    env, install_dir = _prepare_environment(tmp_path)

    result = runner.invoke(app, ["--update"], env=env)

    assert result.exit_code == 2
    assert "No installation found" in result.stdout
    assert not (install_dir / ".env").exists()


def test_show_secrets_keeps_long_and_short_values_out_of_transcript(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Secrets print whole on screen and never land in ``install.log``."""
    env, install_dir = _prepare_environment(tmp_path)
    settings = replace(
        SETTINGS,
        mysql_root_password="Q" * 30 + "longsecretpart" + "Z" * 30,
        dash_pass="q7Z",
    )

    def run(self: StackInstaller, options: InstallOptions, op: OperationScope) -> InstallReport:
        assert self.logger is not None
        self.logger.add_redactions(settings.secrets)
        return _fake_run(settings=settings)(self, options, op)

    monkeypatch.setattr(StackInstaller, "run", run)

    result = runner.invoke(app, ["--show-secrets"], env=env)

    assert result.exit_code == 0, result.stdout
    assert settings.mysql_root_password in result.stdout
    assert "Dashboard password: q7Z" in result.stdout
    transcript = (install_dir / "install.log").read_text(encoding="utf-8")
    assert "longsecretpart" not in transcript
    assert "q7Z" not in transcript
    assert "MariaDB root password" not in transcript


def test_summary_lists_configured_endpoints(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """The summary shows the endpoints that readiness polls."""
    env, _ = _prepare_environment(
        tmp_path,
        config_overrides={
            "readiness": {"endpoints": [{"name": "API", "url": "http://127.0.0.1:9081"}]},
        },
    )
    monkeypatch.setattr(StackInstaller, "run", _fake_run())

    result = runner.invoke(app, [], env=env)

    assert result.exit_code == 0, result.stdout
    assert "http://127.0.0.1:9081" in result.stdout
    assert "localhost:8081" not in result.stdout
