"""Tests for bounded readiness polling."""
from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import httpx
import pytest

from dnssecctl.config import DatabaseProbeConfig, DockerConfig, ReadinessConfig
from dnssecctl.envfile import StackSettings
from dnssecctl.providers.artifacts import Downloader
from dnssecctl.providers.commands import CommandRunner
from dnssecctl.providers.docker import DockerProvider
from dnssecctl.readiness import (
    DatabaseProber,
    HttpProber,
    ReadinessTarget,
    ReadinessTimeoutError,
    ReadinessWaiter,
    build_targets,
)


class CountingProbe:
    """Probe that becomes ready after a fixed number of calls."""

    def __init__(self, ready_after: int | None) -> None:
        """``None`` means never ready."""
        self.ready_after = ready_after
        self.calls = 0

    def __call__(self) -> bool:
        self.calls += 1
        return self.ready_after is not None and self.calls >= self.ready_after


def _settings() -> StackSettings:
    return StackSettings(
        domain="dns.example.com",
        domain_dashboard="dashboard.example.com",
        email="ops@example.com",
        pdns_api_key="k" * 24,
        pdns_db_password="d" * 24,
        mysql_root_password="r" * 24,
        dash_user="admin",
        dash_pass="p" * 24,
    )


@pytest.mark.parametrize("attempts", [1, 3, 60])
def test_never_ready_probes_exactly_attempts_times(attempts: int) -> None:
    """A dead target is probed ``attempts`` times with one fewer sleeps."""
    sleeps: list[float] = []
    probe = CountingProbe(None)
    waiter = ReadinessWaiter(attempts=attempts, interval=2.0, sleep=sleeps.append)

    (result,) = waiter.wait([ReadinessTarget("PowerDNS API", "http://localhost:8081", probe)], "warn")

    assert probe.calls == attempts
    assert sleeps == [2.0] * (attempts - 1)
    assert result.ready is False
    assert result.attempts == attempts


def test_ready_target_stops_polling() -> None:
    """Polling stops as soon as the probe succeeds."""
    sleeps: list[float] = []
    probe = CountingProbe(3)
    waiter = ReadinessWaiter(attempts=60, interval=0.5, sleep=sleeps.append)

    (result,) = waiter.wait([ReadinessTarget("Backend UI", "http://localhost:5000", probe)], "fail")

    assert result.ready is True
    assert result.attempts == 3
    assert sleeps == [0.5, 0.5]


def test_warn_policy_continues_to_next_target() -> None:
    """Under ``warn`` a timeout is reported and later targets are still polled."""
    messages: list[str] = []
    first = CountingProbe(None)
    second = CountingProbe(1)
    waiter = ReadinessWaiter(attempts=2, interval=1.0, sleep=lambda _: None, progress=messages.append)

    results = waiter.wait(
        [
            ReadinessTarget("PowerDNS API", "http://localhost:8081", first),
            ReadinessTarget("Backend UI", "http://localhost:5000", second),
        ],
        "warn",
    )

    assert [result.ready for result in results] == [False, True]
    assert second.calls == 1
    assert results[0].timeout_message() in messages


def test_fail_policy_raises() -> None:
    """Under ``fail`` the first timeout aborts the wait."""
    second = CountingProbe(1)
    waiter = ReadinessWaiter(attempts=2, interval=1.0, sleep=lambda _: None)

    with pytest.raises(ReadinessTimeoutError) as excinfo:
        waiter.wait(
            [
                ReadinessTarget("PowerDNS API", "http://localhost:8081", CountingProbe(None)),
                ReadinessTarget("Backend UI", "http://localhost:5000", second),
            ],
            "fail",
        )

    assert "PowerDNS API" in str(excinfo.value)
    assert second.calls == 0


def test_unknown_policy_is_rejected() -> None:
    """Only ``warn`` and ``fail`` are meaningful."""
    with pytest.raises(ValueError):
        ReadinessWaiter(attempts=1, interval=1.0).wait([], "ignore")


@pytest.mark.parametrize(
    ("status", "expected"),
    [(200, True), (302, True), (401, False), (502, False)],
)
def test_http_prober_status_threshold(status: int, expected: bool) -> None:
    """Anything below 400 counts as up; redirects are not followed."""
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        headers = {"Location": "http://localhost:8081/login"} if status == 302 else {}
        return httpx.Response(status, headers=headers)

    prober = HttpProber(client=httpx.Client(transport=httpx.MockTransport(handler)))

    assert prober("http://localhost:8081") is expected
    assert seen == ["http://localhost:8081"]


def test_http_prober_connection_error_is_not_ready() -> None:
    """Transport errors count as a failed attempt."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    prober = HttpProber(client=httpx.Client(transport=httpx.MockTransport(handler)))

    assert prober("http://localhost:5000") is False


def test_build_targets_default_endpoints() -> None:
    """The defaults poll the PowerDNS API and the backend UI in order."""
    seen: list[str] = []

    targets = build_targets(ReadinessConfig(), _settings(), http=lambda url: seen.append(url) or True)
    for target in targets:
        target.probe()

    assert [target.location for target in targets] == [
        "http://localhost:8081",
        "http://localhost:5000",
    ]
    assert seen == ["http://localhost:8081", "http://localhost:5000"]


def test_build_targets_optional_probes(tmp_path: Path) -> None:
    """Database and HTTPS probes are added when enabled."""
    config = ReadinessConfig(database=DatabaseProbeConfig(enabled=True), https=True)

    targets = build_targets(
        config,
        _settings(),
        http=lambda url: True,
        database=lambda: True,  # type: ignore[arg-type]
    )

    assert [target.name for target in targets] == [
        "PowerDNS API",
        "Backend UI",
        "Database",
        "Backend HTTPS",
    ]
    assert targets[-1].location == "https://dns.example.com"


class DummyResult:
    """Simple stand-in for ``subprocess.CompletedProcess``."""

    def __init__(self, returncode: int = 0) -> None:
        """Initialise the dummy result."""
        self.returncode = returncode
        self.stdout = ""
        self.stderr = ""


def test_database_prober_passes_password_via_environment(tmp_path: Path) -> None:
    """The root password reaches the container through MYSQL_PWD, never argv."""
    calls: list[dict[str, object]] = []

    class RecordingRunner(CommandRunner):
        def run(self, args: Sequence[str], **kwargs: object) -> DummyResult:  # type: ignore[override]
            calls.append({"args": list(args), **kwargs})
            return DummyResult(returncode=1 if len(calls) == 1 else 0)

    docker = DockerProvider(
        config=DockerConfig(),
        downloader=Downloader(client=httpx.Client()),
        runner=RecordingRunner(),
    )
    prober = DatabaseProber(
        docker=docker,
        project_dir=tmp_path,
        compose_file=tmp_path / "docker-compose.yml",
        service="db",
        client="mariadb",
        password="r" * 24,
    )

    assert prober() is False
    assert prober() is True
    call = calls[0]
    assert call["args"] == [
        "docker", "compose", "-f", str(tmp_path / "docker-compose.yml"),
        "exec", "-T", "-e", "MYSQL_PWD", "db", "mariadb", "-uroot", "-e", "SELECT 1",
    ]
    assert "r" * 24 not in " ".join(call["args"])  # type: ignore[arg-type]
    assert call["env"] == {"MYSQL_PWD": "r" * 24}
    assert call["check"] is False
    assert call["cwd"] == tmp_path
