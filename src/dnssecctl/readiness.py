"""Bounded readiness polling for the launched stack."""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

import httpx

from .config import READINESS_POLICIES, ReadinessConfig
from .envfile import StackSettings
from .providers.docker import DockerError, DockerProvider

LOGGER = logging.getLogger(__name__)


class ReadinessTimeoutError(RuntimeError):
    """Raised under the ``fail`` policy when a target never became ready."""


@dataclass(frozen=True, slots=True)
class ReadinessTarget:
    """A named endpoint plus the callable that probes it once."""

    name: str
    location: str
    probe: Callable[[], bool]


@dataclass(frozen=True, slots=True)
class ReadinessResult:
    """Outcome of polling a single target."""

    name: str
    location: str
    ready: bool
    attempts: int

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "name": self.name,
            "location": self.location,
            "ready": self.ready,
            "attempts": self.attempts,
        }

    def timeout_message(self) -> str:
        """Return the operator-facing message for a target that never came up."""
        return f"{self.name} did not respond at {self.location} after {self.attempts} attempts."


@dataclass(slots=True)
class HttpProber:
    """Single GET probe; any status below 400 counts as ready."""

    client: httpx.Client

    @classmethod
    def default(cls, timeout: float) -> HttpProber:
        """Return a prober backed by a non-redirecting client."""
        return cls(client=httpx.Client(follow_redirects=False, timeout=timeout))

    def __call__(self, url: str) -> bool:
        try:
            response = self.client.get(url, follow_redirects=False)
        except httpx.HTTPError as exc:
            LOGGER.debug("probe %s failed: %s", url, exc)
            return False
        return response.status_code < 400

    def close(self) -> None:
        """Release the underlying HTTP client."""
        self.client.close()


@dataclass(slots=True)
class DatabaseProber:
    """Run ``SELECT 1`` inside the database container."""

    docker: DockerProvider
    project_dir: Path
    compose_file: Path
    service: str
    client: str
    password: str

    def __call__(self) -> bool:
        try:
            result = self.docker.compose(
                self.project_dir,
                self.compose_file,
                "exec",
                "-T",
                "-e",
                "MYSQL_PWD",
                self.service,
                self.client,
                "-uroot",
                "-e",
                "SELECT 1",
                env={"MYSQL_PWD": self.password},
                check=False,
            )
        except DockerError as exc:
            LOGGER.debug("database probe failed: %s", exc)
            return False
        return result.returncode == 0


def build_targets(
    config: ReadinessConfig,
    settings: StackSettings,
    *,
    http: Callable[[str], bool],
    database: DatabaseProber | None = None,
) -> list[ReadinessTarget]:
    """Return the targets to poll, in order."""
    targets = [
        ReadinessTarget(
            name=endpoint.name,
            location=endpoint.url,
            probe=lambda url=endpoint.url: http(url),
        )
        for endpoint in config.endpoints
    ]
    if config.database.enabled and database is not None:
        targets.append(
            ReadinessTarget(
                name="Database",
                location=f"compose service {config.database.service}",
                probe=database,
            )
        )
    if config.https:
        url = f"https://{settings.domain}"
        targets.append(ReadinessTarget(name="Backend HTTPS", location=url, probe=lambda: http(url)))
    return targets


@dataclass(slots=True)
class ReadinessWaiter:
    """Poll targets a bounded number of times.

    Each target is probed at most ``attempts`` times with ``interval`` seconds
    between probes; there is no sleep after the final attempt.
    """

    attempts: int
    interval: float
    sleep: Callable[[float], None] = time.sleep
    progress: Callable[[str], None] | None = None

    def poll(self, target: ReadinessTarget) -> ReadinessResult:
        """Probe *target* until it is ready or attempts run out."""
        self._emit(f"Waiting for {target.name} at {target.location}...")
        for attempt in range(1, self.attempts + 1):
            if target.probe():
                self._emit(f"{target.name} is up.")
                return ReadinessResult(target.name, target.location, True, attempt)
            if attempt < self.attempts:
                self.sleep(self.interval)
        return ReadinessResult(target.name, target.location, False, self.attempts)

    def wait(self, targets: Sequence[ReadinessTarget], policy: str) -> list[ReadinessResult]:
        """Poll every target in order, applying the timeout *policy*."""
        if policy not in READINESS_POLICIES:
            raise ValueError(f"Unknown readiness policy {policy!r}.")
        results: list[ReadinessResult] = []
        for target in targets:
            result = self.poll(target)
            results.append(result)
            if result.ready:
                continue
            message = result.timeout_message()
            if policy == "fail":
                raise ReadinessTimeoutError(message)
            self._emit(message)
        return results

    def _emit(self, message: str) -> None:
        if self.progress is not None:
            self.progress(message)


__all__ = [
    "DatabaseProber",
    "HttpProber",
    "ReadinessResult",
    "ReadinessTarget",
    "ReadinessTimeoutError",
    "ReadinessWaiter",
    "build_targets",
]
