"""Remote artifact downloads (compose descriptor, schema, installers)."""
from __future__ import annotations

import logging
import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import httpx

from ..config import ArtifactsConfig
from ..templates import write_atomic

LOGGER = logging.getLogger(__name__)

FetchStatus = Literal["fetched", "kept"]


class ArtifactFetchError(RuntimeError):
    """Raised when a remote artifact cannot be downloaded."""


@dataclass(slots=True)
class Downloader:
    """Thin httpx wrapper that turns transport/status failures into errors."""

    client: httpx.Client
    timeout: float = 30.0

    @classmethod
    def default(cls, timeout: float = 30.0) -> Downloader:
        """Return a downloader backed by a redirect-following client."""
        client = httpx.Client(follow_redirects=True, timeout=timeout)
        return cls(client=client, timeout=timeout)

    def get_bytes(self, url: str) -> bytes:
        """Return the body of *url* or raise :class:`ArtifactFetchError`."""
        LOGGER.debug("download: %s", url)
        try:
            response = self.client.get(url, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise ArtifactFetchError(f"Failed to download {url}: {exc}") from exc
        if not response.is_success:
            raise ArtifactFetchError(
                f"Failed to download {url}: HTTP {response.status_code}"
            )
        return response.content

    def close(self) -> None:
        """Release the underlying HTTP client."""
        self.client.close()


@dataclass(slots=True)
class ArtifactRecord:
    """Outcome for a single artifact."""

    name: str
    url: str
    path: Path
    status: FetchStatus

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"name": self.name, "url": self.url, "path": str(self.path), "status": self.status}


@dataclass(slots=True)
class ArtifactFetchReport:
    """Outcome of an artifact fetch pass."""

    policy: str
    records: list[ArtifactRecord] = field(default_factory=list)

    @property
    def fetched(self) -> list[ArtifactRecord]:
        """Return the artifacts that were downloaded."""
        return [record for record in self.records if record.status == "fetched"]


@dataclass(slots=True)
class ArtifactFetcher:
    """Download the orchestration descriptor and schema into the workspace."""

    config: ArtifactsConfig
    downloader: Downloader

    def plan(self, compose_path: Path, schema_path: Path) -> Sequence[tuple[str, str, Path]]:
        """Return ``(name, url, destination)`` triples in fetch order."""
        return (
            ("compose", self.config.source_url(self.config.compose_source), compose_path),
            ("schema", self.config.source_url(self.config.schema_source), schema_path),
        )

    def fetch(
        self,
        compose_path: Path,
        schema_path: Path,
        *,
        policy: str,
        force: bool = False,
    ) -> ArtifactFetchReport:
        """Fetch artifacts according to *policy* (``always`` or ``if-missing``).

        ``force`` re-downloads regardless of policy. A directory sitting at a
        target path is treated as corruption and removed first.
        """
        report = ArtifactFetchReport(policy=policy)
        for name, url, destination in self.plan(compose_path, schema_path):
            if destination.is_dir() and not destination.is_symlink():
                LOGGER.debug("removing directory at artifact path %s", destination)
                shutil.rmtree(destination)
            if policy == "if-missing" and not force and destination.is_file():
                report.records.append(
                    ArtifactRecord(name=name, url=url, path=destination, status="kept")
                )
                continue
            payload = self.downloader.get_bytes(url)
            write_atomic(destination, payload, mode=0o644)
            report.records.append(
                ArtifactRecord(name=name, url=url, path=destination, status="fetched")
            )
        return report


__all__ = [
    "ArtifactFetchError",
    "ArtifactFetchReport",
    "ArtifactFetcher",
    "ArtifactRecord",
    "Downloader",
]
