"""The stack's persisted configuration record (``.env``).

The record is a flat ``KEY=VALUE`` file that docker compose reads for variable
substitution. It is written once per installation and afterwards treated as
the single source of truth: later runs load it verbatim and never regenerate
secrets.
"""
from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import ClassVar

from .templates import write_atomic

ENV_FILE_MODE = 0o600
_KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_NEEDS_QUOTES = re.compile(r"[\s#\"'\\]")


class EnvFileError(RuntimeError):
    """Raised when the configuration record is missing, malformed or incomplete."""


@dataclass(frozen=True)
class StackSettings:
    """Values collected by the wizard and consumed by every later step."""

    domain: str
    domain_dashboard: str
    email: str
    pdns_api_key: str
    pdns_db_password: str
    mysql_root_password: str
    dash_user: str
    dash_pass: str
    dash_auth: str = ""

    # field name -> record key
    KEYS: ClassVar[dict[str, str]] = {
        "domain": "DOMAIN",
        "domain_dashboard": "DOMAIN_DASHBOARD",
        "email": "EMAIL",
        "pdns_api_key": "PDNS_API_KEY",
        "pdns_db_password": "PDNS_DB_PASSWORD",
        "mysql_root_password": "MYSQL_ROOT_PASSWORD",
        "dash_user": "TRAEFIK_DASH_USER",
        "dash_pass": "TRAEFIK_DASH_PASS",
        "dash_auth": "TRAEFIK_DASH_AUTH",
    }
    OPTIONAL: ClassVar[frozenset[str]] = frozenset({"dash_auth"})

    @property
    def secrets(self) -> tuple[str, ...]:
        """Return every secret value, for redaction."""
        return (
            self.pdns_api_key,
            self.pdns_db_password,
            self.mysql_root_password,
            self.dash_pass,
            self.dash_auth,
        )

    def to_record(self) -> dict[str, str]:
        """Return the ordered ``KEY -> value`` mapping persisted to disk."""
        record: dict[str, str] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if item.name in self.OPTIONAL and not value:
                continue
            record[self.KEYS[item.name]] = value
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, str]) -> StackSettings:
        """Build settings from a parsed record, enforcing required keys."""
        values: dict[str, str] = {}
        missing: list[str] = []
        for name, key in cls.KEYS.items():
            value = record.get(key)
            if value is None or value == "":
                if name in cls.OPTIONAL:
                    values[name] = ""
                    continue
                missing.append(key)
                continue
            values[name] = value
        if missing:
            raise EnvFileError(
                "Configuration record is missing required keys: " + ", ".join(missing)
            )
        return cls(**values)


def format_value(value: str) -> str:
    """Return *value* quoted for the record when it contains special characters."""
    if "\n" in value or "\r" in value:
        raise EnvFileError("Values in the configuration record cannot span lines.")
    if not _NEEDS_QUOTES.search(value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def render_env(record: Mapping[str, str]) -> str:
    """Render *record* as ``KEY=VALUE`` lines."""
    lines: list[str] = []
    for key, value in record.items():
        if not _KEY_PATTERN.match(key):
            raise EnvFileError(f"Invalid configuration key {key!r}.")
        lines.append(f"{key}={format_value(value)}")
    return "\n".join(lines) + "\n"


def parse_env(lines: Iterable[str], *, source: str = "<record>") -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines, tolerating comments, ``export`` and quotes."""
    record: dict[str, str] = {}
    for number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not _KEY_PATTERN.match(key):
            raise EnvFileError(f"{source}:{number}: expected KEY=VALUE, got {raw.rstrip()!r}.")
        record[key] = _unquote(value.strip(), source=source, number=number)
    return record


def _unquote(value: str, *, source: str, number: int) -> str:
    if len(value) >= 2 and value[0] == value[-1] == "'":
        return value[1:-1]
    if len(value) >= 2 and value[0] == value[-1] == '"':
        inner = value[1:-1]
        result: list[str] = []
        index = 0
        while index < len(inner):
            char = inner[index]
            if char == "\\" and index + 1 < len(inner) and inner[index + 1] in {'"', "\\"}:
                result.append(inner[index + 1])
                index += 2
                continue
            result.append(char)
            index += 1
        return "".join(result)
    if value[:1] in {'"', "'"}:
        raise EnvFileError(f"{source}:{number}: unterminated quoted value.")
    return value


def read_env_file(path: Path) -> dict[str, str]:
    """Read and parse the record at *path*."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise EnvFileError(f"Configuration record {path} does not exist.") from exc
    return parse_env(text.splitlines(), source=str(path))


def load_settings(path: Path) -> StackSettings:
    """Load :class:`StackSettings` from the record at *path*."""
    return StackSettings.from_record(read_env_file(path))


def write_settings(path: Path, settings: StackSettings) -> None:
    """Persist *settings* atomically with owner-only permissions."""
    write_atomic(path, render_env(settings.to_record()), mode=ENV_FILE_MODE)


__all__ = [
    "ENV_FILE_MODE",
    "EnvFileError",
    "StackSettings",
    "format_value",
    "load_settings",
    "parse_env",
    "read_env_file",
    "render_env",
    "write_settings",
]
