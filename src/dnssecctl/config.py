"""Configuration loader for dnssecctl.

This module centralises the logic for reading tool configuration values from
multiple sources:

1. Built-in defaults.
2. ``/etc/dnssecctl/config.yml`` (or an override path).
3. Environment variables prefixed with ``DNSSECCTL_``.
4. Explicit overrides supplied programmatically (CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export DNSSECCTL_READINESS__ATTEMPTS=30
    export DNSSECCTL_ARTIFACTS__FETCH_POLICY=always

Values are coerced via PyYAML's ``safe_load`` so that booleans and numbers are
parsed naturally. The resulting configuration is exposed as immutable
``dataclasses`` and is distinct from the stack's own ``.env`` record, which
lives in :mod:`dnssecctl.envfile`.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import cast

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure covered in tests
    raise RuntimeError(
        "PyYAML is required to load dnssecctl configuration. Install with "
        "`pip install dnssecctl` or ensure PyYAML>=6.0 is available."
    ) from exc


ENV_PREFIX = "DNSSECCTL_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}

FETCH_POLICIES = ("always", "if-missing")
READINESS_POLICIES = ("warn", "fail")


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class SecretsConfig:
    """Secret generation defaults used by the wizard."""

    entropy_bytes: int = 16
    default_dashboard_user: str = "admin"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "entropy_bytes": self.entropy_bytes,
            "default_dashboard_user": self.default_dashboard_user,
        }


@dataclass(frozen=True)
class ArtifactsConfig:
    """Remote compose/schema artifact locations."""

    base_url: str
    compose_source: str = "compose.prod.yml"
    schema_source: str = "schema.sql"
    schema_file: str = "schema.sql"
    fetch_policy: str = "if-missing"
    timeout: float = 30.0

    def source_url(self, name: str) -> str:
        """Return the absolute URL for artifact *name*."""
        return f"{self.base_url.rstrip('/')}/{name.lstrip('/')}"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "base_url": self.base_url,
            "compose_source": self.compose_source,
            "schema_source": self.schema_source,
            "schema_file": self.schema_file,
            "fetch_policy": self.fetch_policy,
            "timeout": self.timeout,
        }


@dataclass(frozen=True)
class DockerConfig:
    """Container runtime installation settings."""

    docker_bin: str = "docker"
    install_script_url: str = "https://get.docker.com"
    compose_version: str = "2.24.2"
    compose_url: str = (
        "https://github.com/docker/compose/releases/download/"
        "v{version}/docker-compose-{system}-{machine}"
    )
    plugin_dir: Path = Path("/usr/local/lib/docker/cli-plugins")

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "docker_bin": self.docker_bin,
            "install_script_url": self.install_script_url,
            "compose_version": self.compose_version,
            "compose_url": self.compose_url,
            "plugin_dir": str(self.plugin_dir),
        }


@dataclass(frozen=True)
class FirewallConfig:
    """Firewall rules opened for the stack."""

    ufw_bin: str = "ufw"
    rules: tuple[str, ...] = ("22/tcp", "80/tcp", "443/tcp", "53/tcp", "53/udp", "8081/tcp")

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"ufw_bin": self.ufw_bin, "rules": list(self.rules)}


@dataclass(frozen=True)
class ResolverConfig:
    """Port 53 ownership and fallback resolver settings."""

    stub_service: str = "systemd-resolved"
    resolv_conf: Path = Path("/etc/resolv.conf")
    fallback_nameservers: tuple[str, ...] = ("1.1.1.1", "8.8.8.8")
    ss_bin: str = "ss"
    port: int = 53
    stack_processes: tuple[str, ...] = ("docker-proxy", "pdns_server")

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "stub_service": self.stub_service,
            "resolv_conf": str(self.resolv_conf),
            "fallback_nameservers": list(self.fallback_nameservers),
            "ss_bin": self.ss_bin,
            "port": self.port,
            "stack_processes": list(self.stack_processes),
        }


@dataclass(frozen=True)
class SystemdConfig:
    """Systemd integration configuration values."""

    unit_dir: Path = Path("/etc/systemd/system")
    unit_name: str = "dnssecmanager.service"
    systemctl_bin: str = "systemctl"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "unit_dir": str(self.unit_dir),
            "unit_name": self.unit_name,
            "systemctl_bin": self.systemctl_bin,
        }


@dataclass(frozen=True)
class ReadinessEndpoint:
    """A named HTTP endpoint polled after the stack starts."""

    name: str
    url: str

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"name": self.name, "url": self.url}


@dataclass(frozen=True)
class DatabaseProbeConfig:
    """Optional database readiness probe executed inside the stack."""

    enabled: bool = False
    service: str = "db"
    client: str = "mariadb"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"enabled": self.enabled, "service": self.service, "client": self.client}


@dataclass(frozen=True)
class ReadinessConfig:
    """Polling budget and timeout policy for readiness checks."""

    attempts: int = 60
    interval: float = 2.0
    timeout: float = 5.0
    policy: str = "warn"
    update_policy: str = "warn"
    endpoints: tuple[ReadinessEndpoint, ...] = (
        ReadinessEndpoint(name="PowerDNS API", url="http://localhost:8081"),
        ReadinessEndpoint(name="Backend UI", url="http://localhost:5000"),
    )
    database: DatabaseProbeConfig = DatabaseProbeConfig()
    https: bool = False

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "attempts": self.attempts,
            "interval": self.interval,
            "timeout": self.timeout,
            "policy": self.policy,
            "update_policy": self.update_policy,
            "endpoints": [endpoint.to_dict() for endpoint in self.endpoints],
            "database": self.database.to_dict(),
            "https": self.https,
        }


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for dnssecctl."""

    config_file: Path
    install_dir: Path
    env_file: str
    compose_file: str
    logs_dir: Path
    runtime_dir: Path
    templates_dir: Path
    lock_timeout: float
    project_name: str
    basic_auth: bool
    secrets: SecretsConfig
    artifacts: ArtifactsConfig
    docker: DockerConfig
    firewall: FirewallConfig
    resolver: ResolverConfig
    systemd: SystemdConfig
    readiness: ReadinessConfig

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "install_dir": str(self.install_dir),
            "env_file": self.env_file,
            "compose_file": self.compose_file,
            "logs_dir": str(self.logs_dir),
            "runtime_dir": str(self.runtime_dir),
            "templates_dir": str(self.templates_dir),
            "lock_timeout": self.lock_timeout,
            "project_name": self.project_name,
            "basic_auth": self.basic_auth,
            "secrets": self.secrets.to_dict(),
            "artifacts": self.artifacts.to_dict(),
            "docker": self.docker.to_dict(),
            "firewall": self.firewall.to_dict(),
            "resolver": self.resolver.to_dict(),
            "systemd": self.systemd.to_dict(),
            "readiness": self.readiness.to_dict(),
        }


DEFAULTS: dict[str, object] = {
    "config_file": "/etc/dnssecctl/config.yml",
    "install_dir": "/opt/dnssec-manager",
    "env_file": ".env",
    "compose_file": "docker-compose.yml",
    "logs_dir": None,  # derived from install_dir when absent
    "runtime_dir": "/run/dnssecctl",
    "templates_dir": "/etc/dnssecctl/templates",
    "lock_timeout": 10.0,
    "project_name": "DNSSEC-Manager",
    "basic_auth": True,
    "secrets": {
        "entropy_bytes": 16,
        "default_dashboard_user": "admin",
    },
    "artifacts": {
        "base_url": "https://raw.githubusercontent.com/DNSSEC-Manager/DNSSEC-Manager/main/",
        "compose_source": "compose.prod.yml",
        "schema_source": "schema.sql",
        "schema_file": "schema.sql",
        "fetch_policy": "if-missing",
        "timeout": 30.0,
    },
    "docker": {
        "docker_bin": "docker",
        "install_script_url": "https://get.docker.com",
        "compose_version": "2.24.2",
        "compose_url": DockerConfig.compose_url,
        "plugin_dir": "/usr/local/lib/docker/cli-plugins",
    },
    "firewall": {
        "ufw_bin": "ufw",
        "rules": ["22/tcp", "80/tcp", "443/tcp", "53/tcp", "53/udp", "8081/tcp"],
    },
    "resolver": {
        "stub_service": "systemd-resolved",
        "resolv_conf": "/etc/resolv.conf",
        "fallback_nameservers": ["1.1.1.1", "8.8.8.8"],
        "ss_bin": "ss",
        "port": 53,
        "stack_processes": ["docker-proxy", "pdns_server"],
    },
    "systemd": {
        "unit_dir": "/etc/systemd/system",
        "unit_name": "dnssecmanager.service",
        "systemctl_bin": "systemctl",
    },
    "readiness": {
        "attempts": 60,
        "interval": 2.0,
        "timeout": 5.0,
        "policy": "warn",
        "update_policy": "warn",
        "endpoints": [
            {"name": "PowerDNS API", "url": "http://localhost:8081"},
            {"name": "Backend UI", "url": "http://localhost:5000"},
        ],
        "database": {"enabled": False, "service": "db", "client": "mariadb"},
        "https": False,
    },
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
_SECTION_KEYS: dict[str, set[str]] = {
    "secrets": {"entropy_bytes", "default_dashboard_user"},
    "artifacts": {
        "base_url",
        "compose_source",
        "schema_source",
        "schema_file",
        "fetch_policy",
        "timeout",
    },
    "docker": {"docker_bin", "install_script_url", "compose_version", "compose_url", "plugin_dir"},
    "firewall": {"ufw_bin", "rules"},
    "resolver": {
        "stub_service",
        "resolv_conf",
        "fallback_nameservers",
        "ss_bin",
        "port",
        "stack_processes",
    },
    "systemd": {"unit_dir", "unit_name", "systemctl_bin"},
    "readiness": {
        "attempts",
        "interval",
        "timeout",
        "policy",
        "update_policy",
        "endpoints",
        "database",
        "https",
    },
}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override)
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR])
    return Path(default_path)


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    lock_timeout = raw.get("lock_timeout")
    if lock_timeout is not None:
        _expect_positive_float(lock_timeout, "lock_timeout", default=10.0)

    for section, allowed in _SECTION_KEYS.items():
        mapping = _as_dict(raw.get(section), section)
        unknown = set(mapping.keys()) - allowed
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown {section} configuration keys: {joined}.")

    artifacts = _as_dict(raw.get("artifacts"), "artifacts")
    _expect_choice(artifacts.get("fetch_policy"), "artifacts.fetch_policy", FETCH_POLICIES)

    readiness = _as_dict(raw.get("readiness"), "readiness")
    _expect_choice(readiness.get("policy"), "readiness.policy", READINESS_POLICIES)
    _expect_choice(readiness.get("update_policy"), "readiness.update_policy", READINESS_POLICIES)
    database = _as_dict(readiness.get("database"), "readiness.database")
    unknown_db = set(database.keys()) - {"enabled", "service", "client"}
    if unknown_db:
        joined = ", ".join(sorted(unknown_db))
        raise ConfigError(f"Unknown readiness.database keys: {joined}.")
    endpoints = readiness.get("endpoints")
    if endpoints is not None:
        for index, entry in enumerate(_as_sequence(endpoints, "readiness.endpoints")):
            mapping = _as_dict(entry, f"readiness.endpoints[{index}]")
            unknown_endpoint = set(mapping.keys()) - {"name", "url"}
            if unknown_endpoint:
                joined = ", ".join(sorted(unknown_endpoint))
                raise ConfigError(f"Unknown keys for readiness.endpoints[{index}]: {joined}.")


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    config_file = _to_path(raw.get("config_file"))
    install_dir = _to_path(raw.get("install_dir"))
    logs_dir_value = raw.get("logs_dir")
    logs_dir = _to_path(logs_dir_value) if logs_dir_value else install_dir / "logs"
    runtime_dir = _to_path(raw.get("runtime_dir"))
    templates_dir = _to_path(raw.get("templates_dir"))
    lock_timeout = _expect_positive_float(raw.get("lock_timeout"), "lock_timeout", default=10.0)

    secrets_mapping = _as_dict(raw.get("secrets"), "secrets")
    entropy_bytes = _expect_int(
        secrets_mapping.get("entropy_bytes"), "secrets.entropy_bytes", default=16
    )
    if entropy_bytes < 16:
        raise ConfigError("secrets.entropy_bytes must be at least 16.")
    dashboard_user = str(secrets_mapping.get("default_dashboard_user", "admin")).strip()
    if not dashboard_user:
        raise ConfigError("secrets.default_dashboard_user must be a non-empty string.")
    secrets_config = SecretsConfig(
        entropy_bytes=entropy_bytes,
        default_dashboard_user=dashboard_user,
    )

    artifacts_mapping = _as_dict(raw.get("artifacts"), "artifacts")
    artifacts = ArtifactsConfig(
        base_url=_expect_non_empty(artifacts_mapping.get("base_url"), "artifacts.base_url"),
        compose_source=_expect_non_empty(
            artifacts_mapping.get("compose_source", "compose.prod.yml"),
            "artifacts.compose_source",
        ),
        schema_source=_expect_non_empty(
            artifacts_mapping.get("schema_source", "schema.sql"), "artifacts.schema_source"
        ),
        schema_file=_expect_non_empty(
            artifacts_mapping.get("schema_file", "schema.sql"), "artifacts.schema_file"
        ),
        fetch_policy=str(artifacts_mapping.get("fetch_policy", "if-missing")),
        timeout=_expect_positive_float(
            artifacts_mapping.get("timeout"), "artifacts.timeout", default=30.0
        ),
    )

    docker_mapping = _as_dict(raw.get("docker"), "docker")
    docker = DockerConfig(
        docker_bin=str(docker_mapping.get("docker_bin", "docker")),
        install_script_url=str(
            docker_mapping.get("install_script_url", "https://get.docker.com")
        ),
        compose_version=str(docker_mapping.get("compose_version", "2.24.2")).lstrip("v"),
        compose_url=str(docker_mapping.get("compose_url", DockerConfig.compose_url)),
        plugin_dir=_to_path(docker_mapping.get("plugin_dir", "/usr/local/lib/docker/cli-plugins")),
    )

    firewall_mapping = _as_dict(raw.get("firewall"), "firewall")
    firewall = FirewallConfig(
        ufw_bin=str(firewall_mapping.get("ufw_bin", "ufw")),
        rules=_string_tuple(firewall_mapping.get("rules"), "firewall.rules"),
    )

    resolver_mapping = _as_dict(raw.get("resolver"), "resolver")
    port = _expect_int(resolver_mapping.get("port"), "resolver.port", default=53)
    if not 0 < port < 65536:
        raise ConfigError(f"resolver.port must be between 1 and 65535. Got {port}.")
    nameservers = _string_tuple(
        resolver_mapping.get("fallback_nameservers"), "resolver.fallback_nameservers"
    )
    if not nameservers:
        raise ConfigError("resolver.fallback_nameservers must list at least one address.")
    resolver = ResolverConfig(
        stub_service=str(resolver_mapping.get("stub_service", "systemd-resolved")),
        resolv_conf=_to_path(resolver_mapping.get("resolv_conf", "/etc/resolv.conf")),
        fallback_nameservers=nameservers,
        ss_bin=str(resolver_mapping.get("ss_bin", "ss")),
        port=port,
        stack_processes=_string_tuple(
            resolver_mapping.get("stack_processes"), "resolver.stack_processes"
        ),
    )

    systemd_mapping = _as_dict(raw.get("systemd"), "systemd")
    unit_name = str(systemd_mapping.get("unit_name", "dnssecmanager.service"))
    if not unit_name.endswith(".service"):
        unit_name = f"{unit_name}.service"
    systemd = SystemdConfig(
        unit_dir=_to_path(systemd_mapping.get("unit_dir", "/etc/systemd/system")),
        unit_name=unit_name,
        systemctl_bin=str(systemd_mapping.get("systemctl_bin", "systemctl")),
    )

    readiness = _build_readiness(_as_dict(raw.get("readiness"), "readiness"))

    return AppConfig(
        config_file=config_file,
        install_dir=install_dir,
        env_file=_expect_non_empty(raw.get("env_file", ".env"), "env_file"),
        compose_file=_expect_non_empty(
            raw.get("compose_file", "docker-compose.yml"), "compose_file"
        ),
        logs_dir=logs_dir,
        runtime_dir=runtime_dir,
        templates_dir=templates_dir,
        lock_timeout=lock_timeout,
        project_name=str(raw.get("project_name", "DNSSEC-Manager")),
        basic_auth=_expect_bool(raw.get("basic_auth"), "basic_auth", default=True),
        secrets=secrets_config,
        artifacts=artifacts,
        docker=docker,
        firewall=firewall,
        resolver=resolver,
        systemd=systemd,
        readiness=readiness,
    )


def _build_readiness(mapping: Mapping[str, object]) -> ReadinessConfig:
    attempts = _expect_int(mapping.get("attempts"), "readiness.attempts", default=60)
    if attempts < 1:
        raise ConfigError("readiness.attempts must be at least 1.")
    interval = _expect_positive_float(mapping.get("interval"), "readiness.interval", default=2.0)
    timeout = _expect_positive_float(mapping.get("timeout"), "readiness.timeout", default=5.0)

    endpoints: list[ReadinessEndpoint] = []
    raw_endpoints = mapping.get("endpoints")
    if raw_endpoints is None:
        endpoints.extend(ReadinessConfig().endpoints)
    else:
        for index, entry in enumerate(_as_sequence(raw_endpoints, "readiness.endpoints")):
            entry_map = _as_dict(entry, f"readiness.endpoints[{index}]")
            url = _expect_non_empty(entry_map.get("url"), f"readiness.endpoints[{index}].url")
            if not url.startswith(("http://", "https://")):
                raise ConfigError(
                    f"readiness.endpoints[{index}].url must be an http(s) URL. Got {url!r}."
                )
            name = str(entry_map.get("name") or url)
            endpoints.append(ReadinessEndpoint(name=name, url=url))

    database_mapping = _as_dict(mapping.get("database"), "readiness.database")
    database = DatabaseProbeConfig(
        enabled=_expect_bool(
            database_mapping.get("enabled"), "readiness.database.enabled", default=False
        ),
        service=str(database_mapping.get("service", "db")),
        client=str(database_mapping.get("client", "mariadb")),
    )

    return ReadinessConfig(
        attempts=attempts,
        interval=interval,
        timeout=timeout,
        policy=str(mapping.get("policy", "warn")),
        update_policy=str(mapping.get("update_policy", "warn")),
        endpoints=tuple(endpoints),
        database=database,
        https=_expect_bool(mapping.get("https"), "readiness.https", default=False),
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        elif isinstance(value, list):
            result[key] = list(value)
        else:
            result[key] = value
    return result


def _as_sequence(value: object, label: str) -> Sequence[object]:
    if isinstance(value, (str, bytes)):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    if not isinstance(value, Sequence):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    return value


def _string_tuple(value: object | None, label: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        # Environment overrides arrive as comma-separated strings.
        return tuple(part.strip() for part in value.split(",") if part.strip())
    items: list[str] = []
    for index, item in enumerate(_as_sequence(value, label)):
        if not isinstance(item, (str, int)) or isinstance(item, bool):
            raise ConfigError(f"{label}[{index}] must be a string.")
        text = str(item).strip()
        if text:
            items.append(text)
    return tuple(items)


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_int(value: object | None, label: str, *, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be an integer. Got boolean {value!r}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 0)
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for {label}: {value!r}.") from exc
    raise ConfigError(f"Expected {label} to be an integer. Got {type(value).__name__}.")


def _expect_bool(value: object | None, label: str, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    raise ConfigError(f"Expected {label} to be a boolean. Got {value!r}.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _expect_non_empty(value: object | None, label: str) -> str:
    if value is None or not str(value).strip():
        raise ConfigError(f"{label} must be a non-empty string.")
    return str(value).strip()


def _expect_choice(value: object | None, label: str, allowed: Sequence[str]) -> None:
    if value is None:
        return
    if str(value) not in allowed:
        joined = ", ".join(allowed)
        raise ConfigError(f"Unsupported {label} '{value}'. Allowed: {joined}.")


def _expect_positive_float(
    value: object | None,
    label: str,
    *,
    default: float,
) -> float:
    if value is None:
        return float(default)
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be a number. Got boolean {value!r}.")
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        try:
            numeric = float(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid number for {label}: {value!r}.") from exc
    else:
        raise ConfigError(
            f"Expected {label} to be numeric. Got {type(value).__name__}."
        )
    if numeric <= 0:
        raise ConfigError(f"{label} must be greater than zero. Got {numeric}.")
    return numeric


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "ArtifactsConfig",
    "ConfigError",
    "DatabaseProbeConfig",
    "DockerConfig",
    "FETCH_POLICIES",
    "FirewallConfig",
    "READINESS_POLICIES",
    "ReadinessConfig",
    "ReadinessEndpoint",
    "ResolverConfig",
    "SecretsConfig",
    "SystemdConfig",
    "load_config",
]
