"""Interactive configuration wizard.

Two states: *fresh* (no record yet, or a reinstall) prompts for every value and
persists the record; *existing* loads the record verbatim and never prompts, so
secrets stay stable across re-runs.
"""
from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol

from .config import SecretsConfig
from .credentials import escape_compose_value, generate_secret, hash_basic_auth
from .envfile import StackSettings, load_settings, write_settings

WizardState = Literal["fresh", "existing"]

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class WizardAborted(RuntimeError):
    """Raised when the operator abandons the wizard (EOF or interrupt)."""


class Prompter(Protocol):
    """Callable used to ask the operator a question."""

    def __call__(self, text: str, *, default: str = "", hide_input: bool = False) -> str:
        """Return the raw answer to *text*."""
        ...


@dataclass(frozen=True, slots=True)
class WizardOutcome:
    """Settings resolved by the wizard and how they were obtained."""

    settings: StackSettings
    state: WizardState
    generated: tuple[str, ...] = ()


def validate_domain(value: str) -> str:
    """Validate and normalise a domain/FQDN."""
    normalised = value.strip().lower().rstrip(".")
    if not normalised:
        raise ValueError("Domain must be a non-empty string.")
    if len(normalised) > 255:
        raise ValueError("Domain must be 255 characters or fewer.")
    if not re.fullmatch(r"[a-z0-9.-]+", normalised):
        raise ValueError("Domain may contain letters, numbers, dots, and hyphens.")
    if "." not in normalised:
        raise ValueError("Domain must be fully qualified (e.g. dns.example.com).")
    for label in normalised.split("."):
        if not label:
            raise ValueError("Domain cannot contain empty labels.")
        if label.startswith("-") or label.endswith("-"):
            raise ValueError("Domain labels cannot start or end with a hyphen.")
        if len(label) > 63:
            raise ValueError("Domain labels must be 63 characters or fewer.")
    return normalised


def validate_email(value: str) -> str:
    """Validate a contact email address."""
    normalised = value.strip()
    if not _EMAIL_PATTERN.match(normalised):
        raise ValueError("Email must look like name@example.com.")
    validate_domain(normalised.rsplit("@", 1)[1])
    return normalised


class ConfigurationWizard:
    """Collect or load the stack's :class:`StackSettings`."""

    def __init__(
        self,
        prompt: Prompter,
        secrets_config: SecretsConfig,
        *,
        basic_auth: bool = True,
        report: Callable[[str], None] | None = None,
        hasher: Callable[[str], str] = hash_basic_auth,
    ) -> None:
        """Store the prompt function and generation settings."""
        self._prompt = prompt
        self._secrets = secrets_config
        self._basic_auth = basic_auth
        self._report = report or (lambda message: None)
        self._hasher = hasher

    def run(self, env_file: Path, *, reinstall: bool) -> WizardOutcome:
        """Return settings, prompting only in the *fresh* state."""
        if env_file.is_file() and not reinstall:
            return WizardOutcome(settings=load_settings(env_file), state="existing")

        try:
            settings, generated = self.collect()
        except (EOFError, KeyboardInterrupt) as exc:
            raise WizardAborted("Configuration wizard was interrupted.") from exc
        write_settings(env_file, settings)
        return WizardOutcome(settings=settings, state="fresh", generated=generated)

    def collect(self) -> tuple[StackSettings, tuple[str, ...]]:
        """Prompt for every value; blank secret answers are generated."""
        generated: list[str] = []

        domain = self._ask_required(
            "Enter main domain for backend (e.g., dns.example.com)", validate_domain
        )
        domain_dashboard = self._ask_required(
            "Enter dashboard domain (e.g., dashboard.example.com)", validate_domain
        )
        email = self._ask_required("Enter your email for Let's Encrypt", validate_email)

        def secret(label: str, key: str) -> str:
            answer = self._prompt(
                f"Enter {label} (leave empty to generate random)",
                default="",
                hide_input=True,
            ).strip()
            if answer:
                return answer
            generated.append(key)
            return generate_secret(self._secrets.entropy_bytes)

        pdns_api_key = secret("PowerDNS API key", "PDNS_API_KEY")
        mysql_root_password = secret("MariaDB root password", "MYSQL_ROOT_PASSWORD")
        pdns_db_password = secret("PowerDNS DB password", "PDNS_DB_PASSWORD")

        dash_user = self._prompt(
            "Enter dashboard username",
            default=self._secrets.default_dashboard_user,
        ).strip() or self._secrets.default_dashboard_user
        dash_pass = secret("dashboard password", "TRAEFIK_DASH_PASS")

        dash_auth = ""
        if self._basic_auth:
            dash_auth = escape_compose_value(self._hasher(dash_pass))

        settings = StackSettings(
            domain=domain,
            domain_dashboard=domain_dashboard,
            email=email,
            pdns_api_key=pdns_api_key,
            pdns_db_password=pdns_db_password,
            mysql_root_password=mysql_root_password,
            dash_user=dash_user,
            dash_pass=dash_pass,
            dash_auth=dash_auth,
        )
        return settings, tuple(generated)

    def _ask_required(self, text: str, validator: Callable[[str], str]) -> str:
        while True:
            answer = self._prompt(text, default="")
            try:
                return validator(answer)
            except ValueError as exc:
                self._report(str(exc))


__all__ = [
    "ConfigurationWizard",
    "Prompter",
    "WizardAborted",
    "WizardOutcome",
    "WizardState",
    "validate_domain",
    "validate_email",
]
