"""Typer-powered command line entry point for ``dnssecctl``.

A single command drives the whole provisioning pipeline. Unrecognised
arguments are tolerated so wrapper scripts can pass extra flags through.
"""
from __future__ import annotations

import textwrap
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from . import get_version
from .config import FETCH_POLICIES, READINESS_POLICIES, AppConfig, ConfigError, load_config
from .envfile import EnvFileError
from .exit_codes import ExitCode
from .installer import InstallationMissingError, InstallOptions, StackInstaller
from .launcher import StackLauncher
from .locking import LockManager, LockTimeoutError
from .logging import OperationScope, StructuredLogger
from .ports import PortBusyError, PortGuard
from .providers import (
    ArtifactFetcher,
    ArtifactFetchError,
    CommandError,
    CommandRunner,
    DockerError,
    DockerProvider,
    Downloader,
    FirewallProvider,
    SystemdError,
    SystemdProvider,
)
from .readiness import HttpProber, ReadinessTimeoutError, ReadinessWaiter
from .summary import render_summary
from .templates import TemplateEngine
from .wizard import ConfigurationWizard, WizardAborted
from .workspace import Workspace

console = Console(record=True)

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        DNSSEC-Manager installer.

        Provisions PowerDNS, its database, the backend UI and Traefik as a
        docker compose stack, then keeps it running under systemd.
        """
    ).strip(),
)

VALIDATION_ERRORS: tuple[type[BaseException], ...] = (
    EnvFileError,
    InstallationMissingError,
    WizardAborted,
)
ENVIRONMENT_ERRORS: tuple[type[BaseException], ...] = (
    PortBusyError,
    LockTimeoutError,
    OSError,
)
PROVIDER_ERRORS: tuple[type[BaseException], ...] = (
    ArtifactFetchError,
    CommandError,
    DockerError,
    ReadinessTimeoutError,
    SystemdError,
)


@dataclass
class RuntimeContext:
    """Aggregated runtime objects for one invocation."""

    config: AppConfig
    workspace: Workspace
    locks: LockManager
    logger: StructuredLogger
    installer: StackInstaller
    downloader: Downloader
    http_prober: HttpProber

    def close(self) -> None:
        """Release network clients."""
        self.downloader.close()
        self.http_prober.close()


def _prompt(text: str, *, default: str = "", hide_input: bool = False) -> str:
    try:
        return typer.prompt(
            text,
            default=default,
            hide_input=hide_input,
            show_default=bool(default),
        )
    except typer.Abort as exc:
        raise WizardAborted("Configuration wizard was aborted.") from exc


def _build_runtime(config: AppConfig) -> RuntimeContext:
    workspace = Workspace.from_config(config)
    logger = StructuredLogger(config.logs_dir)
    locks = LockManager(config.runtime_dir, config.lock_timeout)
    runner = CommandRunner()
    templates = TemplateEngine.with_overrides(config.templates_dir)
    downloader = Downloader.default(config.artifacts.timeout)
    http_prober = HttpProber.default(config.readiness.timeout)

    systemd_provider = SystemdProvider(
        templates=templates,
        runner=runner,
        systemd_dir=config.systemd.unit_dir,
        unit_name=config.systemd.unit_name,
        systemctl_bin=config.systemd.systemctl_bin,
    )
    docker_provider = DockerProvider(config=config.docker, downloader=downloader, runner=runner)
    installer = StackInstaller(
        config,
        workspace,
        guard=PortGuard(
            config=config.resolver,
            systemd=systemd_provider,
            templates=templates,
            runner=runner,
        ),
        wizard=ConfigurationWizard(
            _prompt,
            config.secrets,
            basic_auth=config.basic_auth,
            report=lambda message: console.print(f"[red]{escape(message)}[/red]"),
        ),
        docker=docker_provider,
        fetcher=ArtifactFetcher(config=config.artifacts, downloader=downloader),
        firewall=FirewallProvider(runner=runner, ufw_bin=config.firewall.ufw_bin),
        launcher=StackLauncher(
            docker=docker_provider,
            systemd=systemd_provider,
            project_name=config.project_name,
        ),
        waiter=ReadinessWaiter(
            attempts=config.readiness.attempts,
            interval=config.readiness.interval,
            progress=lambda message: console.print(escape(message)),
        ),
        http_probe=http_prober,
        console=console,
        logger=logger,
    )
    return RuntimeContext(
        config=config,
        workspace=workspace,
        locks=locks,
        logger=logger,
        installer=installer,
        downloader=downloader,
        http_prober=http_prober,
    )


def _command_error(
    op: OperationScope,
    message: str,
    *,
    rc: int = ExitCode.VALIDATION,
    errors: Sequence[str] | None = None,
) -> NoReturn:
    """Emit a structured error and terminate the command."""
    console.print(f"[red]{escape(message)}[/red]")
    op.error(message, errors=list(errors or [message]), rc=int(rc))
    raise typer.Exit(code=int(rc))


def _save_transcript(runtime: RuntimeContext) -> None:
    transcript = runtime.workspace.transcript
    if transcript.parent.is_dir():
        runtime.logger.write_text(transcript, console.export_text())


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def install(  # noqa: PLR0913 - one flag per CLI option.
    ctx: typer.Context,
    reinstall: bool = typer.Option(
        False,
        "--reinstall",
        help="Wipe the installation directory and start from a fresh configuration.",
    ),
    update: bool = typer.Option(
        False,
        "--update",
        help="Refresh artifacts, pull images and restart an existing installation.",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config-file",
        dir_okay=False,
        help="Override the path to dnssecctl's YAML config file.",
    ),
    fetch_policy: str | None = typer.Option(
        None,
        "--fetch-policy",
        help="Artifact fetch policy for this run: always or if-missing.",
    ),
    readiness_policy: str | None = typer.Option(
        None,
        "--readiness-policy",
        help="What a readiness timeout does: warn or fail.",
    ),
    show_secrets: bool = typer.Option(
        False,
        "--show-secrets",
        help="Print secrets in the final summary (never written to logs).",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the dnssecctl version and exit.",
    ),
) -> None:
    """Install, reinstall or update the DNSSEC-Manager stack."""
    if version:
        console.print(f"dnssecctl {get_version()}")
        raise typer.Exit(code=ExitCode.OK)

    try:
        config = load_config(config_file=config_file)
    except ConfigError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=ExitCode.VALIDATION) from exc

    runtime = _build_runtime(config)
    options = InstallOptions(
        reinstall=reinstall,
        update_only=update,
        fetch_policy=fetch_policy,
        readiness_policy=readiness_policy,
        show_secrets=show_secrets,
    )
    try:
        with runtime.logger.operation(
            "install",
            args={
                "reinstall": reinstall,
                "update": update,
                "fetch_policy": fetch_policy,
                "readiness_policy": readiness_policy,
                "show_secrets": show_secrets,
                "ignored": list(ctx.args),
            },
            target={"kind": "stack", "install_dir": str(runtime.workspace.root)},
        ) as op:
            if ctx.args:
                console.print(
                    "[yellow]Ignoring unrecognised arguments:[/yellow] "
                    f"{escape(' '.join(ctx.args))}"
                )
            if reinstall and update:
                _command_error(op, "--reinstall and --update cannot be combined.")
            if fetch_policy is not None and fetch_policy not in FETCH_POLICIES:
                _command_error(
                    op,
                    f"--fetch-policy must be one of: {', '.join(FETCH_POLICIES)}.",
                )
            if readiness_policy is not None and readiness_policy not in READINESS_POLICIES:
                _command_error(
                    op,
                    f"--readiness-policy must be one of: {', '.join(READINESS_POLICIES)}.",
                )

            try:
                with runtime.locks.install_lock():
                    report = runtime.installer.run(options, op)
            except VALIDATION_ERRORS as exc:
                _command_error(op, str(exc), rc=ExitCode.VALIDATION)
            except ENVIRONMENT_ERRORS as exc:
                _command_error(op, str(exc), rc=ExitCode.ENVIRONMENT)
            except PROVIDER_ERRORS as exc:
                _command_error(op, str(exc), rc=ExitCode.PROVIDER)

            render_summary(
                console,
                report,
                endpoints=runtime.config.readiness.endpoints,
                show_secrets=show_secrets,
            )
            if report.warnings:
                op.warning(
                    "Stack provisioned with warnings.",
                    warnings=report.warnings,
                    changed=report.changed,
                    context=report.to_context(),
                )
            else:
                op.success(
                    "Stack provisioned.",
                    changed=report.changed,
                    context=report.to_context(),
                )
    finally:
        _save_transcript(runtime)
        runtime.close()


__all__ = ["app", "install"]
