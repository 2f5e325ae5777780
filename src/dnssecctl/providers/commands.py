"""Subprocess wrapper shared by every host-facing provider."""
from __future__ import annotations

import logging
import os
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

LOGGER = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """Raised when an external command is missing or exits non-zero."""

    def __init__(self, message: str, *, returncode: int | None = None) -> None:
        """Store the failing exit status alongside the message."""
        super().__init__(message)
        self.returncode = returncode


@dataclass(slots=True)
class CommandRunner:
    """Run external tools with consistent error reporting."""

    dry_run: bool = False

    def which(self, command: str) -> str | None:
        """Return the resolved executable path for *command*, if any."""
        path = Path(command)
        if path.is_absolute():
            return str(path) if path.exists() and os.access(path, os.X_OK) else None
        return shutil.which(command)

    def run(
        self,
        args: Sequence[str],
        *,
        check: bool = True,
        capture_output: bool = True,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Execute *args* and return the completed process.

        ``env`` entries are layered over the current environment. Missing
        binaries and (when ``check`` is set) non-zero exits raise
        :class:`CommandError`.
        """
        argv = [str(item) for item in args]
        if self.dry_run:
            LOGGER.debug("dry-run: %s", " ".join(argv))
            return subprocess.CompletedProcess(argv, returncode=0, stdout="", stderr="")
        full_env = None
        if env:
            full_env = dict(os.environ)
            full_env.update(env)
        LOGGER.debug("exec: %s (cwd=%s)", " ".join(argv), cwd)
        try:
            result = subprocess.run(  # noqa: S603
                argv,
                capture_output=capture_output,
                text=True,
                check=False,
                cwd=str(cwd) if cwd is not None else None,
                env=full_env,
                input=input_text,
            )
        except FileNotFoundError as exc:
            raise CommandError(f"{argv[0]} not found: {exc}") from exc
        if check and result.returncode != 0:
            stdout = getattr(result, "stdout", "") or ""
            stderr = getattr(result, "stderr", "") or ""
            message = stderr.strip() or stdout.strip() or "no output"
            raise CommandError(
                f"{' '.join(argv[:3])} failed (exit {result.returncode}): {message}",
                returncode=result.returncode,
            )
        return result

    def succeeds(self, args: Sequence[str], *, cwd: Path | None = None) -> bool:
        """Return ``True`` when *args* runs and exits zero."""
        try:
            result = self.run(args, check=False, cwd=cwd)
        except CommandError:
            return False
        return result.returncode == 0


__all__ = ["CommandError", "CommandRunner"]
