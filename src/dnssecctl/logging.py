"""Structured operation logging for dnssecctl.

Every CLI invocation opens an :class:`OperationScope` through
:meth:`StructuredLogger.operation`. Steps are appended while the pipeline runs
and a single JSON document is written to ``operations.jsonl`` when the scope
closes. Logging never interrupts provisioning: when the log directory cannot be
created or written the logger disables itself and carries on silently.

Secrets registered via :meth:`StructuredLogger.add_redactions` are replaced
with a placeholder in every string that reaches disk.
"""
from __future__ import annotations

import json
import os
import secrets
import time
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

REDACTED = "********"

StepStatus = Literal["success", "skipped", "warning", "error", "info"]


def _timestamp() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _sanitize(value: object) -> object:
    """Coerce *value* into JSON-safe primitives."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _sanitize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize(item) for item in value]
    return str(value)


class OperationScope:
    """Accumulates steps and the final result for a single operation."""

    def __init__(
        self,
        logger: StructuredLogger,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> None:
        """Initialise the scope; it is written when the context manager exits."""
        self._logger = logger
        self.op_id = secrets.token_hex(6)
        self.command = command
        self.args = dict(args or {})
        self.target = dict(target or {})
        self.started_at = _timestamp()
        self._start = time.perf_counter()
        self.steps: list[dict[str, object]] = []
        self.result: dict[str, object] | None = None

    # ------------------------------------------------------------------
    def add_step(
        self,
        name: str,
        *,
        status: StepStatus = "success",
        detail: str | None = None,
    ) -> None:
        """Record a pipeline step."""
        step: dict[str, object] = {"name": name, "status": status, "ts": _timestamp()}
        if detail:
            step["detail"] = detail
        self.steps.append(step)

    def success(
        self,
        message: str,
        *,
        changed: int = 0,
        warnings: Sequence[str] | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as successful."""
        self._set_result("success", message, changed=changed, warnings=warnings, context=context)

    def warning(
        self,
        message: str,
        *,
        warnings: Sequence[str] | None = None,
        errors: Sequence[str] | None = None,
        changed: int = 0,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as completed with warnings."""
        self._set_result(
            "warning",
            message,
            changed=changed,
            warnings=warnings,
            errors=errors,
            context=context,
        )

    def error(
        self,
        message: str,
        *,
        rc: int = 1,
        errors: Sequence[str] | None = None,
        warnings: Sequence[str] | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as failed."""
        self._set_result(
            "error",
            message,
            rc=rc,
            errors=errors if errors else [message],
            warnings=warnings,
            context=context,
        )

    # ------------------------------------------------------------------
    def _set_result(
        self,
        status: str,
        message: str,
        *,
        changed: int = 0,
        rc: int = 0,
        warnings: Sequence[str] | None = None,
        errors: Sequence[str] | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        self.result = {
            "status": status,
            "message": message,
            "changed": changed,
            "rc": rc,
            "warnings": list(warnings or []),
            "errors": list(errors or []),
            "context": _sanitize(dict(context or {})),
        }

    def to_record(self) -> dict[str, object]:
        """Return the JSON document describing this operation."""
        result = self.result
        if result is None:
            result = {
                "status": "error",
                "message": "Operation ended without a recorded result.",
                "changed": 0,
                "rc": 1,
                "warnings": [],
                "errors": ["no-result"],
                "context": {},
            }
        return {
            "op_id": self.op_id,
            "command": self.command,
            "args": _sanitize(self.args),
            "target": _sanitize(self.target),
            "started_at": self.started_at,
            "finished_at": _timestamp(),
            "duration_ms": int((time.perf_counter() - self._start) * 1000),
            "pid": os.getpid(),
            "steps": _sanitize(self.steps),
            "result": result,
        }


class StructuredLogger:
    """Append-only JSONL logger for dnssecctl operations."""

    def __init__(self, log_dir: Path) -> None:
        """Prepare the log directory, disabling the logger if it is unusable."""
        self._log_dir = Path(log_dir)
        self._operations_log_path = self._log_dir / "operations.jsonl"
        self._redactions: set[str] = set()
        self._enabled = True
        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            self._enabled = False

    @property
    def log_dir(self) -> Path:
        """Return the directory that receives operation records."""
        return self._log_dir

    @property
    def operations_log_path(self) -> Path:
        """Return the path of the JSONL operations log."""
        return self._operations_log_path

    def add_redactions(self, values: Iterable[str | None]) -> None:
        """Register secret values that must never reach the log.

        Values shorter than four characters are not registered; masking them
        would mangle unrelated text. Such values must be kept out of logged
        output by the caller, as :func:`dnssecctl.summary.render_summary` does.
        """
        for value in values:
            if value and len(value) >= 4:
                self._redactions.add(value)

    def redact(self, text: str) -> str:
        """Return *text* with every registered secret replaced."""
        result = text
        # Longest first so that a secret containing another is fully masked.
        for value in sorted(self._redactions, key=len, reverse=True):
            if value in result:
                result = result.replace(value, REDACTED)
        return result

    def _redact_value(self, value: object) -> object:
        if isinstance(value, str):
            return self.redact(value)
        if isinstance(value, dict):
            return {key: self._redact_value(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._redact_value(item) for item in value]
        return value

    @contextmanager
    def operation(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> Iterator[OperationScope]:
        """Yield an :class:`OperationScope` and persist it on exit."""
        scope = OperationScope(self, command, args=args, target=target)
        try:
            yield scope
        except BaseException as exc:
            if scope.result is None:
                scope.error(f"Unhandled {type(exc).__name__}: {exc}", errors=[repr(exc)])
            raise
        finally:
            self._write(scope.to_record())

    def write_text(self, path: Path, text: str) -> None:
        """Write a redacted text artefact (e.g. the console transcript)."""
        if not self._enabled:
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.redact(text), encoding="utf-8")
            path.chmod(0o600)
        except OSError:
            self._enabled = False

    def _write(self, record: Mapping[str, object]) -> None:
        if not self._enabled:
            return
        payload = self._redact_value(dict(record))
        try:
            # The directory may have been removed by a reinstall mid-run.
            self._log_dir.mkdir(parents=True, exist_ok=True)
            with self._operations_log_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(payload, sort_keys=True) + "\n")
        except OSError:
            self._enabled = False


__all__ = ["OperationScope", "REDACTED", "StructuredLogger"]
