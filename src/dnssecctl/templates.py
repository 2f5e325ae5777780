"""Jinja2 template rendering for generated host files."""
from __future__ import annotations

import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
)

BUILTIN_TEMPLATE_PACKAGE = "dnssecctl"
BUILTIN_TEMPLATE_PATH = "assets/templates"


@dataclass(slots=True)
class TemplateEngine:
    """Render built-in templates, optionally shadowed by an override directory."""

    environment: Environment

    @classmethod
    def with_overrides(cls, override_dir: Path | None) -> TemplateEngine:
        """Return an engine whose lookups prefer *override_dir* when it exists."""
        loaders = []
        if override_dir is not None and Path(override_dir).is_dir():
            loaders.append(FileSystemLoader(str(override_dir)))
        loaders.append(PackageLoader(BUILTIN_TEMPLATE_PACKAGE, BUILTIN_TEMPLATE_PATH))
        environment = Environment(
            loader=ChoiceLoader(loaders),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,  # noqa: S701 - renders config files, not HTML
        )
        return cls(environment=environment)

    def render_to_string(self, template_name: str, context: Mapping[str, object]) -> str:
        """Render *template_name* with *context*."""
        template = self.environment.get_template(template_name)
        return template.render(**dict(context))

    def render_to_path(
        self,
        template_name: str,
        destination: Path,
        context: Mapping[str, object],
        *,
        mode: int = 0o644,
    ) -> bool:
        """Render into *destination*, returning ``True`` when content changed.

        The file is replaced atomically. An identical existing file is left
        untouched apart from its mode.
        """
        rendered = self.render_to_string(template_name, context)
        destination = Path(destination)
        if destination.is_file() and not destination.is_symlink():
            if destination.read_text(encoding="utf-8") == rendered:
                if (destination.stat().st_mode & 0o777) != mode:
                    destination.chmod(mode)
                return False
        write_atomic(destination, rendered, mode=mode)
        return True


def write_atomic(destination: Path, content: str | bytes, *, mode: int = 0o644) -> None:
    """Write *content* to *destination* via a temporary file and rename."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{destination.name}.", dir=destination.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            data = content.encode("utf-8") if isinstance(content, str) else content
            handle.write(data)
        tmp_path.chmod(mode)
        # os.replace swaps a symlink for a regular file rather than following it.
        os.replace(tmp_path, destination)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


__all__ = ["TemplateEngine", "write_atomic"]
