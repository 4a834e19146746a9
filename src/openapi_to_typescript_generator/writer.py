"""Filesystem writer for generated client packages."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from .model_types import GeneratedFile

logger = logging.getLogger(__name__)


class WriteError(RuntimeError):
    """Raised when output files cannot be written."""


def prepare_output_dir(output_dir: Path, *, overwrite: bool) -> None:
    """Create the output directory, refusing a non-empty one unless ``overwrite``.

    Args:
        output_dir (Path): Root output directory.
        overwrite (bool): Whether existing contents may be replaced.
    """
    if output_dir.exists():
        if not output_dir.is_dir():
            raise WriteError(f"Output path exists and is not a directory: {output_dir}")
        if any(output_dir.iterdir()) and not overwrite:
            raise WriteError(f"Output directory is not empty: {output_dir}")
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WriteError(f"Failed to create output directory {output_dir}: {exc}") from exc


def write_generated_files(
    files: Iterable[GeneratedFile],
    output_dir: Path,
    *,
    overwrite: bool = False,
) -> list[Path]:
    """Write generated files under ``output_dir``.

    Args:
        files (Iterable[GeneratedFile]): Files returned by the generator.
        output_dir (Path): Root output directory.
        overwrite (bool): Whether a non-empty ``output_dir`` may be written into.

    Returns:
        list[Path]: Paths written, in input order.
    """
    prepare_output_dir(output_dir, overwrite=overwrite)
    written: list[Path] = []
    for generated in files:
        path = output_dir / _safe_relative(generated.path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WriteError(f"Failed to create directory {path.parent}: {exc}") from exc
        _write_file(path, generated.content)
        written.append(path)
    logger.debug("Wrote %d file(s) to %s", len(written), output_dir)
    return written


def _safe_relative(relative: str) -> Path:
    parts = PurePosixPath(relative).parts
    if not parts or PurePosixPath(relative).is_absolute() or ".." in parts:
        raise WriteError(f"Refusing to write outside the output directory: {relative}")
    return Path(*parts)


def _write_file(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8", newline="\n")
    except OSError as exc:
        raise WriteError(f"Failed to write file {path}: {exc}") from exc
