"""Unit tests for writing generated files to disk."""

from __future__ import annotations

from pathlib import Path

import pytest

from openapi_to_typescript_generator.model_types import FileCategory, GeneratedFile
from openapi_to_typescript_generator.writer import WriteError, write_generated_files

_FILES = (
    GeneratedFile("index.ts", "export * from './runtime';\n", FileCategory.RUNTIME),
    GeneratedFile("models/pet.ts", "export interface Pet {}\n", FileCategory.MODELS),
)


def test_writes_nested_files(tmp_path: Path) -> None:
    """Files are written under the output directory, creating subdirectories."""
    output_dir = tmp_path / "client"
    written = write_generated_files(_FILES, output_dir)
    assert written == [output_dir / "index.ts", output_dir / "models" / "pet.ts"]
    assert (output_dir / "models" / "pet.ts").read_text(encoding="utf-8") == (
        "export interface Pet {}\n"
    )


def test_refuses_non_empty_directory(tmp_path: Path) -> None:
    """A non-empty output directory is left alone unless overwriting."""
    (tmp_path / "keep.txt").write_text("keep", encoding="utf-8")
    with pytest.raises(WriteError, match="not empty"):
        write_generated_files(_FILES, tmp_path)
    assert not (tmp_path / "index.ts").exists()


def test_empty_existing_directory_is_accepted(tmp_path: Path) -> None:
    """An existing empty directory may be written into."""
    written = write_generated_files(_FILES, tmp_path)
    assert len(written) == 2


def test_overwrite_replaces_files(tmp_path: Path) -> None:
    """With ``overwrite`` existing files are replaced and others kept."""
    (tmp_path / "index.ts").write_text("old", encoding="utf-8")
    (tmp_path / "keep.txt").write_text("keep", encoding="utf-8")
    write_generated_files(_FILES, tmp_path, overwrite=True)
    assert (tmp_path / "index.ts").read_text(encoding="utf-8") == "export * from './runtime';\n"
    assert (tmp_path / "keep.txt").exists()


def test_output_path_must_be_a_directory(tmp_path: Path) -> None:
    """A file at the output path is an error."""
    target = tmp_path / "client"
    target.write_text("", encoding="utf-8")
    with pytest.raises(WriteError, match="not a directory"):
        write_generated_files(_FILES, target, overwrite=True)


@pytest.mark.parametrize("relative", ["../escape.ts", "/absolute.ts", "models/../../x.ts"])
def test_paths_outside_output_are_refused(tmp_path: Path, relative: str) -> None:
    """Generated paths may not leave the output directory."""
    files = [GeneratedFile(relative, "", FileCategory.MODELS)]
    with pytest.raises(WriteError, match="outside the output directory"):
        write_generated_files(files, tmp_path / "client")
