"""Generator configuration models."""

from __future__ import annotations

import json
from enum import StrEnum
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError, ErrorCode, SourceLocation

_KNOWN_LANGUAGES: dict[str, str] = {
    "typescript": "typescript",
    "ts": "typescript",
    "rust": "rust",
}


def configuration_error(exc: ValidationError, source: Optional[str] = None) -> ConfigurationError:
    """Convert the first pydantic validation error into a ``ConfigurationError``."""
    first = exc.errors()[0]
    field_path = ".".join(str(part) for part in first["loc"]) or exc.title
    code = (
        ErrorCode.INVALID_WIDTH
        if field_path.endswith("max_line_width")
        else ErrorCode.INVALID_OPTION
    )
    return ConfigurationError(
        f"Invalid configuration option {field_path!r}: {first['msg']}",
        code=code,
        location=SourceLocation(file=source) if source else None,
    )


class ConfigModel(BaseModel):
    """Base for option models; invalid keyword arguments raise ``ConfigurationError``.

    Direct construction, such as ``EmissionConfig(max_line_width=0)``, reports
    problems the same way as :meth:`GeneratorConfig.from_mapping`.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    def __init__(self, /, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise configuration_error(exc) from exc


class NamingConvention(StrEnum):
    """Identifier and filename case conventions."""

    CAMEL = "camel"
    PASCAL = "pascal"
    SNAKE = "snake"
    KEBAB = "kebab"


class NamingConfig(ConfigModel):
    """Conventions applied to generated names."""

    types: NamingConvention = NamingConvention.PASCAL
    files: NamingConvention = NamingConvention.KEBAB
    methods: NamingConvention = NamingConvention.CAMEL
    properties: Literal["camel", "original"] = "camel"
    paths: Optional[NamingConvention] = None


class IndentationConfig(ConfigModel):
    """Indentation unit used by the pretty-printer and templates."""

    style: Literal["spaces", "tabs"] = "spaces"
    width: int = Field(default=2, gt=0)

    @model_validator(mode="before")
    @classmethod
    def _parse_shorthand(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        text = value.strip().lower()
        if text == "tabs":
            return {"style": "tabs"}
        if text.startswith("spaces"):
            _, _, count = text.partition(":")
            return {"style": "spaces", "width": int(count) if count else 2}
        raise ValueError(f"indentation must be 'spaces:N' or 'tabs', got {value!r}")

    @property
    def unit(self) -> str:
        """Return the literal text of one indentation level."""
        if self.style == "tabs":
            return "\t"
        return " " * self.width


class EmissionConfig(ConfigModel):
    """Pretty-printer and documentation options."""

    max_line_width: int = 80
    include_docs: bool = True
    indentation: IndentationConfig = IndentationConfig()
    enum_style: Literal["union", "enum"] = "union"
    sort_properties: bool = False

    @field_validator("max_line_width")
    @classmethod
    def _positive_width(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("max_line_width must be greater than zero")
        return value


class PackageConfig(ConfigModel):
    """Options for the emitted npm package files."""

    scope: Optional[str] = None
    name: Optional[str] = None
    version: Optional[str] = None
    description: Optional[str] = None
    module: Literal["commonjs", "esnext", "es2020", "es2022"] = "commonjs"
    target: str = "es6"
    generate_esm_config: bool = True
    include_build_scripts: bool = False

    @field_validator("scope")
    @classmethod
    def _normalize_scope(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        scope = value.strip()
        return scope if scope.startswith("@") else f"@{scope}"


class GeneratorConfig(ConfigModel):
    """Top-level configuration for one generator run."""

    output_dir: Path = Path("generated")
    languages: tuple[str, ...] = ("typescript",)
    overwrite: bool = False
    accept_openapi_30: bool = False
    naming: NamingConfig = NamingConfig()
    emission: EmissionConfig = EmissionConfig()
    package: PackageConfig = PackageConfig()

    @classmethod
    def from_mapping(cls, data: dict[str, Any], *, source: Optional[str] = None) -> GeneratorConfig:
        """Build a configuration from plain data, raising ``ConfigurationError``."""
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise configuration_error(exc, source) from exc

    def target_languages(self) -> tuple[str, ...]:
        """Return canonical language names, rejecting unknown ones."""
        if not self.languages:
            raise ConfigurationError(
                "At least one target language is required",
                code=ErrorCode.UNSUPPORTED_LANGUAGE,
            )
        canonical: list[str] = []
        for language in self.languages:
            name = _KNOWN_LANGUAGES.get(language.strip().lower())
            if name is None:
                raise ConfigurationError(
                    f"Unsupported language {language!r}; expected one of "
                    f"{', '.join(sorted(_KNOWN_LANGUAGES))}",
                    code=ErrorCode.UNSUPPORTED_LANGUAGE,
                )
            if name not in canonical:
                canonical.append(name)
        return tuple(canonical)


def load_config(path: Path) -> GeneratorConfig:
    """Load a configuration file written in YAML or JSON."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(
            f"Failed to read configuration file {path}: {exc}",
            code=ErrorCode.INVALID_OPTION,
            location=SourceLocation(file=str(path)),
        ) from exc

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(
            f"Failed to parse configuration file {path}: {exc}",
            code=ErrorCode.INVALID_OPTION,
            location=SourceLocation(file=str(path)),
        ) from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file {path} must contain a mapping, got {type(data).__name__}",
            code=ErrorCode.INVALID_OPTION,
            location=SourceLocation(file=str(path)),
        )
    return GeneratorConfig.from_mapping(data, source=str(path))
