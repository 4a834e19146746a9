"""Error categories, source locations, and non-fatal warnings."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import ClassVar, Optional


class ErrorKind(StrEnum):
    """Stable error categories surfaced by the driver."""

    PARSE = "Parse"
    VALIDATION = "Validation"
    REFERENCE = "Reference"
    TRANSFORM = "Transform"
    LOWERING = "Lowering"
    EMISSION = "Emission"
    CONFIGURATION = "Configuration"


class ErrorCode(StrEnum):
    """Stable subkinds within each error category."""

    FILE_READ = "FileRead"
    JSON_PARSE = "JsonParse"
    YAML_PARSE = "YamlParse"
    UNSUPPORTED_FORMAT = "UnsupportedFormat"
    MISSING_FIELD = "MissingField"
    EMPTY_PATHS = "EmptyPaths"
    UNSUPPORTED_VERSION = "UnsupportedVersion"
    INVALID_REFERENCE = "InvalidReference"
    CIRCULAR_REFERENCE = "CircularReference"
    EXTERNAL_REFERENCE = "ExternalReference"
    PIPELINE_CONFIG = "PipelineConfig"
    RENAME_COLLISION = "RenameCollision"
    NORMALIZATION_CONFLICT = "NormalizationConflict"
    UNSUPPORTED_SCHEMA_SHAPE = "UnsupportedSchemaShape"
    TEMPLATE_NOT_FOUND = "TemplateNotFound"
    TEMPLATE_RENDER = "TemplateRender"
    PRETTY_PRINT_OVERFLOW = "PrettyPrintOverflow"
    UNSUPPORTED_LANGUAGE = "UnsupportedLanguage"
    INVALID_WIDTH = "InvalidWidth"
    INVALID_OPTION = "InvalidOption"


@dataclass(frozen=True)
class SourceLocation:
    """Where a problem was found, in the input file and/or the OpenAPI tree."""

    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    openapi_path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file is not None:
            position = self.file
            if self.line is not None:
                position = f"{position}:{self.line}"
                if self.column is not None:
                    position = f"{position}:{self.column}"
            parts.append(position)
        elif self.line is not None:
            parts.append(f"line {self.line}, column {self.column or 0}")
        if self.openapi_path is not None:
            parts.append(self.openapi_path)
        return " ".join(parts) or "<unknown>"


@dataclass(frozen=True)
class ParseWarning:
    """A non-fatal finding returned alongside a successful result."""

    message: str
    location: SourceLocation = SourceLocation()

    def __str__(self) -> str:
        if self.location == SourceLocation():
            return self.message
        return f"{self.message} ({self.location})"


class GeneratorError(RuntimeError):
    """Base class for every fatal error raised by the compiler pipeline."""

    kind: ClassVar[ErrorKind]
    codes: ClassVar[frozenset[ErrorCode]] = frozenset()

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        location: Optional[SourceLocation] = None,
    ) -> None:
        if self.codes and code not in self.codes:
            raise ValueError(f"{type(self).__name__} does not accept code {code}")
        super().__init__(message)
        self.message = message
        self.code = code
        self.location = location

    def summary(self) -> str:
        """Return the one-line user-visible form of the error."""
        head = f"{self.kind}/{self.code}"
        if self.location is not None:
            head = f"{head} at {self.location}"
        return f"{head}: {self.message}"

    def chain(self) -> str:
        """Return the summary followed by every chained cause."""
        lines = [self.summary()]
        cause = self.__cause__
        while cause is not None:
            if isinstance(cause, GeneratorError):
                lines.append(f"  caused by {cause.summary()}")
            else:
                lines.append(f"  caused by {type(cause).__name__}: {cause}")
            cause = cause.__cause__
        return "\n".join(lines)


class ParseError(GeneratorError):
    """Raised when input bytes cannot be turned into a document."""

    kind = ErrorKind.PARSE
    codes = frozenset(
        {
            ErrorCode.FILE_READ,
            ErrorCode.JSON_PARSE,
            ErrorCode.YAML_PARSE,
            ErrorCode.UNSUPPORTED_FORMAT,
        }
    )


class DocumentValidationError(GeneratorError):
    """Raised when a parsed document violates structural invariants."""

    kind = ErrorKind.VALIDATION
    codes = frozenset(
        {ErrorCode.MISSING_FIELD, ErrorCode.EMPTY_PATHS, ErrorCode.UNSUPPORTED_VERSION}
    )


class ReferenceResolutionError(GeneratorError):
    """Raised when a ``$ref`` pointer cannot be resolved."""

    kind = ErrorKind.REFERENCE
    codes = frozenset(
        {
            ErrorCode.INVALID_REFERENCE,
            ErrorCode.CIRCULAR_REFERENCE,
            ErrorCode.EXTERNAL_REFERENCE,
        }
    )

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        pointer: str,
        chain: tuple[str, ...] = (),
        location: Optional[SourceLocation] = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            location=location or SourceLocation(openapi_path=pointer),
        )
        self.pointer = pointer
        self.pointer_chain = chain


class TransformError(GeneratorError):
    """Raised by a transform pass or by pipeline construction."""

    kind = ErrorKind.TRANSFORM
    codes = frozenset(
        {
            ErrorCode.PIPELINE_CONFIG,
            ErrorCode.RENAME_COLLISION,
            ErrorCode.NORMALIZATION_CONFLICT,
        }
    )

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        pass_name: str,
        location: Optional[SourceLocation] = None,
    ) -> None:
        super().__init__(f"[{pass_name}] {message}", code=code, location=location)
        self.pass_name = pass_name


class LoweringError(GeneratorError):
    """Raised when a schema cannot be expressed as a TypeScript type."""

    kind = ErrorKind.LOWERING
    codes = frozenset({ErrorCode.UNSUPPORTED_SCHEMA_SHAPE})


class EmissionError(GeneratorError):
    """Raised by the pretty-printer or the template engine."""

    kind = ErrorKind.EMISSION
    codes = frozenset(
        {
            ErrorCode.TEMPLATE_NOT_FOUND,
            ErrorCode.TEMPLATE_RENDER,
            ErrorCode.PRETTY_PRINT_OVERFLOW,
        }
    )


class ConfigurationError(GeneratorError):
    """Raised for invalid generator configuration."""

    kind = ErrorKind.CONFIGURATION
    codes = frozenset(
        {
            ErrorCode.UNSUPPORTED_LANGUAGE,
            ErrorCode.INVALID_WIDTH,
            ErrorCode.INVALID_OPTION,
        }
    )
