"""OpenAPI 3.1 to TypeScript client generator package."""

from __future__ import annotations

from .cli import main
from .config import GeneratorConfig, load_config
from .errors import GeneratorError, ParseWarning
from .generator import Generator, GenerationRun, generate, run_generation, validate
from .model_types import FileCategory, GeneratedFile, GenerationResult

__all__ = [
    "FileCategory",
    "GeneratedFile",
    "GenerationResult",
    "GenerationRun",
    "Generator",
    "GeneratorConfig",
    "GeneratorError",
    "ParseWarning",
    "generate",
    "load_config",
    "main",
    "run_generation",
    "validate",
]
