"""High-level generator orchestration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Optional

from .analysis import SchemaAnalysis
from .api_lowering import ApiLowering
from .config import GeneratorConfig
from .document import Document
from .emitter import Emitter
from .errors import GeneratorError, ParseWarning
from .loader import DocumentSource, load_document, validate_structure
from .lowering import TypeLowering
from .model_types import GeneratedFile, GenerationResult, LoweredProgram
from .passes import IrContext
from .pipeline import TransformPipeline, default_pipeline
from .planner import FilePlan, plan_files, plan_summary
from .templating import TemplateEngine
from .writer import write_generated_files

logger = logging.getLogger(__name__)

TYPESCRIPT = "typescript"


class GenerationStage(StrEnum):
    """Driver states, in the order a successful run visits them."""

    CREATED = "created"
    PARSED = "parsed"
    VALIDATED = "validated"
    TRANSFORMED = "transformed"
    ANALYZED = "analyzed"
    LOWERED = "lowered"
    PLANNED = "planned"
    EMITTED = "emitted"
    FAILED = "failed"


_ORDER: tuple[GenerationStage, ...] = tuple(
    stage for stage in GenerationStage if stage is not GenerationStage.FAILED
)


@dataclass(frozen=True)
class StageFailure:
    """Why a run stopped: the stage it was leaving and the error raised."""

    stage: GenerationStage
    error: GeneratorError


class Generator:
    """One generator run: parse, validate, transform, lower, plan, and emit.

    A ``Generator`` is single-use. Every stage runs only after the previous
    one succeeded; the first ``GeneratorError`` moves the run to ``FAILED``
    and is re-raised to the caller.
    """

    def __init__(
        self,
        config: Optional[GeneratorConfig] = None,
        *,
        pipeline: Optional[TransformPipeline] = None,
        engine: Optional[TemplateEngine] = None,
    ) -> None:
        self.config = config or GeneratorConfig()
        self._pipeline = pipeline
        self._engine = engine
        self._stage = GenerationStage.CREATED
        self._failure: Optional[StageFailure] = None
        self._warnings: list[ParseWarning] = []
        self.history: list[GenerationStage] = [GenerationStage.CREATED]

    @property
    def stage(self) -> GenerationStage:
        return self._stage

    @property
    def failure(self) -> Optional[StageFailure]:
        return self._failure

    @property
    def warnings(self) -> list[ParseWarning]:
        return list(self._warnings)

    def generate(
        self,
        source: DocumentSource,
        format_hint: Optional[str] = None,
    ) -> GenerationResult:
        """Run every stage and return the emitted files.

        Args:
            source (DocumentSource): A path, raw bytes, or document text.
            format_hint (Optional[str]): ``"json"``, ``"yaml"``, or ``None`` to detect.

        Returns:
            GenerationResult: Files sorted by path and the collected warnings.
        """
        try:
            languages = self._languages()
            document = self._parse(source, format_hint)
            self._validate(document)
            if TYPESCRIPT not in languages:
                return GenerationResult(files=(), warnings=tuple(self._warnings), languages=())
            context = self._transform(document)
            analysis = self._analyze(context)
            program = self._lower(context.document, analysis)
            plans = self._plan(program)
            files = self._emit(context.document, program, plans)
        except GeneratorError as exc:
            self._fail(exc)
            raise
        return GenerationResult(
            files=tuple(files),
            warnings=tuple(self._warnings),
            languages=(TYPESCRIPT,),
        )

    def validate(self, source: DocumentSource, format_hint: Optional[str] = None) -> None:
        """Run the stages up to and including lowering, without emitting."""
        try:
            document = self._parse(source, format_hint)
            self._validate(document)
            context = self._transform(document)
            analysis = self._analyze(context)
            self._lower(context.document, analysis)
        except GeneratorError as exc:
            self._fail(exc)
            raise

    def _languages(self) -> tuple[str, ...]:
        languages = self.config.target_languages()
        for language in languages:
            if language != TYPESCRIPT:
                self._warnings.append(
                    ParseWarning(f"No emitter for language {language!r}; skipping it")
                )
        return languages

    def _parse(self, source: DocumentSource, format_hint: Optional[str]) -> Document:
        document, warnings = load_document(
            source,
            format_hint,
            accept_openapi_30=self.config.accept_openapi_30,
            validate=False,
        )
        self._warnings.extend(warnings)
        self._advance(GenerationStage.PARSED)
        return document

    def _validate(self, document: Document) -> None:
        validate_structure(document, accept_openapi_30=self.config.accept_openapi_30)
        self._advance(GenerationStage.VALIDATED)

    def _transform(self, document: Document) -> IrContext:
        pipeline = self._pipeline or default_pipeline()
        context = IrContext(document=document, config=self.config)
        pipeline.run(context)
        self._warnings.extend(context.warnings)
        self._advance(GenerationStage.TRANSFORMED)
        return context

    def _analyze(self, context: IrContext) -> SchemaAnalysis:
        analysis = context.analysis
        for cycle in analysis.cycles:
            logger.debug("Cycle among schemas: %s", " -> ".join(cycle))
        self._advance(GenerationStage.ANALYZED)
        return analysis

    def _lower(self, document: Document, analysis: SchemaAnalysis) -> LoweredProgram:
        types = TypeLowering(document, self.config, analysis)
        apis = ApiLowering(document, self.config, types)
        program = LoweredProgram(models=types.lower_models(), apis=apis.lower_apis())
        self._warnings.extend(apis.warnings)
        self._advance(GenerationStage.LOWERED)
        return program

    def _plan(self, program: LoweredProgram) -> list[FilePlan]:
        plans = plan_files(program, self.config)
        logger.debug("File plan: %s", plan_summary(plans))
        self._advance(GenerationStage.PLANNED)
        return plans

    def _emit(
        self,
        document: Document,
        program: LoweredProgram,
        plans: list[FilePlan],
    ) -> list[GeneratedFile]:
        emitter = Emitter(document, self.config, program, self._engine)
        files = sorted(emitter.emit(plans), key=lambda item: item.path)
        self._advance(GenerationStage.EMITTED)
        return files

    def _advance(self, stage: GenerationStage) -> None:
        expected = _ORDER[_ORDER.index(self._stage) + 1]
        if stage is not expected:
            raise RuntimeError(f"Cannot move from {self._stage} to {stage}")
        logger.debug("Generator stage %s -> %s", self._stage, stage)
        self._stage = stage
        self.history.append(stage)

    def _fail(self, error: GeneratorError) -> None:
        logger.debug("Generator failed after %s: %s", self._stage, error.summary())
        self._failure = StageFailure(self._stage, error)
        self._stage = GenerationStage.FAILED
        self.history.append(GenerationStage.FAILED)


def generate(
    source: DocumentSource,
    format_hint: Optional[str] = None,
    config: Optional[GeneratorConfig] = None,
) -> GenerationResult:
    """Generate a TypeScript client from an OpenAPI 3.1 document.

    Args:
        source (DocumentSource): A path, raw bytes, or document text.
        format_hint (Optional[str]): ``"json"``, ``"yaml"``, or ``None`` to detect.
        config (Optional[GeneratorConfig]): Options; defaults apply when omitted.

    Returns:
        GenerationResult: Files sorted by path and the collected warnings.
    """
    return Generator(config).generate(source, format_hint)


def validate(
    source: DocumentSource,
    format_hint: Optional[str] = None,
    config: Optional[GeneratorConfig] = None,
) -> list[ParseWarning]:
    """Check that a document would generate, returning the warnings found.

    Args:
        source (DocumentSource): A path, raw bytes, or document text.
        format_hint (Optional[str]): ``"json"``, ``"yaml"``, or ``None`` to detect.
        config (Optional[GeneratorConfig]): Options; defaults apply when omitted.

    Returns:
        list[ParseWarning]: Non-fatal findings.
    """
    generator = Generator(config)
    generator.validate(source, format_hint)
    return generator.warnings


@dataclass(frozen=True)
class GenerationRun:
    """Generation result and the files written for it."""

    result: GenerationResult
    written: tuple[Path, ...]


def run_generation(
    *,
    input_path: Path,
    output_dir: Path,
    config: Optional[GeneratorConfig] = None,
    overwrite: Optional[bool] = None,
) -> GenerationRun:
    """Generate from ``input_path`` and write the files under ``output_dir``.

    Args:
        input_path (Path): Path to the input OpenAPI document.
        output_dir (Path): Directory where generated files are written.
        config (Optional[GeneratorConfig]): Options; defaults apply when omitted.
        overwrite (Optional[bool]): Overrides ``config.overwrite`` when given.

    Returns:
        GenerationRun: The generation result and the written paths.
    """
    config = config or GeneratorConfig()
    result = generate(input_path, config=config)
    written = write_generated_files(
        result.files,
        output_dir,
        overwrite=config.overwrite if overwrite is None else overwrite,
    )
    return GenerationRun(result=result, written=tuple(written))
