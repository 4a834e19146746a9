"""Pass scheduling: a dependency-ordered pipeline of transform passes."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Optional

from .errors import ErrorCode, TransformError
from .passes import (
    CircularReferenceDetectionPass,
    DependencyAnalysisPass,
    IrContext,
    NamingConventionPass,
    PathNormalizationPass,
    ReferenceResolutionPass,
    SchemaNormalizationPass,
    TransformPass,
    TypeInferencePass,
    ValidationPass,
)

logger = logging.getLogger(__name__)

type PassObserver = Callable[[str, IrContext], None]

_PIPELINE = "pipeline"


class TransformPipeline:
    """Run passes in an order that satisfies their declared dependencies.

    The order is computed at construction; a duplicate name, a dependency on
    an unregistered pass, or a dependency cycle raises ``TransformError``
    with code ``PipelineConfig``. Among passes that are ready at the same
    time, registration order wins.
    """

    def __init__(self, passes: Iterable[TransformPass]) -> None:
        self._registered: list[TransformPass] = list(passes)
        self._order: list[TransformPass] = _schedule(self._registered)

    @property
    def order(self) -> tuple[str, ...]:
        """Return pass names in execution order."""
        return tuple(transform_pass.name for transform_pass in self._order)

    def run(self, context: IrContext, observer: Optional[PassObserver] = None) -> IrContext:
        """Apply every pass to ``context`` and return it.

        Args:
            context (IrContext): Document and side tables to transform.
            observer (Optional[PassObserver]): Called with the pass name and the
                context after each pass completes.

        Returns:
            IrContext: The same context, transformed.
        """
        for transform_pass in self._order:
            logger.debug("Running pass %s", transform_pass.name)
            transform_pass.transform(context)
            context.completed.append(transform_pass.name)
            if observer is not None:
                observer(transform_pass.name, context)
        return context


def _schedule(passes: Sequence[TransformPass]) -> list[TransformPass]:
    by_name: dict[str, TransformPass] = {}
    for transform_pass in passes:
        if transform_pass.name in by_name:
            raise TransformError(
                f"Pass {transform_pass.name!r} is registered twice",
                code=ErrorCode.PIPELINE_CONFIG,
                pass_name=_PIPELINE,
            )
        by_name[transform_pass.name] = transform_pass

    remaining: dict[str, set[str]] = {}
    for transform_pass in passes:
        requires = set(transform_pass.dependencies())
        missing = sorted(requires - by_name.keys())
        if missing:
            raise TransformError(
                f"Pass {transform_pass.name!r} depends on unregistered pass(es): "
                + ", ".join(missing),
                code=ErrorCode.PIPELINE_CONFIG,
                pass_name=_PIPELINE,
            )
        remaining[transform_pass.name] = requires

    order: list[TransformPass] = []
    done: set[str] = set()
    while remaining:
        ready = next(
            (
                transform_pass
                for transform_pass in passes
                if transform_pass.name in remaining and remaining[transform_pass.name] <= done
            ),
            None,
        )
        if ready is None:
            raise TransformError(
                "Pass dependencies form a cycle: " + ", ".join(sorted(remaining)),
                code=ErrorCode.PIPELINE_CONFIG,
                pass_name=_PIPELINE,
            )
        order.append(ready)
        done.add(ready.name)
        del remaining[ready.name]
    return order


def default_pipeline() -> TransformPipeline:
    """Build the pipeline with the eight standard passes."""
    return TransformPipeline(
        [
            ValidationPass(),
            ReferenceResolutionPass(),
            PathNormalizationPass(),
            NamingConventionPass(),
            SchemaNormalizationPass(),
            TypeInferencePass(),
            DependencyAnalysisPass(),
            CircularReferenceDetectionPass(),
        ]
    )
