"""Processing pipeline for one variant.

A pipeline is an ordered list of steps. Each step receives the previous
step's output. Steps are plain callables; failures should be raised as
ProcessingError and are propagated unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from varistore.models import Artifact

logger = logging.getLogger(__name__)

ProcessingStep = Callable[[Artifact], Artifact]


def step_name(step: ProcessingStep) -> str:
    """Return a readable name for a processing step."""
    return getattr(step, "__qualname__", None) or type(step).__name__


class ProcessingPipeline:
    """Runs a variant's processing steps over an artifact."""

    def __init__(self, steps: Sequence[ProcessingStep], *, enabled: bool = True) -> None:
        self._steps = tuple(steps)
        self._enabled = enabled

    @property
    def steps(self) -> tuple[ProcessingStep, ...]:
        return self._steps

    @property
    def enabled(self) -> bool:
        return self._enabled

    def process(self, artifact: Artifact) -> Artifact:
        """Apply every step in order.

        Returns the artifact unchanged when processing is disabled or there
        are no steps.
        """
        if not self._enabled or not self._steps:
            return artifact

        current = artifact
        for step in self._steps:
            logger.debug("Processing %s with %s", current.filename, step_name(step))
            current = step(current)
            if not isinstance(current, Artifact):
                raise TypeError(
                    f"Processing step {step_name(step)} returned {type(current).__name__}, "
                    "expected Artifact"
                )
        return current
