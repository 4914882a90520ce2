"""Cascading model selection for one generation request.

Trial order for each call:

1. The sticky candidate (last success on this orchestrator), if any.
2. The fixed priority list, minus the sticky candidate.
3. Dynamic discovery: every generation-capable model the provider lists,
   in listing order, skipping names already attempted in this call.

The first success becomes sticky. Callers always get a tagged outcome;
nothing is raised.
"""

import logging

from .core import (
    Candidate,
    GenerationFailure,
    GenerationOutcome,
    GenerationSuccess,
    Turn,
)
from .invoker import DISCOVERY_API_VERSION, InvocationError, ModelInvoker

logger = logging.getLogger(__name__)

DEFAULT_CANDIDATES: tuple[Candidate, ...] = (
    Candidate("gemini-1.5-flash", "v1"),
    Candidate("gemini-1.5-flash", "v1beta"),
    Candidate("gemini-1.5-pro", "v1"),
    Candidate("gemini-pro", "v1beta"),
)

NO_MODELS_MESSAGE = "No models available"


class GenerationOrchestrator:
    """Owns the candidate ranking and the single-slot sticky cache."""

    def __init__(
        self,
        invoker: ModelInvoker,
        candidates: tuple[Candidate, ...] | list[Candidate] = DEFAULT_CANDIDATES,
    ):
        self.invoker = invoker
        self.candidates = tuple(candidates)
        self.sticky: Candidate | None = None

    def trial_order(self) -> list[Candidate]:
        """Return the fixed-phase order: sticky first, then the rest deduplicated."""
        sticky = self.sticky
        if sticky is None:
            return list(self.candidates)
        return [sticky] + [c for c in self.candidates if c != sticky]

    async def generate(self, history: list[Turn], prompt: str) -> GenerationOutcome:
        turns = [t for t in history if isinstance(t, Turn) and t.text]
        last_error = ""
        attempted: set[str] = set()

        for candidate in self.trial_order():
            attempted.add(candidate.model_name)
            try:
                text = await self.invoker.invoke(candidate, turns, prompt)
            except InvocationError as e:
                logger.debug("Candidate %s/%s failed: %s",
                             candidate.model_name, candidate.api_version, e.message)
                last_error = e.message
                continue
            return self._succeed(candidate, text)

        logger.info("Fixed candidates failed, attempting model discovery")
        try:
            discovered = await self.invoker.list_models()
        except InvocationError as e:
            logger.warning("Model discovery failed: %s", e.message)
            return GenerationFailure(last_error_message=e.message or last_error)

        for name in discovered:
            if name in attempted:
                logger.debug("Skipping already attempted model %s", name)
                continue
            attempted.add(name)
            candidate = Candidate(name, DISCOVERY_API_VERSION)
            try:
                text = await self.invoker.invoke(candidate, turns, prompt)
            except InvocationError as e:
                logger.debug("Discovered model %s failed: %s", name, e.message)
                last_error = e.message
                continue
            return self._succeed(candidate, text)

        logger.warning("All candidates exhausted: %s", last_error)
        return GenerationFailure(last_error_message=last_error or NO_MODELS_MESSAGE)

    def _succeed(self, candidate: Candidate, text: str) -> GenerationSuccess:
        if candidate != self.sticky:
            logger.info("Using model %s (%s)", candidate.model_name, candidate.api_version)
        self.sticky = candidate
        return GenerationSuccess(text=text, used_candidate=candidate)
