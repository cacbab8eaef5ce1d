"""Page-context state: generation counter, cancellation tokens, the live session."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from quizpilot.solver.catalog import ComponentCatalog
    from quizpilot.solver.question_classifier import ClassifiedQuestion

logger = logging.getLogger(__name__)


class StaleGenerationError(RuntimeError):
    """A binding captured under an earlier page generation was about to be used."""


class SessionState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    COMPLETED = "completed"
    ERROR = "error"


class GenerationCounter:
    """Incremented on every page-structure invalidation (navigation, re-fetch)."""

    def __init__(self) -> None:
        self.value = 0

    def bump(self, reason: str = "") -> int:
        self.value += 1
        logger.debug("Generation -> %d (%s)", self.value, reason or "unspecified")
        return self.value

    def token(self) -> GenerationToken:
        return GenerationToken(self, self.value)


@dataclass(frozen=True)
class GenerationToken:
    """Captured by any work that spans an await; checked before acting."""
    counter: GenerationCounter
    generation: int

    @property
    def is_current(self) -> bool:
        return self.counter.value == self.generation

    def check(self) -> None:
        if not self.is_current:
            raise StaleGenerationError(
                f"generation {self.generation} superseded by {self.counter.value}"
            )


@dataclass
class AutoSolveSession:
    """One run of the solve loop from start to a terminal state."""
    counter: GenerationCounter
    total_expected: int = 0
    interval_ms: int = 1000
    running: bool = True
    queue: list[ClassifiedQuestion] = field(default_factory=list)
    cursor: int = 0
    solved_count: int = 0
    solved_ids: set[str] = field(default_factory=set)
    attempted: dict[str, int] = field(default_factory=dict)
    stale_retries: dict[str, int] = field(default_factory=dict)
    active_question: str | None = None
    steps: int = 0

    @property
    def generation(self) -> int:
        return self.counter.value

    def record_attempt(self, question_id: str) -> None:
        if question_id not in self.attempted:
            self.cursor += 1
        self.attempted[question_id] = self.attempted.get(question_id, 0) + 1

    def retract_attempt(self, question_id: str) -> None:
        """Undo :meth:`record_attempt` so the next scan picks the question up again."""
        if self.attempted.pop(question_id, None) is not None:
            self.cursor -= 1
        self.stale_retries[question_id] = self.stale_retries.get(question_id, 0) + 1

    def record_solved(self, question_id: str) -> bool:
        """Count *question_id* as solved once.  Returns False if already counted."""
        if question_id in self.solved_ids:
            return False
        self.solved_ids.add(question_id)
        self.solved_count += 1
        return True

    @property
    def unanswered(self) -> int:
        return len(set(self.attempted) - self.solved_ids)

    @property
    def remaining(self) -> int:
        return max(self.total_expected - self.cursor, 0)


class PageContext:
    """Everything owned by one page: catalog, generation counter, current session."""

    def __init__(self, catalog: ComponentCatalog):
        self.catalog = catalog
        self.generation = GenerationCounter()
        self.session: AutoSolveSession | None = None

    def invalidate(self, reason: str) -> int:
        return self.generation.bump(reason)

    def token(self) -> GenerationToken:
        return self.generation.token()
