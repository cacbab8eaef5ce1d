"""Resolve a classified question's logical items to live page elements.

BASIC, MATCH and DROPDOWN_SELECT bind eagerly.  The other variants either
reuse the same nodes with changing attributes (yes/no) or nest their
targets in rows and blanks, so their elements are resolved by the solver
at interaction time and only the container is checked here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from quizpilot.config import TimingConfig
from quizpilot.environment.page_view import attr_selector, class_selector
from quizpilot.solver.polling import settle
from quizpilot.solver.question_classifier import (
    ClassifiedQuestion,
    QuestionType,
    correct_option_index,
)
from quizpilot.solver.session import GenerationToken

logger = logging.getLogger(__name__)

LAZY_TYPES = {
    QuestionType.YES_NO,
    QuestionType.FILL_BLANKS,
    QuestionType.TABLE_DROPDOWN,
    QuestionType.OPEN_TEXT_INPUT,
}


@dataclass
class ElementBindings:
    """Elements captured under one page generation.

    ``units`` holds one entry per item, ``None`` where nothing resolved.
    Lazy variants carry no units.
    """
    token: GenerationToken
    container: Any = None
    trigger: Any = None
    units: list[Any] = field(default_factory=list)
    expected: int = 0

    @property
    def resolved(self) -> int:
        return sum(1 for u in self.units if u is not None)

    @property
    def complete(self) -> bool:
        if self.container is None:
            return False
        return self.resolved == self.expected

    def check(self) -> None:
        self.token.check()


class ElementLocator:
    def __init__(self, view, timing: TimingConfig | None = None):
        self.view = view
        self.timing = timing or TimingConfig()

    async def locate(self, question: ClassifiedQuestion, token: GenerationToken) -> ElementBindings:
        container = await self.view.query(class_selector(question.id))
        question.container = container
        if container is None:
            logger.debug("Container for %s not rendered", question.id)
            return ElementBindings(token=token, expected=len(question.items))

        if question.type in LAZY_TYPES:
            bindings = ElementBindings(token=token, container=container)
        elif question.type == QuestionType.MATCH:
            bindings = await self._locate_match(question, container, token)
        elif question.type == QuestionType.DROPDOWN_SELECT:
            bindings = await self._locate_dropdown(question, container, token)
        else:
            bindings = await self._locate_basic(question, container, token)

        question.bindings = bindings
        question.solvable = bindings.complete
        return bindings

    async def locate_with_retry(self, question: ClassifiedQuestion,
                                token: GenerationToken) -> ElementBindings:
        """Re-scan while the render is incomplete, bounded by ``locate_attempts``."""
        bindings = await self.locate(question, token)
        for attempt in range(1, self.timing.locate_attempts):
            if bindings.complete or not token.is_current:
                break
            logger.debug("%s: %d/%d elements bound, rescan %d",
                         question.id, bindings.resolved, bindings.expected, attempt)
            await settle(self.timing.locate_retry_delay)
            bindings = await self.locate(question, token)
        if not bindings.complete:
            logger.info("%s (%s): partial binding %d/%d", question.id,
                        question.type.value, bindings.resolved, bindings.expected)
        return bindings

    # ------------------------------------------------------------------
    # Eager variants
    # ------------------------------------------------------------------

    async def _locate_basic(self, question, container, token) -> ElementBindings:
        units = []
        for i in range(len(question.items)):
            inp = await self.view.query(attr_selector("id", f"{question.id}-{i}-input"), root=container)
            label = await self.view.query(attr_selector("id", f"{question.id}-{i}-label"), root=container)
            units.append((inp, label) if inp is not None else None)
        trigger = await self.view.find_by_text(question.descriptor.body, root=container)
        return ElementBindings(token=token, container=container, trigger=trigger,
                               units=units, expected=len(question.items))

    async def _locate_match(self, question, container, token) -> ElementBindings:
        units = []
        for i in range(len(question.items)):
            pair = await self.view.query_all(attr_selector("data-id", i), root=container, limit=2)
            units.append((pair[0], pair[1]) if len(pair) == 2 else None)
        trigger = await self.view.find_by_text(question.descriptor.body, root=container)
        return ElementBindings(token=token, container=container, trigger=trigger,
                               units=units, expected=len(question.items))

    async def _locate_dropdown(self, question, container, token) -> ElementBindings:
        units = []
        for i, item in enumerate(question.items):
            idx = correct_option_index(item)
            if idx is None:
                logger.warning("%s item %d: %d options marked correct, skipping",
                               question.id, i, sum(1 for o in item.option_list if o.is_correct))
                units.append(None)
                continue
            sub = await self.view.query(attr_selector("index", i), root=container)
            if sub is None:
                units.append(None)
                continue
            trigger = await self.view.find_by_text((item.text or "").strip(), root=sub) or sub
            option = await self.view.query(attr_selector("id", f"dropdown__item-index-{idx}"), root=sub)
            units.append((trigger, option) if option is not None else None)
        return ElementBindings(token=token, container=container,
                               units=units, expected=len(question.items))
