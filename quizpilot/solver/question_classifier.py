"""Map a descriptor's item shape to one of seven interaction variants.

The source schema's item shapes overlap (a dropdown item also carries
options with correctness flags, like a table dropdown), so the rules are
evaluated in a fixed order and the first match wins.  Only the first item
is inspected; every item of a descriptor shares one layout.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from quizpilot.solver.catalog import ComponentDescriptor, Item, Option

logger = logging.getLogger(__name__)


class QuestionType(Enum):
    DROPDOWN_SELECT = "dropdownSelect"
    MATCH = "match"
    YES_NO = "yesNo"
    OPEN_TEXT_INPUT = "openTextInput"
    FILL_BLANKS = "fillBlanks"
    TABLE_DROPDOWN = "tableDropdown"
    BASIC = "basic"


# ---------------------------------------------------------------------------
# Shape predicates
# ---------------------------------------------------------------------------

def _first_option(item: Item) -> Option | None:
    opts = item.option_list
    return opts[0] if opts else None


def _is_dropdown_select(item: Item) -> bool:
    return bool(item.text) and item.options is not None


def _is_match(item: Item) -> bool:
    return bool(item.question) and bool(item.answer)


def _is_yes_no(item: Item) -> bool:
    return item.graphic is not None and bool(item.graphic.alt) and bool(item.graphic.src)


def _is_open_text_input(item: Item) -> bool:
    # A single options *object* (not a list) exposing text.
    return bool(item.id) and isinstance(item.options, Option) and bool(item.options.text)


def _is_fill_blanks(item: Item) -> bool:
    first = _first_option(item)
    return (bool(item.pre_text) and bool(item.post_text)
            and isinstance(item.options, list) and first is not None and bool(first.text))


def _is_table_dropdown(item: Item) -> bool:
    first = _first_option(item)
    return (isinstance(item.options, list) and first is not None
            and bool(first.text) and isinstance(first.is_correct, bool))


# First match wins.  BASIC is the fallback, not a rule.
RULES: list[tuple[QuestionType, Callable[[Item], bool]]] = [
    (QuestionType.DROPDOWN_SELECT, _is_dropdown_select),
    (QuestionType.MATCH, _is_match),
    (QuestionType.YES_NO, _is_yes_no),
    (QuestionType.OPEN_TEXT_INPUT, _is_open_text_input),
    (QuestionType.FILL_BLANKS, _is_fill_blanks),
    (QuestionType.TABLE_DROPDOWN, _is_table_dropdown),
]


def classify(descriptor: ComponentDescriptor) -> QuestionType:
    """Deterministic question type for *descriptor*.  Total: always returns a type."""
    if not descriptor.items:
        return QuestionType.BASIC
    first = descriptor.items[0]
    for question_type, matches in RULES:
        if matches(first):
            return question_type
    return QuestionType.BASIC


# ---------------------------------------------------------------------------
# Answer extraction
# ---------------------------------------------------------------------------

def correct_option_index(item: Item) -> int | None:
    """Index of the single correct option, or None when zero or several are marked."""
    marked = [i for i, opt in enumerate(item.option_list) if opt.is_correct]
    if len(marked) != 1:
        return None
    return marked[0]


def correct_option(item: Item) -> Option | None:
    idx = correct_option_index(item)
    return None if idx is None else item.option_list[idx]


# ---------------------------------------------------------------------------
# Classified questions
# ---------------------------------------------------------------------------

@dataclass
class ClassifiedQuestion:
    id: str
    type: QuestionType
    descriptor: ComponentDescriptor
    generation: int
    container: Any = None
    bindings: Any = None
    solvable: bool = False

    @property
    def items(self) -> list[Item]:
        return self.descriptor.items


def classify_all(descriptors, generation: int) -> list[ClassifiedQuestion]:
    questions = [
        ClassifiedQuestion(id=d.id, type=classify(d), descriptor=d, generation=generation)
        for d in descriptors
    ]
    if questions:
        logger.info("Classified %d questions: %s", len(questions),
                    [q.type.value for q in questions])
    return questions
