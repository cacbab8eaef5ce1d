"""Per-type answer handlers.

Every handler works unit by unit (item, row, blank): a missing element
skips that unit and the handler carries on, and a question counts as
solved only when every required unit succeeded.  Each activation is
followed by a settle wait so the page's own reactive updates land before
the next read.  Before touching any element the binding's generation
token is checked; a navigation in between aborts the question.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from quizpilot.config import SolverConfig
from quizpilot.environment.page_view import attr_selector, class_selector, normalize_text
from quizpilot.solver.catalog import strip_markup
from quizpilot.solver.element_locator import ElementBindings
from quizpilot.solver.polling import settle
from quizpilot.solver.question_classifier import ClassifiedQuestion, QuestionType, correct_option
from quizpilot.solver.session import StaleGenerationError

logger = logging.getLogger(__name__)


@dataclass
class SolveResult:
    question_id: str = ""
    question_type: QuestionType = QuestionType.BASIC
    solved: bool = False
    units_done: int = 0
    units_total: int = 0
    actions_log: list[str] = field(default_factory=list)
    error: str | None = None
    elapsed_seconds: float = 0.0
    stale: bool = False


class QuestionSolver:
    """Dispatch to the right handler method."""

    def __init__(self, view, config: SolverConfig | None = None):
        self.view = view
        self.config = config or SolverConfig()
        self.timing = self.config.timing
        self.selectors = self.config.selectors

    async def solve(self, question: ClassifiedQuestion, bindings: ElementBindings) -> SolveResult:
        dispatch = {
            QuestionType.BASIC: self.handle_basic,
            QuestionType.MATCH: self.handle_match,
            QuestionType.DROPDOWN_SELECT: self.handle_dropdown_select,
            QuestionType.YES_NO: self.handle_yes_no,
            QuestionType.FILL_BLANKS: self.handle_fill_blanks,
            QuestionType.TABLE_DROPDOWN: self.handle_table_dropdown,
            QuestionType.OPEN_TEXT_INPUT: self.handle_open_text_input,
        }
        t0 = time.monotonic()
        result = SolveResult(question_id=question.id, question_type=question.type,
                             units_total=len(question.items))
        logger.info("Solving %s (%s, %d items)", question.id, question.type.value,
                    len(question.items))
        try:
            if bindings.container is None:
                result.error = "container not rendered"
            else:
                await dispatch[question.type](question, bindings, result)
        except StaleGenerationError as e:
            logger.info("%s: page changed mid-solve (%s)", question.id, e)
            result.error = f"stale: {e}"
            result.stale = True
        except Exception as e:
            logger.warning("Handler %s error on %s: %s", question.type.value, question.id, e)
            result.error = f"error: {e}"

        result.solved = result.error is None and result.units_done == result.units_total
        result.elapsed_seconds = time.monotonic() - t0
        status = "solved" if result.solved else "unsolved"
        logger.info("%s %s (%d/%d units)", question.id, status,
                    result.units_done, result.units_total)
        return result

    async def _activate(self, bindings: ElementBindings, element, wait: float | None = None) -> None:
        bindings.check()
        await element.click()
        await settle(self.timing.settle if wait is None else wait)

    async def _reveal(self, bindings: ElementBindings, result: SolveResult) -> None:
        if bindings.trigger is not None:
            await self._activate(bindings, bindings.trigger, self.timing.reveal_settle)
            result.actions_log.append("reveal")

    async def _option_by_text(self, selector: str, root, text: str | None, limit: int):
        wanted = normalize_text(text)
        for option in await self.view.query_all(selector, root=root, limit=max(limit, 1)):
            if await option.text() == wanted:
                return option
        return None

    # ------------------------------------------------------------------
    # Eagerly bound variants
    # ------------------------------------------------------------------

    async def handle_basic(self, question, bindings, result: SolveResult) -> None:
        await self._reveal(bindings, result)
        checked_units = []
        for i, item in enumerate(question.items):
            unit = bindings.units[i] if i < len(bindings.units) else None
            if unit is None:
                result.actions_log.append(f"item {i}: input missing")
                continue
            inp, label = unit
            want = bool(item.should_be_selected)
            bindings.check()
            if await inp.is_checked() != want:
                await self._activate(bindings, label or inp)
                result.actions_log.append(f"item {i}: {'select' if want else 'deselect'}")
            checked_units.append((i, inp, want))

        # Activating one input can flip a sibling in single-select layouts,
        # so the final state is re-read rather than assumed.
        for i, inp, want in checked_units:
            if await inp.is_checked() == want:
                result.units_done += 1
            else:
                result.actions_log.append(f"item {i}: state lost after sibling activation")

    async def handle_match(self, question, bindings, result: SolveResult) -> None:
        await self._reveal(bindings, result)
        for i, unit in enumerate(bindings.units):
            if unit is None:
                result.actions_log.append(f"pair {i}: targets missing")
                continue
            first, second = unit
            await self._activate(bindings, first)
            await self._activate(bindings, second)
            result.units_done += 1
            result.actions_log.append(f"pair {i}: matched")

    async def handle_dropdown_select(self, question, bindings, result: SolveResult) -> None:
        for i, unit in enumerate(bindings.units):
            if unit is None:
                result.actions_log.append(f"dropdown {i}: skipped")
                continue
            trigger, option = unit
            await self._activate(bindings, trigger, self.timing.open_settle)
            await self._activate(bindings, option)
            result.units_done += 1
            result.actions_log.append(f"dropdown {i}: option chosen")

    # ------------------------------------------------------------------
    # Lazily resolved variants
    # ------------------------------------------------------------------

    async def handle_yes_no(self, question, bindings, result: SolveResult) -> None:
        """One image is shown at a time; answer it and wait for the next."""
        container = bindings.container
        by_alt = {item.graphic.alt: i for i, item in enumerate(question.items) if item.graphic}
        answered: set[int] = set()
        for _ in range(len(question.items)):
            bindings.check()
            image = await self.view.query(self.selectors.yes_no_image, root=container)
            if image is None:
                break
            alt = await image.attribute("alt")
            idx = by_alt.get(alt)
            if idx is None or idx in answered:
                result.actions_log.append(f"image {alt!r}: no pending item")
                break
            want = bool(question.items[idx].should_be_selected)
            selector = self.selectors.yes_button if want else self.selectors.no_button
            button = await self.view.query(selector, root=container)
            if button is None:
                result.actions_log.append(f"image {alt!r}: {'yes' if want else 'no'} control missing")
                break
            await self._activate(bindings, button, self.timing.open_settle)
            answered.add(idx)
            result.units_done += 1
            result.actions_log.append(f"image {alt!r}: {'yes' if want else 'no'}")

    async def handle_fill_blanks(self, question, bindings, result: SolveResult) -> None:
        blanks = await self.view.query_all(self.selectors.blank, root=bindings.container,
                                           limit=len(question.items))
        for n, blank in enumerate(blanks):
            text = await blank.text()
            item = next((it for it in question.items
                         if text.startswith(normalize_text(strip_markup(it.pre_text)))
                         and text.endswith(normalize_text(strip_markup(it.post_text)))), None)
            if item is None:
                result.actions_log.append(f"blank {n}: no item brackets {text!r}")
                continue
            option = correct_option(item)
            if option is None:
                result.actions_log.append(f"blank {n}: no single correct option")
                continue
            await self._activate(bindings, blank, self.timing.open_settle)
            target = await self._option_by_text(self.selectors.blank_option, blank,
                                                option.text, len(item.option_list))
            if target is None:
                result.actions_log.append(f"blank {n}: option {option.text!r} missing")
                continue
            await self._activate(bindings, target)
            result.units_done += 1

    async def handle_table_dropdown(self, question, bindings, result: SolveResult) -> None:
        rows = await self.view.query_all(self.selectors.table_row, root=bindings.container,
                                         limit=len(question.items))
        for i, row in enumerate(rows[:len(question.items)]):
            item = question.items[i]
            option = correct_option(item)
            if option is None:
                result.actions_log.append(f"row {i}: no single correct option")
                continue
            target = await self._option_by_text(self.selectors.table_option, row,
                                                option.text, len(item.option_list))
            if target is None:
                result.actions_log.append(f"row {i}: option {option.text!r} missing")
                continue
            await self._activate(bindings, target)
            result.units_done += 1

    async def handle_open_text_input(self, question, bindings, result: SolveResult) -> None:
        """Best effort: the prompt shown in each slot moves between items."""
        container = bindings.container
        for i in range(len(question.items)):
            selector_el = await self.view.query(attr_selector("id", f"{question.id}-option-{i}"),
                                                root=container)
            if selector_el is None:
                result.actions_log.append(f"slot {i}: selector missing")
                continue
            await self._activate(bindings, selector_el, self.timing.open_settle)
            control = await self.view.query(class_selector(f"current-item-{i}"), root=container)
            if control is not None:
                await self._activate(bindings, control, self.timing.open_settle)

            shown = await selector_el.text()
            match = next((it for it in question.items
                          if it.option_list and normalize_text(it.option_list[0].text) == shown), None)
            position = (match.position or [None])[0] if match else None
            if position is None:
                result.actions_log.append(f"slot {i}: no target position for {shown!r}")
                continue
            target = await self.view.query(attr_selector("data-target", position), root=container)
            if target is None:
                await self._activate(bindings, container)
                result.actions_log.append(f"slot {i}: target {position!r} missing")
                continue
            await self._activate(bindings, target)
            result.units_done += 1
