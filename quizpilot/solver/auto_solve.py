"""The auto-solve session: readiness, then solve/advance steps until the
flow runs out of questions, the user stops it, or navigation gets stuck.

Everything runs on the caller's event loop.  ``start()`` schedules the loop
as a task and returns immediately; progress and lifecycle are reported to
listeners as ``{"action": ..., **payload}`` events in emission order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from quizpilot.config import SolverConfig
from quizpilot.runner.metrics import QuestionMetrics, RunMetrics
from quizpilot.solver.catalog import ComponentCatalog
from quizpilot.solver.element_locator import ElementLocator
from quizpilot.solver.navigation import AdvanceResult, NavigationAdvancer
from quizpilot.solver.polling import poll_until, settle
from quizpilot.solver.question_classifier import ClassifiedQuestion, classify_all
from quizpilot.solver.question_handlers import QuestionSolver, SolveResult
from quizpilot.solver.readiness import PageReadinessMonitor, Readiness
from quizpilot.solver.session import AutoSolveSession, PageContext, SessionState

logger = logging.getLogger(__name__)

Listener = Callable[[dict], Any]

NO_QUESTIONS_MESSAGE = "No questions found! Make sure you're on a quiz page."
STUCK_MESSAGE = "Could not advance: no enabled next/submit control, or the page did not change"


class AutoSolveController:
    """One per page context.  At most one session runs at a time."""

    def __init__(self, view, catalog: ComponentCatalog | None = None,
                 config: SolverConfig | None = None, metrics: RunMetrics | None = None):
        self.view = view
        self.config = config or SolverConfig()
        self.context = PageContext(catalog if catalog is not None else ComponentCatalog())
        self.metrics = metrics or RunMetrics()
        self.state = SessionState.IDLE
        self.questions: list[ClassifiedQuestion] = []

        self.readiness = PageReadinessMonitor(view, self.config.timing)
        self.locator = ElementLocator(view, self.config.timing)
        self.solver = QuestionSolver(view, self.config)
        self.advancer = NavigationAdvancer(view, self.config.navigation)

        self._listeners: list[Listener] = []
        self._task: asyncio.Task | None = None

    @property
    def catalog(self) -> ComponentCatalog:
        return self.context.catalog

    @property
    def session(self) -> AutoSolveSession | None:
        return self.context.session

    @property
    def is_running(self) -> bool:
        return self.session is not None and self.session.running

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _emit(self, action: str, **payload) -> None:
        event = {"action": action, **payload}
        logger.debug("Event: %s", event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning("Listener failed on %s: %s", action, e)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(self, speed: int | None = None) -> dict:
        if self.is_running:
            logger.info("Auto-solve already running, ignoring start")
            return self.status()

        if self._task is not None and not self._task.done():
            # A stopped loop may still be finishing its in-flight step.
            logger.info("Waiting for the previous run to wind down")
            await self._task
            if self.is_running:
                return self.status()

        if len(self.catalog) == 0:
            logger.error(NO_QUESTIONS_MESSAGE)
            self._emit("error", message=NO_QUESTIONS_MESSAGE)
            return {"success": False, "questionCount": 0}

        self.questions = classify_all(self.catalog, self.context.generation.value)
        session = AutoSolveSession(
            counter=self.context.generation,
            total_expected=len(self.questions),
            interval_ms=self.config.interval_for(speed),
            queue=list(self.questions),
        )
        self.context.session = session
        self.state = SessionState.RUNNING
        self.metrics.start()
        logger.info("Starting auto-solve for %d questions (%d ms between questions)",
                    session.total_expected, session.interval_ms)
        self._emit("autoSolveStarted", questionCount=session.total_expected)

        self._task = asyncio.create_task(self._run(session))
        return {"success": True, "questionCount": session.total_expected}

    def stop(self) -> dict:
        session = self.session
        if session is None or not session.running:
            return {"success": True}
        logger.info("Auto-solve stopped by user")
        session.running = False
        self.state = SessionState.STOPPED
        self._emit("autoSolveStopped", current=session.solved_count, total=session.total_expected)
        return {"success": True}

    async def refresh(self, url: str | None = None) -> dict:
        """Merge the catalog at *url*; new descriptors invalidate the page structure."""
        added = await self.catalog.merge(url) if url else 0
        if added:
            generation = self.context.invalidate("catalog refresh")
            self.questions = classify_all(self.catalog, generation)
            session = self.session
            if session is not None and session.running:
                session.queue = list(self.questions)
                session.total_expected = len(self.questions)
        return {"success": True, "questionCount": len(self.catalog)}

    def notify_navigation(self, url: str = "") -> None:
        self.context.invalidate(f"navigation {url}".strip())

    async def solve_question(self, question_id: str) -> dict:
        """Answer one question on demand, outside any auto-solve run."""
        if self.is_running:
            return {"success": False, "error": "Auto-solve is running"}
        descriptor = self.catalog.get(question_id)
        if descriptor is None:
            return {"success": False, "error": f"Unknown question: {question_id}"}

        question = classify_all([descriptor], self.context.generation.value)[0]
        result = await self._solve(question)
        return {
            "success": result.solved,
            "questionId": question.id,
            "unitsDone": result.units_done,
            "unitsTotal": result.units_total,
            "error": result.error,
        }

    def question_for(self, class_names) -> str | None:
        """First catalogued id among a container's class names."""
        for name in class_names:
            if name in self.catalog:
                return name
        return None

    def status(self) -> dict:
        session = self.session
        return {
            "questionCount": len(self.catalog),
            "isAutoSolving": self.is_running,
            "currentQuestion": session.cursor if session else 0,
            "activeQuestion": session.active_question if session else None,
            "remaining": session.remaining if session else len(self.catalog),
            "unanswered": session.unanswered if session else 0,
            "state": self.state.value,
        }

    async def wait(self) -> SessionState:
        if self._task is not None:
            await self._task
            if self.is_running:
                return self.status()
        return self.state

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def _run(self, session: AutoSolveSession) -> None:
        try:
            state, message = await self._solve_loop(session)
        except Exception as e:
            logger.error("Auto-solve loop failed: %s", e)
            state, message = SessionState.ERROR, f"Auto-solve failed: {e}"

        # stop() already settled the state and told listeners
        if session.running:
            session.running = False
            self.state = state
            if state == SessionState.ERROR:
                self._emit("error", message=message)
            elif state == SessionState.COMPLETED:
                logger.info("All questions completed (%d solved)", session.solved_count)
                self._emit("autoSolveComplete", questionCount=session.solved_count)
        if self.context.session is session:
            self.metrics.finish(self.state.value)

    async def _solve_loop(self, session: AutoSolveSession) -> tuple[SessionState, str | None]:
        if await self.readiness.await_ready(self.catalog) == Readiness.TIMEOUT:
            return SessionState.COMPLETED, None

        if session.running and await self.advancer.start_intro():
            self.context.invalidate("intro")
            await settle(self.config.timing.reveal_settle)

        max_steps = self.config.defaults.max_steps
        while session.steps < max_steps:
            if not session.running:
                return SessionState.STOPPED, None
            session.steps += 1

            # 1. What is on screen
            visible = await self._scan()
            if visible is None:
                logger.info("Step %d: no question container on screen", session.steps)
                return SessionState.COMPLETED, None

            # 2. Solve the first question not tried yet
            pending = [q for q in visible if q.id not in session.attempted]
            if pending:
                result = await self._solve_one(session, pending[0])
                if result.stale and self._retry_stale(session, pending[0]):
                    continue
                if len(pending) > 1:
                    await settle(session.interval_ms / 1000)
                    continue

            # 3. Move on
            if not session.running:
                return SessionState.STOPPED, None
            result = await self.advancer.advance()
            if result == AdvanceResult.STUCK:
                if not session.running:
                    return SessionState.STOPPED, None
                if not visible and session.remaining == 0:
                    logger.info("Step %d: flow ended after the last question", session.steps)
                    return SessionState.COMPLETED, None
                logger.warning("Step %d: %s", session.steps, STUCK_MESSAGE)
                return SessionState.ERROR, STUCK_MESSAGE

            self.context.invalidate("advanced")
            await settle(session.interval_ms / 1000)

        logger.warning("Step budget of %d exhausted", max_steps)
        return SessionState.ERROR, f"Stopped after {max_steps} steps without finishing"

    async def _scan(self) -> list[ClassifiedQuestion] | None:
        """Visible questions, giving a freshly advanced page time to render."""
        visible = await self._visible_questions()
        if visible is not None:
            return visible

        async def rendered() -> bool:
            return await self._visible_questions() is not None

        timing = self.config.timing
        if await poll_until(rendered, interval=timing.ready_poll_interval, timeout=timing.render_grace):
            return await self._visible_questions()
        return None

    async def _visible_questions(self) -> list[ClassifiedQuestion] | None:
        """Catalogued questions whose container is visible, in document order.

        ``None`` when no container of any kind is visible.
        """
        by_id = {q.id: q for q in self.questions}
        found: list[ClassifiedQuestion] = []
        any_visible = False
        for element in await self.view.query_all(self.config.selectors.container):
            if not await element.is_visible():
                continue
            any_visible = True
            for name in (await element.attribute("class") or "").split():
                question = by_id.get(name)
                if question is not None and question not in found:
                    found.append(question)
        return found if any_visible else None

    def _retry_stale(self, session: AutoSolveSession, question: ClassifiedQuestion) -> bool:
        """Put a question interrupted by a page change back in line, a bounded number of times."""
        limit = self.config.timing.stale_retries
        if session.stale_retries.get(question.id, 0) >= limit:
            logger.warning("%s: page kept changing, giving up after %d retries", question.id, limit)
            return False
        session.retract_attempt(question.id)
        logger.info("%s: rescanning after page change", question.id)
        return True

    async def _solve_one(self, session: AutoSolveSession, question: ClassifiedQuestion) -> SolveResult:
        session.active_question = question.id
        session.record_attempt(question.id)
        result = await self._solve(question)
        if result.solved and session.record_solved(question.id):
            self._emit("progress", current=session.solved_count, total=session.total_expected)
        session.active_question = None
        return result

    async def _solve(self, question: ClassifiedQuestion) -> SolveResult:
        token = self.context.token()
        question.generation = token.generation

        bindings = await self.locator.locate_with_retry(question, token)
        result = await self.solver.solve(question, bindings)
        if not result.stale and not token.is_current:
            # Page changed after the last activation; the answer may not have stuck.
            result.stale = True
            result.solved = False
        self.metrics.add_question(QuestionMetrics(
            question_id=question.id,
            question_type=question.type.value,
            success=result.solved,
            units_done=result.units_done,
            units_total=result.units_total,
            elapsed_seconds=result.elapsed_seconds,
            error=result.error,
        ))
        return result
