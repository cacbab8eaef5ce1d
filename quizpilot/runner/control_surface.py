"""Request/event boundary between a front end (CLI, panel, remote caller)
and the auto-solve controller.

Requests are ``{"action": name, ...}`` dicts; unknown actions return None.
Controller events are forwarded unchanged to the ``publish`` callback.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Protocol

from quizpilot.solver.auto_solve import AutoSolveController

logger = logging.getLogger(__name__)


class AnswerSubmitter(Protocol):
    """Posts correct answers for the catalog straight to the platform.

    Given the raw component dicts and optional assessment metadata, returns
    ``{"success": bool, "error": str | None}``.  Independent of the
    locate/solve/advance pipeline.
    """

    async def submit(self, components: list[dict], assessment_meta: dict | None = None) -> dict:
        ...


class ControlSurface:
    def __init__(self, controller: AutoSolveController,
                 submitter: AnswerSubmitter | None = None,
                 publish: Callable[[dict], Any] | None = None):
        self.controller = controller
        self.submitter = submitter
        if publish is not None:
            controller.add_listener(publish)

    async def handle(self, request: dict) -> dict | None:
        action = request.get("action")
        handlers: dict[str, Callable[[dict], Awaitable[dict]]] = {
            "getStatus": self._get_status,
            "startAutoSolve": self._start,
            "stopAutoSolve": self._stop,
            "refresh": self._refresh,
            "submitViaApi": self._submit_via_api,
            "solveQuestion": self._solve_question,
        }
        handler = handlers.get(action)
        if handler is None:
            logger.debug("Unhandled request: %r", action)
            return None
        try:
            return await handler(request)
        except Exception as e:
            logger.error("Error handling %s: %s", action, e)
            return {"success": False, "error": str(e)}

    async def _get_status(self, request: dict) -> dict:
        return self.controller.status()

    async def _start(self, request: dict) -> dict:
        return await self.controller.start(request.get("speed"))

    async def _stop(self, request: dict) -> dict:
        return self.controller.stop()

    async def _refresh(self, request: dict) -> dict:
        return await self.controller.refresh(request.get("url"))

    async def _submit_via_api(self, request: dict) -> dict:
        if self.submitter is None:
            return {"success": False, "error": "No answer submitter configured"}
        components = self.controller.catalog.raw_components()
        if not components:
            return {"success": False, "error": "No components loaded"}
        return await self.submitter.submit(components, request.get("assessmentMeta"))

    async def _solve_question(self, request: dict) -> dict:
        question_id = request.get("questionId") or self.controller.question_for(
            request.get("classNames") or [])
        if question_id is None:
            return {"success": False, "error": "Not a catalogued question"}
        return await self.controller.solve_question(question_id)
