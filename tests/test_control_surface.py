from __future__ import annotations

import asyncio

from quizpilot.runner.control_surface import ControlSurface
from quizpilot.solver.auto_solve import AutoSolveController
from quizpilot.solver.catalog import ComponentCatalog

from tests.fakes import QuizFlow, basic_component, basic_descriptor


class RecordingSubmitter:
    def __init__(self):
        self.calls = []

    async def submit(self, components, assessment_meta=None):
        self.calls.append((components, assessment_meta))
        return {"success": True, "error": None}


def _surface(config, submitter=None, ids=("c0",)):
    catalog = ComponentCatalog()
    catalog.merge_payload([basic_descriptor(i, [True, False]) for i in ids])
    flow = QuizFlow([basic_component(i, 2) for i in ids])
    controller = AutoSolveController(flow.page, catalog=catalog, config=config)
    published: list[dict] = []
    surface = ControlSurface(controller, submitter=submitter, publish=published.append)
    return surface, controller, published


def test_get_status(fast_config):
    surface, _, _ = _surface(fast_config)
    status = asyncio.run(surface.handle({"action": "getStatus"}))
    assert status["questionCount"] == 1
    assert status["isAutoSolving"] is False


def test_start_runs_and_publishes_events(fast_config):
    surface, controller, published = _surface(fast_config)

    async def go():
        response = await surface.handle({"action": "startAutoSolve", "speed": 5})
        await controller.wait()
        return response

    assert asyncio.run(go()) == {"success": True, "questionCount": 1}
    assert [e["action"] for e in published] == ["autoSolveStarted", "progress", "autoSolveComplete"]


def test_stop(fast_config):
    surface, controller, published = _surface(fast_config)

    async def go():
        await surface.handle({"action": "startAutoSolve"})
        response = await surface.handle({"action": "stopAutoSolve"})
        await controller.wait()
        return response

    assert asyncio.run(go()) == {"success": True}
    assert published[-1] == {"action": "autoSolveStopped", "current": 0, "total": 1}


def test_refresh_without_url_reports_count(fast_config):
    surface, _, _ = _surface(fast_config, ids=("c0", "c1"))
    assert asyncio.run(surface.handle({"action": "refresh"})) == {"success": True, "questionCount": 2}


def test_submit_via_api_without_submitter(fast_config):
    surface, _, _ = _surface(fast_config)
    response = asyncio.run(surface.handle({"action": "submitViaApi"}))
    assert response["success"] is False
    assert response["error"]


def test_submit_via_api_passes_raw_components(fast_config):
    submitter = RecordingSubmitter()
    surface, _, _ = _surface(fast_config, submitter=submitter)
    meta = {"assessmentId": "a-1"}

    response = asyncio.run(surface.handle({"action": "submitViaApi", "assessmentMeta": meta}))

    assert response == {"success": True, "error": None}
    components, passed_meta = submitter.calls[0]
    assert components[0]["_id"] == "c0"
    assert passed_meta == meta


def test_unknown_action(fast_config):
    surface, _, _ = _surface(fast_config)
    assert asyncio.run(surface.handle({"action": "reticulate"})) is None


def test_solve_question_by_container_classes(fast_config):
    surface, controller, published = _surface(fast_config)

    response = asyncio.run(surface.handle({"action": "solveQuestion",
                                           "classNames": ["component", "c0"]}))

    assert response["success"] is True
    assert response["questionId"] == "c0"
    assert published == []


def test_solve_question_outside_catalog(fast_config):
    surface, _, _ = _surface(fast_config)
    response = asyncio.run(surface.handle({"action": "solveQuestion", "classNames": ["text-block"]}))
    assert response == {"success": False, "error": "Not a catalogued question"}
