"""Wait until the page has rendered at least one catalogued question."""

from __future__ import annotations

import logging
from enum import Enum

from quizpilot.config import TimingConfig
from quizpilot.environment.page_view import class_selector
from quizpilot.solver.polling import poll_until

logger = logging.getLogger(__name__)


class Readiness(Enum):
    READY = "ready"
    TIMEOUT = "timeout"


class PageReadinessMonitor:
    """Polls the render for any descriptor's container.

    A timeout is "no questions on this page", which the caller handles as a
    normal outcome rather than a solver failure.
    """

    def __init__(self, view, timing: TimingConfig | None = None):
        self.view = view
        self.timing = timing or TimingConfig()

    async def container_for(self, component_id: str):
        return await self.view.query(class_selector(component_id))

    async def present_ids(self, catalog) -> list[str]:
        """Ids of catalogued descriptors whose container is currently rendered."""
        present = []
        for component_id in catalog.ids():
            if await self.container_for(component_id) is not None:
                present.append(component_id)
        return present

    async def _any_present(self, catalog) -> bool:
        for component_id in catalog.ids():
            if await self.container_for(component_id) is not None:
                return True
        return False

    async def await_ready(self, catalog, timeout: float | None = None) -> Readiness:
        timeout = self.timing.ready_timeout if timeout is None else timeout
        logger.info("Waiting for page ready (%d components, %.0fs max)", len(catalog), timeout)
        ready = await poll_until(
            lambda: self._any_present(catalog),
            interval=self.timing.ready_poll_interval,
            timeout=timeout,
        )
        if ready:
            present = await self.present_ids(catalog)
            logger.info("Page is ready (%d of %d questions rendered)", len(present), len(catalog))
            return Readiness.READY
        logger.info("No catalogued question rendered within %.0fs", timeout)
        return Readiness.TIMEOUT
