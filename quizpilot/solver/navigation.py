"""Move the assessment flow forward: wait for the action button, click it,
confirm the page actually moved."""

from __future__ import annotations

import logging
from enum import Enum

from quizpilot.config import ControlSpec, NavigationConfig
from quizpilot.environment.page_view import normalize_text
from quizpilot.solver.polling import poll_until

logger = logging.getLogger(__name__)


class AdvanceResult(Enum):
    ADVANCED = "advanced"
    STUCK = "stuck"


class NavigationAdvancer:
    def __init__(self, view, config: NavigationConfig | None = None):
        self.view = view
        self.config = config or NavigationConfig()

    async def _matches(self, spec: ControlSpec) -> list:
        if spec.selector:
            return await self.view.query_all(spec.selector)
        wanted = normalize_text(spec.text).lower()
        found = []
        for button in await self.view.query_all(self.config.button_selector):
            if (await button.text()).lower() == wanted:
                found.append(button)
        return found

    async def find_control(self, candidates: list[ControlSpec] | None = None):
        """First visible, enabled control in candidate order, or None."""
        for spec in candidates if candidates is not None else self.config.candidates:
            for element in await self._matches(spec):
                if await element.is_visible() and await element.is_enabled():
                    return element
        return None

    async def marker(self) -> tuple:
        """Observable position in the flow: URL plus every marker's value."""
        values: list = [self.view.url]
        for spec in self.config.markers:
            element = await self.view.query(spec.selector) if spec.selector else None
            if element is None:
                values.append(None)
            elif spec.attribute:
                values.append(await element.attribute(spec.attribute))
            else:
                values.append(await element.text())
        return tuple(values)

    async def _moved_from(self, before: tuple) -> bool:
        return await self.marker() != before

    async def advance(self) -> AdvanceResult:
        cfg = self.config
        for attempt in range(1, cfg.max_activations + 1):
            before = await self.marker()

            # 1. WaitEnabled
            control = await poll_until(self.find_control, interval=cfg.poll_interval,
                                       timeout=cfg.enable_timeout)
            if control is None:
                logger.info("Advance attempt %d: no enabled control within %.1fs",
                            attempt, cfg.enable_timeout)
                return AdvanceResult.STUCK

            # 2. Activate
            logger.debug("Advance attempt %d: clicking %r", attempt, await control.text())
            await control.click()

            # 3. ConfirmMoved
            moved = await poll_until(lambda: self._moved_from(before),
                                     interval=cfg.poll_interval, timeout=cfg.move_timeout)
            if moved:
                logger.info("Advanced (attempt %d)", attempt)
                return AdvanceResult.ADVANCED

        logger.info("Flow did not move after %d activations", cfg.max_activations)
        return AdvanceResult.STUCK

    async def start_intro(self) -> bool:
        """Click an intro/start control if one is showing."""
        control = await self.find_control(self.config.intro)
        if control is None:
            return False
        logger.info("Starting assessment via %r", await control.text())
        await control.click()
        return True
