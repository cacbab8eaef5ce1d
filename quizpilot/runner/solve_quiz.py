#!/usr/bin/env python3
"""Main entry point: open a quiz page and auto-solve it.

The page fetches its ``components.json`` while loading; the request is
intercepted, the catalog merged, and the auto-solve loop started once at
least one descriptor is known.

Usage:
    python -m quizpilot.runner.solve_quiz https://example.org/course/#/id/co-05
    python -m quizpilot.runner.solve_quiz URL --speed 5 --headless
    python -m quizpilot.runner.solve_quiz URL --assist
    python -m quizpilot.runner.solve_quiz URL --catalog-url https://example.org/course/en/components.json
    python -m quizpilot.runner.solve_quiz URL --config my_config.yaml --output results/run.json --verbose
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

from quizpilot.config import PROJECT_ROOT, SolverConfig
from quizpilot.environment.browser_env import BrowserController
from quizpilot.runner.control_surface import ControlSurface
from quizpilot.runner.metrics import RunMetrics
from quizpilot.solver.auto_solve import AutoSolveController
from quizpilot.solver.polling import poll_until

load_dotenv(PROJECT_ROOT / ".env")

logger = logging.getLogger(__name__)


def log_event(event: dict) -> None:
    action = event.get("action")
    if action == "error":
        logger.error("Error: %s", event.get("message"))
    elif action == "progress":
        logger.info("Progress: %s/%s", event.get("current"), event.get("total"))
    else:
        logger.info("Event: %s", event)


async def solve_quiz(url: str, config: SolverConfig, speed: int | None = None,
                     headless: bool | None = None,
                     catalog_urls: list[str] | None = None, assist: bool = False) -> RunMetrics:
    """Run one auto-solve session against *url* and return its metrics.

    With *assist* no session is started: the user answers questions one at
    a time from the page until they close it.
    """
    headless = config.defaults.headless if headless is None else headless
    browser = BrowserController(config.defaults.catalog_url_pattern)
    run_metrics = RunMetrics()

    try:
        await browser.launch(headless=headless)
        controller = AutoSolveController(browser.view, config=config, metrics=run_metrics)
        surface = ControlSurface(controller, publish=log_event)

        async def on_catalog(catalog_url: str) -> None:
            await surface.handle({"action": "refresh", "url": catalog_url})

        browser.on_catalog(on_catalog)
        browser.on_navigation(controller.notify_navigation)
        if assist:
            async def on_assist(class_names: list[str]) -> dict | None:
                return await surface.handle({"action": "solveQuestion", "classNames": class_names})

            await browser.enable_assist(on_assist, config.selectors.container)
        await browser.goto(url)

        for catalog_url in catalog_urls or []:
            await surface.handle({"action": "refresh", "url": catalog_url})

        if assist:
            run_metrics.start()
            await browser.wait_closed()
            run_metrics.finish("completed")
            return run_metrics

        async def catalog_loaded() -> bool:
            return len(controller.catalog) > 0

        await poll_until(catalog_loaded, interval=0.5, timeout=config.timing.ready_timeout)

        response = await surface.handle({"action": "startAutoSolve", "speed": speed})
        if not response or not response.get("success"):
            run_metrics.finish("error")
            return run_metrics

        state = await controller.wait()
        logger.info("Session ended: %s", state.value)
    except Exception as e:
        logger.error("Quiz run error: %s", e, exc_info=True)
        run_metrics.finish("error")
    finally:
        await browser.stop()

    return run_metrics


def main():
    parser = argparse.ArgumentParser(description="Auto-solve a quiz page")
    parser.add_argument("url", help="Quiz page URL")
    parser.add_argument("--catalog-url", action="append", default=None,
                        help="Extra components.json URL to merge (repeatable)")
    parser.add_argument("--speed", type=int, default=None, choices=range(1, 6),
                        help="1 (slowest) .. 5 (fastest)")
    parser.add_argument("--headless", action="store_true", default=None)
    parser.add_argument("--assist", action="store_true",
                        help="Answer questions on Ctrl/Alt + click or hover instead of auto-solving")
    parser.add_argument("--config", default=None, help="Solver config YAML")
    parser.add_argument("--output", default=None, help="Metrics output path")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s: %(message)s",
    )

    config = SolverConfig.load(args.config)
    output_path = args.output or str(PROJECT_ROOT / config.defaults.metrics_output)

    run_metrics = asyncio.run(solve_quiz(
        args.url, config, speed=args.speed, headless=args.headless,
        catalog_urls=args.catalog_url, assist=args.assist,
    ))

    run_metrics.save(output_path)
    run_metrics.print_summary()
    return 0 if run_metrics.final_state == "completed" else 1


if __name__ == "__main__":
    sys.exit(main())
