"""Typed view over ``config/solver_config.yaml``.

Every field carries a default, so ``SolverConfig()`` is usable on its own
and a YAML file only needs the sections it overrides.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]
CONFIG_PATH = PROJECT_ROOT / "config" / "solver_config.yaml"

DEFAULT_INTERVALS_MS = [3000, 2000, 1000, 500, 200]
FALLBACK_INTERVAL_MS = 1000


@dataclass
class DefaultsConfig:
    headless: bool = False
    catalog_url_pattern: str = "components.json"
    metrics_output: str = "results/metrics.json"
    max_steps: int = 500


@dataclass
class TimingConfig:
    ready_poll_interval: float = 1.0
    ready_timeout: float = 30.0
    settle: float = 0.1
    reveal_settle: float = 0.3
    open_settle: float = 0.1
    locate_attempts: int = 3
    locate_retry_delay: float = 0.5
    render_grace: float = 2.0
    stale_retries: int = 3


@dataclass
class SpeedConfig:
    default_level: int = 3
    intervals_ms: list[int] = field(default_factory=lambda: list(DEFAULT_INTERVALS_MS))


@dataclass
class ControlSpec:
    """One navigation candidate: a CSS selector or a visible button text."""
    selector: str | None = None
    text: str | None = None
    attribute: str | None = None


@dataclass
class NavigationConfig:
    candidates: list[ControlSpec] = field(default_factory=lambda: [
        ControlSpec(selector="button.btn__action"),
        ControlSpec(selector="button.js-btn-action"),
        ControlSpec(selector="button.js-next-btn"),
        ControlSpec(text="Submit"),
        ControlSpec(text="Next"),
        ControlSpec(text="Continue"),
    ])
    button_selector: str = 'button, [role="button"]'
    markers: list[ControlSpec] = field(default_factory=lambda: [
        ControlSpec(selector=".assessment__counter"),
        ControlSpec(selector=".question-number"),
        ControlSpec(selector='[aria-current="step"]', attribute="data-index"),
    ])
    enable_timeout: float = 10.0
    move_timeout: float = 10.0
    poll_interval: float = 0.25
    max_activations: int = 2
    intro: list[ControlSpec] = field(default_factory=lambda: [
        ControlSpec(selector="button.js-assessment-start"),
        ControlSpec(text="Start"),
        ControlSpec(text="Begin"),
    ])


@dataclass
class Selectors:
    container: str = ".component"
    yes_no_image: str = ".img_question"
    yes_button: str = ".user_selects_yes"
    no_button: str = ".user_selects_no"
    blank: str = ".fillblanks__item"
    blank_option: str = ".dropdown__item"
    table_row: str = "tbody tr"
    table_option: str = '[role="option"]'


@dataclass
class SolverConfig:
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    speed: SpeedConfig = field(default_factory=SpeedConfig)
    navigation: NavigationConfig = field(default_factory=NavigationConfig)
    selectors: Selectors = field(default_factory=Selectors)

    @classmethod
    def from_dict(cls, data: dict | None) -> SolverConfig:
        data = data or {}
        nav = dict(data.get("navigation") or {})
        for key in ("candidates", "markers", "intro"):
            if key in nav:
                nav[key] = [_section(ControlSpec, c) for c in nav[key] or []]
        return cls(
            defaults=_section(DefaultsConfig, data.get("defaults")),
            timing=_section(TimingConfig, data.get("timing")),
            speed=_section(SpeedConfig, data.get("speed")),
            navigation=_section(NavigationConfig, nav),
            selectors=_section(Selectors, data.get("selectors")),
        )

    @classmethod
    def load(cls, path: str | Path | None = None) -> SolverConfig:
        path = Path(path) if path else CONFIG_PATH
        if not path.exists():
            logger.warning("Config %s not found, using built-in defaults", path)
            return cls()
        with open(path) as f:
            return cls.from_dict(yaml.safe_load(f))

    def interval_for(self, level: int | None) -> int:
        """Delay in ms between solved questions for speed *level* (1..5)."""
        if level is None:
            level = self.speed.default_level
        table = self.speed.intervals_ms
        if isinstance(level, int) and 1 <= level <= len(table):
            return table[level - 1]
        return FALLBACK_INTERVAL_MS


def _section(cls, raw):
    """Build dataclass *cls* from *raw*, ignoring unknown keys."""
    if isinstance(raw, cls):
        return raw
    raw = raw or {}
    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", cls.__name__, sorted(unknown))
    return cls(**{k: v for k, v in raw.items() if k in known})
