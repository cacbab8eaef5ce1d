"""Catalog-driven quiz solver: classify, locate, solve, advance."""

from __future__ import annotations

from quizpilot.solver.auto_solve import AutoSolveController
from quizpilot.solver.catalog import ComponentCatalog, ComponentDescriptor, Item, Option
from quizpilot.solver.element_locator import ElementBindings, ElementLocator
from quizpilot.solver.navigation import AdvanceResult, NavigationAdvancer
from quizpilot.solver.question_classifier import ClassifiedQuestion, QuestionType, classify
from quizpilot.solver.question_handlers import QuestionSolver, SolveResult
from quizpilot.solver.readiness import PageReadinessMonitor, Readiness
from quizpilot.solver.session import (
    AutoSolveSession,
    GenerationCounter,
    PageContext,
    SessionState,
    StaleGenerationError,
)

__all__ = [
    "AdvanceResult",
    "AutoSolveController",
    "AutoSolveSession",
    "ClassifiedQuestion",
    "ComponentCatalog",
    "ComponentDescriptor",
    "ElementBindings",
    "ElementLocator",
    "GenerationCounter",
    "Item",
    "NavigationAdvancer",
    "Option",
    "PageContext",
    "PageReadinessMonitor",
    "QuestionSolver",
    "QuestionType",
    "Readiness",
    "SessionState",
    "SolveResult",
    "StaleGenerationError",
    "classify",
]
