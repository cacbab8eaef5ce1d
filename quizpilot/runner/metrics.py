"""Metrics tracking for an auto-solve run."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class QuestionMetrics:
    """Metrics for a single question attempt."""
    question_id: str
    question_type: str = "basic"
    success: bool = False
    units_done: int = 0
    units_total: int = 0
    elapsed_seconds: float = 0.0
    error: Optional[str] = None


@dataclass
class RunMetrics:
    questions: list[QuestionMetrics] = field(default_factory=list)
    final_state: str = "idle"
    total_elapsed_seconds: float = 0.0
    start_time: float = 0.0

    def start(self):
        self.start_time = time.time()

    def finish(self, state: str | None = None):
        self.total_elapsed_seconds = time.time() - self.start_time
        if state:
            self.final_state = state

    def add_question(self, metrics: QuestionMetrics):
        self.questions.append(metrics)

    @property
    def num_solved(self) -> int:
        return len({q.question_id for q in self.questions if q.success})

    @property
    def success_rate(self) -> float:
        attempted = {q.question_id for q in self.questions}
        if not attempted:
            return 0.0
        return self.num_solved / len(attempted)

    @property
    def by_type(self) -> dict:
        counts: dict[str, dict] = {}
        for q in self.questions:
            entry = counts.setdefault(q.question_type, {"attempted": 0, "solved": 0})
            entry["attempted"] += 1
            entry["solved"] += int(q.success)
        return counts

    def to_dict(self) -> dict:
        return {
            "summary": {
                "final_state": self.final_state,
                "questions_attempted": len({q.question_id for q in self.questions}),
                "solved": self.num_solved,
                "success_rate": f"{self.success_rate:.1%}",
                "total_elapsed_seconds": round(self.total_elapsed_seconds, 1),
                "by_type": self.by_type,
            },
            "questions": [
                {
                    "id": q.question_id,
                    "type": q.question_type,
                    "success": q.success,
                    "units": f"{q.units_done}/{q.units_total}",
                    "elapsed_seconds": round(q.elapsed_seconds, 2),
                    "error": q.error,
                }
                for q in self.questions
            ],
        }

    def save(self, path: str | Path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def print_summary(self):
        d = self.to_dict()["summary"]
        print(f"\n{'='*50}")
        print("Run Summary")
        print(f"{'='*50}")
        for k, v in d.items():
            print(f"  {k}: {v}")
        print(f"{'='*50}")
