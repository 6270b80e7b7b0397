"""
Fan-out read plan.

Summary and drill-through views need several independent reads (activities,
achievements, monthly approvals, evidence per month, ...). A ReadPlan
collects them as named branches, runs them in parallel, and joins them all
before the caller continues.

Failure policy: a branch that raises is replaced by its declared default
and reported in ``result.degraded``; the other branches are unaffected.
Nothing is written during a read plan, so an abandoned plan leaves no
state behind.

Execution:
  - max_workers > 1  → ThreadPoolExecutor; each branch runs inside its own
                       application context (own DB session).
  - max_workers <= 1 → branches run inline, in order, in the caller's
                       context. TestingConfig uses this so in-memory SQLite
                       stays on one connection.

Usage:
    plan = ReadPlan()
    plan.add("activities", lambda: list_activities(ipp_id), default=[])
    plan.add("approvals", lambda: list_monthly_approvals(ipp_id), default=[])
    result = plan.run()
    result["activities"], result.degraded
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


@dataclass
class ReadPlanResult:
    values: dict[str, Any] = field(default_factory=dict)
    degraded: list[str] = field(default_factory=list)

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    @property
    def complete(self) -> bool:
        return not self.degraded


@dataclass
class _Branch:
    name: str
    loader: Callable[[], Any]
    default: Any


class ReadPlan:
    """Batch of independent read branches joined before use."""

    def __init__(self, max_workers: int | None = None):
        self._branches: list[_Branch] = []
        self._max_workers = max_workers

    def add(self, name: str, loader: Callable[[], Any], default: Any = None) -> ReadPlan:
        if any(b.name == name for b in self._branches):
            raise ValueError(f"Duplicate read-plan branch: {name}")
        self._branches.append(_Branch(name, loader, default))
        return self

    def __len__(self) -> int:
        return len(self._branches)

    def _resolve_workers(self) -> int:
        if self._max_workers is not None:
            return self._max_workers
        if has_app_context():
            return int(current_app.config.get("READ_PLAN_MAX_WORKERS", DEFAULT_MAX_WORKERS))
        return DEFAULT_MAX_WORKERS

    def run(self) -> ReadPlanResult:
        result = ReadPlanResult()
        if not self._branches:
            return result

        workers = min(self._resolve_workers(), len(self._branches))
        if workers <= 1:
            for branch in self._branches:
                self._collect(result, branch, lambda b=branch: b.loader())
            return result

        app = current_app._get_current_object() if has_app_context() else None

        def _call(branch: _Branch):
            if app is None:
                return branch.loader()
            with app.app_context():
                return branch.loader()

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="read-plan") as pool:
            futures = [(branch, pool.submit(_call, branch)) for branch in self._branches]
            for branch, future in futures:
                self._collect(result, branch, future.result)
        return result

    @staticmethod
    def _collect(result: ReadPlanResult, branch: _Branch, fetch: Callable[[], Any]) -> None:
        try:
            result.values[branch.name] = fetch()
        except Exception as exc:
            logger.warning(
                "Read-plan branch '%s' failed, using default: %s",
                branch.name, exc,
                extra={"event_type": "read_plan.degraded"},
            )
            result.values[branch.name] = branch.default
            result.degraded.append(branch.name)
