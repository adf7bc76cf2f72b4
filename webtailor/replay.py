"""
ReplayController: re-executes stored rules for an origin on (re)load.

A rule is replayed when it is newer than the staleness horizon, has at least
one stored action, and either recorded no outcomes or recorded at least one
success. All actions of all qualifying rules run concurrently through the
PlanExecutor. Replay outcomes are only logged: nothing is re-derived or
re-persisted.
"""

import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .config import settings
from .executor import PlanExecutor
from .models.schemas import Action, Rule
from .rule_store import RuleStore
from .utils.logger import get_logger

logger = get_logger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def effective_rules(rules: Sequence[Rule], now: Optional[float] = None, max_age_days: Optional[float] = None) -> List[Rule]:
    """Filter *rules* down to the ones worth replaying at time *now* (epoch seconds)."""
    now = time.time() if now is None else now
    max_age_days = settings.RULE_MAX_AGE_DAYS if max_age_days is None else max_age_days
    horizon = now - max_age_days * SECONDS_PER_DAY
    return [
        rule for rule in rules
        if rule.timestamp > horizon
        and rule.execution_plan.actions
        and (not rule.results or any(r.success for r in rule.results))
    ]


@dataclass
class ReplayReport:
    """Counts from one replay pass."""
    origin: str
    rules_stored: int = 0
    rules_replayed: int = 0
    actions: int = 0
    failures: int = 0


class ReplayController:
    """Replays an origin's effective rules; never raises."""

    def __init__(
        self,
        store: RuleStore,
        executor: PlanExecutor,
        max_age_days: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.executor = executor
        self.max_age_days = settings.RULE_MAX_AGE_DAYS if max_age_days is None else max_age_days
        self._clock = clock

    async def apply_effective_rules(self, origin: str) -> ReplayReport:
        stored = await self.store.load(origin)
        report = ReplayReport(origin=origin, rules_stored=len(stored))
        if not stored:
            logger.info(f"[Replay] No stored rules for {origin}")
            return report

        rules = effective_rules(stored, now=self._clock(), max_age_days=self.max_age_days)
        report.rules_replayed = len(rules)
        logger.info(f"[Replay] {origin}: {len(rules)}/{len(stored)} rule(s) effective")
        if not rules:
            return report

        actions: List[Action] = []
        owners: List[Rule] = []
        for rule in rules:
            actions.extend(rule.execution_plan.actions)
            owners.extend([rule] * len(rule.execution_plan.actions))
        report.actions = len(actions)

        try:
            outcomes = await self.executor.execute(actions)
        except Exception as e:
            logger.error(f"[Replay] Replay pass for {origin} aborted: {e}", exc_info=True)
            report.failures = len(actions)
            return report

        for rule, outcome in zip(owners, outcomes):
            if not outcome.success:
                report.failures += 1
                logger.warning(
                    f"[Replay] Failed to reapply {outcome.tool} from rule {rule.command!r}: {outcome.error}"
                )

        logger.info(
            f"[Replay] Finished {origin}: {report.actions} action(s), {report.failures} failure(s)"
        )
        return report
