"""
Cache transform: freeze resolved generative actions into replayable ones.

Given the plan that ran and its positionally aligned outcomes, build the plan
to store. Any successful action whose output carries a ``css`` string is
replaced by an ``applyCSS`` action with that CSS; every other action is kept
verbatim so replay attempts the same step again.
"""

from typing import Sequence

from .models.schemas import Action, ActionOutcome, ExecutionPlan
from .utils.logger import get_logger

logger = get_logger(__name__)

APPLY_CSS_TOOL = "applyCSS"


def cached_description(action: Action, outcome: ActionOutcome) -> str:
    """
    Label for the frozen stylesheet, by precedence:
    tool output description, ``description`` parameter, ``transformation``
    parameter, ``Hide: <criteria>``, then a generic label.
    """
    result = outcome.result if isinstance(outcome.result, dict) else {}
    params = action.parameters
    for candidate in (result.get("description"), params.get("description"), params.get("transformation")):
        if isinstance(candidate, str) and candidate:
            return candidate
    if params.get("criteria"):
        return f"Hide: {params['criteria']}"
    return f"Cached CSS for {action.tool}"


def derive_storage_plan(original_plan: ExecutionPlan, outcomes: Sequence[ActionOutcome]) -> ExecutionPlan:
    """
    Derive the plan to persist from the executed plan and its outcomes.

    Only indices present in both *original_plan.actions* and *outcomes* are
    considered; the original plan is never modified.
    """
    storage_plan = original_plan.model_copy(deep=True)
    actions = list(storage_plan.actions)

    for i, (action, outcome) in enumerate(zip(original_plan.actions, outcomes)):
        css = outcome.css_text
        if css is None:
            continue
        description = cached_description(action, outcome)
        actions[i] = Action(tool=APPLY_CSS_TOOL, parameters={"css": css, "description": description})
        logger.info(
            f"[CacheTransform] Action {i} '{action.tool}' frozen to {APPLY_CSS_TOOL} | "
            f"description={description[:80]!r}"
        )

    storage_plan.actions = actions
    return storage_plan
