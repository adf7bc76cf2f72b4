"""
Tests for PlanExecutor settle-all execution.
"""

import asyncio

import pytest

from webtailor.executor import PlanExecutor
from webtailor.models.schemas import Action
from webtailor.tools import ToolRegistry


def build_registry():
    registry = ToolRegistry()

    async def ok(params):
        await asyncio.sleep(params.get("delay", 0))
        return {"value": params.get("value")}

    async def fails(params):
        raise ValueError(params.get("message", "failed"))

    registry.register("ok", {"value": "any"}, ok)
    registry.register("fails", {"message": "string"}, fails)
    return registry


class TestPlanExecutor:

    @pytest.mark.asyncio
    async def test_outcomes_aligned_with_actions(self):
        actions = [
            Action(tool="ok", parameters={"value": 1, "delay": 0.03}),
            Action(tool="fails", parameters={"message": "bad selector"}),
            Action(tool="missing", parameters={}),
            Action(tool="ok", parameters={"value": 4}),
        ]

        outcomes = await PlanExecutor(build_registry()).execute(actions)

        assert len(outcomes) == len(actions)
        assert [o.tool for o in outcomes] == ["ok", "fails", "missing", "ok"]
        assert [o.success for o in outcomes] == [True, False, False, True]
        assert outcomes[0].result == {"value": 1}
        assert outcomes[1].error == "bad selector"
        assert outcomes[2].error == "Unknown tool: missing"
        assert outcomes[3].parameters == {"value": 4}

    @pytest.mark.asyncio
    async def test_all_failing_plan_still_returns_every_outcome(self):
        actions = [Action(tool="fails", parameters={"message": str(i)}) for i in range(5)]
        outcomes = await PlanExecutor(build_registry()).execute(actions)
        assert [o.error for o in outcomes] == ["0", "1", "2", "3", "4"]

    @pytest.mark.asyncio
    async def test_actions_run_concurrently(self):
        registry = ToolRegistry()
        started = []
        release = asyncio.Event()

        async def waits(params):
            started.append(params["n"])
            await release.wait()
            return {}

        registry.register("waits", {"n": "int"}, waits)
        task = asyncio.ensure_future(PlanExecutor(registry).execute(
            [Action(tool="waits", parameters={"n": n}) for n in range(3)]
        ))
        await asyncio.sleep(0.01)

        # all three are in flight before any of them finishes
        assert sorted(started) == [0, 1, 2]
        release.set()
        outcomes = await task
        assert all(o.success for o in outcomes)

    @pytest.mark.asyncio
    async def test_empty_plan(self):
        assert await PlanExecutor(build_registry()).execute([]) == []
