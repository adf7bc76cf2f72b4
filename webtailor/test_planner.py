"""
Tests for CommandPlanner and plan normalization.
"""

import json

import pytest

from webtailor.document import SoupDocument
from webtailor.errors import GenerationServiceError, PlanParseError
from webtailor.page_context import build_snapshot
from webtailor.planner import CommandPlanner, extract_actions, normalize_plan
from webtailor.tools import ToolRegistry


def make_registry():
    registry = ToolRegistry()

    async def noop(params):
        return {}

    registry.register("applyCSS", {"css": "string", "description": "string"}, noop, "Apply CSS")
    registry.register("hideElements", {"criteria": "string"}, noop, "Hide elements")
    return registry


class TestNormalizePlan:

    def test_new_format(self):
        plan = normalize_plan({
            "reasoning": "hide the ads",
            "actions": [{"tool": "hideElements", "parameters": {"criteria": "ads"}, "reasoning": "ads"}],
        })
        assert plan.reasoning == "hide the ads"
        assert plan.actions[0].tool == "hideElements"
        assert plan.actions[0].parameters == {"criteria": "ads"}
        assert plan.actions[0].reasoning == "ads"

    def test_legacy_format(self):
        plan = normalize_plan({
            "explanation": "old style",
            "tools": [{"function": "applyCSS", "params": {"css": "a{}"}}],
        })
        assert plan.reasoning == "old style"
        assert [(a.tool, a.parameters) for a in plan.actions] == [("applyCSS", {"css": "a{}"})]

    def test_actions_without_tool_are_skipped(self):
        plan = normalize_plan({"actions": [{"parameters": {}}, {"tool": "applyCSS", "parameters": None}, "junk"]})
        assert [a.tool for a in plan.actions] == ["applyCSS"]
        assert plan.actions[0].parameters == {}

    def test_missing_actions_key(self):
        assert extract_actions({"reasoning": "nothing"}) == []
        assert normalize_plan({"reasoning": "nothing"}).actions == []

    def test_non_object(self):
        with pytest.raises(PlanParseError):
            normalize_plan(["applyCSS"])


class TestCommandPlanner:

    async def snapshot(self, news_html):
        return await build_snapshot(SoupDocument(news_html, url="https://news.example.com/"))

    @pytest.mark.asyncio
    async def test_prompt_carries_command_context_and_tools(self, scripted_llm, news_html):
        llm = scripted_llm([json.dumps({"reasoning": "r", "actions": []})])
        planner = CommandPlanner(llm, make_registry())

        await planner.plan("hide the sidebar", await self.snapshot(news_html))

        [prompt] = llm.prompts
        assert 'User Command: "hide the sidebar"' in prompt
        assert "https://news.example.com/" in prompt
        assert "Daily Example News" in prompt
        assert "hideElements" in prompt and "applyCSS" in prompt

    @pytest.mark.asyncio
    async def test_fenced_plan(self, scripted_llm, news_html, make_plan):
        llm = scripted_llm(["```json\n" + make_plan(("hideElements", {"criteria": "ads"})) + "\n```"])
        plan = await CommandPlanner(llm, make_registry()).plan("hide ads", await self.snapshot(news_html))
        assert [a.tool for a in plan.actions] == ["hideElements"]

    @pytest.mark.asyncio
    async def test_generation_failure_yields_empty_plan(self, scripted_llm, news_html):
        llm = scripted_llm([GenerationServiceError("Gemini API request failed: 503")])
        plan = await CommandPlanner(llm, make_registry()).plan("hide ads", await self.snapshot(news_html))
        assert plan.actions == []
        assert plan.reasoning.startswith("Failed to generate execution plan due to AI call error:")
        assert "503" in plan.reasoning

    @pytest.mark.asyncio
    async def test_unparseable_response_yields_empty_plan(self, scripted_llm, news_html):
        llm = scripted_llm(["Sorry, I can't do that."])
        plan = await CommandPlanner(llm, make_registry()).plan("hide ads", await self.snapshot(news_html))
        assert plan.actions == []
        assert "Invalid JSON response from AI" in plan.reasoning
