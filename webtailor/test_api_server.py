"""
Tests for the FastAPI host surface, using offline HTML pages.
"""

import json

import pytest
from fastapi.testclient import TestClient

from webtailor.api_server import app
from webtailor.rule_store import MemoryStore, RuleStore, SettingsStore

from .conftest import NEWS_PAGE, ScriptedLLM, plan_json

URL = "https://news.example.com/story/1"


def respond(prompt):
    if "create an execution plan" in prompt:
        if "hide ads" in prompt:
            return plan_json(("hideElements", {"criteria": "ads"}), reasoning="Hide the adverts")
        return plan_json(reasoning="Nothing to do")
    if "expert DOM element selector" in prompt:
        return json.dumps({"selected": [".ad-banner"]})
    return "unexpected"


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        backend = MemoryStore()
        app.state.rule_store = RuleStore(backend)
        app.state.settings_store = SettingsStore(backend)
        app.state.llm = ScriptedLLM(respond)
        yield test_client


def open_page(client, url=URL):
    response = client.post("/page/open", json={"url": url, "html": NEWS_PAGE})
    assert response.status_code == 200
    return response.json()


class TestApiServer:

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["model"] == "scripted"
        assert body["browser_ready"] is False
        assert body["page_url"] is None

    def test_core_endpoints_need_an_open_page(self, client):
        assert client.post("/commands", json={"command": "hide ads"}).status_code == 409
        assert client.post("/reset").status_code == 409
        assert client.get("/rules").status_code == 409

    def test_open_page(self, client):
        body = open_page(client)
        assert body["success"]
        assert body["result"]["origin"] == "example.com"
        assert body["result"]["state"] == "observing"

        health = client.get("/health").json()
        assert health["page_url"] == URL
        assert health["agent_state"] == "observing"

        context = client.get("/page/context").json()["result"]
        assert context["domain"] == "example.com"
        assert context["theme"] == "dark"

    def test_command_persist_replay_and_reset(self, client):
        open_page(client)

        body = client.post("/commands", json={"command": "always hide ads on this site"}).json()
        assert body["success"]
        assert body["result"]["persisted"] is True
        assert body["result"]["results"][0]["result"]["hidden_selectors"] == [".ad-banner"]

        rules = client.get("/rules").json()["result"]["rules"]
        assert [a["tool"] for a in rules[0]["execution_plan"]["actions"]] == ["applyCSS"]

        reopened = open_page(client, "https://www.example.com/home")
        assert reopened["result"]["applied_styles"] == ["Hide: ads"]

        report = client.post("/rules/apply").json()["result"]
        assert report["rules_stored"] == 1 and report["failures"] == 0

        assert client.post("/reset").json()["success"]
        assert client.get("/rules").json()["result"]["rules"] == []

    def test_tool_errors_are_reported(self, client):
        open_page(client)

        ok = client.post("/tools/execute", json={"tool": "applyCSS", "parameters": {"css": "p{}", "description": "p"}})
        assert ok.json()["result"]["applied_in_this_call"] is True

        missing = client.post("/tools/execute", json={"tool": "nope"}).json()
        assert missing == {"success": False, "result": None, "error": "Unknown tool: nope"}

        failing = client.post("/tools/execute", json={"tool": "hideElements", "parameters": {}}).json()
        assert failing["success"] is False
        assert "Either 'criteria' or 'selectors'" in failing["error"]

    def test_customize_uses_global_prompt(self, client):
        open_page(client)
        client.put("/settings", json={"global_prompt": "hide ads"})

        body = client.post("/customize", json={}).json()

        assert body["success"]
        assert body["result"]["explanation"] == "Hide the adverts"
        assert body["result"]["persisted"] is False

    def test_settings_round_trip(self, client):
        app.state.llm.set_api_key(None)
        assert client.get("/settings").json() == {"api_key_set": False, "global_prompt": ""}

        updated = client.put("/settings", json={"api_key": " abc ", "global_prompt": " dark mode "}).json()

        assert updated == {"api_key_set": True, "global_prompt": "dark mode"}
        assert app.state.llm.api_key == "abc"
