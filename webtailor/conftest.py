"""
Shared pytest fixtures: a scripted generation client and sample pages.
"""

import json
from typing import Callable, List, Optional, Union

import pytest

from webtailor.errors import GenerationServiceError


class ScriptedLLM:
    """
    Stand-in for LLMClient.

    ``script`` is either a list of responses consumed in order or a callable
    mapping the prompt to a response. A response that is an exception
    instance is raised instead of returned.
    """

    def __init__(self, script: Union[List, Callable[[str], object], None] = None, api_key: Optional[str] = "test-key"):
        self.script = script if script is not None else []
        self.api_key = api_key
        self.model = "scripted"
        self.prompts: List[str] = []

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def set_api_key(self, api_key):
        self.api_key = api_key or None

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if callable(self.script):
            response = self.script(prompt)
        elif self.script:
            response = self.script.pop(0)
        else:
            raise GenerationServiceError("ScriptedLLM has no response left")
        if isinstance(response, BaseException):
            raise response
        return response


def plan_json(*actions, reasoning="test plan") -> str:
    return json.dumps({
        "reasoning": reasoning,
        "actions": [{"tool": tool, "parameters": params, "reasoning": ""} for tool, params in actions],
    })


NEWS_PAGE = """
<html>
<head><title>Daily Example News</title></head>
<body class="dark">
  <nav class="site-nav"><a href="/home">Home page</a><a href="javascript:void(0)">Menu</a></nav>
  <main>
    <h1>Breaking: Local Library Extends Opening Hours</h1>
    <p>The city library announced on Monday that it will stay open until ten in the evening.</p>
    <p>Short.</p>
    <img src="/img/library.png" alt="Library front">
    <img src="data:image/png;base64,AAAA" alt="inline">
  </main>
  <div class="ad-banner">Buy the best shoes now</div>
  <aside class="sidebar">Related stories</aside>
  <footer>Contact us</footer>
</body>
</html>
"""


@pytest.fixture
def scripted_llm():
    """Factory for ScriptedLLM instances."""
    return ScriptedLLM


@pytest.fixture
def news_html():
    return NEWS_PAGE


@pytest.fixture
def make_plan():
    return plan_json
