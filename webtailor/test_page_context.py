"""
Tests for page snapshots, theme detection and the context cache.
"""

import pytest

from webtailor.document import BodyInfo, SoupDocument
from webtailor.page_context import (
    UNKNOWN_THEME,
    PageContextCache,
    build_snapshot,
    detect_theme,
    find_main_content_selector,
)


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


class ColouredDocument(SoupDocument):
    """SoupDocument reporting fixed computed colours."""

    def __init__(self, background, color):
        super().__init__("<p>x</p>")
        self._colours = (background, color)

    async def body_info(self):
        return BodyInfo(background_color=self._colours[0], color=self._colours[1])


class TestSnapshot:

    @pytest.mark.asyncio
    async def test_news_page_snapshot(self, news_html):
        document = SoupDocument(news_html, url="https://news.example.com/story")

        snapshot = await build_snapshot(document, ["a", "b", "c", "d"])

        assert snapshot.domain == "example.com"
        assert snapshot.title == "Daily Example News"
        assert snapshot.theme == "dark"
        assert [h.tag for h in snapshot.content.headlines] == ["h1"]
        assert len(snapshot.content.paragraphs) == 1
        assert snapshot.content.paragraphs[0].word_count > 5
        assert [link.href for link in snapshot.content.links] == ["/home"]
        assert [img.src for img in snapshot.content.images] == ["/img/library.png"]
        assert snapshot.structure.main_content_selector == "main"
        assert snapshot.structure.has_navigation
        assert snapshot.structure.has_sidebar
        assert snapshot.structure.has_footer
        assert not snapshot.structure.has_comments
        assert snapshot.structure.ad_element_count >= 1
        assert snapshot.existing_customizations == ["b", "c", "d"]

    @pytest.mark.asyncio
    async def test_main_content_falls_back_to_body(self):
        assert await find_main_content_selector(SoupDocument("<div><p>plain</p></div>")) == "body"
        assert await find_main_content_selector(SoupDocument("<div id='content'></div>")) == "#content"


class TestDetectTheme:

    @pytest.mark.asyncio
    async def test_data_theme_attribute(self):
        assert await detect_theme(SoupDocument('<html><body data-theme="dark"></body></html>')) == "dark"

    @pytest.mark.asyncio
    async def test_computed_colours(self):
        assert await detect_theme(ColouredDocument("rgb(20, 20, 20)", "rgb(230, 230, 230)")) == "dark"
        assert await detect_theme(ColouredDocument("rgb(255, 255, 255)", "rgb(10, 10, 10)")) == "light"
        assert await detect_theme(ColouredDocument("rgb(20, 20, 20)", None)) == "likely dark background"
        assert await detect_theme(ColouredDocument("rgba(0, 0, 0, 0)", "rgb(240, 240, 240)")) == (
            "likely light text on unspecified background"
        )

    @pytest.mark.asyncio
    async def test_unknown(self):
        assert await detect_theme(SoupDocument("<p>x</p>")) == UNKNOWN_THEME


class TestPageContextCache:

    @pytest.mark.asyncio
    async def test_ttl_and_invalidate(self, news_html):
        document = SoupDocument(news_html, url="https://example.com/")
        builds = []

        async def provider():
            builds.append(1)
            return await build_snapshot(document)

        clock = FakeClock()
        cache = PageContextCache(provider, ttl=15.0, clock=clock)

        first = await cache.get()
        clock.now += 14.0
        assert await cache.get() is first
        assert len(builds) == 1

        clock.now += 1.0
        assert await cache.get() is not first
        assert len(builds) == 2

        cache.invalidate()
        assert not cache.is_fresh
        await cache.get()
        assert len(builds) == 3
