"""
Page context snapshot builder and its time-bounded cache.

This data feeds planning and the generative tools. A snapshot is rebuilt
after ``CONTEXT_CACHE_TTL_SECONDS`` or after an explicit invalidation
(MutationWatch, reset).
"""

import re
import time
from typing import Awaitable, Callable, Dict, List, Optional

from .config import settings
from .document import Document, Element
from .models.schemas import (
    Headline,
    ImageInfo,
    LinkInfo,
    PageContent,
    PageContextSnapshot,
    PageStructure,
    Paragraph,
)
from .origin import origin_key
from .utils.logger import get_logger


logger = get_logger(__name__)


# ============================================================================
# Constants
# ============================================================================

MAIN_CONTENT_CANDIDATES = [
    "main", '[role="main"]', "article.post", "div.post", "div.entry", ".main-content", ".main_content",
    "#main-content", "#main_content", "#content", ".content", "#page-content",
    'article[class*="content"]', 'section[class*="content"]',
    'div[class*="main"]:not([class*="nav"]):not([class*="header"]):not([class*="footer"])',
    'div[class*="container"] article', "div.container > .row > .col",
]

AD_SELECTORS = [
    '[class*="ad"]:not([class*="add"]):not([class*="pad"]):not([class*="head"])',
    '[id*="ad"]:not([id*="add"]):not([id*="pad"]):not([id*="head"])',
    '[class*="advert"]', '[id*="advert"]',
    '[class*="sponsor"]', '[id*="sponsor"]',
    'iframe[src*="ads"]', "div[data-ad-unit]", "ins.adsbygoogle",
    'div[aria-label*="advertisement"]', 'div[id*="google_ads_iframe"]',
]

ELEMENT_SAMPLE_SELECTORS = [
    "h1", "h2", "h3", "h4", "h5", "h6", "p", "div[class]", "section[class]", "article[class]",
    "aside[class]", "nav[class]", "li", "a[href]", "button",
]

UNKNOWN_THEME = "unknown (defaulting to light assumption)"

_RGB = re.compile(r"rgba?\((\d+),\s*(\d+),\s*(\d+)")


# ============================================================================
# Snapshot extraction
# ============================================================================

async def find_main_content_selector(document: Document) -> str:
    for selector in MAIN_CONTENT_CANDIDATES:
        if await document.exists(selector):
            return selector
    return "body"


async def find_ad_elements(document: Document) -> List[str]:
    found: Dict[str, None] = {}
    for selector in AD_SELECTORS:
        try:
            for el in await document.query(selector):
                found[el.selector] = None
        except ValueError:
            logger.warning(f"[PageContext] Invalid ad selector: {selector}")
    return list(found)


async def extract_headlines(document: Document) -> List[Headline]:
    return [
        Headline(text=el.text, selector=el.selector, tag=el.tag)
        for el in await document.query("h1, h2, h3, h4, h5, h6")
        if 3 < len(el.text) < 200
    ]


async def extract_paragraphs(document: Document) -> List[Paragraph]:
    return [
        Paragraph(text=el.text, selector=el.selector, word_count=len(el.text.split()))
        for el in await document.query("p")
        if 20 < len(el.text) < 500 and el.child_count == 0
    ]


async def extract_links(document: Document) -> List[LinkInfo]:
    links = []
    for el in await document.query("a[href]"):
        href = el.attributes.get("href", "")
        if 2 < len(el.text) < 100 and href and not href.startswith("javascript:"):
            links.append(LinkInfo(text=el.text, href=href, selector=el.selector))
    return links


async def extract_images(document: Document) -> List[ImageInfo]:
    images = []
    for el in await document.query("img"):
        src = el.attributes.get("src", "")
        if src and not src.startswith("data:"):
            images.append(ImageInfo(
                src=src[:200],
                alt=el.attributes.get("alt", "")[:100],
                selector=el.selector,
            ))
    return images


async def analyze_structure(document: Document) -> PageStructure:
    return PageStructure(
        has_navigation=await document.exists(
            'nav, [role="navigation"], .navigation, header nav, #nav, #menu, .menu'
        ),
        has_sidebar=await document.exists(".sidebar, aside, .side-bar, #sidebar"),
        has_footer=await document.exists("footer, .footer, #footer"),
        has_comments=await document.exists(".comments, #comments, .comment-list"),
        main_content_selector=await find_main_content_selector(document),
        ad_element_count=len(await find_ad_elements(document)),
        form_count=len(await document.query("form")),
    )


def _is_dark(color: Optional[str]) -> Optional[bool]:
    if not color or color in ("transparent", "rgba(0, 0, 0, 0)"):
        return None
    match = _RGB.match(color)
    if not match:
        return None
    r, g, b = (int(v) for v in match.groups())
    return (0.2126 * r + 0.7152 * g + 0.0722 * b) < 128


async def detect_theme(document: Document) -> str:
    body = await document.body_info()
    if "dark" in body.classes or "dark-mode" in body.classes or body.data_theme == "dark":
        return "dark"

    bg_is_dark = _is_dark(body.background_color)
    text_is_light = _is_dark(body.color) is False

    if bg_is_dark is True and text_is_light:
        return "dark"
    if bg_is_dark is False and _is_dark(body.color) is True:
        return "light"
    if bg_is_dark is True:
        return "likely dark background"
    if text_is_light:
        return "likely light text on unspecified background"
    return UNKNOWN_THEME


async def sample_elements(document: Document, limit: int = 150) -> List[Element]:
    """Deduplicated sample of content-bearing elements, used by element selection."""
    seen = set()
    elements: List[Element] = []
    for tag_selector in ELEMENT_SAMPLE_SELECTORS:
        for el in await document.query(tag_selector):
            if el.selector in seen:
                continue
            seen.add(el.selector)
            if len(el.text) > 2 or el.tag in ("nav", "aside", "section", "article", "button", "a"):
                el.text = re.sub(r"\s+", " ", el.text[:80]).strip()
                elements.append(el)
    return elements[:limit]


async def build_snapshot(document: Document, existing_customizations: Optional[List[str]] = None) -> PageContextSnapshot:
    """Describe *document* for the reasoning service."""
    url = document.url
    return PageContextSnapshot(
        url=url,
        domain=origin_key(url),
        title=await document.title(),
        content=PageContent(
            headlines=(await extract_headlines(document))[:5],
            paragraphs=(await extract_paragraphs(document))[:3],
            links=(await extract_links(document))[:5],
            images=(await extract_images(document))[:3],
        ),
        structure=await analyze_structure(document),
        theme=await detect_theme(document),
        existing_customizations=(existing_customizations or [])[-3:],
    )


# ============================================================================
# PageContextCache
# ============================================================================

SnapshotProvider = Callable[[], Awaitable[PageContextSnapshot]]


class PageContextCache:
    """
    Time-bounded cache of a single PageContextSnapshot.

    Args:
        provider: coroutine function producing a fresh snapshot
        ttl:      seconds a snapshot stays valid
        clock:    monotonic clock, injectable for tests
    """

    def __init__(
        self,
        provider: SnapshotProvider,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._provider = provider
        self.ttl = settings.CONTEXT_CACHE_TTL_SECONDS if ttl is None else ttl
        self._clock = clock
        self._snapshot: Optional[PageContextSnapshot] = None
        self._built_at = 0.0

    @property
    def is_fresh(self) -> bool:
        return self._snapshot is not None and (self._clock() - self._built_at) < self.ttl

    async def get(self) -> PageContextSnapshot:
        if self.is_fresh:
            return self._snapshot
        self._snapshot = await self._provider()
        self._built_at = self._clock()
        logger.debug(f"[PageContext] Fresh snapshot for {self._snapshot.url}")
        return self._snapshot

    def invalidate(self) -> None:
        self._snapshot = None
        self._built_at = 0.0
