"""
Document layer: the live page the customization tools act on.

Contains:
  Document          : async interface used by tools, snapshot builder and MutationWatch
  SoupDocument      : in-process document backed by BeautifulSoup (offline HTML, tests)
  PlaywrightDocument: document bound to a live Playwright page

Every document owns a single managed <style> element. Text rewrites keep the
original text in ``data-original-text`` so a reset can restore it.
"""

import abc
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import soupsieve
from bs4 import BeautifulSoup, Tag
from playwright.async_api import Page, Error as PlaywrightError

from .utils.logger import get_logger


logger = get_logger(__name__)


STYLE_ELEMENT_ID = "ai-web-customizer-styles"

# Added nodes containing any of these make a mutation structurally significant
STRUCTURAL_DESCENDANT_SELECTOR = "article, section, .post, #comments"

MAX_SELECTOR_DEPTH = 4


# ============================================================================
# Data Structures
# ============================================================================

@dataclass
class Element:
    """Snapshot of one element matched by a selector query."""
    selector: str
    tag: str
    index: int = 0
    id: str = ""
    classes: List[str] = field(default_factory=list)
    text: str = ""
    role: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)
    child_count: int = 0


@dataclass
class AddedNode:
    """Element node reported by a structural mutation."""
    tag: str
    id: str = ""
    classes: List[str] = field(default_factory=list)
    has_structural_descendant: bool = False


@dataclass
class BodyInfo:
    """Body-level hints used for theme detection."""
    classes: List[str] = field(default_factory=list)
    data_theme: Optional[str] = None
    background_color: Optional[str] = None
    color: Optional[str] = None


MutationListener = Callable[[List[AddedNode]], Any]


# ============================================================================
# Document interface
# ============================================================================

class Document(abc.ABC):
    """Async view of a live document. Implementations must be safe to share across tools."""

    def __init__(self):
        self._listeners: List[MutationListener] = []

    @property
    @abc.abstractmethod
    def url(self) -> str:
        """Current document URL."""

    @abc.abstractmethod
    async def title(self) -> str:
        """Document title."""

    @abc.abstractmethod
    async def query(self, selector: str) -> List[Element]:
        """
        Return all elements matching *selector*.

        Raises:
            ValueError: if the selector is not valid CSS
        """

    @abc.abstractmethod
    async def append_style(self, block: str) -> None:
        """Append a CSS block to the managed style element."""

    @abc.abstractmethod
    async def clear_style(self) -> None:
        """Empty the managed style element."""

    @abc.abstractmethod
    async def style_text(self) -> str:
        """Current content of the managed style element."""

    @abc.abstractmethod
    async def replace_text(self, selector: str, index: int, text: str, transform_type: str) -> None:
        """Replace the text of the index-th match of *selector*, remembering the original."""

    @abc.abstractmethod
    async def restore_text(self) -> int:
        """Restore every rewritten element. Returns the number restored."""

    @abc.abstractmethod
    async def body_info(self) -> BodyInfo:
        """Body classes, data-theme and computed colours where available."""

    async def attach(self) -> None:
        """Start reporting mutations to listeners. In-process documents report without attaching."""

    async def exists(self, selector: str) -> bool:
        try:
            return bool(await self.query(selector))
        except ValueError:
            return False

    # ------------------------------------------------------------------
    # Mutation listeners
    # ------------------------------------------------------------------

    def add_mutation_listener(self, listener: MutationListener) -> None:
        self._listeners.append(listener)

    def remove_mutation_listener(self, listener: MutationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, nodes: List[AddedNode]) -> None:
        if not nodes:
            return
        for listener in list(self._listeners):
            try:
                listener(nodes)
            except Exception as e:
                logger.error(f"[Document] Mutation listener failed: {e}", exc_info=True)


# ============================================================================
# SoupDocument (BeautifulSoup backed)
# ============================================================================

class SoupDocument(Document):
    """
    In-process document over a BeautifulSoup tree.

    Mutations made through :meth:`insert_html` are reported to listeners
    synchronously, the way a MutationObserver batch would be.
    """

    def __init__(self, html: str, url: str = "about:blank"):
        super().__init__()
        if "<body" not in html.lower():
            html = f"<html><head></head><body>{html}</body></html>"
        self._soup = BeautifulSoup(html, "html.parser")
        self._url = url
        if self._soup.head is None:
            head = self._soup.new_tag("head")
            (self._soup.html or self._soup).insert(0, head)

    @property
    def url(self) -> str:
        return self._url

    async def title(self) -> str:
        tag = self._soup.title
        return tag.get_text().strip() if tag else ""

    def _select(self, selector: str) -> List[Tag]:
        try:
            return self._soup.select(selector)
        except Exception as e:
            raise ValueError(f"Invalid selector {selector!r}: {e}") from e

    async def query(self, selector: str) -> List[Element]:
        return [self._describe(tag, i) for i, tag in enumerate(self._select(selector))]

    def _describe(self, tag: Tag, index: int) -> Element:
        return Element(
            selector=self._css_path(tag),
            tag=tag.name.lower(),
            index=index,
            id=tag.get("id") or "",
            classes=list(tag.get("class") or []),
            text=tag.get_text().strip(),
            role=tag.get("role") or "",
            attributes={k: " ".join(v) if isinstance(v, list) else str(v) for k, v in tag.attrs.items()},
            child_count=len(tag.find_all(True, recursive=False)),
        )

    def _css_path(self, tag: Tag) -> str:
        """Short, preferably unique selector for *tag*."""
        element_id = tag.get("id")
        if element_id and not element_id[0].isdigit():
            if len(self._soup.find_all(id=element_id)) == 1:
                return f"#{soupsieve.escape(element_id)}"

        path = ""
        current: Optional[Tag] = tag
        depth = 0
        while (
            current is not None
            and isinstance(current, Tag)
            and current.name not in ("body", "html", "[document]")
            and depth < MAX_SELECTOR_DEPTH
        ):
            segment = current.name.lower()
            classes = [
                c for c in (current.get("class") or [])
                if c and not c[0].isdigit() and ":" not in c and "(" not in c and len(c) < 50
            ][:2]
            if classes:
                segment += "." + ".".join(soupsieve.escape(c) for c in classes)
            elif isinstance(current.parent, Tag):
                siblings = current.parent.find_all(current.name, recursive=False)
                if len(siblings) > 1:
                    position = next(i for i, s in enumerate(siblings) if s is current)
                    segment += f":nth-of-type({position + 1})"
            path = segment + (f" > {path}" if path else "")

            try:
                if len(self._soup.select(path)) == 1 and len(path) > 5:
                    return path
            except Exception:
                break

            current = current.parent
            depth += 1
        return path or tag.name.lower()

    def _style_tag(self) -> Tag:
        style = self._soup.find("style", id=STYLE_ELEMENT_ID)
        if style is None:
            style = self._soup.new_tag("style", id=STYLE_ELEMENT_ID)
            self._soup.head.append(style)
        return style

    async def append_style(self, block: str) -> None:
        style = self._style_tag()
        style.string = (style.string or "") + block

    async def clear_style(self) -> None:
        self._style_tag().string = ""

    async def style_text(self) -> str:
        style = self._soup.find("style", id=STYLE_ELEMENT_ID)
        return (style.string or "") if style else ""

    async def replace_text(self, selector: str, index: int, text: str, transform_type: str) -> None:
        matches = self._select(selector)
        if index >= len(matches):
            raise ValueError(f"No element #{index} for selector {selector!r}")
        tag = matches[index]
        if not tag.has_attr("data-original-text"):
            tag["data-original-text"] = tag.get_text().strip()
        tag.string = text
        tag["data-ai-modified"] = "true"
        tag["data-ai-transform-type"] = transform_type

    async def restore_text(self) -> int:
        restored = 0
        for tag in self._soup.select('[data-ai-modified="true"]'):
            original = tag.get("data-original-text")
            if original:
                tag.string = original
            for attr in ("data-ai-modified", "data-original-text", "data-ai-transform-type"):
                if tag.has_attr(attr):
                    del tag[attr]
            restored += 1
        return restored

    async def body_info(self) -> BodyInfo:
        body = self._soup.body
        if body is None:
            return BodyInfo()
        return BodyInfo(classes=list(body.get("class") or []), data_theme=body.get("data-theme"))

    # ------------------------------------------------------------------
    # Mutation helpers
    # ------------------------------------------------------------------

    def insert_html(self, parent_selector: str, html: str) -> List[AddedNode]:
        """Append *html* under the first match of *parent_selector* and notify listeners."""
        matches = self._select(parent_selector)
        if not matches:
            raise ValueError(f"No parent for selector {parent_selector!r}")
        parent = matches[0]
        fragment = BeautifulSoup(html, "html.parser")

        added: List[AddedNode] = []
        for node in list(fragment.contents):
            node = node.extract()
            parent.append(node)
            if isinstance(node, Tag):
                added.append(AddedNode(
                    tag=node.name.lower(),
                    id=node.get("id") or "",
                    classes=list(node.get("class") or []),
                    has_structural_descendant=node.select_one(STRUCTURAL_DESCENDANT_SELECTOR) is not None,
                ))
        self._notify(added)
        return added

    def render(self) -> str:
        return str(self._soup)


# ============================================================================
# PlaywrightDocument (live browser page)
# ============================================================================

_SELECTOR_FN = """
const wtSelector = (element) => {
    if (element.id && !/^\\d/.test(element.id)) {
        const escapedId = CSS.escape(element.id);
        if (document.querySelectorAll(`#${escapedId}`).length === 1) return `#${escapedId}`;
    }
    let path = '';
    let current = element;
    let depth = 0;
    while (current && current.tagName !== 'BODY' && current.tagName !== 'HTML' && depth < 4) {
        let segment = current.tagName.toLowerCase();
        const classes = Array.from(current.classList)
            .filter(c => c && !/^\\d/.test(c) && !c.includes(':') && !c.includes('(') && c.length < 50)
            .slice(0, 2);
        if (classes.length > 0) {
            segment += '.' + classes.map(c => CSS.escape(c)).join('.');
        } else if (current.parentNode instanceof Element) {
            const siblings = Array.from(current.parentNode.children).filter(el => el.tagName === current.tagName);
            if (siblings.length > 1) segment += `:nth-of-type(${siblings.indexOf(current) + 1})`;
        }
        path = segment + (path ? ' > ' + path : '');
        try {
            if (document.querySelectorAll(path).length === 1 && path.length > 5) return path;
        } catch (e) { break; }
        current = current.parentNode;
        depth++;
    }
    return path || element.tagName.toLowerCase();
};
"""

_QUERY_JS = "(selector) => {" + _SELECTOR_FN + """
    return Array.from(document.querySelectorAll(selector)).map((el, index) => ({
        selector: wtSelector(el),
        tag: el.tagName.toLowerCase(),
        index,
        id: el.id || '',
        classes: Array.from(el.classList),
        text: (el.textContent || '').trim(),
        role: el.getAttribute('role') || '',
        attributes: Object.fromEntries(Array.from(el.attributes).map(a => [a.name, a.value])),
        child_count: el.children.length,
    }));
}"""

_STYLE_APPEND_JS = """([id, block]) => {
    let style = document.getElementById(id);
    if (!style) {
        style = document.createElement('style');
        style.id = id;
        document.head.appendChild(style);
    }
    style.textContent += block;
}"""

_STYLE_CLEAR_JS = """(id) => {
    const style = document.getElementById(id);
    if (style) style.textContent = '';
}"""

_STYLE_TEXT_JS = """(id) => {
    const style = document.getElementById(id);
    return style ? style.textContent : '';
}"""

_REPLACE_TEXT_JS = """([selector, index, text, transformType]) => {
    const el = document.querySelectorAll(selector)[index];
    if (!el) throw new Error(`No element #${index} for selector ${selector}`);
    if (!el.getAttribute('data-original-text')) {
        el.setAttribute('data-original-text', (el.textContent || '').trim());
    }
    el.textContent = text;
    el.setAttribute('data-ai-modified', 'true');
    el.setAttribute('data-ai-transform-type', transformType);
}"""

_RESTORE_TEXT_JS = """() => {
    const modified = document.querySelectorAll('[data-ai-modified="true"]');
    modified.forEach(el => {
        const original = el.getAttribute('data-original-text');
        if (original) el.textContent = original;
        el.removeAttribute('data-ai-modified');
        el.removeAttribute('data-original-text');
        el.removeAttribute('data-ai-transform-type');
    });
    return modified.length;
}"""

_BODY_INFO_JS = """() => {
    const body = document.body;
    const styles = window.getComputedStyle(body);
    return {
        classes: Array.from(body.classList),
        data_theme: body.getAttribute('data-theme'),
        background_color: styles.backgroundColor,
        color: styles.color,
    };
}"""

_OBSERVER_JS = """([callbackName, structural]) => {
    if (window.__webtailorObserver) window.__webtailorObserver.disconnect();
    window.__webtailorObserver = new MutationObserver((mutations) => {
        const added = [];
        for (const mutation of mutations) {
            if (mutation.type !== 'childList') continue;
            for (const node of mutation.addedNodes) {
                if (node.nodeType !== Node.ELEMENT_NODE) continue;
                added.push({
                    tag: node.tagName.toLowerCase(),
                    id: node.id || '',
                    classes: Array.from(node.classList),
                    has_structural_descendant: !!node.querySelector(structural),
                });
            }
        }
        if (added.length) window[callbackName](added);
    });
    window.__webtailorObserver.observe(document.body, { childList: true, subtree: true });
}"""


class PlaywrightDocument(Document):
    """Document bound to a Playwright page. Call :meth:`attach` once to receive mutations."""

    CALLBACK_NAME = "__webtailorMutation"

    def __init__(self, page: Page):
        super().__init__()
        if page is None:
            raise ValueError("PlaywrightDocument requires a valid Playwright Page instance")
        self.page = page
        self._attached = False

    @property
    def url(self) -> str:
        return self.page.url

    async def title(self) -> str:
        return await self.page.title()

    async def query(self, selector: str) -> List[Element]:
        try:
            raw = await self.page.evaluate(_QUERY_JS, selector)
        except PlaywrightError as e:
            raise ValueError(f"Invalid selector {selector!r}: {e}") from e
        return [Element(**item) for item in raw]

    async def append_style(self, block: str) -> None:
        await self.page.evaluate(_STYLE_APPEND_JS, [STYLE_ELEMENT_ID, block])

    async def clear_style(self) -> None:
        await self.page.evaluate(_STYLE_CLEAR_JS, STYLE_ELEMENT_ID)

    async def style_text(self) -> str:
        return await self.page.evaluate(_STYLE_TEXT_JS, STYLE_ELEMENT_ID)

    async def replace_text(self, selector: str, index: int, text: str, transform_type: str) -> None:
        try:
            await self.page.evaluate(_REPLACE_TEXT_JS, [selector, index, text, transform_type])
        except PlaywrightError as e:
            raise ValueError(str(e)) from e

    async def restore_text(self) -> int:
        return await self.page.evaluate(_RESTORE_TEXT_JS)

    async def body_info(self) -> BodyInfo:
        raw = await self.page.evaluate(_BODY_INFO_JS)
        return BodyInfo(**raw)

    async def attach(self) -> None:
        """Install the page-side MutationObserver and route its reports to listeners."""
        if not self._attached:
            await self.page.expose_function(self.CALLBACK_NAME, self._on_mutation)
            self._attached = True
        await self.page.evaluate(_OBSERVER_JS, [self.CALLBACK_NAME, STRUCTURAL_DESCENDANT_SELECTOR])
        logger.info(f"[PlaywrightDocument] Observing mutations on {self.url}")

    def _on_mutation(self, payload: List[Dict[str, Any]]) -> None:
        self._notify([AddedNode(**item) for item in payload or []])
