"""Document-query primitives over a live Playwright page.

The solver only talks to the page through ``PageView``/``Element``:
scoped structural search (descending into open shadow roots, optionally
bounded in count and depth) and search by visible text.  Both run as a
single ``evaluate_handle`` call so the traversal happens in the page.
"""

from __future__ import annotations

import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

# Walks light DOM and open shadow roots below *root* (root itself excluded).
_DEEP_SEARCH_JS = """\
([root, selector, limit, maxDepth]) => {
    const out = [];
    const start = root || document.documentElement;
    const childrenOf = (node) => {
        const kids = [...(node.children || [])];
        if (node.shadowRoot) kids.push(...node.shadowRoot.children);
        return kids;
    };
    const walk = (node, depth) => {
        if (out.length >= limit) return;
        if (maxDepth !== null && depth > maxDepth) return;
        if (depth > 0 && node.matches && node.matches(selector)) out.push(node);
        for (const child of childrenOf(node)) {
            if (out.length >= limit) return;
            walk(child, depth + 1);
        }
    };
    walk(start, root ? 0 : 1);
    return out;
}
"""

# Deepest element under *root* whose normalized textContent equals *text*.
_FIND_BY_TEXT_JS = """\
([root, text]) => {
    const norm = (s) => (s || '').replace(/\\s+/g, ' ').trim();
    const wanted = norm(text);
    if (!wanted) return null;
    let found = null;
    const walk = (node) => {
        const kids = [...(node.children || [])];
        if (node.shadowRoot) kids.push(...node.shadowRoot.children);
        for (const child of kids) walk(child);
        if (!found && node.nodeType === 1 && norm(node.textContent) === wanted) found = node;
    };
    walk(root || document.body);
    return found;
}
"""

_IS_ENABLED_JS = """\
(el) => !el.disabled
    && el.getAttribute('aria-disabled') !== 'true'
    && !el.classList.contains('is-disabled')
"""

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str | None) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def attr_selector(name: str, value: Any) -> str:
    """``[name="value"]`` with quotes escaped; avoids CSS identifier escaping."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'[{name}="{escaped}"]'


def class_selector(class_name: str) -> str:
    return attr_selector("class", class_name).replace("[class=", "[class~=", 1)


class PlaywrightElement:
    """Thin async wrapper over an ``ElementHandle``."""

    def __init__(self, handle):
        self.handle = handle

    async def click(self) -> None:
        try:
            await self.handle.click(timeout=2000)
        except Exception as e:
            # Visually hidden inputs/labels still accept a DOM click.
            logger.debug("Native click failed (%s), dispatching DOM click", e)
            await self.handle.evaluate("el => el.click()")

    async def is_checked(self) -> bool:
        return bool(await self.handle.evaluate(
            "el => !!(el.checked || el.getAttribute('aria-checked') === 'true')"
        ))

    async def is_enabled(self) -> bool:
        return bool(await self.handle.evaluate(_IS_ENABLED_JS))

    async def is_visible(self) -> bool:
        return await self.handle.is_visible()

    async def text(self) -> str:
        return normalize_text(await self.handle.text_content())

    async def attribute(self, name: str) -> str | None:
        return await self.handle.get_attribute(name)


class PlaywrightPageView:
    """``PageView`` implementation for an async Playwright ``Page``."""

    def __init__(self, page):
        self.page = page

    @property
    def url(self) -> str:
        return self.page.url

    async def query_all(self, selector: str, root: PlaywrightElement | None = None,
                        limit: int = 1000, max_depth: int | None = None) -> list[PlaywrightElement]:
        root_handle = root.handle if root is not None else None
        array = await self.page.evaluate_handle(
            _DEEP_SEARCH_JS, [root_handle, selector, limit, max_depth]
        )
        try:
            props = await array.get_properties()
            elements = []
            for key in sorted(props, key=lambda k: int(k) if k.isdigit() else -1):
                handle = props[key].as_element()
                if handle is not None:
                    elements.append(PlaywrightElement(handle))
            return elements
        finally:
            await array.dispose()

    async def query(self, selector: str, root: PlaywrightElement | None = None,
                    max_depth: int | None = None) -> PlaywrightElement | None:
        found = await self.query_all(selector, root=root, limit=1, max_depth=max_depth)
        return found[0] if found else None

    async def find_by_text(self, text: str, root: PlaywrightElement | None = None) -> PlaywrightElement | None:
        root_handle = root.handle if root is not None else None
        handle = await self.page.evaluate_handle(_FIND_BY_TEXT_JS, [root_handle, text])
        element = handle.as_element()
        if element is None:
            await handle.dispose()
            return None
        return PlaywrightElement(element)
