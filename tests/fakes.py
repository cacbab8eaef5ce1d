"""In-memory stand-in for the live page.

``FakePage``/``FakeElement`` implement the same document-query surface as
``PlaywrightPageView``/``PlaywrightElement`` over a small element tree.
Selector support covers what the solver emits: tag, ``.class``, ``#id``,
``[attr]``, ``[attr="v"]``, ``[attr~="v"]`` compounds, the descendant
combinator and comma-separated lists.
"""

from __future__ import annotations

import re

from quizpilot.environment.page_view import normalize_text

_TOKEN = re.compile(
    r'(?P<tag>^[a-zA-Z][\w-]*)'
    r'|\.(?P<cls>[\w-]+)'
    r'|#(?P<id>[\w-]+)'
    r'|\[(?P<attr>[\w-]+)(?:(?P<op>~?=)"(?P<val>(?:\\.|[^"\\])*)")?\]'
)


def _split_outside_quotes(text: str, sep) -> list[str]:
    parts, buf, in_quote, depth = [], "", False, 0
    for ch in text:
        if ch == '"':
            in_quote = not in_quote
        elif not in_quote and ch == "[":
            depth += 1
        elif not in_quote and ch == "]":
            depth -= 1
        if not in_quote and depth == 0 and sep(ch):
            parts.append(buf)
            buf = ""
        else:
            buf += ch
    parts.append(buf)
    return [p.strip() for p in parts if p.strip()]


def _parse_compound(text: str) -> list[tuple]:
    conds, pos = [], 0
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        if m is None or m.end() == pos:
            raise ValueError(f"unsupported selector: {text!r}")
        if m.group("tag"):
            conds.append(("tag", m.group("tag").lower()))
        elif m.group("cls"):
            conds.append(("cls", m.group("cls")))
        elif m.group("id"):
            conds.append(("attr", "id", "=", m.group("id")))
        else:
            val = m.group("val")
            if val is not None:
                val = val.replace('\\"', '"').replace("\\\\", "\\")
            conds.append(("attr", m.group("attr"), m.group("op"), val))
        pos = m.end()
    return conds


def parse_selector(selector: str) -> list[list[list[tuple]]]:
    return [
        [_parse_compound(c) for c in _split_outside_quotes(alt, str.isspace)]
        for alt in _split_outside_quotes(selector, lambda ch: ch == ",")
    ]


class FakeElement:
    def __init__(self, tag: str = "div", text: str = "", *, id: str | None = None,
                 classes=(), attrs: dict | None = None, children=(),
                 visible: bool = True, enabled: bool = True, checked: bool = False,
                 on_click=None):
        self.tag = tag.lower()
        self.own_text = text
        self.attrs = dict(attrs or {})
        if id is not None:
            self.attrs["id"] = id
        if classes:
            self.attrs["class"] = " ".join(classes)
        self.parent: FakeElement | None = None
        self.children: list[FakeElement] = []
        self.visible = visible
        self.enabled = enabled
        self.checked = checked
        self.on_click = on_click
        self.click_count = 0
        self.click_log: list[str] = []
        for child in children:
            self.append(child)

    def __repr__(self):
        return f"<{self.tag} {self.label}>"

    @property
    def label(self) -> str:
        return self.attrs.get("id") or self.attrs.get("class") or self.own_text or self.tag

    @property
    def classes(self) -> list[str]:
        return self.attrs.get("class", "").split()

    def append(self, child: FakeElement) -> FakeElement:
        child.parent = self
        self.children.append(child)
        return child

    def remove(self, child: FakeElement) -> None:
        self.children.remove(child)
        child.parent = None

    def root(self) -> FakeElement:
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def iter(self):
        yield self
        for child in self.children:
            yield from child.iter()

    def by_id(self, element_id: str) -> FakeElement | None:
        return next((e for e in self.iter() if e.attrs.get("id") == element_id), None)

    @property
    def text_content(self) -> str:
        parts = [self.own_text] + [c.text_content for c in self.children]
        return " ".join(p for p in parts if p)

    # -- selector matching -------------------------------------------------

    def _matches_compound(self, conds: list[tuple]) -> bool:
        for cond in conds:
            if cond[0] == "tag" and self.tag != cond[1]:
                return False
            if cond[0] == "cls" and cond[1] not in self.classes:
                return False
            if cond[0] == "attr":
                _, name, op, val = cond
                actual = self.attrs.get(name)
                if actual is None:
                    return False
                if op == "=" and str(actual) != val:
                    return False
                if op == "~=" and val not in str(actual).split():
                    return False
        return True

    def _matches_chain(self, chain: list[list[tuple]]) -> bool:
        if not self._matches_compound(chain[-1]):
            return False
        rest = chain[:-1]
        node = self.parent
        while rest and node is not None:
            if node._matches_compound(rest[-1]):
                rest = rest[:-1]
            node = node.parent
        return not rest

    def matches(self, selector: str) -> bool:
        return any(self._matches_chain(chain) for chain in parse_selector(selector))

    # -- Element interface -------------------------------------------------

    async def click(self) -> None:
        self.click_count += 1
        self.root().click_log.append(self.label)
        if self.on_click is not None:
            self.on_click(self)
        elif self.tag == "label" and "for" in self.attrs:
            target = self.root().by_id(self.attrs["for"])
            if target is not None:
                target._toggle()
        elif self.tag == "input":
            self._toggle()

    def _toggle(self) -> None:
        if self.attrs.get("type") == "radio":
            name = self.attrs.get("name")
            for other in self.root().iter():
                if other.tag == "input" and other.attrs.get("type") == "radio" \
                        and other.attrs.get("name") == name:
                    other.checked = False
            self.checked = True
        else:
            self.checked = not self.checked

    async def is_checked(self) -> bool:
        return self.checked

    async def is_enabled(self) -> bool:
        return self.enabled

    async def is_visible(self) -> bool:
        return self.visible

    async def text(self) -> str:
        return normalize_text(self.text_content)

    async def attribute(self, name: str) -> str | None:
        value = self.attrs.get(name)
        return None if value is None else str(value)


class FakePage:
    def __init__(self, root: FakeElement | None = None, url: str = "https://quiz.test/#/id/co-05"):
        self.root = root or FakeElement("body")
        self.url = url
        self.queries = 0

    @property
    def click_log(self) -> list[str]:
        return self.root.click_log

    async def query_all(self, selector: str, root: FakeElement | None = None,
                        limit: int = 1000, max_depth: int | None = None) -> list[FakeElement]:
        self.queries += 1
        chains = parse_selector(selector)
        out: list[FakeElement] = []

        def walk(node: FakeElement, depth: int) -> None:
            if len(out) >= limit or (max_depth is not None and depth > max_depth):
                return
            if (root is None or depth > 0) and any(node._matches_chain(c) for c in chains):
                out.append(node)
            for child in node.children:
                walk(child, depth + 1)

        walk(root or self.root, 0)
        return out[:limit]

    async def query(self, selector: str, root: FakeElement | None = None,
                    max_depth: int | None = None) -> FakeElement | None:
        found = await self.query_all(selector, root=root, limit=1, max_depth=max_depth)
        return found[0] if found else None

    async def find_by_text(self, text: str, root: FakeElement | None = None) -> FakeElement | None:
        wanted = normalize_text(text)
        if not wanted:
            return None

        def walk(node: FakeElement):
            for child in node.children:
                hit = walk(child)
                if hit is not None:
                    return hit
            if normalize_text(node.text_content) == wanted:
                return node
            return None

        return walk(root or self.root)


# ---------------------------------------------------------------------------
# Platform DOM builders
# ---------------------------------------------------------------------------

def component(component_id: str, *children, visible: bool = True) -> FakeElement:
    return FakeElement("div", classes=("component", component_id), children=children,
                       visible=visible)


def basic_component(component_id: str, count: int, body: str = "Select the correct answers",
                    input_type: str = "checkbox", checked=()) -> FakeElement:
    children = [FakeElement("div", body, classes=("component__body",))]
    for i in range(count):
        input_id = f"{component_id}-{i}-input"
        children.append(FakeElement("input", id=input_id, checked=i in checked,
                                    attrs={"type": input_type, "name": component_id}))
        children.append(FakeElement("label", f"Option {i}", id=f"{component_id}-{i}-label",
                                    attrs={"for": input_id}))
    return component(component_id, *children)


def basic_descriptor(component_id: str, flags, body: str = "Select the correct answers") -> dict:
    return {
        "_id": component_id,
        "_component": "mcq",
        "body": f"<p>{body}</p>",
        "_items": [{"text": f"Option {i}", "_shouldBeSelected": f} for i, f in enumerate(flags)],
    }


def action_button(text: str = "Submit", on_click=None, enabled: bool = True) -> FakeElement:
    return FakeElement("button", text, classes=("btn__action",), enabled=enabled,
                       on_click=on_click)


class QuizFlow:
    """One question per screen; the action button moves to the next screen.

    A ``.question-number`` marker tracks the screen index.  After the last
    screen the button clears every container.
    """

    def __init__(self, screens: list[FakeElement], button_enabled: bool = True):
        self.screens = screens
        self.index = 0
        self.advances = 0
        self.marker = FakeElement("span", "1", classes=("question-number",))
        self.button = action_button("Next", on_click=self._next, enabled=button_enabled)
        self.stage = FakeElement("div", classes=("stage",))
        self.page = FakePage(FakeElement("body", children=[self.marker, self.stage, self.button]))
        if screens:
            self.stage.append(screens[0])

    def _next(self, _button) -> None:
        self.advances += 1
        for child in list(self.stage.children):
            self.stage.remove(child)
        self.index += 1
        self.marker.own_text = str(self.index + 1)
        if self.index < len(self.screens):
            self.stage.append(self.screens[self.index])
