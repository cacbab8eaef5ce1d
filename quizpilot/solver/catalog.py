"""Question descriptors and the deduplicating component catalog.

The platform serves every quiz page's content as a ``components.json``
array.  Only entries carrying ``_items`` are questions; everything else
(text blocks, graphics, headings) is dropped on merge.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Optional, Union

import httpx
from bs4 import BeautifulSoup
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


def strip_markup(html: str | None) -> str:
    """Return the text content of an HTML fragment."""
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text().strip()


# ---------------------------------------------------------------------------
# Descriptor schema
# ---------------------------------------------------------------------------

class _Raw(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Option(_Raw):
    text: Optional[str] = None
    is_correct: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("_isCorrect", "isCorrect", "correct"),
        serialization_alias="_isCorrect",
    )


class Graphic(_Raw):
    alt: Optional[str] = None
    src: Optional[str] = None


class Item(_Raw):
    """One answerable unit; which fields are present decides the question type."""
    id: Optional[Union[str, int]] = None
    text: Optional[str] = None
    question: Optional[str] = None
    answer: Optional[str] = None
    pre_text: Optional[str] = Field(default=None, alias="preText")
    post_text: Optional[str] = Field(default=None, alias="postText")
    position: Optional[list[Any]] = None
    should_be_selected: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("_shouldBeSelected", "shouldBeSelected", "shouldSelect"),
        serialization_alias="_shouldBeSelected",
    )
    graphic: Optional[Graphic] = Field(
        default=None,
        validation_alias=AliasChoices("_graphic", "graphic"),
        serialization_alias="_graphic",
    )
    options: Optional[Union[list[Option], Option]] = Field(
        default=None,
        validation_alias=AliasChoices("_options", "options"),
        serialization_alias="_options",
    )

    @property
    def option_list(self) -> list[Option]:
        if self.options is None:
            return []
        if isinstance(self.options, Option):
            return [self.options]
        return list(self.options)


class ComponentDescriptor(_Raw):
    id: str = Field(validation_alias=AliasChoices("_id", "id"), serialization_alias="_id")
    kind: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("_component", "kind"),
        serialization_alias="_component",
    )
    items: list[Item] = Field(
        default_factory=list,
        validation_alias=AliasChoices("_items", "items"),
        serialization_alias="_items",
    )
    body: Optional[str] = ""
    title: Optional[str] = None

    def to_raw(self) -> dict:
        """Platform-shaped dict, provenance fields included."""
        return self.model_dump(by_alias=True, exclude_none=True)


def _raw_items(entry: dict) -> Any:
    return entry.get("_items", entry.get("items"))


def _raw_id(entry: dict) -> Any:
    return entry.get("_id", entry.get("id"))


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class ComponentCatalog:
    """Question descriptors accumulated from one or more catalog fetches.

    Entries are unique by id; re-fetching a known id is a no-op.  Fetch
    failures are logged and reported as zero new descriptors because the
    triggering request may fire again.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None,
                 timeout: float = 15.0):
        self._components: dict[str, ComponentDescriptor] = {}
        self._transport = transport
        self._timeout = timeout

    def __len__(self) -> int:
        return len(self._components)

    def __iter__(self) -> Iterator[ComponentDescriptor]:
        return iter(self._components.values())

    def __contains__(self, component_id: str) -> bool:
        return component_id in self._components

    def get(self, component_id: str) -> ComponentDescriptor | None:
        return self._components.get(component_id)

    def ids(self) -> list[str]:
        return list(self._components)

    def raw_components(self) -> list[dict]:
        return [c.to_raw() for c in self._components.values()]

    async def merge(self, url: str) -> int:
        """Fetch *url* and add unseen question descriptors.  Returns the count added."""
        logger.info("Fetching components from %s", url)
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                res = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning("Catalog fetch failed for %s: %s", url, e)
            return 0

        if res.status_code != 200:
            logger.warning("Catalog fetch returned %d for %s", res.status_code, url)
            return 0

        try:
            payload = res.json()
        except ValueError as e:
            logger.warning("Catalog at %s is not valid JSON: %s", url, e)
            return 0

        return self.merge_payload(payload)

    def merge_payload(self, payload: Iterable[Any]) -> int:
        if not isinstance(payload, list):
            logger.warning("Catalog payload is %s, expected a list", type(payload).__name__)
            return 0

        added = 0
        for entry in payload:
            if not isinstance(entry, dict) or not _raw_items(entry):
                continue
            if _raw_id(entry) in self._components:
                continue
            try:
                component = ComponentDescriptor.model_validate(entry)
            except ValidationError as e:
                logger.debug("Skipping malformed component %r: %s", _raw_id(entry), e)
                continue
            component.body = strip_markup(component.body)
            self._components[component.id] = component
            added += 1

        logger.info("Added %d components. Total: %d", added, len(self._components))
        return added
