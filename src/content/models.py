"""Content domain models: pure Pydantic v2 data types.

A blog entry is an ``Item``: a ``Header`` (metadata) plus body content
and attachment descriptors.  The ``Index`` is the ordered collection of
headers a store lists and searches over.  ``SearchRequest`` describes a
listing query.  No I/O lives here.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field, PrivateAttr, model_validator


class HeaderState(StrEnum):
    """Lifecycle state of a blog entry."""

    DELETED = "deleted"
    UNPUBLISHED = "unpublished"
    PUBLISHED = "published"


class SortOrder(StrEnum):
    """Ordering applied to a listing."""

    INDEX = "index"  # insertion order
    UPDATED_DESC = "updated_desc"
    UPDATED_ASC = "updated_asc"
    PUBLISHED_DESC = "published_desc"
    PUBLISHED_ASC = "published_asc"
    NAME = "name"


class Header(BaseModel):
    """Metadata describing a blog entry without its body.

    ``id`` stays empty until the first successful save assigns one.
    """

    id: str = ""
    state: HeaderState = HeaderState.UNPUBLISHED
    name: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    author: str = ""
    published_date: datetime | None = None
    updated_date: datetime | None = None

    @property
    def is_new(self) -> bool:
        return not self.id


class Attachment(BaseModel):
    """A file attached to a blog entry."""

    filename: str
    reference: str = ""  # blob key or relative path
    content_type: str = ""


class Item(BaseModel):
    """A full blog entry: header, body and attachments."""

    header: Header = Field(default_factory=Header)
    content: str = ""
    attachments: list[Attachment] = Field(default_factory=list)

    def duplicate(self) -> Item:
        """Return an independent deep copy."""
        return self.model_copy(deep=True)


class Index(BaseModel):
    """Ordered collection of headers, one per id.

    Treated as immutable once committed by a store: ``with_header``
    returns a new index instead of changing this one.
    """

    headers: list[Header] = Field(default_factory=list)

    _initialised: bool = PrivateAttr(default=False)

    @model_validator(mode="after")
    def _unique_ids(self) -> Index:
        seen: set[str] = set()
        for header in self.headers:
            if header.id in seen:
                raise ValueError(f"duplicate header id {header.id!r} in index")
            seen.add(header.id)
        return self

    @property
    def initialised(self) -> bool:
        return self._initialised

    def mark_initialised(self, value: bool = True) -> None:
        self._initialised = value

    def get(self, header_id: str) -> Header | None:
        """Return the header with this id, or None."""
        for header in self.headers:
            if header.id == header_id:
                return header
        return None

    def contains(self, header_id: str) -> bool:
        return self.get(header_id) is not None

    def with_header(self, header: Header) -> Index:
        """Return a new index with ``header`` replaced in place or appended.

        The new index carries this index's ``initialised`` flag.
        """
        headers = list(self.headers)
        for position, existing in enumerate(headers):
            if existing.id == header.id:
                headers[position] = header
                break
        else:
            headers.append(header)
        updated = Index(headers=headers)
        updated.mark_initialised(self.initialised)
        return updated


class DateRange(BaseModel):
    """Inclusive date bounds for a listing. Either end may be open."""

    start: datetime | None = None
    end: datetime | None = None
    field: Literal["published", "updated"] = "published"


class SearchRequest(BaseModel):
    """Filter, sort and paging options for ``ContentStore.list``.

    With ``states`` unset, every state except ``deleted`` is listed
    (deleted entries are added by ``include_deleted``).  ``tags`` match
    when a header carries any of them.
    """

    states: set[HeaderState] | None = None
    include_deleted: bool = False
    tags: list[str] = Field(default_factory=list)
    author: str | None = None
    text: str | None = None
    date_range: DateRange | None = None
    sort: SortOrder = SortOrder.INDEX
    page: int = Field(default=1, ge=1)
    page_size: int | None = Field(default=None, ge=1)

    def allowed_states(self) -> set[HeaderState]:
        if self.states is not None:
            return set(self.states)
        allowed = {HeaderState.UNPUBLISHED, HeaderState.PUBLISHED}
        if self.include_deleted:
            allowed.add(HeaderState.DELETED)
        return allowed
