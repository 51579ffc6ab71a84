"""Listing filters for the content index.

Linear scan over headers: state policy, tag membership, author, text
match on name/description and date range, followed by sort and paging.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime

from inkwell.content.models import Header, SearchRequest, SortOrder


def _aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so mixed inputs compare."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def matches(header: Header, request: SearchRequest) -> bool:
    """Return True if ``header`` passes every filter in ``request``."""
    if header.state not in request.allowed_states():
        return False

    if request.tags:
        wanted = {t.casefold() for t in request.tags}
        if not wanted & {t.casefold() for t in header.tags}:
            return False

    if request.author is not None and header.author.casefold() != request.author.casefold():
        return False

    if request.text:
        needle = request.text.casefold()
        if needle not in header.name.casefold() and needle not in header.description.casefold():
            return False

    if request.date_range is not None:
        dr = request.date_range
        stamp = header.published_date if dr.field == "published" else header.updated_date
        if stamp is None:
            return False
        stamp = _aware(stamp)
        if dr.start is not None and stamp < _aware(dr.start):
            return False
        if dr.end is not None and stamp > _aware(dr.end):
            return False

    return True


def _sorted(headers: list[Header], order: SortOrder) -> list[Header]:
    if order == SortOrder.INDEX:
        return headers
    if order == SortOrder.NAME:
        return sorted(headers, key=lambda h: h.name.casefold())

    field = "updated_date" if order in (SortOrder.UPDATED_ASC, SortOrder.UPDATED_DESC) else "published_date"
    reverse = order in (SortOrder.UPDATED_DESC, SortOrder.PUBLISHED_DESC)
    dated = [h for h in headers if getattr(h, field) is not None]
    undated = [h for h in headers if getattr(h, field) is None]
    dated.sort(key=lambda h: _aware(getattr(h, field)), reverse=reverse)
    # Entries without the date always trail, in index order
    return dated + undated


def search(headers: Iterable[Header], request: SearchRequest | None = None) -> list[Header]:
    """Filter, sort and page ``headers``. The input is not modified."""
    request = request or SearchRequest()
    found = _sorted([h for h in headers if matches(h, request)], request.sort)
    if request.page_size is None:
        return found if request.page == 1 else []
    start = (request.page - 1) * request.page_size
    return found[start : start + request.page_size]


def count_tags(headers: Iterable[Header], request: SearchRequest | None = None) -> dict[str, int]:
    """Tag frequencies across the headers ``request`` selects, ignoring paging."""
    request = request or SearchRequest()
    counts: Counter[str] = Counter()
    # Tags compare case-insensitively; the first spelling seen is reported
    spelling: dict[str, str] = {}
    for header in headers:
        if matches(header, request):
            keys = {t.casefold() for t in header.tags}
            for tag in header.tags:
                spelling.setdefault(tag.casefold(), tag)
            counts.update(keys)
    return {spelling[key]: n for key, n in counts.most_common()}
