from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import SchemaViolation


@dataclass(frozen=True)
class ListingSummary:
    """
    One entry of a search-result page.
    detail_url is the unique key for the whole run.
    """

    detail_url: str
    title: str = ""
    company: str = ""
    location: str = ""
    date: str = ""

    @classmethod
    def from_json(cls, item: Any) -> ListingSummary:
        if not isinstance(item, dict):
            raise ValueError("listing must be an object")
        url = item.get("detailUrl")
        if not isinstance(url, str) or not url.strip():
            raise ValueError("listing is missing 'detailUrl'")
        return cls(
            detail_url=url.strip(),
            title=_text(item.get("jobTitle")),
            company=_text(item.get("company")),
            location=_text(item.get("location")),
            date=_text(item.get("date")),
        )


@dataclass(frozen=True)
class ListingRecord:
    """The persisted unit: a retained listing plus its extracted skills."""

    detail_url: str
    title: str
    company: str
    location: str
    date: str
    skills: str

    @classmethod
    def from_summary(cls, listing: ListingSummary, skills: str) -> ListingRecord:
        return cls(
            detail_url=listing.detail_url,
            title=listing.title,
            company=listing.company,
            location=listing.location,
            date=listing.date,
            skills=skills,
        )


@dataclass
class SearchPage:
    """
    Decoded search API page:
      { "count": int, "lastDocument": int, "resultItemList": [ {...}, ... ] }
    """

    count: int
    last_document: int
    items: list[ListingSummary] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return self.last_document >= self.count

    @classmethod
    def from_json(cls, payload: Any, *, page: int | None = None, url: str = "") -> SearchPage:
        """
        Strict decode. Any missing or mistyped required field raises SchemaViolation.
        """
        if not isinstance(payload, dict):
            raise SchemaViolation(page, url, "top-level JSON value is not an object")

        count = _required_int(payload, "count", page, url)
        last_document = _required_int(payload, "lastDocument", page, url)

        raw_items = payload.get("resultItemList")
        if not isinstance(raw_items, list):
            raise SchemaViolation(page, url, "'resultItemList' is missing or not a list")

        items: list[ListingSummary] = []
        for i, raw in enumerate(raw_items):
            try:
                items.append(ListingSummary.from_json(raw))
            except ValueError as e:
                raise SchemaViolation(page, url, f"resultItemList[{i}]: {e}") from e
        return cls(count=count, last_document=last_document, items=items)


class FailureKind(str, Enum):
    INVALID_URL = "invalid_url"
    HTTP_STATUS = "http_status"


@dataclass(frozen=True)
class FetchFailure:
    """A recoverable fetch outcome; the owning listing is dropped."""

    url: str
    kind: FailureKind
    detail: str = ""
    status_code: int | None = None


def _text(v: Any) -> str:
    return "" if v is None else str(v).strip()


def _required_int(payload: dict, key: str, page: int | None, url: str) -> int:
    if key not in payload:
        raise SchemaViolation(page, url, f"missing required field {key!r}")
    v = payload[key]
    # bool is an int subclass; reject it explicitly
    if isinstance(v, bool):
        raise SchemaViolation(page, url, f"field {key!r} must be an integer, got {v!r}")
    if isinstance(v, int):
        return v
    if isinstance(v, str) and v.strip().lstrip("-").isdigit():
        return int(v.strip())
    raise SchemaViolation(page, url, f"field {key!r} must be an integer, got {v!r}")
