from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from .config import ConfigError
from .models import FetchFailure


def body_of(response: Any) -> str | None:
    """
    Text body of a fetch result, or None for a missing/failed fetch.
    Accepts a requests.Response (anything with `.text`) or a plain string.
    """
    if response is None or isinstance(response, FetchFailure):
        return None
    if isinstance(response, str):
        return response
    text = getattr(response, "text", None)
    return text if isinstance(text, str) else None


class ResultFilter:
    """
    Keep a detail page only if its raw body matches EVERY configured pattern.

    Patterns are regular expressions searched (not anchored) against the body,
    in configuration order. An empty pattern list keeps everything.
    """

    def __init__(self, patterns: Iterable[str] = ()):
        self.patterns: tuple[str, ...] = tuple(patterns)
        try:
            self._compiled = [re.compile(p) for p in self.patterns]
        except re.error as e:
            raise ConfigError(f"Invalid content filter in {list(self.patterns)!r}: {e}") from e

    def matches(self, response: Any) -> bool:
        body = body_of(response)
        if body is None:
            return False
        return all(rx.search(body) for rx in self._compiled)
