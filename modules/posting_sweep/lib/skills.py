from __future__ import annotations

import re
from typing import Any

from .filters import body_of

NOT_AVAILABLE = "N/A"

# <dt ...>Skills:</dt> <dd ...>value</dd> as rendered on detail pages
SKILLS_PATTERN = r"^\s+<dt.*>Skills:</dt>\s+<dd.*>(.*)</dd>"

# Plain "Skills: a, b" line for pages without the definition list
PLAIN_SKILLS_PATTERN = r"Skills:[ \t]*([^\n<]+)"

_NBSP = "&nbsp;"


class SkillExtractor:
    """
    Pull the free-text skills block out of a detail page.

    The structured pattern is tried first; its captures are joined with ','.
    If it does not match, a plain "Skills:" line is split on commas instead.
    Returns "N/A" when the page carries no skills block at all.
    """

    def __init__(self, pattern: str | None = None, *, plain_pattern: str | None = PLAIN_SKILLS_PATTERN):
        self._structured = re.compile(pattern or SKILLS_PATTERN, re.MULTILINE)
        self._plain = re.compile(plain_pattern) if plain_pattern else None

    def extract(self, response: Any) -> str:
        body = body_of(response)
        if not body:
            return NOT_AVAILABLE

        m = self._structured.search(body)
        if m:
            captures = [c for c in (m.groups() or (m.group(0),)) if c is not None]
            return ",".join(captures).replace(_NBSP, "")

        if self._plain is not None:
            m = self._plain.search(body)
            if m:
                parts = [p.strip() for p in m.group(1).replace(_NBSP, " ").split(",")]
                value = ",".join(p for p in parts if p)
                if value:
                    return value

        return NOT_AVAILABLE
