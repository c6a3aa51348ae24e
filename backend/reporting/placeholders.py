"""Flat {{key}} / {{{key}}} token substitution for quote templates."""
from __future__ import annotations

import re
from typing import Mapping

TOKEN_RE = re.compile(r"\{\{\{?([\w\-]+)\}\}\}?", re.ASCII)


def substitute(template: str, token_map: Mapping[str, str]) -> str:
    """
    Replace every recognised token with its mapped value in one pass.

    Values go in raw (the projector already produced HTML-safe strings) and are
    not re-scanned. Tokens with no mapping are left exactly as written.
    """

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in token_map:
            return str(token_map[key])
        return match.group(0)

    return TOKEN_RE.sub(_replace, template)


def find_tokens(template: str) -> list[str]:
    """Token keys referenced by a template, in first-seen order."""
    seen: dict[str, None] = {}
    for match in TOKEN_RE.finditer(template):
        seen.setdefault(match.group(1), None)
    return list(seen)
