"""
Pull the <style> and <body> fragments out of the details document and splice
them into the quote document. First-match text scans, not an HTML parse.
"""
from __future__ import annotations

import re

_STYLE_RE = re.compile(r"<style[^>]*>(.*?)</style>", re.IGNORECASE | re.DOTALL)
_BODY_RE = re.compile(r"<body[^>]*>(.*?)</body>", re.IGNORECASE | re.DOTALL)

HEAD_CLOSE = "</head>"
BODY_CLOSE = "</body>"


class CompositionError(Exception):
    """The details document cannot be merged into the quote document."""


def extract_style(doc: str) -> str | None:
    """Contents of the first <style> block, or None when the document has none."""
    match = _STYLE_RE.search(doc)
    return match.group(1) if match else None


def extract_body(doc: str) -> str:
    match = _BODY_RE.search(doc)
    if match is None:
        raise CompositionError("Could not find body content in the details template.")
    return match.group(1)


def compose_template(primary: str, style: str | None, body: str) -> str:
    """
    Insert style before the primary template's first </head> and body before
    its first </body>.

    Precondition: the primary template carries both closing markers. A missing
    marker leaves that insertion point untouched.
    """
    merged = primary
    if style:
        merged = merged.replace(HEAD_CLOSE, f"<style>{style}</style>{HEAD_CLOSE}", 1)
    return merged.replace(BODY_CLOSE, f"{body}{BODY_CLOSE}", 1)


def merge_documents(primary: str, details: str) -> str:
    """Extract both fragments from details and compose them into primary."""
    body = extract_body(details)
    return compose_template(primary, extract_style(details), body)
