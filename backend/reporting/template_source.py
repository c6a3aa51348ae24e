"""
Load the quote and details templates. Each source is either an HTTP(S) URL or
a filesystem path; both are loaded concurrently before composition starts.
"""
from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
DEFAULT_QUOTE_TEMPLATE = str(_TEMPLATE_DIR / "quote-template.html")
DEFAULT_DETAILS_TEMPLATE = str(_TEMPLATE_DIR / "detailed-item-list.html")


def quote_template_source() -> str:
    """QUOTE_TEMPLATE_SOURCE, or the bundled template when unset or blank."""
    return (os.environ.get("QUOTE_TEMPLATE_SOURCE") or "").strip() or DEFAULT_QUOTE_TEMPLATE


def details_template_source() -> str:
    return (os.environ.get("DETAILS_TEMPLATE_SOURCE") or "").strip() or DEFAULT_DETAILS_TEMPLATE


def _fetch_timeout() -> float | None:
    raw = (os.getenv("TEMPLATE_FETCH_TIMEOUT") or "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("[templates] ignoring invalid TEMPLATE_FETCH_TIMEOUT=%r", raw)
        return None


class TemplateFetchError(Exception):
    """A template source could not be loaded; the render is aborted."""


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


async def _fetch_url(client: httpx.AsyncClient, source: str) -> str:
    try:
        response = await client.get(source)
    except httpx.HTTPError as e:
        raise TemplateFetchError(f"Failed to load {source}") from e
    if not response.is_success:
        raise TemplateFetchError(f"Failed to load {source}")
    return response.text


async def _read_file(source: str) -> str:
    try:
        return await asyncio.to_thread(Path(source).read_text, encoding="utf-8")
    except OSError as e:
        raise TemplateFetchError(f"Failed to load {source}") from e


async def load_template(source: str, client: httpx.AsyncClient | None = None) -> str:
    if not _is_url(source):
        return await _read_file(source)
    if client is not None:
        return await _fetch_url(client, source)
    timeout = _fetch_timeout()
    kwargs = {"timeout": timeout} if timeout is not None else {}
    async with httpx.AsyncClient(**kwargs) as own_client:
        return await _fetch_url(own_client, source)


async def load_templates(
    quote_source: str | None = None,
    details_source: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> tuple[str, str]:
    """
    Return (quote_template, details_template); raises TemplateFetchError if either fails.
    Sources not passed in are read from the environment on every call.
    """
    quote_source = quote_source or quote_template_source()
    details_source = details_source or details_template_source()
    quote_template, details_template = await asyncio.gather(
        load_template(quote_source, client),
        load_template(details_source, client),
    )
    logger.info(
        "[templates] loaded quote len=%d details len=%d",
        len(quote_template),
        len(details_template),
    )
    return quote_template, details_template
