"""
Build the printable quote HTML: merge the details document into the quote
document, project the quote data to tokens and fill the result in one pass.
Renders to PDF via Playwright when available.
"""
from __future__ import annotations

import logging
from typing import Mapping, Sequence

from models import FeeState, LineItem, OverrideFields, PricingSummary

from .format_utils import escape
from .fragments import merge_documents
from .placeholders import find_tokens, substitute
from .quote_data import build_quote_data

logger = logging.getLogger(__name__)


def fill_quote_template(quote_template: str, details_template: str, token_map: Mapping[str, str]) -> str:
    """Compose both documents, then substitute tokens over the merged template."""
    merged = merge_documents(quote_template, details_template)
    html_out = substitute(merged, token_map)
    unresolved = [key for key in find_tokens(merged) if key not in token_map]
    if unresolved:
        logger.info("[quote] unresolved tokens left verbatim: %s", ", ".join(unresolved))
    return html_out


def build_quote_html(
    quote_template: str,
    details_template: str,
    summary: PricingSummary,
    items: Sequence[LineItem],
    overrides: OverrideFields,
    fees: FeeState | None = None,
) -> str:
    """
    Produce the full quote HTML string from a snapshot of pricing, line items
    and override fields. Raises CompositionError when the details document
    has no <body>.
    """
    token_map = build_quote_data(summary, items, overrides, fees)
    html_out = fill_quote_template(quote_template, details_template, token_map)
    logger.info("[quote] rendered quote_id=%s len=%d", overrides.quote_id or "-", len(html_out))
    return html_out


def quote_pdf_options(quote_id: str = "", page_format: str = "A4", page_margin_mm: int = 12) -> dict:
    """Playwright page.pdf() options: print backgrounds, quote id and page count in the footer."""
    margin_in = f"{page_margin_mm / 25.4:.2f}in"
    # leave room below the content for the footer line
    bottom_in = f"{(page_margin_mm + 6) / 25.4:.2f}in"
    label = f"Quote {escape(quote_id)} &middot; " if quote_id.strip() else ""
    footer = (
        '<div style="width:100%;font-size:8px;color:#666;text-align:center;">'
        f'{label}Page <span class="pageNumber"></span> of <span class="totalPages"></span></div>'
    )
    return {
        "format": page_format,
        "print_background": True,
        "margin": {"top": margin_in, "bottom": bottom_in, "left": margin_in, "right": margin_in},
        "display_header_footer": True,
        "header_template": "<div></div>",
        "footer_template": footer,
    }


def html_to_pdf(html_content: str, quote_id: str = "", page_format: str = "A4") -> bytes:
    """Render the quote HTML to PDF with Playwright's Chromium in print media."""
    from playwright.sync_api import sync_playwright

    options = quote_pdf_options(quote_id, page_format)
    with sync_playwright() as p:
        browser = p.chromium.launch()
        try:
            page = browser.new_page()
            page.set_content(html_content, wait_until="networkidle")
            page.emulate_media(media="print")
            pdf_bytes = page.pdf(**options)
        finally:
            browser.close()
    logger.info("[quote] pdf quote_id=%s bytes=%d", quote_id or "-", len(pdf_bytes))
    return pdf_bytes
