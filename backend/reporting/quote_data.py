"""
Build the flat token map for the printable quote from pricing summary, line
items, F3 override fields and F2 fee state.

Every value in the map is a ready-to-insert HTML string. Missing or malformed
numbers degrade to 0 so a partially configured quote can still be previewed.
"""
from __future__ import annotations

from typing import Sequence

from models import FeeState, LineItem, OverrideFields, PricingSummary

from .format_utils import escape, format_money, format_quantity, multiline_html, to_number

GST_RATE = 0.1
DEPOSIT_RATIO = 0.5
DEFAULT_TERMS = "Standard terms and conditions apply."

SCREEN_FABRIC_TYPE = "SN"
BLOCKOUT_FABRIC_TYPES = ("B1", "B2", "B3", "B4", "B5")

APPENDIX_HEADERS = ("#", "F-NAME", "F-COLOR", "Location", "HD", "DUAL", "MOTOR", "PRICE")
APPENDIX_TITLE = "Roller Blinds - Detailed List"
CHECK_MARK = "&#10003;"


def grand_total(summary: PricingSummary, overrides: OverrideFields) -> float:
    """Final offer price when the operator entered one, otherwise the GST-inclusive total."""
    offered = to_number(overrides.final_offer_price)
    return offered or summary.gst or 0.0


def gst_component(total: float) -> float:
    """Tax portion of a total that already includes 10% GST."""
    return total / (1 + GST_RATE) * GST_RATE


def valid_items(items: Sequence[LineItem]) -> list[LineItem]:
    return [item for item in items if item.is_valid]


def fabric_class(item: LineItem) -> str:
    if "light-filter" in item.fabric.lower():
        return "bg-light-filter"
    if item.fabric_type == SCREEN_FABRIC_TYPE:
        return "bg-screen"
    if item.fabric_type in BLOCKOUT_FABRIC_TYPES:
        return "bg-blockout"
    return ""


def format_customer_info(overrides: OverrideFields) -> str:
    html = f"<strong>{escape(overrides.customer_name)}</strong><br>"
    if overrides.customer_address:
        html += f"{multiline_html(overrides.customer_address)}<br>"
    if overrides.customer_phone:
        html += f"Phone: {escape(overrides.customer_phone)}<br>"
    if overrides.customer_email:
        html += f"Email: {escape(overrides.customer_email)}"
    return html


def _appendix_row(index: int, item: LineItem, mul_times: float) -> str:
    css = fabric_class(item)
    final_price = item.line_price * mul_times
    return (
        "<tr>"
        f'<td class="text-center">{index}</td>'
        f'<td class="{css}">{escape(item.fabric)}</td>'
        f'<td class="{css}">{escape(item.color)}</td>'
        f"<td>{escape(item.location)}</td>"
        f'<td class="text-center">{CHECK_MARK if item.winder == "HD" else ""}</td>'
        f'<td class="text-center">{CHECK_MARK if item.dual == "D" else ""}</td>'
        f'<td class="text-center">{CHECK_MARK if item.motor else ""}</td>'
        f'<td class="text-right">{format_money(final_price)}</td>'
        "</tr>"
    )


def build_items_table(items: Sequence[LineItem], summary: PricingSummary) -> str:
    """Appendix table: one row per measured blind, priced with the summary multiplier."""
    mul_times = summary.mul_times or 1
    rows = "".join(
        _appendix_row(index, item, mul_times)
        for index, item in enumerate(valid_items(items), start=1)
    )
    header_cells = "".join(f"<th>{h}</th>" for h in APPENDIX_HEADERS)
    return (
        '<table class="items-table">'
        "<thead>"
        f'<tr class="table-title"><th colspan="{len(APPENDIX_HEADERS)}">{APPENDIX_TITLE}</th></tr>'
        f"<tr>{header_cells}</tr>"
        "</thead>"
        f"<tbody>{rows}</tbody>"
        "</table>"
    )


def _summary_row(number: int, description: str, qty: str, price_cell: str, discounted_cell: str) -> str:
    return (
        "<tr>"
        f'<td data-label="#">{number}</td>'
        f'<td data-label="Description">{description}</td>'
        f'<td data-label="QTY" class="align-right">{qty}</td>'
        f"{price_cell}"
        f"{discounted_cell}"
        "</tr>"
    )


def _package_description(title: str) -> str:
    return (
        f'<div class="description"><strong>{title}</strong></div>'
        '<div class="details">See appendix for detailed specifications.</div>'
    )


def _fee_row(number: int, label: str, qty: str, fee: float, excluded: bool) -> str:
    price_class = "align-right is-excluded" if excluded else "align-right"
    discounted = 0.0 if excluded else fee
    return _summary_row(
        number,
        f'<div class="description">{label}</div>',
        qty,
        f'<td data-label="Price" class="{price_class}">{format_money(fee)}</td>',
        f'<td data-label="Discounted Price" class="align-right">{format_money(discounted)}</td>',
    )


def _excluded(summary: PricingSummary, fees: FeeState, fee_type: str) -> bool:
    return fees.is_excluded(fee_type) or bool(getattr(summary, f"{fee_type}_fee_excluded"))


def build_summary_rows(summary: PricingSummary, items: Sequence[LineItem], fees: FeeState) -> str:
    """
    Page-one line items. The package row and the three fee rows always render;
    the accessory rows only when their subtotal is positive. Numbering follows
    the rows actually emitted.
    """
    valid_count = len(valid_items(items))
    rows = [
        _summary_row(
            1,
            _package_description("Roller Blinds Package"),
            str(valid_count),
            '<td data-label="Price" class="align-right">'
            f'<span class="original-price">{format_money(summary.first_rb_price)}</span></td>',
            '<td data-label="Discounted Price" class="align-right">'
            f'<span class="discounted-price">{format_money(summary.dis_rb_price)}</span></td>',
        )
    ]
    number = 2

    for title, subtotal in (
        ("Installation Accessories", summary.acce_sum),
        ("Motorised Accessories", summary.e_acce_sum),
    ):
        if subtotal > 0:
            rows.append(
                _summary_row(
                    number,
                    _package_description(title),
                    "NA",
                    f'<td data-label="Price" class="align-right">{format_money(subtotal)}</td>',
                    f'<td data-label="Discounted Price" class="align-right">{format_money(subtotal)}</td>',
                )
            )
            number += 1

    fee_rows = (
        ("Delivery", format_quantity(fees.delivery_qty or 1), summary.delivery_fee, _excluded(summary, fees, "delivery")),
        ("Installation", str(valid_count), summary.install_fee, _excluded(summary, fees, "install")),
        ("Removal", format_quantity(fees.removal_qty or 0), summary.removal_fee, _excluded(summary, fees, "removal")),
    )
    for label, qty, fee, excluded in fee_rows:
        rows.append(_fee_row(number, label, qty, fee, excluded))
        number += 1

    return "".join(rows)


def build_quote_data(
    summary: PricingSummary,
    items: Sequence[LineItem],
    overrides: OverrideFields,
    fees: FeeState | None = None,
) -> dict[str, str]:
    """Project the quote inputs onto the token map consumed by placeholders.substitute."""
    fees = fees or FeeState()
    total = grand_total(summary, overrides)
    return {
        "quoteId": escape(overrides.quote_id),
        "issueDate": escape(overrides.issue_date),
        "dueDate": escape(overrides.due_date),
        "customerInfoHtml": format_customer_info(overrides),
        "itemsTableBody": build_summary_rows(summary, items, fees),
        "subtotal": format_money(summary.sum_price),
        "gst": format_money(gst_component(total)),
        "grandTotal": format_money(total),
        "deposit": format_money(total * DEPOSIT_RATIO),
        "balance": format_money(total * DEPOSIT_RATIO),
        "savings": format_money(summary.first_rb_price - summary.dis_rb_price),
        "termsAndConditions": multiline_html(overrides.terms_conditions or DEFAULT_TERMS),
        "rollerBlindsTable": build_items_table(items, summary),
    }
