"""Tests for projecting pricing, items and overrides onto the quote token map."""
from models import FeeState, LineItem, OverrideFields, PricingSummary
from reporting.quote_data import (
    build_items_table,
    build_quote_data,
    build_summary_rows,
    fabric_class,
    format_customer_info,
    grand_total,
)

MONEY_KEYS = ("subtotal", "gst", "grandTotal", "deposit", "balance", "savings")


def _summary(**kwargs) -> PricingSummary:
    return PricingSummary(**kwargs)


def test_absent_summary_fields_render_zero():
    data = build_quote_data(PricingSummary(), [], OverrideFields())
    for key in MONEY_KEYS:
        assert data[key] == "$0.00"


def test_malformed_numbers_degrade_to_zero():
    summary = PricingSummary.model_validate({"sumPrice": "abc", "firstRbPrice": None, "gst": "nan"})
    data = build_quote_data(summary, [], OverrideFields(final_offer_price="n/a"))
    assert data["subtotal"] == "$0.00"
    assert data["grandTotal"] == "$0.00"


def test_savings_and_accessories_row_omitted():
    summary = PricingSummary.model_validate(
        {"sumPrice": 500, "firstRbPrice": 600, "disRbPrice": 540, "acceSum": 0}
    )
    data = build_quote_data(summary, [], OverrideFields())
    assert data["savings"] == "$60.00"
    assert data["subtotal"] == "$500.00"
    assert "Installation Accessories" not in data["itemsTableBody"]


def test_grand_total_prefers_final_offer_price():
    summary = _summary(gst=1100)
    assert grand_total(summary, OverrideFields(final_offer_price="990")) == 990
    assert grand_total(summary, OverrideFields(final_offer_price="")) == 1100
    assert grand_total(summary, OverrideFields(final_offer_price="oops")) == 1100


def test_gst_deposit_balance_from_grand_total():
    data = build_quote_data(_summary(gst=1100), [], OverrideFields())
    assert data["grandTotal"] == "$1100.00"
    assert data["gst"] == "$100.00"
    assert data["deposit"] == "$550.00"
    assert data["balance"] == "$550.00"


def test_customer_info_conditional_lines():
    html = format_customer_info(OverrideFields(customer_name="Jo Lee"))
    assert html == "<strong>Jo Lee</strong><br>"

    html = format_customer_info(
        OverrideFields(
            customer_name="Jo Lee",
            customer_address="1 Main St\nSpringfield",
            customer_phone="0400 000 000",
            customer_email="jo@example.com",
        )
    )
    assert html == (
        "<strong>Jo Lee</strong><br>1 Main St<br>Springfield<br>"
        "Phone: 0400 000 000<br>Email: jo@example.com"
    )


def test_customer_text_is_escaped():
    html = format_customer_info(OverrideFields(customer_name="<script>x</script>"))
    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_terms_default_and_line_breaks():
    assert build_quote_data(PricingSummary(), [], OverrideFields())["termsAndConditions"] == (
        "Standard terms and conditions apply."
    )
    data = build_quote_data(PricingSummary(), [], OverrideFields(terms_conditions="A\nB"))
    assert data["termsAndConditions"] == "A<br>B"


def test_appendix_skips_items_without_dimensions():
    items = [
        LineItem(width=0, height=0, fabric="Ignored"),
        LineItem.model_validate({"width": 10, "height": 20, "fabricType": "SN", "linePrice": 100}),
    ]
    table = build_items_table(items, _summary(mul_times=2))
    assert table.count('<td class="text-center">1</td>') == 1
    assert '<td class="text-center">2</td>' not in table
    assert "$200.00" in table
    assert 'class="bg-screen"' in table
    assert "Ignored" not in table


def test_appendix_multiplier_defaults_to_one():
    items = [LineItem(width=1, height=1, line_price=42.5)]
    assert "$42.50" in build_items_table(items, PricingSummary())


def test_fabric_class_priority():
    assert fabric_class(LineItem(fabric="Light-Filter Linen", fabric_type="SN")) == "bg-light-filter"
    assert fabric_class(LineItem(fabric="Vista", fabric_type="SN")) == "bg-screen"
    assert fabric_class(LineItem(fabric="Kleenscreen", fabric_type="B3")) == "bg-blockout"
    assert fabric_class(LineItem(fabric="Other", fabric_type="X1")) == ""


def test_appendix_check_marks():
    item = LineItem(width=1, height=1, winder="HD", dual="D", motor="M")
    table = build_items_table([item], PricingSummary())
    assert table.count("&#10003;") == 3


def test_summary_rows_numbering_with_accessories():
    summary = _summary(acce_sum=50, e_acce_sum=80, delivery_fee=20, install_fee=30, removal_fee=10)
    rows = build_summary_rows(summary, [], FeeState())
    for n in range(1, 7):
        assert f'<td data-label="#">{n}</td>' in rows
    assert '<td data-label="#">7</td>' not in rows
    assert rows.index("Installation Accessories") < rows.index("Motorised Accessories") < rows.index("Delivery")


def test_summary_rows_numbering_skips_omitted_rows():
    rows = build_summary_rows(_summary(e_acce_sum=80), [], FeeState())
    assert "Installation Accessories" not in rows
    assert '<td data-label="#">2</td><td data-label="Description"><div class="description"><strong>Motorised' in rows
    assert '<td data-label="#">5</td>' in rows
    assert '<td data-label="#">6</td>' not in rows


def test_excluded_fee_zeroed_and_marked():
    summary = _summary(delivery_fee=25, install_fee=40)
    rows = build_summary_rows(summary, [], FeeState(delivery_fee_excluded=True))
    assert '<td data-label="Price" class="align-right is-excluded">$25.00</td>' in rows
    assert '<td data-label="Discounted Price" class="align-right">$0.00</td>' in rows
    assert '<td data-label="Price" class="align-right">$40.00</td><td data-label="Discounted Price" class="align-right">$40.00</td>' in rows


def test_fee_quantities():
    items = [LineItem(width=1, height=1), LineItem(width=2, height=2), LineItem(width=3)]
    rows = build_summary_rows(PricingSummary(), items, FeeState(removal_qty=3))
    assert '<td data-label="QTY" class="align-right">2</td>' in rows  # package and installation
    assert 'Delivery</div></td><td data-label="QTY" class="align-right">1</td>' in rows
    assert 'Removal</div></td><td data-label="QTY" class="align-right">3</td>' in rows


def test_token_map_covers_recognised_keys():
    data = build_quote_data(PricingSummary(), [], OverrideFields(quote_id="Q-7"))
    assert set(data) == {
        "quoteId", "issueDate", "dueDate", "customerInfoHtml", "itemsTableBody",
        "subtotal", "gst", "grandTotal", "deposit", "balance", "savings",
        "termsAndConditions", "rollerBlindsTable",
    }
    assert data["quoteId"] == "Q-7"


def test_numeric_motor_codes_keep_truthiness():
    items = [
        LineItem.model_validate({"width": 1, "height": 1, "motor": 2}),
        LineItem.model_validate({"width": 1, "height": 1, "motor": 0}),
        LineItem.model_validate({"width": 1, "height": 1, "motor": "M"}),
    ]
    assert [item.motor for item in items] == [True, False, "M"]
    assert build_items_table(items, PricingSummary()).count("&#10003;") == 2


def test_exclusion_flags_parse_string_forms():
    summary = PricingSummary.model_validate(
        {"deliveryFeeExcluded": "false", "installFeeExcluded": "true", "removalFeeExcluded": "0"}
    )
    assert (summary.delivery_fee_excluded, summary.install_fee_excluded, summary.removal_fee_excluded) == (
        False,
        True,
        False,
    )
    fees = FeeState.model_validate({"deliveryFeeExcluded": "No", "removalFeeExcluded": "YES"})
    assert not fees.is_excluded("delivery")
    assert fees.is_excluded("removal")

    rows = build_summary_rows(_summary(delivery_fee=25), [], FeeState.model_validate({"deliveryFeeExcluded": "false"}))
    assert "is-excluded" not in rows
