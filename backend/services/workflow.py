"""
Coordinates multi-step quote workflows: printable quote, distribution dialogs,
fee exclusions and F2 value changes. UI concerns reach it only through the
injected collaborators (form reader, presenter, notifier).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping, Optional, Protocol

from models import FeeState, OverrideFields, PricingSummary, QuoteState
from reporting.fragments import CompositionError
from reporting.quote_builder import build_quote_html
from reporting.template_source import TemplateFetchError, load_templates
from services.distribution import (
    DistributionDialog,
    dual_distribution_dialog,
    remote_distribution_dialog,
)
from services.quote_state import QuoteStateStore

logger = logging.getLogger(__name__)

PREVIEW_FAILED_MESSAGE = "Failed to generate quote preview. See logs for details."

OVERRIDE_FIELD_IDS = {
    "quote_id": "f3-quote-id",
    "issue_date": "f3-issue-date",
    "due_date": "f3-due-date",
    "customer_name": "f3-customer-name",
    "customer_address": "f3-customer-address",
    "customer_phone": "f3-customer-phone",
    "customer_email": "f3-customer-email",
    "final_offer_price": "f3-final-offer-price",
    "terms_conditions": "f3-terms-conditions",
}

F2_FIELD_KEYS = {
    "f2-b10-wifi-qty": "wifi_qty",
    "f2-b13-delivery-qty": "delivery_qty",
    "f2-b14-install-qty": "install_qty",
    "f2-b15-removal-qty": "removal_qty",
    "f2-b17-mul-times": "mul_times",
    "f2-b18-discount": "discount",
}


class FormReader(Protocol):
    def read(self, field_id: str) -> str: ...


class MappingFormReader:
    """FormReader over a flat {field_id: value} mapping; missing ids read as ''."""

    def __init__(self, values: Mapping[str, str] | None = None):
        self._values = dict(values or {})

    def read(self, field_id: str) -> str:
        value = self._values.get(field_id)
        return "" if value is None else str(value)


@dataclass(frozen=True)
class Notification:
    message: str
    type: str = "info"


TemplateLoader = Callable[[], Awaitable[tuple[str, str]]]
SummaryCalculator = Callable[[QuoteState], PricingSummary]


def summary_from_state(state: QuoteState) -> PricingSummary:
    """Default calculator: the store already holds the latest computed summary."""
    return state.summary.model_copy()


class QuoteWorkflow:
    def __init__(
        self,
        store: QuoteStateStore,
        form_reader: FormReader | None = None,
        template_loader: TemplateLoader = load_templates,
        presenter: Optional[Callable[[str], None]] = None,
        notifier: Optional[Callable[[Notification], None]] = None,
        calculator: SummaryCalculator = summary_from_state,
    ):
        self.store = store
        self.form_reader = form_reader or MappingFormReader()
        self.template_loader = template_loader
        self.presenter = presenter
        self.notifier = notifier
        self.calculator = calculator

    def _notify(self, message: str, type: str = "info") -> None:
        if self.notifier is not None:
            self.notifier(Notification(message=message, type=type))

    def read_override_fields(self) -> OverrideFields:
        return OverrideFields(
            **{name: self.form_reader.read(field_id) for name, field_id in OVERRIDE_FIELD_IDS.items()}
        )

    async def handle_printable_quote_request(self) -> str | None:
        """
        Load both templates, render the quote from a state snapshot and hand it
        to the presenter. On failure one error notification is published and
        nothing is presented.
        """
        try:
            quote_template, details_template = await self.template_loader()
            state = self.store.snapshot()
            summary = self.calculator(state)
            html_out = build_quote_html(
                quote_template,
                details_template,
                summary,
                state.items,
                self.read_override_fields(),
                state.fees,
            )
        except (TemplateFetchError, CompositionError) as e:
            logger.error("[quote] printable quote failed: %s", e)
            self._notify(PREVIEW_FAILED_MESSAGE, type="error")
            return None
        if self.presenter is not None:
            self.presenter(html_out)
        return html_out

    def handle_remote_distribution(self) -> DistributionDialog:
        state = self.store.snapshot()
        return remote_distribution_dialog(state.distribution, self.store.set_remote_distribution)

    def handle_dual_distribution(self) -> DistributionDialog:
        state = self.store.snapshot()
        return dual_distribution_dialog(state.items, state.distribution, self.store.set_dual_distribution)

    def handle_toggle_fee_exclusion(self, fee_type: str) -> FeeState:
        self.store.toggle_fee_exclusion(fee_type)
        return self.store.snapshot().fees

    def handle_f2_value_change(self, field_id: str, value: str) -> bool:
        """Returns False for field ids that are not F2 inputs."""
        key = F2_FIELD_KEYS.get(field_id)
        if key is None:
            return False
        text = (value or "").strip()
        if text == "":
            numeric = None
        else:
            try:
                numeric = float(text)
            except ValueError:
                self._notify(f"{field_id} must be a number", type="error")
                return False
        self.store.set_f2_value(key, numeric)
        return True
