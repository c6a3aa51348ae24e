"""
Two-way distribution of a fixed integer total between mutually exclusive
categories (1-ch vs 16-ch remotes, combo vs slim dual brackets).

DistributionBalancer holds the arithmetic; DistributionDialog drives one
confirmation dialog through Idle -> Open -> Editing -> Confirmed | Cancelled.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Sequence, Union

from models import Distribution, DistributionState, LineItem

logger = logging.getLogger(__name__)

REMOTE_1CH_FIELD = "dialog-input-1ch"
REMOTE_16CH_FIELD = "dialog-input-16ch"
DUAL_COMBO_FIELD = "dialog-input-combo"
DUAL_SLIM_FIELD = "dialog-input-slim"

NEGATIVE_MESSAGE = "Quantities must be positive numbers."


class DialogState(str, Enum):
    IDLE = "idle"
    OPEN = "open"
    EDITING = "editing"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class DialogStateError(Exception):
    """An action was attempted in a dialog state that does not allow it."""


class DistributionError(ValueError):
    """A split failed validation. The message is shown to the operator."""


@dataclass
class InputField:
    id: str
    label: str
    value: str


@dataclass(frozen=True)
class Committed:
    values: dict[str, int]


@dataclass(frozen=True)
class Cancelled:
    pass


ModalResult = Union[Committed, Cancelled]


@dataclass(frozen=True)
class Rejected:
    """Confirm was refused; the dialog stays open."""
    message: str


@dataclass
class ModalRequest:
    """What a view needs to show the dialog: message, inputs and a validator."""
    message: str
    fields: list[InputField]
    validate: Callable[[dict[str, str]], Distribution]
    focus_field: str | None = None
    close_on_overlay_click: bool = False


def parse_quantity(raw: Any) -> int | None:
    """Whole-number parse used for both live sync and confirm. None when unparseable."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    text = str(raw if raw is not None else "").strip()
    # int() alone accepts "1_0" and non-ASCII digits
    if not (text.isascii() and text.lstrip("+-").isdigit()):
        return None
    try:
        return int(text)
    except ValueError:
        return None


class DistributionBalancer:
    """Keeps part_a + part_b == total for a pair of named fields."""

    def __init__(self, total: int, field_a: str, field_b: str):
        if total < 0:
            raise ValueError("total must be >= 0")
        self.total = total
        self.field_a = field_a
        self.field_b = field_b

    def counterpart(self, field_id: str) -> str:
        if field_id == self.field_a:
            return self.field_b
        if field_id == self.field_b:
            return self.field_a
        raise KeyError(field_id)

    def sync(self, values: dict[str, str], edited: str, raw_value: str) -> dict[str, str]:
        """
        Apply an edit and return the new field values. An in-range edit sets the
        other field to total - edited; anything else leaves the other field alone.
        """
        other = self.counterpart(edited)
        updated = dict(values)
        updated[edited] = raw_value
        qty = parse_quantity(raw_value)
        if qty is not None and 0 <= qty <= self.total:
            updated[other] = str(self.total - qty)
        return updated

    def validate(self, raw_a: Any, raw_b: Any) -> Distribution:
        qty_a = parse_quantity(raw_a)
        qty_b = parse_quantity(raw_b)
        if qty_a is None or qty_b is None or qty_a < 0 or qty_b < 0:
            raise DistributionError(NEGATIVE_MESSAGE)
        if qty_a + qty_b != self.total:
            raise DistributionError(
                f"Total must equal {self.total}. Current total: {qty_a + qty_b}."
            )
        return Distribution(part_a=qty_a, part_b=qty_b, total=self.total)

    def validate_values(self, values: dict[str, str]) -> Distribution:
        return self.validate(values.get(self.field_a), values.get(self.field_b))


@dataclass
class DistributionDialog:
    """
    One confirmation dialog around a balancer. on_commit receives (part_a, part_b)
    exactly once, and only after validation passes. Transitions are serialized
    so concurrent confirms cannot commit twice.
    """
    balancer: DistributionBalancer
    initial_a: int
    initial_b: int
    message: str
    labels: tuple[str, str]
    on_commit: Callable[[int, int], None]
    focus_field: str | None = None
    state: DialogState = DialogState.IDLE
    values: dict[str, str] = field(default_factory=dict)
    result: ModalResult | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    @property
    def total(self) -> int:
        return self.balancer.total

    @property
    def is_active(self) -> bool:
        return self.state in (DialogState.OPEN, DialogState.EDITING)

    def _require_active(self, action: str) -> None:
        if not self.is_active:
            raise DialogStateError(f"Cannot {action} a dialog in state {self.state.value}")

    def open(self) -> ModalRequest:
        with self._lock:
            if self.state is not DialogState.IDLE:
                raise DialogStateError(f"Dialog already {self.state.value}")
            b = self.balancer
            self.values = {b.field_a: str(self.initial_a), b.field_b: str(self.initial_b)}
            self.state = DialogState.OPEN
        return self.request()

    def request(self) -> ModalRequest:
        b = self.balancer
        return ModalRequest(
            message=self.message,
            fields=[
                InputField(id=b.field_a, label=self.labels[0], value=self.values.get(b.field_a, "")),
                InputField(id=b.field_b, label=self.labels[1], value=self.values.get(b.field_b, "")),
            ],
            validate=b.validate_values,
            focus_field=self.focus_field or b.field_a,
        )

    def edit(self, field_id: str, raw_value: str) -> dict[str, str]:
        with self._lock:
            self._require_active("edit")
            self.values = self.balancer.sync(self.values, field_id, raw_value)
            self.state = DialogState.EDITING
            return dict(self.values)

    def confirm(self) -> Committed | Rejected:
        with self._lock:
            self._require_active("confirm")
            try:
                split = self.balancer.validate_values(self.values)
            except DistributionError as e:
                logger.info("[distribution] confirm rejected total=%d reason=%s", self.total, e)
                self.state = DialogState.OPEN
                return Rejected(message=str(e))
            self.on_commit(split.part_a, split.part_b)
            committed = Committed(values={self.balancer.field_a: split.part_a, self.balancer.field_b: split.part_b})
            self.state = DialogState.CONFIRMED
            self.result = committed
        logger.info(
            "[distribution] committed total=%d %s=%d %s=%d",
            self.total, self.balancer.field_a, split.part_a, self.balancer.field_b, split.part_b,
        )
        return committed

    def cancel(self) -> Cancelled:
        with self._lock:
            if self.state in (DialogState.CONFIRMED, DialogState.CANCELLED):
                raise DialogStateError(f"Dialog already {self.state.value}")
            self.state = DialogState.CANCELLED
            self.result = Cancelled()
            return self.result


def remote_distribution_dialog(
    state: DistributionState, on_commit: Callable[[int, int], None]
) -> DistributionDialog:
    """Split drive_remote_count between 1-channel and 16-channel remotes."""
    total = max(0, state.drive_remote_count)
    initial_1ch = total if state.remote_1ch_qty is None else state.remote_1ch_qty
    initial_16ch = total - initial_1ch if state.remote_16ch_qty is None else state.remote_16ch_qty
    return DistributionDialog(
        balancer=DistributionBalancer(total, REMOTE_1CH_FIELD, REMOTE_16CH_FIELD),
        initial_a=initial_1ch,
        initial_b=initial_16ch,
        message=f"Total remotes: {total}. Please distribute them.",
        labels=("1-Ch Qty:", "16-Ch Qty:"),
        on_commit=on_commit,
        focus_field=REMOTE_1CH_FIELD,
    )


def count_dual_pairs(items: Sequence[LineItem]) -> int:
    return sum(1 for item in items if item.dual == "D") // 2


def dual_distribution_dialog(
    items: Sequence[LineItem], state: DistributionState, on_commit: Callable[[int, int], None]
) -> DistributionDialog:
    """Split the dual-bracket pairs between combo and slim brackets."""
    total = count_dual_pairs(items)
    initial_combo = total if state.dual_combo_qty is None else state.dual_combo_qty
    initial_slim = 0 if state.dual_slim_qty is None else state.dual_slim_qty
    return DistributionDialog(
        balancer=DistributionBalancer(total, DUAL_COMBO_FIELD, DUAL_SLIM_FIELD),
        initial_a=initial_combo,
        initial_b=initial_slim,
        message=f"Total Dual pairs: {total}. Please distribute them.",
        labels=("Combo Qty:", "Slim Qty:"),
        on_commit=on_commit,
        focus_field=DUAL_SLIM_FIELD,
    )
