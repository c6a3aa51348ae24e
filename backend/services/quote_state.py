"""
In-memory quote state for a single operator session: line items, the latest
pricing summary, F1 distribution quantities and F2 fee state.
"""
from __future__ import annotations

import threading
from typing import Any, Iterable

from models import FeeType, LineItem, PricingSummary, QuoteState

F2_VALUE_KEYS = ("wifi_qty", "delivery_qty", "install_qty", "removal_qty", "mul_times", "discount")
FEE_TYPES: tuple[FeeType, ...] = ("delivery", "install", "removal")


class QuoteStateStore:
    def __init__(self, initial: QuoteState | None = None):
        self._state = initial.model_copy(deep=True) if initial else QuoteState()
        self._lock = threading.Lock()

    def snapshot(self) -> QuoteState:
        """Deep copy so a render never sees a half-applied update."""
        with self._lock:
            return self._state.model_copy(deep=True)

    def reset(self) -> None:
        with self._lock:
            self._state = QuoteState()

    def set_items(self, items: Iterable[LineItem]) -> None:
        with self._lock:
            self._state.items = [item.model_copy() for item in items]

    def set_summary(self, summary: PricingSummary) -> None:
        with self._lock:
            self._state.summary = summary.model_copy()

    def set_drive_remote_count(self, count: int) -> None:
        with self._lock:
            self._state.distribution.drive_remote_count = max(0, int(count))

    def set_remote_distribution(self, qty_1ch: int, qty_16ch: int) -> None:
        with self._lock:
            self._state.distribution.remote_1ch_qty = qty_1ch
            self._state.distribution.remote_16ch_qty = qty_16ch

    def set_dual_distribution(self, qty_combo: int, qty_slim: int) -> None:
        with self._lock:
            self._state.distribution.dual_combo_qty = qty_combo
            self._state.distribution.dual_slim_qty = qty_slim

    def toggle_fee_exclusion(self, fee_type: str) -> bool:
        """Flip one fee's exclusion flag; returns the new value."""
        if fee_type not in FEE_TYPES:
            raise ValueError(f"Unknown fee type: {fee_type}")
        attr = f"{fee_type}_fee_excluded"
        with self._lock:
            value = not getattr(self._state.fees, attr)
            setattr(self._state.fees, attr, value)
            setattr(self._state.summary, attr, value)
        return value

    def set_f2_value(self, key: str, value: Any) -> None:
        if key not in F2_VALUE_KEYS:
            raise ValueError(f"Unknown F2 value: {key}")
        with self._lock:
            setattr(self._state.fees, key, value)
            if key == "mul_times":
                self._state.summary.mul_times = value or 0.0
