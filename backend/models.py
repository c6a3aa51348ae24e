from __future__ import annotations

from typing import Any, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from reporting.format_utils import to_number

FeeType = Literal["delivery", "install", "removal"]
DistributionKind = Literal["remote", "dual"]


def _optional_number(value: Any) -> Optional[float]:
    """Dimension-style fields: blank or unparseable input means 'not set'."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    number = to_number(value, default=None)
    return number


def _optional_int(value: Any) -> Optional[int]:
    number = _optional_number(value)
    return None if number is None else int(number)


_TRUE_STRINGS = {"true", "1", "yes", "y", "on"}


def _flag_value(value: Any) -> bool:
    """Exclusion flags: booleans, numbers or common string forms ("false" is False)."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _motor_value(value: Any) -> Union[str, bool, None]:
    """Motor is only ever tested for presence; numeric codes keep their truthiness."""
    if value is None or isinstance(value, (str, bool)):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value)


class LineItem(BaseModel):
    """One configured roller blind on the current product."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    width: Optional[float] = None
    height: Optional[float] = None
    fabric: str = ""
    fabric_type: str = Field(default="", validation_alias=AliasChoices("fabric_type", "fabricType"))
    color: str = ""
    location: str = ""
    winder: str = ""
    dual: str = ""
    motor: Union[str, bool, None] = None
    line_price: float = Field(default=0.0, validation_alias=AliasChoices("line_price", "linePrice"))

    @field_validator("width", "height", mode="before")
    @classmethod
    def _dimension(cls, value: Any) -> Optional[float]:
        return _optional_number(value)

    @field_validator("line_price", mode="before")
    @classmethod
    def _price(cls, value: Any) -> float:
        return to_number(value)

    @field_validator("fabric", "fabric_type", "color", "location", "winder", "dual", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("motor", mode="before")
    @classmethod
    def _motor(cls, value: Any) -> Union[str, bool, None]:
        return _motor_value(value)

    @property
    def is_valid(self) -> bool:
        """Both dimensions entered (zero counts as not entered)."""
        return bool(self.width) and bool(self.height)


class PricingSummary(BaseModel):
    """
    Output of the external calculation engine for the current quote.

    Every numeric field degrades to 0 when missing or malformed so a partial
    quote can always be previewed.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sum_price: float = Field(default=0.0, validation_alias=AliasChoices("sum_price", "sumPrice"))
    first_rb_price: float = Field(default=0.0, validation_alias=AliasChoices("first_rb_price", "firstRbPrice"))
    dis_rb_price: float = Field(default=0.0, validation_alias=AliasChoices("dis_rb_price", "disRbPrice"))
    acce_sum: float = Field(default=0.0, validation_alias=AliasChoices("acce_sum", "acceSum"))
    e_acce_sum: float = Field(default=0.0, validation_alias=AliasChoices("e_acce_sum", "eAcceSum"))
    delivery_fee: float = Field(default=0.0, validation_alias=AliasChoices("delivery_fee", "deliveryFee"))
    install_fee: float = Field(default=0.0, validation_alias=AliasChoices("install_fee", "installFee"))
    removal_fee: float = Field(default=0.0, validation_alias=AliasChoices("removal_fee", "removalFee"))
    mul_times: float = Field(default=0.0, validation_alias=AliasChoices("mul_times", "mulTimes"))
    gst: float = 0.0
    delivery_fee_excluded: bool = Field(
        default=False, validation_alias=AliasChoices("delivery_fee_excluded", "deliveryFeeExcluded")
    )
    install_fee_excluded: bool = Field(
        default=False, validation_alias=AliasChoices("install_fee_excluded", "installFeeExcluded")
    )
    removal_fee_excluded: bool = Field(
        default=False, validation_alias=AliasChoices("removal_fee_excluded", "removalFeeExcluded")
    )

    @field_validator(
        "sum_price",
        "first_rb_price",
        "dis_rb_price",
        "acce_sum",
        "e_acce_sum",
        "delivery_fee",
        "install_fee",
        "removal_fee",
        "mul_times",
        "gst",
        mode="before",
    )
    @classmethod
    def _number(cls, value: Any) -> float:
        return to_number(value)

    @field_validator("delivery_fee_excluded", "install_fee_excluded", "removal_fee_excluded", mode="before")
    @classmethod
    def _flag(cls, value: Any) -> bool:
        return _flag_value(value)


class OverrideFields(BaseModel):
    """Operator-entered quote metadata (the F3 form). Numbers are parsed at projection time."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    quote_id: str = Field(default="", validation_alias=AliasChoices("quote_id", "quoteId"))
    issue_date: str = Field(default="", validation_alias=AliasChoices("issue_date", "issueDate"))
    due_date: str = Field(default="", validation_alias=AliasChoices("due_date", "dueDate"))
    customer_name: str = Field(default="", validation_alias=AliasChoices("customer_name", "customerName"))
    customer_address: str = Field(default="", validation_alias=AliasChoices("customer_address", "customerAddress"))
    customer_phone: str = Field(default="", validation_alias=AliasChoices("customer_phone", "customerPhone"))
    customer_email: str = Field(default="", validation_alias=AliasChoices("customer_email", "customerEmail"))
    final_offer_price: str = Field(
        default="", validation_alias=AliasChoices("final_offer_price", "finalOfferPrice")
    )
    terms_conditions: str = Field(
        default="", validation_alias=AliasChoices("terms_conditions", "termsConditions")
    )

    @field_validator("*", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return "" if value is None else str(value)


class FeeState(BaseModel):
    """F2 panel state: fee quantities, multiplier and per-fee exclusion flags."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    wifi_qty: Optional[float] = Field(default=None, validation_alias=AliasChoices("wifi_qty", "wifiQty"))
    delivery_qty: Optional[float] = Field(default=None, validation_alias=AliasChoices("delivery_qty", "deliveryQty"))
    install_qty: Optional[float] = Field(default=None, validation_alias=AliasChoices("install_qty", "installQty"))
    removal_qty: Optional[float] = Field(default=None, validation_alias=AliasChoices("removal_qty", "removalQty"))
    mul_times: Optional[float] = Field(default=None, validation_alias=AliasChoices("mul_times", "mulTimes"))
    discount: Optional[float] = None
    delivery_fee_excluded: bool = Field(
        default=False, validation_alias=AliasChoices("delivery_fee_excluded", "deliveryFeeExcluded")
    )
    install_fee_excluded: bool = Field(
        default=False, validation_alias=AliasChoices("install_fee_excluded", "installFeeExcluded")
    )
    removal_fee_excluded: bool = Field(
        default=False, validation_alias=AliasChoices("removal_fee_excluded", "removalFeeExcluded")
    )

    @field_validator("wifi_qty", "delivery_qty", "install_qty", "removal_qty", "mul_times", "discount", mode="before")
    @classmethod
    def _quantity(cls, value: Any) -> Optional[float]:
        return _optional_number(value)

    @field_validator("delivery_fee_excluded", "install_fee_excluded", "removal_fee_excluded", mode="before")
    @classmethod
    def _flag(cls, value: Any) -> bool:
        return _flag_value(value)

    def is_excluded(self, fee_type: FeeType) -> bool:
        return bool(getattr(self, f"{fee_type}_fee_excluded"))


class DistributionState(BaseModel):
    """F1 panel state: remote channel split and dual bracket split."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    drive_remote_count: int = Field(
        default=0, validation_alias=AliasChoices("drive_remote_count", "driveRemoteCount")
    )
    remote_1ch_qty: Optional[int] = None
    remote_16ch_qty: Optional[int] = None
    dual_combo_qty: Optional[int] = None
    dual_slim_qty: Optional[int] = None

    @field_validator("drive_remote_count", mode="before")
    @classmethod
    def _count(cls, value: Any) -> int:
        return int(to_number(value))

    @field_validator("remote_1ch_qty", "remote_16ch_qty", "dual_combo_qty", "dual_slim_qty", mode="before")
    @classmethod
    def _split(cls, value: Any) -> Optional[int]:
        return _optional_int(value)


class QuoteState(BaseModel):
    """Snapshot of everything a render or a distribution dialog reads."""
    items: List[LineItem] = Field(default_factory=list)
    summary: PricingSummary = Field(default_factory=PricingSummary)
    fees: FeeState = Field(default_factory=FeeState)
    distribution: DistributionState = Field(default_factory=DistributionState)


class Distribution(BaseModel):
    """A committed two-way split. Only constructed once the split balances."""
    part_a: int = Field(ge=0)
    part_b: int = Field(ge=0)
    total: int = Field(ge=0)

    @model_validator(mode="after")
    def _balanced(self) -> "Distribution":
        if self.part_a + self.part_b != self.total:
            raise ValueError(f"part_a + part_b must equal total ({self.total})")
        return self


# --- Request/response schemas ---

class QuotePreviewRequest(BaseModel):
    """Request body for POST /quote/preview and POST /quote/pdf."""
    summary: PricingSummary = Field(default_factory=PricingSummary)
    items: List[LineItem] = Field(default_factory=list)
    overrides: OverrideFields = Field(default_factory=OverrideFields)
    fees: FeeState = Field(default_factory=FeeState)


class PrintRequest(BaseModel):
    """Raw F3 form values keyed by field id, e.g. {"f3-quote-id": "Q-1"}."""
    fields: dict[str, str] = Field(default_factory=dict)


class F2ValueChange(BaseModel):
    id: str
    value: str = ""


class DistributionEdit(BaseModel):
    field: str
    value: str


class DialogFieldOut(BaseModel):
    id: str
    label: str
    value: str


class DistributionDialogOut(BaseModel):
    dialog_id: str
    kind: DistributionKind
    message: str
    total: int
    state: str
    fields: List[DialogFieldOut]


class DistributionConfirmOut(BaseModel):
    dialog_id: str
    state: str
    committed: dict[str, int]
