from datetime import date, datetime
from typing import Annotated, Literal, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from kasbot.parsing import coerce_amount, coerce_date

LateFeeType = Literal["percent_monthly", "percent_daily", "fixed", "none"]
LoanStatus = Literal["active", "paid_off", "cancelled"]
InstallmentStatus = Literal["unpaid", "late", "paid", "partial"]
IncomeType = Literal["food", "spx"]
ExpenseCategory = Literal[
    "fuel",
    "parking",
    "meals",
    "cigarettes",
    "data_plan",
    "vehicle_service",
    "household",
    "electricity",
    "emergency",
    "other",
]
ReportPeriod = Literal["today", "week", "month"]
TargetPeriod = Literal["daily", "weekly", "monthly"]
IntentName = Literal[
    "record_income",
    "record_expense",
    "register_loan",
    "pay_installment",
    "view_loans",
    "view_penalty",
    "view_progress",
    "view_report",
    "set_target",
    "view_target",
    "help",
    "unknown",
]
Provider = Literal["primary", "fallback", "none"]
LoanField = Literal[
    "platform",
    "original_amount",
    "total_with_interest",
    "total_installments",
    "monthly_amount",
    "due_day",
    "late_fee_type",
    "late_fee_value",
]

LATE_FEE_TYPES: tuple[str, ...] = ("percent_monthly", "percent_daily", "fixed", "none")
INCOME_TYPES: tuple[str, ...] = ("food", "spx")
EXPENSE_CATEGORIES: tuple[str, ...] = get_args(ExpenseCategory)
INTENT_NAMES: tuple[str, ...] = get_args(IntentName)

# Canonical order in which loan fields are collected and displayed.
LOAN_FIELDS: tuple[str, ...] = get_args(LoanField)
REQUIRED_LOAN_FIELDS: tuple[str, ...] = (
    "platform",
    "original_amount",
    "total_installments",
    "monthly_amount",
    "due_day",
)


# ── Stored entities ──────────────────────────────────────────────


class User(BaseModel):
    telegram_id: str
    name: str
    timezone: str = "Asia/Jakarta"
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class IncomeRecord(BaseModel):
    id: int | None = None
    amount: float = Field(gt=0)
    type: IncomeType
    note: str | None = None
    effective_date: date
    created_at: datetime = Field(default_factory=datetime.now)


class ExpenseRecord(BaseModel):
    id: int | None = None
    amount: float = Field(gt=0)
    category: ExpenseCategory
    note: str | None = None
    effective_date: date
    created_at: datetime = Field(default_factory=datetime.now)


class Installment(BaseModel):
    installment_no: int = Field(ge=1)
    amount: float
    due_date: date
    status: InstallmentStatus = "unpaid"
    paid_amount: float = 0
    late_fee: float = 0
    paid_date: date | None = None

    @property
    def is_open(self) -> bool:
        return self.status in ("unpaid", "late")


class Loan(BaseModel):
    id: int | None = None
    platform: str
    original_amount: float
    total_with_interest: float = 0
    total_installments: int = Field(ge=1)
    paid_installments: int = 0
    monthly_amount: float
    due_day: int = Field(ge=1, le=31)
    late_fee_type: LateFeeType = "none"
    late_fee_value: float = 0
    status: LoanStatus = "active"
    note: str | None = None
    start_date: date
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    installments: list[Installment] = []

    @model_validator(mode="after")
    def _check_paid_counter(self) -> "Loan":
        if not 0 <= self.paid_installments <= self.total_installments:
            raise ValueError(
                f"paid_installments {self.paid_installments} outside 0..{self.total_installments}"
            )
        return self

    @property
    def remaining_installments(self) -> int:
        return self.total_installments - self.paid_installments


# ── Classifier parameter bags ────────────────────────────────────
# Field validators run before type checks and degrade anything the model got
# wrong to a safe default instead of failing the whole result.


class RecordIncomeParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    intent: Literal["record_income"] = "record_income"
    amount: float | None = None
    type: IncomeType = "food"
    note: str | None = None
    effective_date: date | None = Field(default=None, alias="date")

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value):
        return coerce_amount(value)

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, value):
        return value if value in INCOME_TYPES else "food"

    @field_validator("note", mode="before")
    @classmethod
    def _note(cls, value):
        return value if isinstance(value, str) and value.strip() else None

    @field_validator("effective_date", mode="before")
    @classmethod
    def _date(cls, value):
        return coerce_date(value)


class RecordExpenseParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    intent: Literal["record_expense"] = "record_expense"
    amount: float | None = None
    category: ExpenseCategory = "other"
    note: str | None = None
    effective_date: date | None = Field(default=None, alias="date")

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value):
        return coerce_amount(value)

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, value):
        return value if value in EXPENSE_CATEGORIES else "other"

    @field_validator("note", mode="before")
    @classmethod
    def _note(cls, value):
        return value if isinstance(value, str) and value.strip() else None

    @field_validator("effective_date", mode="before")
    @classmethod
    def _date(cls, value):
        return coerce_date(value)


class LoanDraft(BaseModel):
    """Loan fields collected so far; ``None`` means not yet known."""

    platform: str | None = None
    original_amount: float | None = None
    total_with_interest: float | None = None
    total_installments: int | None = None
    monthly_amount: float | None = None
    due_day: int | None = None
    late_fee_type: LateFeeType | None = None
    late_fee_value: float | None = None

    def extracted_fields(self) -> set[str]:
        """Fields that count as supplied: present, and positive for numbers."""
        found = set()
        if self.platform:
            found.add("platform")
        for name in ("original_amount", "total_with_interest", "total_installments", "monthly_amount", "due_day"):
            value = getattr(self, name)
            if value is not None and value > 0:
                found.add(name)
        if self.late_fee_type is not None:
            found.add("late_fee_type")
        if self.late_fee_type == "none" or self.late_fee_value is not None:
            found.add("late_fee_value")
        return found


class RegisterLoanParams(LoanDraft):
    intent: Literal["register_loan"] = "register_loan"

    @field_validator("platform", mode="before")
    @classmethod
    def _platform(cls, value):
        if not isinstance(value, str):
            return None
        return " ".join(value.split()) or None

    @field_validator("original_amount", "total_with_interest", "monthly_amount", mode="before")
    @classmethod
    def _amounts(cls, value):
        amount = coerce_amount(value)
        return amount if amount is not None and amount >= 0 else None

    @field_validator("total_installments", mode="before")
    @classmethod
    def _count(cls, value):
        count = coerce_amount(value)
        return int(count) if count is not None and count >= 1 else None

    @field_validator("due_day", mode="before")
    @classmethod
    def _due_day(cls, value):
        day = coerce_amount(value)
        return int(day) if day is not None and 1 <= day <= 31 else None

    @field_validator("late_fee_type", mode="before")
    @classmethod
    def _fee_type(cls, value):
        return value if value in LATE_FEE_TYPES else None

    @field_validator("late_fee_value", mode="before")
    @classmethod
    def _fee_value(cls, value):
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            return None
        try:
            number = float(str(value).strip().rstrip("%").replace(",", "."))
        except ValueError:
            return None
        return number if number >= 0 else None

    def to_draft(self) -> LoanDraft:
        return LoanDraft.model_validate(self.model_dump(exclude={"intent"}))


class PayInstallmentParams(BaseModel):
    intent: Literal["pay_installment"] = "pay_installment"
    platform: str | None = None

    @field_validator("platform", mode="before")
    @classmethod
    def _platform(cls, value):
        if not isinstance(value, str):
            return None
        return value.strip() or None


class ViewReportParams(BaseModel):
    intent: Literal["view_report"] = "view_report"
    period: ReportPeriod = "today"

    @field_validator("period", mode="before")
    @classmethod
    def _period(cls, value):
        return value if value in ("today", "week", "month") else "today"


class SetTargetParams(BaseModel):
    intent: Literal["set_target"] = "set_target"
    amount: float | None = None
    period: TargetPeriod = "daily"

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value):
        return coerce_amount(value)

    @field_validator("period", mode="before")
    @classmethod
    def _period(cls, value):
        return value if value in ("daily", "weekly", "monthly") else "daily"


class EmptyParams(BaseModel):
    intent: Literal["view_loans", "view_penalty", "view_progress", "view_target", "help", "unknown"] = "unknown"


IntentParams = Annotated[
    Union[
        RecordIncomeParams,
        RecordExpenseParams,
        RegisterLoanParams,
        PayInstallmentParams,
        ViewReportParams,
        SetTargetParams,
        EmptyParams,
    ],
    Field(discriminator="intent"),
]


class IntentResult(BaseModel):
    intent: IntentName
    params: IntentParams
    confidence: float = 0.0
    provider: Provider = "none"

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0.5
        return min(1.0, max(0.0, float(value)))

    @model_validator(mode="after")
    def _params_match_intent(self) -> "IntentResult":
        if self.params.intent != self.intent:
            raise ValueError(f"params for {self.params.intent} attached to {self.intent}")
        return self

    @classmethod
    def unknown(cls, provider: Provider = "none") -> "IntentResult":
        return cls(intent="unknown", params=EmptyParams(), confidence=0.0, provider=provider)


# ── Conversation state ───────────────────────────────────────────
# One variant per pending action, discriminated by ``pending_action``.


class ConfirmIncomeState(BaseModel):
    pending_action: Literal["confirm_income"] = "confirm_income"
    amount: float
    type: IncomeType
    effective_date: date
    note: str | None = None


class ConfirmExpenseState(BaseModel):
    pending_action: Literal["confirm_expense"] = "confirm_expense"
    amount: float
    category: ExpenseCategory
    effective_date: date
    note: str | None = None


class ConfirmLoanState(BaseModel):
    pending_action: Literal["confirm_loan"] = "confirm_loan"
    draft: LoanDraft


class LoanFillMissingState(BaseModel):
    pending_action: Literal["loan_fill_missing"] = "loan_fill_missing"
    draft: LoanDraft
    missing: list[LoanField]
    cursor: int = 0

    @property
    def current_field(self) -> str | None:
        if self.cursor < len(self.missing):
            return self.missing[self.cursor]
        return None


class LoanEditSelectState(BaseModel):
    pending_action: Literal["loan_edit_select"] = "loan_edit_select"
    draft: LoanDraft


class LoanEditFieldState(BaseModel):
    pending_action: Literal["loan_edit_field"] = "loan_edit_field"
    draft: LoanDraft
    field: LoanField


class ConfirmPaymentState(BaseModel):
    pending_action: Literal["confirm_payment"] = "confirm_payment"
    loan_id: int
    platform: str
    installment_no: int
    total_installments: int
    amount: float
    late_fee: float = 0
    total_amount: float


class AwaitingOcrState(BaseModel):
    pending_action: Literal["confirm_ocr"] = "confirm_ocr"


SessionState = Annotated[
    Union[
        ConfirmIncomeState,
        ConfirmExpenseState,
        ConfirmLoanState,
        LoanFillMissingState,
        LoanEditSelectState,
        LoanEditFieldState,
        ConfirmPaymentState,
        AwaitingOcrState,
    ],
    Field(discriminator="pending_action"),
]

CONFIRMATION_ACTIONS = frozenset(
    {"confirm_income", "confirm_expense", "confirm_loan", "confirm_payment", "confirm_ocr"}
)
WIZARD_ACTIONS = frozenset({"loan_fill_missing", "loan_edit_select", "loan_edit_field"})


class ConversationRecord(BaseModel):
    state: SessionState
    expires_at: datetime


# ── Transport-neutral replies ────────────────────────────────────


class Button(BaseModel):
    text: str
    callback_data: str


class Reply(BaseModel):
    text: str
    buttons: list[list[Button]] = []
    # Replace the message whose button was pressed instead of sending a new one
    edit: bool = False


# ── HTTP API ─────────────────────────────────────────────────────


class ParseRequest(BaseModel):
    message: str
    today: date | None = None
    usage_count: int = 0
