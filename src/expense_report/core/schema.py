# core/schema.py
import mimetypes
import re
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Recommended labels offered to the user. Any free-form category is accepted.
EXPENSE_CATEGORIES = (
    "Transport",
    "Accommodation",
    "Meals",
    "Conference fees",
    "Tolls",
    "Fuel",
    "Parking",
    "Expert fees",
    "Other",
)

PDF_MEDIA_TYPE = "application/pdf"
# Stand-in last-modified time for files whose real one is unknown (browser uploads).
UNKNOWN_MODIFIED_AT = datetime(1970, 1, 1)
EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")


class SourceFile(BaseModel):
    """
    An uploaded file as handed over by the UI.
    Use make_source_file() so the right variant (ImageFile / PdfDocument) is picked.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    media_type: str
    data: bytes = Field(..., repr=False)
    modified_at: datetime = UNKNOWN_MODIFIED_AT

    @property
    def size(self) -> int:
        return len(self.data)


class ImageFile(SourceFile):
    """A single-frame picture (image/*)."""


class PdfDocument(SourceFile):
    """A paginated document rendered page by page."""


def make_source_file(data: bytes, name: str, media_type: Optional[str] = None,
                     modified_at: Optional[datetime] = None) -> SourceFile:
    """Builds the SourceFile variant matching the media type (guessed from the name if missing)."""
    if not media_type:
        media_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
    kwargs = {"name": name, "media_type": media_type, "data": data}
    if modified_at is not None:
        kwargs["modified_at"] = modified_at

    if media_type.startswith("image/"):
        return ImageFile(**kwargs)
    if media_type == PDF_MEDIA_TYPE:
        return PdfDocument(**kwargs)
    return SourceFile(**kwargs)


def source_identity(source: SourceFile) -> Tuple[str, int, datetime]:
    """Surrogate identity used for deduplication: (name, byte length, last-modified)."""
    return (source.name, source.size, source.modified_at)


def same_source(a: Optional[SourceFile], b: Optional[SourceFile]) -> bool:
    if a is None or b is None:
        return False
    return source_identity(a) == source_identity(b)


class LineItem(BaseModel):
    """One expense row of the report, bound to the file it was read from."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    occurred_on: date
    amount: Decimal = Field(..., ge=0, description="Amount in currency units")
    category: str
    source: SourceFile

    def with_category(self, category: str) -> "LineItem":
        return self.model_copy(update={"category": category})


class BankDetails(BaseModel):
    iban: str = ""
    bic: str = ""

    @field_validator("iban", "bic", mode="before")
    def normalize_code(cls, v):
        if v is None:
            return ""
        return re.sub(r"[\s-]+", "", str(v)).upper()

    @property
    def is_valid(self) -> bool:
        # Length gate only, no checksum or country validation.
        return len(self.iban) > 14 and len(self.bic) > 7


class ReporterProfile(BaseModel):
    title: str = ""
    last_name: str = ""
    first_name: str = ""
    registration_number: str = Field("", description="RPPS number")
    email: str = ""

    @field_validator("title", "last_name", "first_name", "registration_number", "email", mode="before")
    def strip_text(cls, v):
        return "" if v is None else str(v).strip()

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.title, self.first_name, self.last_name) if part)

    @property
    def is_valid(self) -> bool:
        required = (self.title, self.last_name, self.first_name, self.registration_number, self.email)
        return all(required) and bool(EMAIL_PATTERN.match(self.email))

    def merged_with(self, other: "ReporterProfile") -> "ReporterProfile":
        """Fills the blanks of this profile from another one. Existing values win."""
        return ReporterProfile(
            title=self.title or other.title or "Dr.",
            last_name=self.last_name or other.last_name,
            first_name=self.first_name or other.first_name,
            registration_number=self.registration_number or other.registration_number,
            email=self.email or other.email,
        )


# -- EXTRACTION OUTPUTS (what the agents return, before binding to files) --

class ExtractedExpense(BaseModel):
    occurred_on: date = Field(..., description="Date of the expense, YYYY-MM-DD")
    amount: float = Field(..., ge=0, description="Total amount paid, e.g. 12.50")
    category: str = Field(..., description="One of the recommended expense categories")


class ExpenseExtraction(BaseModel):
    expenses: List[ExtractedExpense] = Field(default_factory=list)


class BankExtraction(BaseModel):
    iban: str = Field("", description="IBAN without spaces or dashes")
    bic: str = Field("", description="BIC / SWIFT code without spaces or dashes")


class PredefinedCharge(BaseModel):
    amount: float = Field(..., ge=0)
    category: str = Field("Expert fees", description="Short description of the fee")


class ProviderInfo(BaseModel):
    title: Optional[str] = Field(None, description="Dr. or Pr.")
    last_name: Optional[str] = None
    first_name: Optional[str] = None
    registration_number: Optional[str] = Field(None, description="RPPS number")
    email: Optional[str] = None


class ContractExtraction(BaseModel):
    predefined_charges: List[PredefinedCharge] = Field(default_factory=list)
    recipient_email: Optional[str] = Field(None, description="Where the expense claim must be sent")
    provider: Optional[ProviderInfo] = None


class ReportKind(str, Enum):
    EXPENSE_CLAIM = "expense-claim"
    DEBIT_NOTE = "debit-note"

    @property
    def title(self) -> str:
        return "Expense Claim" if self is ReportKind.EXPENSE_CLAIM else "Debit Note"


class ReportRequest(BaseModel):
    """Everything needed for one generation attempt. Built fresh, never persisted."""
    line_items: List[LineItem]
    bank: BankDetails
    profile: ReporterProfile
    kind: ReportKind = ReportKind.EXPENSE_CLAIM
    recipient_email: str = ""
    contract_file: Optional[SourceFile] = None
    bank_proof_file: Optional[SourceFile] = None

    @property
    def total_amount(self) -> Decimal:
        return sum((item.amount for item in self.line_items), Decimal("0"))
