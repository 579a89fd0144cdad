"""
Shared pytest fixtures — in-memory receipts (PNG / multi-page PDF), a complete profile and RIB.
"""
import io
from datetime import date, datetime
from decimal import Decimal

import pymupdf
import pytest
from PIL import Image
from pydantic_ai import models

from expense_report.core.schema import (
    BankDetails,
    LineItem,
    ReportKind,
    ReportRequest,
    ReporterProfile,
    make_source_file,
)

# Agents must never reach a real provider from the test suite.
models.ALLOW_MODEL_REQUESTS = False

MODIFIED = datetime(2026, 3, 1, 9, 30)
GENERATED_ON = date(2026, 10, 19)


def png_bytes(width=400, height=200, color="white") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def pdf_bytes(pages: int) -> bytes:
    doc = pymupdf.open()
    for i in range(1, pages + 1):
        page = doc.new_page(width=595, height=842)
        page.insert_text((72, 72), f"Receipt page {i}")
    data = doc.tobytes()
    doc.close()
    return data


def pdf_text(content: bytes) -> list:
    """Text of each page of a generated report."""
    with pymupdf.open(stream=content, filetype="pdf") as doc:
        return [page.get_text() for page in doc]


@pytest.fixture()
def image_source():
    return make_source_file(png_bytes(), "taxi.png", modified_at=MODIFIED)


@pytest.fixture()
def pdf_source():
    return make_source_file(pdf_bytes(2), "hotel.pdf", modified_at=MODIFIED)


@pytest.fixture()
def profile():
    return ReporterProfile(
        title="Dr.",
        last_name="Martin",
        first_name="Claire",
        registration_number="10101234567",
        email="claire.martin@example.fr",
    )


@pytest.fixture()
def bank():
    return BankDetails(iban="FR7630006000011234567890189", bic="AGRIFRPPXXX")


@pytest.fixture()
def make_item():
    def _make(source, amount="10.00", category="Meals", occurred_on=date(2026, 3, 2)):
        return LineItem(occurred_on=occurred_on, amount=Decimal(amount), category=category, source=source)
    return _make


@pytest.fixture()
def make_request(profile, bank):
    def _make(line_items, **kwargs):
        kwargs.setdefault("kind", ReportKind.EXPENSE_CLAIM)
        kwargs.setdefault("recipient_email", "expertise@insurer.example")
        return ReportRequest(line_items=line_items, bank=bank, profile=profile, **kwargs)
    return _make
