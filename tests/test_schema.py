"""
Unit tests for the data model — source variants, structural identity, validity gates, totals.
"""
from datetime import datetime
from decimal import Decimal

from conftest import MODIFIED, pdf_bytes, png_bytes
from expense_report.core.schema import (
    BankDetails,
    ImageFile,
    PdfDocument,
    ReportKind,
    ReporterProfile,
    SourceFile,
    UNKNOWN_MODIFIED_AT,
    make_source_file,
    same_source,
)


class TestSourceFile:
    def test_variant_follows_media_type(self):
        assert isinstance(make_source_file(b"x", "a.png"), ImageFile)
        assert isinstance(make_source_file(b"x", "scan.jpeg"), ImageFile)
        assert isinstance(make_source_file(b"x", "b.pdf"), PdfDocument)
        assert isinstance(make_source_file(b"x", "b", media_type="application/pdf"), PdfDocument)

    def test_unknown_type_stays_plain(self):
        source = make_source_file(b"x", "notes.docx")
        assert type(source) is SourceFile

    def test_size_is_byte_length(self):
        assert make_source_file(b"12345", "a.png").size == 5

    def test_identity_is_structural(self):
        a = make_source_file(b"aaaa", "r.png", modified_at=MODIFIED)
        b = make_source_file(b"bbbb", "r.png", modified_at=MODIFIED)
        assert same_source(a, b)

    def test_identity_changes_with_modified_time(self):
        a = make_source_file(png_bytes(), "r.png", modified_at=MODIFIED)
        b = make_source_file(png_bytes(), "r.png", modified_at=datetime(2026, 3, 2))
        assert not same_source(a, b)

    def test_uploads_without_modified_time_match_on_name_and_size(self):
        """The same file uploaded twice through the browser is one source."""
        data = pdf_bytes(1)
        first = make_source_file(data, "contract.pdf")
        again = make_source_file(data, "contract.pdf")
        assert first.modified_at == UNKNOWN_MODIFIED_AT
        assert same_source(first, again)

    def test_none_never_matches(self):
        assert not same_source(make_source_file(b"x", "a.png"), None)


class TestBankDetails:
    def test_normalizes_spaces_dashes_and_case(self):
        bank = BankDetails(iban="fr76 3000-6000 0112", bic=" agri frpp xxx ")
        assert bank.iban == "FR76300060000112"
        assert bank.bic == "AGRIFRPPXXX"

    def test_length_gate(self):
        assert BankDetails(iban="F" * 15, bic="B" * 8).is_valid
        assert not BankDetails(iban="F" * 14, bic="B" * 8).is_valid
        assert not BankDetails(iban="F" * 15, bic="B" * 7).is_valid

    def test_no_checksum_validation(self):
        assert BankDetails(iban="XX00000000000000", bic="ZZZZZZZZ").is_valid


class TestReporterProfile:
    def test_complete_profile_is_valid(self, profile):
        assert profile.is_valid
        assert profile.full_name == "Dr. Claire Martin"

    def test_missing_field_is_invalid(self, profile):
        assert not profile.model_copy(update={"registration_number": ""}).is_valid

    def test_bad_email_is_invalid(self, profile):
        assert not profile.model_copy(update={"email": "claire.martin@example"}).is_valid

    def test_merge_keeps_existing_values(self):
        current = ReporterProfile(last_name="Martin")
        extracted = ReporterProfile(last_name="Durand", first_name="Claire", email="c@d.fr")
        merged = current.merged_with(extracted)
        assert merged.last_name == "Martin"
        assert merged.first_name == "Claire"
        assert merged.title == "Dr."


class TestReportRequest:
    def test_total_is_recomputed(self, make_request, make_item, image_source):
        request = make_request([make_item(image_source, "12.5"), make_item(image_source, "3.256")])
        assert request.total_amount == Decimal("15.756")
        request.line_items.append(make_item(image_source, "1"))
        assert request.total_amount == Decimal("16.756")

    def test_category_change_keeps_identity(self, make_item, image_source):
        item = make_item(image_source, category="Meals")
        changed = item.with_category("Parking")
        assert changed.id == item.id
        assert changed.category == "Parking"
        assert item.category == "Meals"

    def test_report_titles(self):
        assert ReportKind("expense-claim").title == "Expense Claim"
        assert ReportKind.DEBIT_NOTE.title == "Debit Note"
