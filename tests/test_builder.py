"""
Unit tests for the document builder — forward-only states, amounts, table wrapping.
"""
import asyncio
from decimal import Decimal

import pytest
from PIL import Image

from conftest import GENERATED_ON, pdf_text
from expense_report.core.errors import BuilderStateError, PreconditionError, RasterizationError
from expense_report.processing.rasterizer import Frame, rasterize
from expense_report.report.builder import BuilderState, DocumentBuilder, format_amount, report_filename


@pytest.fixture()
def builder():
    return DocumentBuilder("Expense Claim", GENERATED_ON)


class TestFormatting:
    def test_amount_rounds_half_up(self):
        assert format_amount(Decimal("15.756")) == "15.76"
        assert format_amount(Decimal("0.005")) == "0.01"
        assert format_amount(Decimal("2.345")) == "2.35"

    def test_amount_always_has_two_decimals(self):
        assert format_amount(Decimal("12")) == "12.00"
        assert format_amount(3.5) == "3.50"

    def test_filename_uses_title_and_date(self):
        assert report_filename("Expense Claim", GENERATED_ON) == "Expense_Claim_19-10-2026.pdf"
        assert report_filename("Debit Note", GENERATED_ON) == "Debit_Note_19-10-2026.pdf"


class TestStateMachine:
    def test_table_before_header_is_refused(self, builder, make_item, image_source, bank):
        with pytest.raises(BuilderStateError):
            builder.write_table([make_item(image_source)], bank)

    def test_header_is_written_once(self, builder, profile):
        builder.write_header(profile, "a@b.fr")
        assert builder.state is BuilderState.TABLE
        with pytest.raises(BuilderStateError):
            builder.write_header(profile, "a@b.fr")

    def test_appendix_needs_table(self, builder, profile):
        builder.write_header(profile, "a@b.fr")
        with pytest.raises(BuilderStateError):
            builder.begin_section("Receipts")
        with pytest.raises(BuilderStateError):
            builder.finalize()

    def test_no_going_back_after_appendix(self, builder, profile, bank, make_item, image_source):
        builder.write_header(profile, "a@b.fr")
        builder.write_table([make_item(image_source)], bank)
        builder.begin_section("Receipts")
        with pytest.raises(BuilderStateError):
            builder.write_table([make_item(image_source)], bank)

    def test_nothing_after_finalize(self, builder, profile, bank, make_item, image_source):
        builder.write_header(profile, "a@b.fr")
        builder.write_table([make_item(image_source)], bank)
        content = builder.finalize()
        assert content.startswith(b"%PDF")
        assert builder.state is BuilderState.FINALIZED
        frame = asyncio.run(rasterize(image_source))[0]
        with pytest.raises(BuilderStateError):
            builder.add_frame(frame, "Receipt")
        with pytest.raises(BuilderStateError):
            builder.finalize()

    def test_empty_table_is_refused(self, builder, profile, bank):
        builder.write_header(profile, "a@b.fr")
        with pytest.raises(PreconditionError):
            builder.write_table([], bank)


class TestTable:
    def test_rows_keep_insertion_order(self, builder, profile, bank, make_item, image_source):
        items = [
            make_item(image_source, "30", category="Transport"),
            make_item(image_source, "10", category="Meals"),
            make_item(image_source, "20", category="Parking"),
        ]
        builder.write_header(profile, "a@b.fr")
        builder.write_table(items, bank)
        text = pdf_text(builder.finalize())[0]
        assert text.index("Transport") < text.index("Meals") < text.index("Parking")

    def test_long_table_wraps_with_a_single_total(self, builder, profile, bank, make_item, image_source):
        items = [make_item(image_source, "1.10", category=f"Item {i}") for i in range(60)]
        builder.write_header(profile, "a@b.fr")
        builder.write_table(items, bank)
        assert builder.page_count > 1
        pages = pdf_text(builder.finalize())
        text = "".join(pages)
        assert text.count("Total to reimburse") == 1
        assert "66.00" in text
        assert "Total to reimburse" in pages[-1]
        assert "Item 59" in pages[-1]
        assert "IBAN: FR7630006000011234567890189" in text

    def test_header_block(self, builder, profile, bank, make_item, image_source):
        builder.write_header(profile, "expertise@insurer.example")
        builder.write_table([make_item(image_source)], bank)
        text = pdf_text(builder.finalize())[0]
        assert "Expense Claim" in text
        assert "Generated on: 19/10/2026" in text
        assert "Dr. Claire Martin" in text
        assert "RPPS: 10101234567" in text
        assert "expertise@insurer.example" in text

    def test_frame_page_is_captioned(self, builder, profile, bank, make_item, image_source):
        builder.write_header(profile, "a@b.fr")
        builder.write_table([make_item(image_source)], bank)
        builder.begin_section("Receipts")
        for frame in asyncio.run(rasterize(image_source)):
            builder.add_frame(frame, "Receipt")
        pages = pdf_text(builder.finalize())
        assert len(pages) == 3
        assert "Receipts" in pages[1]
        assert "Receipt: taxi.png" in pages[2]

    def test_bank_block_moves_to_a_continuation_page(self, builder, profile, bank, make_item, image_source):
        """21 rows leave room for the total but not for the bank block."""
        items = [make_item(image_source, "1.10", category=f"Item {i}") for i in range(21)]
        builder.write_header(profile, "a@b.fr")
        builder.write_table(items, bank)
        pages = pdf_text(builder.finalize())
        assert len(pages) == 2
        assert "Total to reimburse" in pages[0]
        assert "IBAN:" not in pages[0]
        assert "IBAN: FR7630006000011234567890189" in pages[1]
        assert "BIC: AGRIFRPPXXX" in pages[1]

    def test_total_moves_with_the_bank_block(self, builder, profile, bank, make_item, image_source):
        items = [make_item(image_source, "1.10", category=f"Item {i}") for i in range(25)]
        builder.write_header(profile, "a@b.fr")
        builder.write_table(items, bank)
        pages = pdf_text(builder.finalize())
        assert "Item 24" in pages[0]
        assert "Total to reimburse" not in pages[0]
        assert "Total to reimburse" in pages[1]
        assert "IBAN:" in pages[1]


def test_unplaceable_frame_is_a_rasterization_error(builder, profile, bank, make_item, image_source):
    builder.write_header(profile, "a@b.fr")
    builder.write_table([make_item(image_source)], bank)
    builder.begin_section("Receipts")
    pages = builder.page_count
    with pytest.raises(RasterizationError):
        builder.add_frame(Frame(image=Image.new("RGB", (0, 0)), source_name="blank.png"), "Receipt")
    assert builder.page_count == pages
