# report/composer.py
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional

from expense_report.config import settings
from expense_report.core.errors import PreconditionError
from expense_report.core.schema import LineItem, ReportRequest, SourceFile, same_source, source_identity
from expense_report.processing.rasterizer import rasterize
from expense_report.report.builder import DocumentBuilder, format_amount, report_filename

logger = logging.getLogger(__name__)

RECEIPTS_HEADING = "Receipts"
RECEIPT_LABEL = "Receipt"
CONTRACT_HEADING = "Appendix: Service Contract"
CONTRACT_LABEL = "Contract"
BANK_HEADING = "Appendix: Bank Details (RIB)"
BANK_LABEL = "RIB"


@dataclass(frozen=True)
class ReportArtifact:
    """The finished document, handed to whoever saves or downloads it."""
    filename: str
    title: str
    content: bytes
    page_count: int
    media_type: str = "application/pdf"

    def save(self, directory: Optional[Path] = None) -> Path:
        directory = Path(directory or settings.output_dir_path)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / self.filename
        path.write_bytes(self.content)
        logger.info("Saved %s (%d bytes)", path, len(self.content))
        return path


def check_preconditions(request: ReportRequest):
    """Raises PreconditionError when the request is incomplete. Nothing is drawn before this passes."""
    missing = []
    if not request.profile.is_valid:
        missing.append("the reporter profile")
    if not request.line_items:
        missing.append("at least one line item")
    if not request.bank.is_valid:
        missing.append("valid bank details")
    if missing:
        raise PreconditionError("Cannot compose the report, missing: " + ", ".join(missing))


def receipt_sources(line_items: Iterable[LineItem], contract: Optional[SourceFile] = None) -> List[SourceFile]:
    """Distinct source files of the line items, in first-seen order, minus the contract."""
    seen = set()
    sources = []
    for item in line_items:
        key = source_identity(item.source)
        if key in seen:
            continue
        seen.add(key)
        sources.append(item.source)
    return [source for source in sources if not same_source(source, contract)]


async def _render_files(builder: DocumentBuilder, heading: str, label: str, files: List[SourceFile]):
    builder.begin_section(heading)
    for source in files:
        for frame in await rasterize(source):
            builder.add_frame(frame, label)
    logger.info("Section '%s': %d file(s)", heading, len(files))


async def compose(request: ReportRequest, generated_on: Optional[date] = None) -> ReportArtifact:
    """Entry point: header, table and bank summary, then the receipts, contract and bank appendices.

    Any failure aborts the whole composition; no partial artifact is returned.
    """
    check_preconditions(request)
    generated_on = generated_on or date.today()
    title = request.kind.title
    logger.info("Composing %s: %d line item(s), total=%s", title, len(request.line_items),
                format_amount(request.total_amount))

    builder = DocumentBuilder(title, generated_on)
    builder.write_header(request.profile, request.recipient_email)
    builder.write_table(request.line_items, request.bank)

    receipts = receipt_sources(request.line_items, request.contract_file)
    if receipts:
        await _render_files(builder, RECEIPTS_HEADING, RECEIPT_LABEL, receipts)

    if request.contract_file is not None:
        await _render_files(builder, CONTRACT_HEADING, CONTRACT_LABEL, [request.contract_file])

    if request.bank_proof_file is not None:
        await _render_files(builder, BANK_HEADING, BANK_LABEL, [request.bank_proof_file])
    elif request.bank.is_valid:
        builder.begin_section(BANK_HEADING)
        builder.add_text_block([
            "Bank details provided:",
            f"IBAN: {request.bank.iban}",
            f"BIC: {request.bank.bic}",
        ])

    page_count = builder.page_count
    content = builder.finalize()
    return ReportArtifact(
        filename=report_filename(title, generated_on),
        title=title,
        content=content,
        page_count=page_count,
    )
