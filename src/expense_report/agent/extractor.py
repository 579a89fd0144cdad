import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic_ai import Agent, BinaryContent

from expense_report.agent.prompt import BANK_PROMPT, CONTRACT_PROMPT, EXPENSE_PROMPT
from expense_report.config import settings
from expense_report.core.errors import ExtractionError, UnsupportedMediaTypeError
from expense_report.core.schema import (
    EXPENSE_CATEGORIES,
    BankDetails,
    BankExtraction,
    ContractExtraction,
    ExpenseExtraction,
    ImageFile,
    LineItem,
    PdfDocument,
    ReporterProfile,
    SourceFile,
)
from expense_report.processing.image import prepare_for_model

logger = logging.getLogger(__name__)


expense_agent = Agent(
    name="expense",
    output_type=ExpenseExtraction,
    system_prompt=EXPENSE_PROMPT.format(categories=", ".join(f"'{c}'" for c in EXPENSE_CATEGORIES)),
)

bank_agent = Agent(
    name="bank",
    output_type=BankExtraction,
    system_prompt=BANK_PROMPT,
)

contract_agent = Agent(
    name="contract",
    output_type=ContractExtraction,
    system_prompt=CONTRACT_PROMPT,
)


@dataclass
class ContractDetails:
    line_items: List[LineItem]
    recipient_email: Optional[str] = None
    profile: Optional[ReporterProfile] = None

    @property
    def found_anything(self) -> bool:
        return bool(self.line_items or self.recipient_email or self.profile)


@dataclass
class BatchExtraction:
    """Outcome of a multi-file upload. One bad file never hides the others' results."""
    line_items: List[LineItem] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)
    empty: List[str] = field(default_factory=list)


def to_binary_content(source: SourceFile) -> BinaryContent:
    if isinstance(source, ImageFile):
        data, media_type = prepare_for_model(source.data, source.name)
        return BinaryContent(data=data, media_type=media_type)
    if isinstance(source, PdfDocument):
        return BinaryContent(data=source.data, media_type=source.media_type)
    raise UnsupportedMediaTypeError(source.name, source.media_type)


async def _run(agent: Agent, instruction: str, source: SourceFile):
    try:
        content = to_binary_content(source)
    except UnsupportedMediaTypeError:
        raise
    except ValueError as e:
        raise ExtractionError("Could not read the file", source.name) from e
    logger.info("Running %s extraction on %s", agent.name, source.name)
    try:
        result = await agent.run([instruction, content], model=settings.openai.model)
    except Exception as e:
        logger.exception("Agent run failed for %s", source.name)
        raise ExtractionError("Could not analyse the document", source.name) from e
    return result.output


async def extract_expenses(source: SourceFile) -> List[LineItem]:
    """Reads every distinct receipt of a file. An empty list means nothing was found."""
    output: ExpenseExtraction = await _run(
        expense_agent,
        "Extract the details of each distinct receipt found in this document. "
        "A PDF may contain several receipts on different pages.",
        source,
    )
    items = [
        LineItem(
            occurred_on=expense.occurred_on,
            amount=Decimal(str(expense.amount)),
            category=expense.category,
            source=source,
        )
        for expense in output.expenses
    ]
    if items:
        logger.info("Extracted %d expense(s) from %s", len(items), source.name)
    else:
        logger.warning("No receipt found in %s", source.name)
    return items


async def extract_bank_details(source: SourceFile) -> BankDetails:
    output: BankExtraction = await _run(
        bank_agent,
        "Extract the IBAN and the BIC from this bank identity document (RIB).",
        source,
    )
    bank = BankDetails(iban=output.iban, bic=output.bic)
    if not bank.iban or not bank.bic:
        raise ExtractionError("IBAN or BIC not found in the document", source.name)
    logger.info("Extracted bank details from %s (valid=%s)", source.name, bank.is_valid)
    return bank


async def extract_contract(source: SourceFile, today: Optional[date] = None) -> ContractDetails:
    """Charges become line items dated today and bound to the contract file itself."""
    output: ContractExtraction = await _run(
        contract_agent,
        "Read this service contract. Extract the fees planned for the expertise with their amount, "
        "the email address the expense claim must be sent to, and the provider's title, last name, "
        "first name, RPPS number and professional email.",
        source,
    )
    today = today or date.today()
    line_items = [
        LineItem(
            occurred_on=today,
            amount=Decimal(str(charge.amount)),
            category=charge.category or "Expert fees",
            source=source,
        )
        for charge in output.predefined_charges
    ]

    profile = None
    if output.provider is not None:
        provider = output.provider.model_dump(exclude_none=True)
        if any(provider.values()):
            profile = ReporterProfile(**provider)

    details = ContractDetails(line_items=line_items, recipient_email=output.recipient_email or None, profile=profile)
    logger.info(
        "Contract %s: %d charge(s), recipient=%s, provider=%s",
        source.name, len(line_items), details.recipient_email, profile is not None,
    )
    return details


async def extract_expense_batch(sources: List[SourceFile]) -> BatchExtraction:
    """Processes files one after another; each failure is recorded under the file name."""
    batch = BatchExtraction()
    for source in sources:
        try:
            items = await extract_expenses(source)
        except (ExtractionError, UnsupportedMediaTypeError) as e:
            batch.failures[source.name] = str(e)
            continue
        if items:
            batch.line_items.extend(items)
        else:
            batch.empty.append(source.name)
    logger.info(
        "Batch of %d file(s): %d expense(s), %d failure(s), %d empty",
        len(sources), len(batch.line_items), len(batch.failures), len(batch.empty),
    )
    return batch
