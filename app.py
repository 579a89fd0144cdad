# app.py
import asyncio
import logging

from dotenv import load_dotenv
import streamlit as st

load_dotenv()

from expense_report.agent.extractor import extract_bank_details, extract_contract, extract_expense_batch
from expense_report.core.errors import ReportError
from expense_report.core.schema import (
    EMAIL_PATTERN,
    EXPENSE_CATEGORIES,
    BankDetails,
    ReportKind,
    ReportRequest,
    ReporterProfile,
    make_source_file,
)
from expense_report.report.builder import format_amount
from expense_report.report.session import ReportSession
from expense_report.storage.profile_store import ProfileStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

st.set_page_config(page_title="Expense Claim", page_icon="🩺", layout="centered")

store = ProfileStore()
state = st.session_state

if "line_items" not in state:
    saved_profile, saved_bank = store.load()
    state.line_items = []
    state.sources = {}
    state.profile = saved_profile or ReporterProfile()
    state.bank = saved_bank or BankDetails()
    state.saved_bank = saved_bank
    state.remember_me = saved_profile is not None
    state.contract_file = None
    state.bank_file = None
    state.recipient_email = ""
    state.report_session = ReportSession()
    state.artifact = None


def to_source(uploaded):
    """Same upload, same SourceFile: reruns must not change a file's identity."""
    if uploaded.file_id not in state.sources:
        state.sources[uploaded.file_id] = make_source_file(uploaded.getvalue(), uploaded.name, uploaded.type)
    return state.sources[uploaded.file_id]


def missing_parts():
    missing = []
    if not state.profile.is_valid:
        missing.append("your profile")
    if not state.line_items:
        missing.append("at least one receipt")
    if not state.bank.is_valid:
        missing.append("your bank details (RIB)")
    return missing


st.title("🩺 Expense Claim Generator")
st.caption("Receipts in, one PDF out.")

# --- Step 1: Contract ---
st.header("Step 1: Add the contract (optional)")
contract_upload = st.file_uploader("Service contract", type=["pdf", "png", "jpg", "jpeg"], key="contract")
state.contract_file = to_source(contract_upload) if contract_upload else None

if state.contract_file is not None and st.button("Analyse contract"):
    with st.spinner("Reading the contract..."):
        try:
            details = asyncio.run(extract_contract(state.contract_file))
        except ReportError as e:
            st.error(str(e))
        else:
            if details.line_items:
                state.line_items.extend(details.line_items)
                st.success(f"{len(details.line_items)} fee(s) added from the contract.")
            if details.recipient_email:
                state.recipient_email = details.recipient_email
                st.info(f"Recipient email found: {details.recipient_email}")
            if details.profile is not None:
                state.profile = state.profile.merged_with(details.profile)
                st.info("Your profile was pre-filled from the contract.")
            if not details.found_anything:
                st.info("No usable information found in the contract.")

# --- Step 2: Profile ---
st.header("Step 2: Your profile")
with st.form("profile"):
    title = st.selectbox("Title", ["Dr.", "Pr."], index=1 if state.profile.title == "Pr." else 0)
    last_name = st.text_input("Last name", state.profile.last_name)
    first_name = st.text_input("First name", state.profile.first_name)
    registration_number = st.text_input("RPPS number", state.profile.registration_number)
    email = st.text_input("Email", state.profile.email)
    remember_me = st.checkbox("Remember me on this device", state.remember_me)
    if st.form_submit_button("Save profile"):
        state.profile = ReporterProfile(
            title=title, last_name=last_name, first_name=first_name,
            registration_number=registration_number, email=email,
        )
        state.remember_me = remember_me
        if not state.profile.is_valid:
            st.warning("Please fill every field with a valid email.")
        elif remember_me:
            store.save(state.profile, state.bank)
            state.saved_bank = state.bank
        else:
            store.clear()
            state.saved_bank = None

# --- Step 3: Receipts ---
st.header("Step 3: Add your receipts")
uploads = st.file_uploader("Tickets, invoices, receipts", type=["pdf", "png", "jpg", "jpeg"],
                           accept_multiple_files=True, key="receipts")
if uploads and st.button("Analyse receipts"):
    with st.spinner("Analysing documents..."):
        batch = asyncio.run(extract_expense_batch([to_source(u) for u in uploads]))
    state.line_items.extend(batch.line_items)
    if batch.line_items:
        st.success(f"{len(batch.line_items)} receipt(s) added.")
    for name in batch.empty:
        st.info(f"No receipt found in {name}.")
    for message in batch.failures.values():
        st.error(message)

# --- Step 4: Bank details ---
st.header("Step 4: Your bank details")
rib_upload = st.file_uploader("RIB (optional, appended to the report)", type=["pdf", "png", "jpg", "jpeg"], key="rib")
state.bank_file = to_source(rib_upload) if rib_upload else None
if state.bank_file is not None and st.button("Read RIB"):
    with st.spinner("Reading the RIB..."):
        try:
            state.bank = asyncio.run(extract_bank_details(state.bank_file))
        except ReportError as e:
            st.error(str(e))

iban = st.text_input("IBAN", state.bank.iban)
bic = st.text_input("BIC", state.bank.bic)
state.bank = BankDetails(iban=iban, bic=bic)
if state.bank.is_valid:
    st.success("Bank details recorded.")
    if state.remember_me and state.bank != state.saved_bank and store.save(state.profile, state.bank):
        state.saved_bank = state.bank

# --- Recap ---
st.header("Summary")
for item in list(state.line_items):
    cols = st.columns([2, 3, 2, 1])
    cols[0].write(item.occurred_on.strftime("%d/%m/%Y"))
    options = list(EXPENSE_CATEGORIES)
    if item.category not in options:
        options.append(item.category)
    category = cols[1].selectbox("Category", options, index=options.index(item.category),
                                 key=f"cat-{item.id}", label_visibility="collapsed")
    if category != item.category:
        index = state.line_items.index(item)
        state.line_items[index] = item.with_category(category)
    cols[2].write(f"{format_amount(item.amount)} €")
    if cols[3].button("✕", key=f"rm-{item.id}"):
        state.line_items.remove(item)
        st.rerun()

total = sum(item.amount for item in state.line_items)
st.metric("Total to reimburse", f"{format_amount(total)} €")

# --- Generate ---
kind = st.radio("Document", list(ReportKind), format_func=lambda k: k.title, horizontal=True)
recipient = st.text_input("Recipient email", state.recipient_email)

if st.button("Generate document", disabled=state.report_session.busy):
    missing = missing_parts()
    if missing:
        st.info("Please complete: " + ", ".join(missing) + " to generate the document.")
    elif not EMAIL_PATTERN.match(recipient.strip()):
        st.warning("Please enter a valid recipient email.")
    else:
        request = ReportRequest(
            line_items=state.line_items,
            bank=state.bank,
            profile=state.profile,
            kind=kind,
            recipient_email=recipient.strip(),
            contract_file=state.contract_file,
            bank_proof_file=state.bank_file,
        )
        with st.spinner("Generating the document..."):
            try:
                state.artifact = asyncio.run(state.report_session.generate(request, wait=False))
            except Exception as e:
                logger.error("Generation failed: %s", e, exc_info=True)
                state.artifact = None
                st.error(f"An error occurred: {e}")
            else:
                st.success("Document generated successfully!")

if state.artifact is not None:
    st.download_button("Download PDF", state.artifact.content, file_name=state.artifact.filename,
                       mime=state.artifact.media_type)
