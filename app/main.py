"""
Streamlit Frontend for CashFlow Ledger

One page: record who paid whom, see who owes what, export and ask for
an AI summary.

DESIGN PRINCIPLES:
1. The page only talks to LedgerSession, never to the store
2. All session calls run on one background event loop, so the poller,
   the delayed reconcile pull and user actions share a single writer
3. Sync problems show as a short-lived status, never as a crash
"""

import asyncio
import threading
from datetime import date

import streamlit as st

from cashflow.config import get_settings, validate_all_settings
from cashflow.models.ledger import (
    PaymentMethod,
    SyncPhase,
    SyncStatus,
    TransactionDraft,
    TransactionKind,
)
from cashflow.orchestrator import LedgerSession, create_app_components
from cashflow.queries import ReportFilter


# Page configuration
st.set_page_config(
    page_title="CashFlow Pro",
    page_icon="💸",
    layout="wide",
)

KIND_LABELS = {
    TransactionKind.CREDIT: "Credit (they owe the payer)",
    TransactionKind.DEBIT: "Debit (payer settles a debt)",
}

TRANSACTION_FORM_KEYS = ("tx_sender", "tx_recipient", "tx_amount", "tx_kind", "tx_method", "tx_note")
FORM_RESET_FLAG = "tx_form_reset"


class LoopRunner:
    """A daemon thread running one asyncio loop for the whole app."""

    def __init__(self):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self.loop.run_forever,
            name="cashflow-loop",
            daemon=True,
        )
        self._thread.start()

    def run(self, coro, timeout: float = 60.0):
        """Run a coroutine on the loop and wait for its result."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def call(self, fn, *args):
        """Run a plain function on the loop thread."""
        async def invoke():
            return fn(*args)
        return self.run(invoke())


@st.cache_resource
def get_session() -> tuple[LoopRunner, LedgerSession]:
    """Get or create the ledger session (cached across reruns)."""
    runner = LoopRunner()
    session = create_app_components(use_storage=True)
    runner.run(session.start())
    return runner, session


def main():
    """Main application entry point."""
    runner, session = get_session()

    render_header(runner, session)

    with st.sidebar:
        render_party_form(runner, session)
        st.markdown("---")
        render_transaction_form(runner, session)
        st.markdown("---")
        render_settings()

    render_ledger(runner, session)
    render_insights(runner, session)


def render_header(runner: LoopRunner, session: LedgerSession):
    """Title, API-key banner, sync status and refresh."""
    if not session.insights_available:
        st.warning(
            "⚠️ GEMINI_API_KEY is missing. AI insights will not work. "
            "Set it in the environment or .env file and restart."
        )

    col_title, col_status, col_refresh = st.columns([4, 2, 1])
    with col_title:
        st.title("💸 CashFlow Pro")

    sync = session.sync
    with col_status:
        if sync is not None:
            if sync.status == SyncStatus.SUCCESS:
                st.success("✅ Synced")
            elif sync.status == SyncStatus.ERROR:
                st.error("❌ Sync failed")
            elif sync.phase in (SyncPhase.FETCHING, SyncPhase.PUSHING):
                st.info("🔄 Syncing...")
            if sync.last_updated:
                st.caption(f"Updated: {sync.last_updated.astimezone():%H:%M:%S}")

    with col_refresh:
        disabled = sync is None or not sync.is_configured
        if st.button("🔄 Refresh", disabled=disabled):
            with st.spinner("Fetching from sheet..."):
                runner.run(session.refresh())
            st.rerun()


def render_party_form(runner: LoopRunner, session: LedgerSession):
    """Sidebar form to add a party."""
    st.subheader("👤 Add Party")
    with st.form("add_party", clear_on_submit=True):
        name = st.text_input("Name", placeholder="e.g., Rahul")
        if st.form_submit_button("Add Party") and name:
            party = runner.call(session.add_party, name)
            if party is None:
                st.info(f"'{name}' already exists or is too long.")
            else:
                st.rerun()


def render_transaction_form(runner: LoopRunner, session: LedgerSession):
    """
    Sidebar form to record a transaction.

    Fields are cleared only after an accepted submission; a rejected one
    leaves the input as typed.
    """
    st.subheader("➕ New Transaction")
    names = [party.name for party in session.parties]

    # Widget state can only be reset before the widgets are created
    if st.session_state.pop(FORM_RESET_FLAG, False):
        for key in TRANSACTION_FORM_KEYS:
            st.session_state.pop(key, None)

    with st.form("add_transaction", clear_on_submit=False):
        if names:
            sender = st.selectbox("From", options=names, key="tx_sender")
        else:
            sender = st.text_input("From", key="tx_sender")
        recipient = st.text_input(
            "To",
            placeholder="Existing or new party",
            help="A new name is added as a party automatically",
            key="tx_recipient",
        )
        amount = st.text_input("Amount", placeholder="0.00", key="tx_amount")
        kind = st.radio(
            "Type",
            options=list(TransactionKind),
            format_func=lambda k: KIND_LABELS[k],
            key="tx_kind",
        )
        method = st.selectbox(
            "Payment Method",
            options=list(PaymentMethod),
            index=list(PaymentMethod).index(PaymentMethod.GENERAL),
            format_func=lambda m: m.value.title(),
            key="tx_method",
        )
        note = st.text_input("Note", key="tx_note")

        if st.form_submit_button("Record", type="primary"):
            draft = TransactionDraft(
                sender=sender or "",
                recipient=recipient,
                amount=amount,
                kind=kind,
                method=method,
                note=note,
            )
            transaction = runner.run(session.submit_transaction(draft))
            if transaction is not None:
                st.session_state[FORM_RESET_FLAG] = True
                st.rerun()


def render_settings():
    """Connection status for the configured services."""
    with st.expander("⚙️ Connection Status"):
        status = validate_all_settings()
        for label, key in [("Remote sheet", "remote_sync"), ("Gemini (AI)", "gemini")]:
            if status.get(key, False):
                st.success(f"✅ {label}")
            else:
                st.error(f"❌ {label} - {status.get(f'{key}_error', 'Not configured')}")


@st.fragment(run_every=get_settings().ledger.poll_interval_seconds)
def render_ledger(runner: LoopRunner, session: LedgerSession):
    """Balances, filters, transaction table and export. Re-renders on the poll period."""
    st.subheader("📊 Balances")
    balances = session.sorted_balances()
    if balances:
        cols = st.columns(min(len(balances), 4))
        for idx, (name, balance) in enumerate(balances):
            with cols[idx % len(cols)]:
                st.metric(name, f"₹{balance:,.2f}")
        st.bar_chart(
            {"Party": [name for name, _ in balances],
             "Balance": [float(balance) for _, balance in balances]},
            x="Party",
            y="Balance",
        )

    st.subheader("📒 Transactions")
    col1, col2, col3 = st.columns(3)
    with col1:
        name_filter = st.text_input("Filter by name")
    with col2:
        start_date = st.date_input("From date", value=None)
    with col3:
        end_date = st.date_input("To date", value=None)

    report_filter = ReportFilter(name=name_filter, start_date=start_date, end_date=end_date)
    rows = session.view(report_filter)

    if not rows:
        st.info("No transactions match.")
        return

    st.dataframe(
        [
            {
                "Date": f"{tx.date.astimezone():%Y-%m-%d %H:%M}",
                "From": tx.sender,
                "To": tx.recipient,
                "Type": tx.kind.value,
                "Amount": float(tx.amount),
                "Method": tx.method.value,
                "Note": tx.note,
            }
            for tx in rows
        ],
        use_container_width=True,
        hide_index=True,
    )

    col_export, col_delete = st.columns(2)
    with col_export:
        exported = session.export(report_filter, today=date.today())
        if exported is not None:
            filename, content = exported
            st.download_button(
                "⬇️ Download CSV",
                data=content,
                file_name=filename,
                mime="text/csv",
            )
    with col_delete:
        options = {f"{tx.date.astimezone():%Y-%m-%d} {tx.sender} → {tx.recipient} {tx.amount}": tx.id for tx in rows}
        choice = st.selectbox("Delete transaction", options=[""] + list(options))
        if choice and st.button("🗑️ Delete"):
            runner.call(session.delete_transaction, options[choice])
            st.rerun()


def render_insights(runner: LoopRunner, session: LedgerSession):
    """AI summary on demand."""
    st.subheader("✨ AI Insights")
    if st.button("Generate Insights", disabled=not session.insights_available):
        with st.spinner("Analyzing..."):
            st.session_state.insights = runner.run(session.generate_insights())

    report = st.session_state.get("insights")
    if report is not None:
        st.markdown(f"**Summary:** {report.summary}")
        st.markdown(f"**Advice:** {report.advice}")
        st.caption(f"Total volume: ₹{report.total_volume:,.2f}")
    elif "insights" in st.session_state:
        st.info("No insight available.")


if __name__ == "__main__":
    main()
