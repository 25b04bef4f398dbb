"""
Streamlit Frontend for Finance Tracker

A thin view over the ledger components. Every write goes through
LedgerService; this module only collects input and renders results.

Pages:
1. Add Transaction - validated entry form
2. Transactions - regex search with highlighted matches, edit, delete
3. Dashboard - totals, budget status, category and daily breakdowns
4. Settings - ledger preferences, export, import, clear
"""

import json
from datetime import date

import streamlit as st

from finance_tracker.audit import configure_logging
from finance_tracker.config import get_settings
from finance_tracker.models import BudgetState, SortField, SortOrder
from finance_tracker.orchestrator import LedgerComponents, create_app_components


# Page configuration
st.set_page_config(
    page_title="Finance Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    mark {
        background-color: #fff3a3;
        padding: 0 2px;
        border-radius: 2px;
    }
    .txn-row {
        padding: 8px 0;
        border-bottom: 1px solid #eee;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def get_components() -> LedgerComponents:
    """Get or create application components (cached)."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return create_app_components(settings)


def show_errors(outcome) -> None:
    """Render a failed outcome, one line per field."""
    if outcome.errors:
        for issue in outcome.errors:
            st.error(f"{issue.field.capitalize()}: {issue.message}")
    else:
        st.error(outcome.message)


def main():
    """Main application entry point."""
    components = get_components()

    st.sidebar.title("💰 Finance Tracker")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["➕ Add Transaction", "📋 Transactions", "📊 Dashboard", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    info = components.store.storage_info()
    st.sidebar.caption(
        f"{info['transactions_count']} transactions · {info['formatted_size']} stored"
    )

    if page == "➕ Add Transaction":
        render_add_page(components)
    elif page == "📋 Transactions":
        render_transactions_page(components)
    elif page == "📊 Dashboard":
        render_dashboard_page(components)
    elif page == "⚙️ Settings":
        render_settings_page(components)


def render_add_page(components: LedgerComponents):
    """Render the add-transaction form."""
    st.title("➕ Add Transaction")

    with st.form("add_transaction", clear_on_submit=True):
        description = st.text_input("Description", placeholder="Lunch at cafe")
        col1, col2 = st.columns(2)
        with col1:
            amount = st.text_input("Amount", placeholder="12.50")
            category = st.text_input("Category", placeholder="Food")
        with col2:
            day = st.date_input("Date", value=date.today())
            payment_method = st.text_input("Payment method (optional)")

        submitted = st.form_submit_button("Save Transaction")

    if submitted:
        outcome = components.service.record_transaction({
            "description": description,
            "amount": amount,
            "category": category,
            "date": day.isoformat(),
            "payment_method": payment_method,
        })
        if outcome.success:
            st.success(outcome.message)
        else:
            show_errors(outcome)


def render_transactions_page(components: LedgerComponents):
    """Render the searchable transaction list."""
    st.title("📋 Transactions")

    col1, col2, col3 = st.columns([3, 1, 1])
    with col1:
        pattern = st.text_input("Search (regular expression)", placeholder="coffee|tea")
    with col2:
        sort_field = st.selectbox(
            "Sort by",
            options=list(SortField),
            format_func=lambda x: x.value.title(),
        )
    with col3:
        sort_order = st.selectbox(
            "Order",
            options=list(SortOrder),
            index=1,
            format_func=lambda x: "Ascending" if x == SortOrder.ASC else "Descending",
        )
    case_sensitive = st.checkbox("Case sensitive", value=False)

    result = components.search.search(pattern, case_sensitive=case_sensitive)
    if result.error:
        st.warning(result.error)

    matching_ids = {t.id for t in result.transactions}
    transactions = [
        t for t in components.queries.sort_transactions(sort_field, sort_order)
        if t.id in matching_ids
    ]

    if not transactions:
        st.info("No transactions to show. Use 'Add Transaction' to record one.")
        return

    st.caption(f"Showing {len(transactions)} transactions")

    for transaction in transactions:
        row = st.columns([4, 2, 2, 2, 1])
        row[0].markdown(result.highlight(transaction.description), unsafe_allow_html=True)
        row[1].markdown(result.highlight(str(transaction.amount)), unsafe_allow_html=True)
        row[2].markdown(result.highlight(transaction.category), unsafe_allow_html=True)
        row[3].markdown(result.highlight(transaction.date.isoformat()), unsafe_allow_html=True)
        if row[4].button("🗑️", key=f"delete_{transaction.id}"):
            outcome = components.service.delete_transaction(transaction.id)
            if outcome.success:
                st.rerun()
            else:
                st.error(outcome.message)

        with st.expander("Edit", expanded=False):
            with st.form(f"edit_{transaction.id}"):
                description = st.text_input("Description", value=transaction.description)
                amount = st.text_input("Amount", value=str(transaction.amount))
                category = st.text_input("Category", value=transaction.category)
                day = st.date_input("Date", value=transaction.date)
                if st.form_submit_button("Update"):
                    outcome = components.service.edit_transaction(transaction.id, {
                        "description": description,
                        "amount": amount,
                        "category": category,
                        "date": day.isoformat(),
                    })
                    if outcome.success:
                        st.success(outcome.message)
                        st.rerun()
                    else:
                        show_errors(outcome)


def render_dashboard_page(components: LedgerComponents):
    """Render totals and breakdowns."""
    st.title("📊 Dashboard")

    queries = components.queries
    settings = components.store.load_settings()
    metrics = queries.dashboard_metrics()

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total spent", f"{metrics.total:,.2f} {settings.base_currency}")
    col2.metric("Last 7 days", f"{metrics.week_total:,.2f}")
    col3.metric("Transactions", metrics.count)
    col4.metric("Average", f"{metrics.average:,.2f}")

    st.markdown("### Budget")
    budget = queries.budget_status()
    st.progress(min(budget.percentage, 100.0) / 100.0)
    message = (
        f"{budget.spent:,.2f} of {budget.budget:,.2f} spent "
        f"({budget.percentage:.1f}%), {budget.remaining:,.2f} remaining"
    )
    if budget.state == BudgetState.OVER:
        st.error(f"Over budget: {message}")
    elif budget.state in (BudgetState.WARNING, BudgetState.REACHED):
        st.warning(message)
    else:
        st.success(message)

    conversion = queries.currency_conversion()
    st.caption(f"≈ ${conversion.usd:,.2f} · €{conversion.eur:,.2f}")

    col1, col2 = st.columns(2)
    with col1:
        st.markdown("### By category")
        by_category = queries.spending_by_category()
        if by_category:
            st.bar_chart({name: float(total) for name, total in by_category.items()})
        else:
            st.info("No spending recorded yet.")
    with col2:
        st.markdown("### Last 7 days")
        daily = queries.spending_for_last_days(7)
        st.bar_chart({day: float(total) for day, total in daily.items()})

    st.markdown("### Monthly totals")
    for month in queries.monthly_totals().values():
        st.write(f"**{month.name}**: {month.total:,.2f} {settings.base_currency}")


def render_settings_page(components: LedgerComponents):
    """Render preferences and data management."""
    st.title("⚙️ Settings")

    settings = components.store.load_settings()

    with st.form("settings"):
        base_currency = st.text_input("Base currency", value=settings.base_currency)
        col1, col2 = st.columns(2)
        with col1:
            usd_rate = st.number_input("Units per USD", value=float(settings.usd_rate), min_value=0.0)
        with col2:
            eur_rate = st.number_input("Units per EUR", value=float(settings.eur_rate), min_value=0.0)
        monthly_budget = st.number_input(
            "Monthly budget",
            value=float(settings.monthly_budget),
            min_value=0.0,
        )
        if st.form_submit_button("Save Settings"):
            outcome = components.service.save_settings({
                "base_currency": base_currency,
                "usd_rate": usd_rate,
                "eur_rate": eur_rate,
                "monthly_budget": monthly_budget,
            })
            if outcome.success:
                st.success(outcome.message)
            else:
                show_errors(outcome)

    st.markdown("---")
    st.markdown("### Data")

    st.download_button(
        "⬇️ Export backup",
        data=components.snapshots.export_json(),
        file_name=components.snapshots.export_filename(),
        mime="application/json",
    )

    uploaded = st.file_uploader("Import backup", type=["json"])
    merge = st.checkbox("Merge with existing transactions", value=False)
    if uploaded is not None and st.button("Import"):
        try:
            doc = json.loads(uploaded.getvalue().decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            st.error(f"Invalid JSON file: {e}")
        else:
            result = components.service.import_snapshot(doc, "merge" if merge else "replace")
            if result.success:
                st.success(result.message)
            else:
                st.error(result.message)

    st.markdown("---")
    confirm = st.checkbox("I understand this deletes every transaction")
    if st.button("Clear all data", disabled=not confirm):
        outcome = components.service.clear_transactions()
        if outcome.success:
            st.success(outcome.message)
        else:
            st.error(outcome.message)


if __name__ == "__main__":
    main()
