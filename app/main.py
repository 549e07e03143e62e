import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import date

import pandas as pd
import plotly.express as px
import streamlit as st

from ledger.config import get_settings
from ledger.frames import report_frame, summary_frame, to_csv
from ledger.log import configure_logging
from ledger.seed import load_seed
from ledger.services import ReportService

settings = get_settings()
configure_logging(settings.log_level, settings.log_json)

st.set_page_config(page_title="Ledger Reports", layout="wide")


@st.cache_resource
def get_service(path: str) -> ReportService:
    return ReportService(load_seed(path), settings)


service = get_service(settings.seed_path)
snap = service.gateway.snapshot()
users = {u.name: u.id for u in snap.users}


def money(value) -> str:
    return f"${value:,.2f}"


def user_picker(label: str, allow_all: bool = True, key: str = None):
    options = (["All users"] if allow_all else []) + list(users)
    choice = st.sidebar.selectbox(label, options, key=key)
    return users.get(choice)


def month_picker():
    dates = [t.transaction_date for t in snap.transactions] or [date.today()]
    latest = max(dates)
    c1, c2 = st.columns(2)
    with c1:
        year = st.number_input("Year", min_value=1, max_value=9999, value=latest.year, step=1)
    with c2:
        month = st.selectbox("Month", list(range(1, 13)), index=latest.month - 1)
    return int(year), int(month)


menu = st.sidebar.radio(
    "Reports",
    ["📂 Monthly Spending", "💳 Account Balances", "💰 Budget Status", "📈 Income vs Expenses", "🏆 Top Categories"],
)

if menu == "📂 Monthly Spending":
    st.title("📂 Monthly Spending by Category")
    user_id = user_picker("User")
    year, month = month_picker()
    rows = service.monthly_spending_by_category(year, month, user_id)
    if rows:
        df = report_frame(rows)
        df["total_amount"] = df["total_amount"].astype(float)
        fig = px.bar(
            df,
            x="category_name",
            y="total_amount",
            color="category_type",
            labels={"category_name": "Category", "total_amount": "Total (USD)"},
            template="plotly_dark",
        )
        st.plotly_chart(fig, use_container_width=True)
        st.table(df.assign(total_amount=df["total_amount"].map(money)))
        st.download_button("⬇ Download CSV", to_csv(rows), file_name=f"spending_{year}_{month:02d}.csv")
    else:
        st.info("No transactions found for this period.")

elif menu == "💳 Account Balances":
    st.title("💳 Account Balance Summary")
    rows = service.account_balance_summary()
    if rows:
        df = report_frame(rows)
        df["total_balance"] = df["total_balance"].astype(float)
        fig = px.bar(
            df,
            x="user_name",
            y="total_balance",
            color="account_type",
            barmode="group",
            labels={"user_name": "User", "total_balance": "Balance (USD)"},
            template="plotly_dark",
        )
        st.plotly_chart(fig, use_container_width=True)
        st.table(df.assign(total_balance=df["total_balance"].map(money)))
    else:
        st.info("No accounts found.")

elif menu == "💰 Budget Status":
    st.title("💰 Budget Status")
    year, month = month_picker()
    rows = service.budget_status(year, month)
    if not rows:
        st.info("No monthly budgets defined.")
    for row in rows:
        label = f"{row.user_name} - {row.category_name}"
        status = "🔴 over budget" if row.is_over_budget else f"{money(row.remaining_amount)} remaining"
        st.metric(label, f"{money(row.spent_amount)} / {money(row.budget_amount)}", status, delta_color="off")
        st.progress(min(1.0, float(row.percent_used) / 100))
    if rows:
        df = report_frame(rows)
        df["percent_used"] = df["percent_used"].map(lambda p: f"{p:.1f}%")
        st.dataframe(df, use_container_width=True)

elif menu == "📈 Income vs Expenses":
    st.title("📈 Income vs Expenses")
    user_id = user_picker("User")
    dates = [t.transaction_date for t in snap.transactions] or [date.today()]
    date_range = st.date_input("Date Range", value=(min(dates), max(dates)))
    if len(date_range) == 2:
        summary = service.income_expense_summary(date_range[0], date_range[1], user_id)
        k1, k2, k3 = st.columns(3)
        with k1:
            st.metric("Income", money(summary.total_income))
        with k2:
            st.metric("Expenses", money(summary.total_expenses))
        with k3:
            st.metric("Net", money(summary.net_amount))
        df = summary_frame(summary).melt(var_name="measure", value_name="amount")
        df["amount"] = df["amount"].astype(float)
        fig = px.bar(df, x="measure", y="amount", template="plotly_dark")
        st.plotly_chart(fig, use_container_width=True)

elif menu == "🏆 Top Categories":
    st.title("🏆 Top Spending Categories")
    user_id = user_picker("User", allow_all=False, key="top_user")
    top_count = st.slider("How many", min_value=1, max_value=15, value=settings.default_top_count)
    rows = service.top_spending_categories(user_id, top_count)
    if rows:
        df = report_frame(rows)
        df["total_amount"] = df["total_amount"].astype(float)
        fig = px.pie(df, values="total_amount", names="category_name", title="Share of spending")
        st.plotly_chart(fig, use_container_width=True)
        st.table(pd.DataFrame({
            "Category": df["category_name"],
            "Total": df["total_amount"].map(money),
            "Transactions": df["transaction_count"],
        }))
    else:
        st.info("No expenses recorded for this user.")
