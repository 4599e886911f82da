import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
from datetime import date

import streamlit as st
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from budgetsync.analytics import (
    calculate_budget_analysis,
    calculate_category_analysis,
    calculate_spending_pattern,
    category_daily_allowance,
    generate_budget_recommendations,
)
from budgetsync.comparison import comparison_available, compare_months, default_compare_month
from budgetsync.config import configure_logging, load_settings
from budgetsync.domain import DAY_CALCULATION_TYPES
from budgetsync.errors import BudgetSyncError, PersistenceFailure
from budgetsync.events import register_default_handlers, event_bus
from budgetsync.identity import temporary_user_id
from budgetsync.periods import day_type_label, days_in_month, month_key, remaining_days_by_type, shift_month
from budgetsync.projects import delete_project, list_projects, new_project, remember_selection, save_project
from budgetsync.sharing import generate_share_token, share_project, share_url, unshare_project
from budgetsync.storage import InMemoryRemoteStore, JsonFileCache
from budgetsync.store import MonthlyDataStore
from budgetsync.sync import ProjectSync

settings = load_settings()
configure_logging(settings.log_level)

st.set_page_config(page_title="Budget Tracker", layout="wide")

if "remote" not in st.session_state:
    st.session_state.remote = InMemoryRemoteStore()
    register_default_handlers(event_bus)
if "cache" not in st.session_state:
    st.session_state.cache = JsonFileCache(settings.cache_file)

remote = st.session_state.remote
cache = st.session_state.cache
user_id = temporary_user_id(cache)
today = date.today()


def yen(amount) -> str:
    return f"¥{amount:,.0f}"


async def _open(store: MonthlyDataStore) -> ProjectSync:
    sync = ProjectSync(store, remote, cache, online=remote.online)
    await sync.start()
    await sync.stop()
    return sync


async def _persist(store: MonthlyDataStore, last_persisted) -> ProjectSync:
    sync = ProjectSync(store, remote, cache, online=remote.online, last_persisted=last_persisted)
    await sync.start(load=False)
    sync.request_save()
    await sync.stop()
    return sync


def remember_sync(sync: ProjectSync) -> None:
    st.session_state.sync_status = sync.status
    st.session_state.last_persisted = sync.last_persisted


def persist() -> None:
    remember_sync(asyncio.run(_persist(st.session_state.store, st.session_state.get("last_persisted"))))


# --- sidebar: projects

st.sidebar.markdown("### 📁 Projects")
projects = asyncio.run(list_projects(remote, cache, user_id))
names = [p.name for p in projects]

with st.sidebar.expander("New project", expanded=not projects):
    new_name = st.text_input("Name", key="new_project_name")
    new_desc = st.text_input("Description", key="new_project_desc")
    if st.button("Create", key="btn_create_project"):
        try:
            created = asyncio.run(save_project(remote, cache, new_project(new_name, user_id, new_desc)))
            remember_selection(cache, created.id)
            st.rerun()
        except ValueError as e:
            st.sidebar.error(str(e))
        except PersistenceFailure as e:
            st.sidebar.warning(f"Saved locally only: {e}")

if not projects:
    st.title("💰 Budget Tracker")
    st.info("Create a project in the sidebar to start tracking your budget.")
    st.stop()

selected_name = st.sidebar.selectbox("Project", names)
project = projects[names.index(selected_name)]
remember_selection(cache, project.id)

if st.session_state.get("store_project") != project.id:
    st.session_state.store = MonthlyDataStore(project.id, current_month=month_key(today))
    remember_sync(asyncio.run(_open(st.session_state.store)))
    st.session_state.store_project = project.id

store: MonthlyDataStore = st.session_state.store

online = st.sidebar.toggle("Online", value=remote.online)
if online != remote.online:
    remote.online = online
    persist()
st.sidebar.caption(f"Sync: {st.session_state.get('sync_status', 'synced')}")

# --- month selector

months = sorted(set(store.available_months()) | {month_key(today), store.current_month})
month = st.sidebar.selectbox("Month", months, index=months.index(store.current_month))
c_prev, c_next = st.sidebar.columns(2)
if c_prev.button("◀ Previous"):
    month = shift_month(month, -1)
if c_next.button("Next ▶"):
    month = shift_month(month, 1)
if month != store.current_month or month not in store:
    store.select_month(month)
    persist()

data = store.current()
categories, expenses = data.categories, data.expenses

# reference date for analytics: today inside the current month, else month end
ref_year, ref_month = int(month[:4]), int(month[5:7])
ref = today if month_key(today) == month else date(ref_year, ref_month, days_in_month(ref_year, ref_month))

menu = st.sidebar.radio("Menu", ["🏠 Dashboard", "🧾 Expenses", "📊 Insights", "📈 Comparison", "🔗 Share"])

if menu == "🏠 Dashboard":
    st.title(f"🏠 {project.name} · {month}")
    analysis = calculate_budget_analysis(categories, expenses, ref)
    k1, k2, k3, k4 = st.columns(4)
    k1.metric("Total budget", yen(analysis.total_budget))
    k2.metric("Spent", yen(analysis.total_spent), f"{analysis.burn_rate:.1f}%")
    k3.metric("Remaining", yen(analysis.total_remaining))
    k4.metric("Per day", yen(round(analysis.daily_average)))
    if analysis.projected_end_date:
        st.caption(f"At the current pace the budget runs out on {analysis.projected_end_date}.")

    for alert in store.alerts[-3:]:
        st.warning(alert["alert"])

    st.subheader("Categories")
    for cat in categories:
        left, mid, right = st.columns([3, 2, 1])
        left.write(f"{cat.icon} **{cat.name}**: {yen(cat.spent)} / {yen(cat.budget)}")
        left.progress(min(1.0, cat.spent / cat.budget) if cat.budget else 0.0)
        mid.caption(
            f"{yen(category_daily_allowance(cat, ref))}/day · {day_type_label(cat.day_calculation_type)} · "
            f"{remaining_days_by_type(ref, cat.day_calculation_type)} days left"
        )
        if right.button("Delete", key=f"del_cat_{cat.id}"):
            store.delete_category(month, cat.id)
            persist()
            st.rerun()

    with st.expander("Add category", expanded=not categories):
        name = st.text_input("Category name")
        budget = st.number_input("Monthly budget (¥)", min_value=0, step=1000, value=10000)
        icon = st.text_input("Icon", value="💰")
        day_type = st.selectbox("Counted days", DAY_CALCULATION_TYPES, format_func=day_type_label)
        if st.button("Add category") and name.strip():
            store.add_category(month, name.strip(), int(budget), icon, day_type)
            persist()
            st.rerun()

elif menu == "🧾 Expenses":
    st.title("🧾 Expenses")
    if not categories:
        st.info("Add a category on the dashboard first.")
    else:
        by_name = {f"{c.icon} {c.name}": c.id for c in categories}
        col_a, col_b, col_c, col_d = st.columns([2, 1, 2, 1])
        cat_label = col_a.selectbox("Category", list(by_name))
        amount = col_b.number_input("Amount (¥)", min_value=0, step=100)
        description = col_c.text_input("Description")
        when = col_d.date_input("Date", value=ref)
        if st.button("Add expense") and amount > 0:
            try:
                store.add_expense(month, by_name[cat_label], int(amount), description, when.isoformat())
                persist()
                st.rerun()
            except BudgetSyncError as e:
                st.error(str(e))

    if expenses:
        names_by_id = {c.id: c.name for c in categories}
        df = pd.DataFrame([
            {"id": e.id, "date": e.date, "category": names_by_id.get(e.category_id, e.category_id),
             "amount": e.amount, "description": e.description}
            for e in expenses
        ]).sort_values("date", ascending=False)
        st.dataframe(df.drop(columns=["id"]), use_container_width=True)
        labels = {row.id: f"{row.date} {row.category} {yen(row.amount)} {row.description}" for row in df.itertuples()}
        to_delete = st.selectbox("Delete expense", [""] + list(labels), format_func=lambda i: labels.get(i, ""))
        if to_delete and st.button("Delete selected"):
            store.delete_expense(month, to_delete)
            persist()
            st.rerun()

elif menu == "📊 Insights":
    st.title("📊 Insights")
    pattern = calculate_spending_pattern(expenses, ref)
    p1, p2, p3 = st.columns(3)
    p1.metric("Average per spending day", yen(pattern.average_daily))
    p2.metric("Trend", pattern.spending_trend)
    p3.metric("Variability", f"{pattern.seasonality:.1f}%")

    rows = [calculate_category_analysis(c, expenses, ref) for c in categories]
    if rows:
        df = pd.DataFrame([{
            "Category": f"{r.icon} {r.name}", "Spent": r.spent, "Budget": r.budget,
            "Projected": round(r.projected_total), "Risk": r.risk_level, "Advice": r.recommendation,
        } for r in rows])
        fig = go.Figure()
        fig.add_trace(go.Bar(x=df["Category"], y=df["Budget"], name="Budget"))
        fig.add_trace(go.Bar(x=df["Category"], y=df["Spent"], name="Spent"))
        fig.add_trace(go.Scatter(x=df["Category"], y=df["Projected"], mode="markers", name="Projected"))
        fig.update_layout(template="plotly_dark", barmode="group", margin=dict(t=30, b=10, l=10, r=10))
        st.plotly_chart(fig, use_container_width=True)
        st.table(df)

    st.subheader("Recommendations")
    recs = generate_budget_recommendations(categories, expenses, ref)
    if not recs:
        st.success("No budget changes recommended.")
    names_by_id = {c.id: c.name for c in categories}
    for rec in recs:
        st.write(f"**{names_by_id.get(rec.category_id)}** ({rec.type}): {yen(rec.current_amount)} → "
                 f"{yen(rec.suggested_amount)}. {rec.reason}")

elif menu == "📈 Comparison":
    st.title("📈 Monthly comparison")
    available = store.available_months()
    if not comparison_available(available):
        st.info("Enter data for at least two months to compare them.")
    else:
        others = [m for m in sorted(available, reverse=True) if m != month]
        default = default_compare_month(available, month)
        other = st.selectbox("Compare with", others, index=others.index(default) if default in others else 0)
        result = compare_months(store.get_month(month), store.get_month(other))
        o = result.overall
        c1, c2, c3 = st.columns(3)
        c1.metric("Spent", yen(o.current.total_spent), f"{o.spent_change_percent:+.1f}%", delta_color="inverse")
        c2.metric("Utilisation", f"{o.current.utilization_rate:.1f}%", f"{o.utilization_change:+.1f}%", delta_color="inverse")
        c3.metric("Expenses", o.current.expense_count, o.expense_count_change)
        if result.per_category:
            df = pd.DataFrame([{
                "Category": f"{r.icon} {r.category_name}", month: r.current_spent, other: r.compare_spent,
                "Change": r.change, "Change %": round(r.change_percent, 1), "Trend": r.trend,
            } for r in result.per_category])
            fig = px.bar(df, x="Category", y=[month, other], barmode="group",
                         title="Spending by category", template="plotly_dark")
            st.plotly_chart(fig, use_container_width=True)
            st.table(df)

elif menu == "🔗 Share":
    st.title("🔗 Share project")
    if not remote.online:
        st.info("Sharing needs a connection to the remote store.")
    elif project.is_shared and project.share_token:
        st.code(share_url(settings.share_base_url, project.share_token))
        st.caption("Editing allowed" if project.allow_edit else "Read-only link")
        if st.button("Stop sharing"):
            asyncio.run(save_project(remote, cache, unshare_project(project)))
            st.rerun()
    else:
        allow_edit = st.checkbox("Allow editing")
        if st.button("Create share link"):
            token = generate_share_token(settings.share_token_bytes)
            asyncio.run(save_project(remote, cache, share_project(project, token, allow_edit)))
            st.rerun()

    st.divider()
    if st.button("Delete project", type="primary", disabled=not remote.online):
        asyncio.run(delete_project(remote, cache, project.id))
        st.session_state.pop("store_project", None)
        st.rerun()
