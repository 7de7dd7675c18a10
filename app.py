import pandas as pd
import streamlit as st
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, List, Optional

from analytics import data as dc
from analytics.filters import DEFAULT_TOP_N, MAX_TOP_N, DashboardFilters, normalize_filters
from analytics.formatting import (
    format_currency,
    format_currency_columns,
    format_delta,
    format_number,
    format_percent,
    format_percent_columns,
)
from analytics.metrics_clients import compute_clients
from analytics.metrics_discounts import compute_discounts
from analytics.metrics_executive import compute_executive_summary
from analytics.metrics_leads import compute_leads
from analytics.metrics_sales import compute_sales
from analytics.metrics_sessions import compute_sessions
from analytics.metrics_trainers import compute_trainers


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .card-actions {font-size: 0.9rem;color: #2563eb;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(f: DashboardFilters) -> str:
    chips = [f"Period: {f.date_range.label()}"]
    for label, values in [
        ("Location", f.locations),
        ("Category", f.categories),
        ("Product", f.products),
        ("Seller", f.sellers),
        ("Payment", f.payment_methods),
    ]:
        chips.append(f"{label}: {', '.join(values)}" if values else f"{label}: All")
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, filter_summary_html: str, export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    inject_base_styles()
    c1, c2 = st.columns([7, 3])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>Studio / {title}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        if btn_cols[0].button("Refresh", help="Reload the workbook from disk"):
            dc.clear_cache()
            st.rerun()
        if export_df is not None and not export_df.empty:
            btn_cols[1].download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
            )
    st.markdown(f"<div class='chip-row'>{filter_summary_html}</div>", unsafe_allow_html=True)


def render_errors(errors: Dict[str, str]):
    for source, message in (errors or {}).items():
        st.error(f"{source.replace('_', ' ').title()} data unavailable: {message}")


def render_chart(spec: Optional[Dict[str, Any]], empty_message: str = "No data for the selected filters."):
    if spec is None:
        st.info(empty_message)
        return
    st.vega_lite_chart(spec, use_container_width=True)


def render_table(rows: List[Dict[str, Any]], currency: Optional[List[str]] = None, percent: Optional[List[str]] = None):
    if not rows:
        st.info("No rows for the selected filters.")
        return
    df = pd.DataFrame(rows)
    df = format_currency_columns(df, currency or [])
    df = format_percent_columns(df, percent or [])
    st.dataframe(df, hide_index=True, use_container_width=True)


def metric_row(items: List[Dict[str, Any]]):
    cols = st.columns(len(items))
    for col, item in zip(cols, items):
        col.metric(item["label"], item["value"], delta=item.get("delta"), help=item.get("help"))


# ---------- UI setup ----------
st.set_page_config(page_title="Studio Analytics Dashboard", layout="wide")
inject_base_styles()
st.title("Studio Analytics Dashboard")
st.caption("Sales, sessions, trainers, clients, leads and discounts from the studio workbook.")

data_ctx = dc.load_dashboard_data()
if data_ctx.get("path") is None:
    st.error(f"No data file found. Place the studio workbook (.xlsx) in {dc.DATA_DIR} or set STUDIO_DATA_PATH.")
    st.stop()

options = dc.filter_options(data_ctx)
latest_date: Optional[date] = data_ctx.get("latest_date")
default_range = normalize_filters({}, reference_date=latest_date).date_range

# ----- Sidebar: navigation + filters -----
PAGES = ["Executive Summary", "Sales", "Sessions", "Trainers", "Clients", "Leads", "Discounts"]
with st.sidebar:
    st.markdown("### Navigate")
    current_page = st.radio("Navigate", PAGES, index=0, label_visibility="collapsed")

    st.markdown("---")
    st.markdown("### Filters")
    all_time = st.checkbox("All time", value=False)
    date_cols = st.columns(2)
    start_date = date_cols[0].date_input("From", value=default_range.start, disabled=all_time)
    end_date = date_cols[1].date_input("To", value=default_range.end, disabled=all_time)
    selected_locations = st.multiselect("Location", options=options["locations"], default=[])
    with st.expander("Sales filters", expanded=False):
        selected_categories = st.multiselect("Category", options=options["categories"], default=[])
        selected_products = st.multiselect("Product", options=options["products"], default=[])
        selected_sellers = st.multiselect("Sold by", options=options["sellers"], default=[])
        selected_methods = st.multiselect("Payment method", options=options["payment_methods"], default=[])
    top_n = st.slider("Top N rows", min_value=1, max_value=MAX_TOP_N, value=DEFAULT_TOP_N)
    st.caption(f"Source: {data_ctx.get('path')}")

filters = normalize_filters(
    {
        "start_date": start_date,
        "end_date": end_date,
        "all_time": all_time,
        "locations": selected_locations,
        "categories": selected_categories,
        "products": selected_products,
        "sellers": selected_sellers,
        "payment_methods": selected_methods,
        "top_n": top_n,
    },
    reference_date=latest_date,
)
ctx = dc.prepare_context(filters, data_ctx)
filter_summary_html = format_filter_summary(filters)


def render_executive_page():
    result = compute_executive_summary(filters, ctx)
    render_page_header("Executive Summary", filter_summary_html, export_df=ctx["sales"], export_name="executive_summary.csv")
    render_errors(result["errors"])
    period = result["period"]
    st.caption(f"{period['label']}" + (f" vs {period['previous']}" if period["previous"] else ""))

    sales, sessions, trainers = result["sales"], result["sessions"], result["trainers"]
    clients, leads = result["clients"], result["leads"]
    with card("Headline"):
        metric_row(
            [
                {"label": "Revenue", "value": format_currency(sales["revenue"]), "delta": format_delta(sales["revenue_growth"])},
                {"label": "Transactions", "value": format_number(sales["transactions"]), "delta": format_delta(sales["transaction_growth"])},
                {"label": "Members", "value": format_number(sales["members"]), "delta": format_delta(sales["member_growth"])},
                {"label": "Avg order value", "value": format_currency(sales["avg_order_value"])},
            ]
        )
        metric_row(
            [
                {"label": "Sessions", "value": format_number(sessions["sessions"])},
                {"label": "Fill rate", "value": format_percent(sessions["fill_rate"]), "help": "Checked in / capacity"},
                {"label": "Avg attendance", "value": format_number(sessions["avg_attendance"], 1)},
                {"label": "New clients", "value": format_number(clients["new_clients"])},
            ]
        )
        metric_row(
            [
                {"label": "Trainer payouts", "value": format_currency(trainers["total_paid"])},
                {"label": "Client conversion", "value": format_percent(clients["conversion_rate"])},
                {"label": "Leads", "value": format_number(leads["leads"])},
                {"label": "Lead conversion", "value": format_percent(leads["conversion_rate"])},
            ]
        )

    trend_cols = st.columns(2)
    with trend_cols[0]:
        with card("Revenue trend (monthly)"):
            render_chart(result["charts"]["revenue_trend"])
    with trend_cols[1]:
        with card("Revenue by location"):
            render_chart(result["charts"]["location_revenue"])

    list_cols = st.columns(2)
    with list_cols[0]:
        with card("Top products"):
            render_table(result["top_products"], currency=["revenue"])
    with list_cols[1]:
        with card("Top trainers"):
            render_table(result["top_trainers"], currency=["total_paid", "pay_per_session"])
    with card("Location performance"):
        render_table(result["locations"], currency=["revenue"], percent=["fill_rate"])


def render_sales_page():
    result = compute_sales(filters, ctx)
    render_page_header("Sales", filter_summary_html, export_df=ctx["sales"], export_name="sales.csv")
    render_errors(result["errors"])
    k = result["kpis"]
    with card("KPI Tiles"):
        metric_row(
            [
                {"label": "Revenue", "value": format_currency(k["revenue"]), "delta": format_delta(k["revenue_growth"])},
                {"label": "Transactions", "value": format_number(k["transactions"]), "delta": format_delta(k["transaction_growth"])},
                {"label": "Members", "value": format_number(k["members"]), "delta": format_delta(k["member_growth"])},
                {"label": "Avg order value", "value": format_currency(k["avg_order_value"], 2)},
                {"label": "VAT", "value": format_currency(k["vat"])},
                {"label": "Discounts", "value": format_currency(k["discount_impact"])},
            ]
        )
    charts = result["charts"]
    row = st.columns(2)
    with row[0]:
        with card("Revenue by location"):
            render_chart(charts["revenue_by_location"])
    with row[1]:
        with card("Revenue by category"):
            render_chart(charts["revenue_by_category"])
    row = st.columns(2)
    with row[0]:
        with card("Top products"):
            render_chart(charts["top_products"])
    with row[1]:
        with card("Payment methods"):
            render_chart(charts["payment_methods"])
    with card("Monthly revenue"):
        render_chart(charts["monthly_trend"])
    with card("Top sellers"):
        render_table(result["by_seller"], currency=["revenue", "avg_value"])


def render_sessions_page():
    result = compute_sessions(filters, ctx)
    render_page_header("Sessions", filter_summary_html, export_df=ctx["sessions"], export_name="sessions.csv")
    render_errors(result["errors"])
    k = result["kpis"]
    with card("KPI Tiles"):
        metric_row(
            [
                {"label": "Sessions", "value": format_number(k["sessions"])},
                {"label": "Checked in", "value": format_number(k["checked_in"])},
                {"label": "Fill rate", "value": format_percent(k["fill_rate"])},
                {"label": "Avg attendance", "value": format_number(k["avg_attendance"], 1)},
                {"label": "PowerCycle", "value": format_number(k["powercycle_sessions"])},
                {"label": "Barre", "value": format_number(k["barre_sessions"])},
            ]
        )
    row = st.columns(2)
    with row[0]:
        with card("Fill rate by class"):
            render_chart(result["charts"]["fill_rate_by_class"])
    with row[1]:
        with card("Attendance by location"):
            render_chart(result["charts"]["attendance_by_location"])
    with card("Classes"):
        render_table(result["by_class"], percent=["fill_rate"])
    with card("Trainers"):
        render_table(result["by_trainer"], percent=["fill_rate"])


def render_trainers_page():
    result = compute_trainers(filters, ctx)
    render_page_header("Trainers", filter_summary_html, export_df=ctx["payroll"], export_name="payroll.csv")
    render_errors(result["errors"])
    k = result["kpis"]
    with card("KPI Tiles"):
        metric_row(
            [
                {"label": "Trainers", "value": format_number(k["unique_trainers"])},
                {"label": "Total paid", "value": format_currency(k["total_paid"])},
                {"label": "Sessions", "value": format_number(k["total_sessions"])},
                {"label": "Customers", "value": format_number(k["total_customers"])},
                {"label": "Avg pay / trainer", "value": format_currency(k["avg_pay_per_trainer"])},
                {"label": "Pay / session", "value": format_currency(k["productivity"], 2)},
            ]
        )
    row = st.columns(2)
    with row[0]:
        with card("Payouts by trainer"):
            render_chart(result["charts"]["payout_by_trainer"])
    with row[1]:
        with card("Payouts by location"):
            render_chart(result["charts"]["payout_by_location"])
    with card("Top trainers"):
        render_table(result["top_trainers"], currency=["total_paid", "pay_per_session"])


def render_clients_page():
    result = compute_clients(filters, ctx)
    render_page_header("Clients", filter_summary_html, export_df=ctx["new_clients"], export_name="new_clients.csv")
    render_errors(result["errors"])
    k = result["kpis"]
    with card("KPI Tiles"):
        metric_row(
            [
                {"label": "New clients", "value": format_number(k["new_clients"])},
                {"label": "Converted", "value": format_number(k["converted"])},
                {"label": "Conversion rate", "value": format_percent(k["conversion_rate"])},
                {"label": "Retention rate", "value": format_percent(k["retention_rate"])},
                {"label": "Avg LTV", "value": format_currency(k["avg_ltv"])},
            ]
        )
    row = st.columns(2)
    with row[0]:
        with card("Conversion by location"):
            render_chart(result["charts"]["conversion_by_location"])
    with row[1]:
        with card("Conversion status"):
            render_chart(result["charts"]["conversion_mix"])
    with card("Average LTV by first-visit month"):
        render_chart(result["charts"]["ltv_trend"])
    with card("By location"):
        render_table(result["by_location"], currency=["total_ltv", "avg_ltv"], percent=["conversion_rate", "retention_rate"])


def render_leads_page():
    result = compute_leads(filters, ctx)
    render_page_header("Leads", filter_summary_html, export_df=ctx["leads"], export_name="leads.csv")
    render_errors(result["errors"])
    k = result["kpis"]
    with card("KPI Tiles"):
        metric_row(
            [
                {"label": "Leads", "value": format_number(k["leads"])},
                {"label": "Converted", "value": format_number(k["converted"])},
                {"label": "Conversion rate", "value": format_percent(k["conversion_rate"])},
            ]
        )
    row = st.columns(2)
    with row[0]:
        with card("Conversion by source"):
            render_chart(result["charts"]["conversion_by_source"])
    with row[1]:
        with card("Status mix"):
            render_chart(result["charts"]["status_mix"])
    with card("Pipeline stages"):
        render_chart(result["charts"]["stage_funnel"])
    with card("Sources"):
        render_table(result["by_source"], percent=["conversion_rate"])


def render_discounts_page():
    result = compute_discounts(filters, ctx)
    render_page_header("Discounts", filter_summary_html, export_df=pd.DataFrame(result["transactions"]), export_name="discounts.csv")
    render_errors(result["errors"])
    k = result["kpis"]
    with card("KPI Tiles"):
        metric_row(
            [
                {"label": "Total discount", "value": format_currency(k["discount"])},
                {"label": "Discount rate", "value": format_percent(k["discount_rate"]), "help": "Discount / gross (revenue + discount)"},
                {"label": "Penetration", "value": format_percent(k["discount_penetration"]), "help": "Share of transactions with a discount"},
                {"label": "Avg discount %", "value": format_percent(k["avg_discount_percent"])},
                {"label": "Avg / transaction", "value": format_currency(k["avg_discount_per_transaction"], 2)},
                {"label": "Members", "value": format_number(k["discounted_members"])},
            ]
        )
    row = st.columns(2)
    with row[0]:
        with card("Most discounted products"):
            render_chart(result["charts"]["top_products"])
    with row[1]:
        with card("Discount by category"):
            render_chart(result["charts"]["by_category"])
    with card("Monthly discount"):
        render_chart(result["charts"]["monthly_discount"])
    tabs = st.tabs(["Month on month", "Year on year", "Least discounted", "Transactions"])
    with tabs[0]:
        render_table(result["month_on_month"], currency=["discount", "revenue", "gross"], percent=["discount_rate", "discount_change"])
    with tabs[1]:
        yoy = result["year_on_year"]
        render_table(yoy["rows"], currency=yoy["years"], percent=["yoy_change"])
    with tabs[2]:
        render_table(result["bottom_products"], currency=["discount", "revenue"], percent=["discount_rate"])
    with tabs[3]:
        render_table(result["transactions"], currency=["amount", "discount_amount"])


if current_page == "Executive Summary":
    render_executive_page()
elif current_page == "Sales":
    render_sales_page()
elif current_page == "Sessions":
    render_sessions_page()
elif current_page == "Trainers":
    render_trainers_page()
elif current_page == "Clients":
    render_clients_page()
elif current_page == "Leads":
    render_leads_page()
else:
    render_discounts_page()
