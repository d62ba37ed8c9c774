"""
Dashboard and customer analytics
Orders are pulled once and aggregated with pandas
"""

import logging
from datetime import timedelta
from typing import Dict, List

import numpy as np
import pandas as pd

from wingside.core.clock import utcnow
from wingside.core.supabase import get_client

logger = logging.getLogger(__name__)

ORDER_COLUMNS = "id, user_id, customer_email, customer_name, total, status, payment_status, created_at"
NON_REVENUE_STATUSES = ["cancelled", "failed"]

VIP_SPEND = 100000
REGULAR_ORDERS = 10
BIG_SPENDER_AOV = 10000
NEW_CUSTOMER_DAYS = 30
AT_RISK_DAYS = 60
CHURNED_DAYS = 90

SEGMENTS = ["vip", "regular", "new", "at-risk", "churned", "big-spender", "one-time", "emerging"]


def _frame(rows: List[Dict], columns: List[str]) -> pd.DataFrame:
    df = pd.DataFrame(rows, columns=columns)
    if "created_at" in df:
        df["created_at"] = pd.to_datetime(df["created_at"], utc=True, format="ISO8601")
    if "total" in df:
        df["total"] = pd.to_numeric(df["total"], errors="coerce").fillna(0.0)
    return df


def load_orders() -> pd.DataFrame:
    response = get_client().table("orders").select(ORDER_COLUMNS).execute()
    return _frame(response.data or [], [c.strip() for c in ORDER_COLUMNS.split(",")])


def revenue_mask(orders: pd.DataFrame) -> pd.Series:
    """Paid, not refunded, not cancelled/failed"""
    return (orders["payment_status"] == "paid") & ~orders["status"].isin(NON_REVENUE_STATUSES)


def dashboard_stats() -> Dict:
    client = get_client()
    orders = load_orders()
    products = client.table("products").select("id").execute().data or []
    customers = client.table("profiles").select("id").eq("role", "customer").execute().data or []

    week_ago = pd.Timestamp(utcnow() - timedelta(days=7))
    recent = orders.sort_values("created_at", ascending=False).head(5)

    return {
        "total_orders": int(len(orders)),
        "pending_orders": int((orders["status"] == "pending").sum()),
        "total_products": len(products),
        "total_customers": len(customers),
        "recent_orders": int((orders["created_at"] >= week_ago).sum()),
        "total_revenue": round(float(orders.loc[revenue_mask(orders), "total"].sum()), 2),
        "recent_orders_data": [
            {
                "id": row.id,
                "customer_name": row.customer_name,
                "total": round(float(row.total), 2),
                "status": row.status,
                "created_at": row.created_at.isoformat(),
            }
            for row in recent.itertuples()
        ],
    }


def revenue_chart(days: int = 30) -> List[Dict]:
    """Per-day revenue and order count for the last `days` days, zero-filled"""
    orders = load_orders()
    end = pd.Timestamp(utcnow()).normalize()
    index = pd.date_range(end=end, periods=days, freq="D")

    paid = orders[revenue_mask(orders)].copy()
    paid["day"] = paid["created_at"].dt.normalize()
    daily = paid.groupby("day").agg(revenue=("total", "sum"), orders=("id", "count"))
    daily = daily.reindex(index, fill_value=0)

    return [
        {"date": day.strftime("%Y-%m-%d"), "revenue": round(float(row.revenue), 2), "orders": int(row.orders)}
        for day, row in daily.iterrows()
    ]


def _segments(row) -> List[str]:
    segments = []
    if row.total_spent >= VIP_SPEND:
        segments.append("vip")
    if row.total_orders >= REGULAR_ORDERS and row.total_spent < VIP_SPEND:
        segments.append("regular")
    if row.days_since_joined <= NEW_CUSTOMER_DAYS:
        segments.append("new")
    if pd.notna(row.days_since_last_order):
        if AT_RISK_DAYS <= row.days_since_last_order < CHURNED_DAYS:
            segments.append("at-risk")
        if row.days_since_last_order >= CHURNED_DAYS:
            segments.append("churned")
    if row.avg_order_value >= BIG_SPENDER_AOV:
        segments.append("big-spender")
    if row.total_orders == 1:
        segments.append("one-time")
    return segments or ["emerging"]


def customer_segments() -> Dict:
    client = get_client()
    profiles = _frame(
        client.table("profiles").select("id, email, full_name, created_at").eq("role", "customer").execute().data or [],
        ["id", "email", "full_name", "created_at"],
    )
    orders = load_orders()
    paid = orders[revenue_mask(orders) & orders["user_id"].notna()]

    per_customer = paid.groupby("user_id").agg(
        total_spent=("total", "sum"),
        total_orders=("id", "count"),
        last_order=("created_at", "max"),
    )
    df = profiles.set_index("id").join(per_customer, how="left")
    df["last_order"] = pd.to_datetime(df["last_order"], utc=True)
    df["total_spent"] = df["total_spent"].fillna(0.0)
    df["total_orders"] = df["total_orders"].fillna(0).astype(int)
    df["avg_order_value"] = np.where(df["total_orders"] > 0, df["total_spent"] / df["total_orders"].clip(lower=1), 0.0)

    now = pd.Timestamp(utcnow())
    df["days_since_joined"] = (now - df["created_at"]).dt.days.fillna(0)
    # NaN for customers who never ordered; they are never at-risk or churned
    df["days_since_last_order"] = (now - df["last_order"]).dt.days

    customers = []
    counts = {segment: 0 for segment in SEGMENTS}
    for customer_id, row in df.iterrows():
        segments = _segments(row)
        for segment in segments:
            counts[segment] += 1
        customers.append({
            "id": customer_id,
            "email": row.email,
            "full_name": row.full_name,
            "total_spent": round(float(row.total_spent), 2),
            "total_orders": int(row.total_orders),
            "avg_order_value": round(float(row.avg_order_value), 2),
            "last_order_date": row.last_order.isoformat() if pd.notna(row.last_order) else None,
            "segments": segments,
        })

    logger.info(f"📊 Segmented {len(customers)} customers")
    return {"customers": customers, "counts": counts, "total": len(customers)}
