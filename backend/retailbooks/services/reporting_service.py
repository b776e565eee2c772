# Overview: Read-only aggregate reports over sales, returns, customers and stock.

"""
Reports Service

All reports are tenant-scoped and read-only. Date ranges are inclusive
calendar days (UTC). Only completed sales count.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import Sale, SaleItem, Return, ReturnItem, Customer, Product
from ..validation import ValidationError
from retailbooks.time_utils import day_bounds, to_iso_date


def _range_filter(query, column, start: date | None, end: date | None):
    if start and end and start > end:
        raise ValidationError("start must be on or before end")
    start_dt, end_dt = day_bounds(start, end)
    if start_dt is not None:
        query = query.filter(column >= start_dt)
    if end_dt is not None:
        query = query.filter(column <= end_dt)
    return query


def sales_summary(tenant_id: int, start: date | None = None, end: date | None = None) -> dict:
    """Totals of completed sales, split by payment method and by day."""
    base = db.session.query(Sale).filter(Sale.tenant_id == tenant_id, Sale.status == "completed")
    base = _range_filter(base, Sale.sale_date, start, end)

    totals = base.with_entities(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.subtotal_cents), 0),
        func.coalesce(func.sum(Sale.discount_cents), 0),
        func.coalesce(func.sum(Sale.vat_total_cents), 0),
        func.coalesce(func.sum(Sale.grand_total_cents), 0),
    ).one()

    by_method = base.with_entities(
        Sale.payment_method,
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.grand_total_cents), 0),
    ).group_by(Sale.payment_method).all()

    day = func.date(Sale.sale_date)
    by_day = base.with_entities(
        day,
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.grand_total_cents), 0),
    ).group_by(day).order_by(day).all()

    return {
        "start": to_iso_date(start),
        "end": to_iso_date(end),
        "sale_count": int(totals[0]),
        "subtotal_cents": int(totals[1]),
        "discount_cents": int(totals[2]),
        "vat_total_cents": int(totals[3]),
        "grand_total_cents": int(totals[4]),
        "by_payment_method": [
            {"payment_method": method, "sale_count": int(count), "grand_total_cents": int(total)}
            for method, count, total in by_method
        ],
        "by_day": [
            {"date": str(d), "sale_count": int(count), "grand_total_cents": int(total)}
            for d, count, total in by_day
        ],
    }


def vat_report(tenant_id: int, start: date | None = None, end: date | None = None) -> dict:
    """
    Net and VAT per rate: completed sale items minus return items.

    Return items are net of VAT at quantity * unit price.
    """
    sold = db.session.query(
        SaleItem.vat_rate_bps,
        func.coalesce(func.sum(SaleItem.net_cents), 0),
        func.coalesce(func.sum(SaleItem.vat_cents), 0),
    ).join(Sale, Sale.id == SaleItem.sale_id).filter(
        Sale.tenant_id == tenant_id, Sale.status == "completed"
    )
    sold = _range_filter(sold, Sale.sale_date, start, end).group_by(SaleItem.vat_rate_bps).all()

    returned = db.session.query(
        ReturnItem.vat_rate_bps,
        func.coalesce(func.sum(ReturnItem.quantity * ReturnItem.unit_price_cents), 0),
        func.coalesce(func.sum(ReturnItem.vat_cents), 0),
    ).join(Return, Return.id == ReturnItem.return_id).filter(
        Return.tenant_id == tenant_id, Return.status == "completed"
    )
    returned = _range_filter(returned, Return.return_date, start, end).group_by(ReturnItem.vat_rate_bps).all()

    rates: dict[int, dict] = {}
    for rate, net, vat in sold:
        row = rates.setdefault(rate, {"vat_rate_bps": rate, "net_cents": 0, "vat_cents": 0})
        row["net_cents"] += int(net)
        row["vat_cents"] += int(vat)
    for rate, net, vat in returned:
        row = rates.setdefault(rate, {"vat_rate_bps": rate, "net_cents": 0, "vat_cents": 0})
        row["net_cents"] -= int(net)
        row["vat_cents"] -= int(vat)

    lines = [rates[rate] for rate in sorted(rates)]
    return {
        "start": to_iso_date(start),
        "end": to_iso_date(end),
        "rates": lines,
        "total_net_cents": sum(r["net_cents"] for r in lines),
        "total_vat_cents": sum(r["vat_cents"] for r in lines),
    }


def debt_overview(tenant_id: int) -> dict:
    """Customers who owe money (negative balance), largest debt first."""
    debtors = (
        db.session.query(Customer)
        .filter(Customer.tenant_id == tenant_id, Customer.balance_cents < 0)
        .order_by(Customer.balance_cents.asc(), Customer.id)
        .all()
    )
    return {
        "customer_count": len(debtors),
        "total_receivable_cents": -sum(c.balance_cents for c in debtors),
        "customers": [
            {"id": c.id, "name": c.name, "phone": c.phone, "balance_cents": c.balance_cents}
            for c in debtors
        ],
    }


def stock_alerts(tenant_id: int) -> list[dict]:
    products = (
        db.session.query(Product)
        .filter(
            Product.tenant_id == tenant_id,
            Product.is_active.is_(True),
            Product.stock_quantity <= Product.min_stock_level,
        )
        .order_by(Product.stock_quantity.asc(), Product.name)
        .all()
    )
    return [
        {
            "id": p.id,
            "name": p.name,
            "barcode": p.barcode,
            "stock_quantity": p.stock_quantity,
            "min_stock_level": p.min_stock_level,
            "out_of_stock": p.stock_quantity <= 0,
        }
        for p in products
    ]
