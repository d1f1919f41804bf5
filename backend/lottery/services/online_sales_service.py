# Overview: Additive ledger of daily online (terminal) lottery sales reports.

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import OnlineSalesReport
from ..errors import ValidationError
from ..validation import coerce_int, coerce_optional_int, enforce_rules_online_report, optional_text
from ..time_utils import today, parse_business_date
from .concurrency import run_atomic
from .location_service import require_location


@dataclass(frozen=True)
class OnlineSalesTotals:
    report_count: int
    total_sales_cents: int
    payouts_cents: int
    commission_cents: int
    net_due_cents: int

    def to_dict(self) -> dict:
        return asdict(self)


def _parse_date(field: str, value) -> date | None:
    try:
        return parse_business_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be YYYY-MM-DD")


def record_online_sales(
    location_id: int,
    report_date: date | str | None,
    total_sales_cents: int,
    payouts_cents: int,
    commission_cents: int,
    net_due_cents: int | None = None,
    logged_by: str | None = None,
    notes: str | None = None,
) -> OnlineSalesReport:
    """
    Append one terminal report.

    Reports are never merged: two reports for one date both count toward
    that day's totals. net_due_cents defaults to
    total_sales - payouts - commission when the terminal does not print it.
    """
    patch = {
        "total_sales_cents": coerce_int("total_sales_cents", total_sales_cents),
        "payouts_cents": coerce_int("payouts_cents", payouts_cents),
        "commission_cents": coerce_int("commission_cents", commission_cents),
    }
    enforce_rules_online_report(patch)

    net = coerce_optional_int("net_due_cents", net_due_cents)
    if net is None:
        net = patch["total_sales_cents"] - patch["payouts_cents"] - patch["commission_cents"]

    report_on = _parse_date("report_date", report_date) or today()
    logged_by = optional_text("logged_by", logged_by, max_length=120)
    notes = optional_text("notes", notes, max_length=2000)

    def _op():
        require_location(location_id)
        report = OnlineSalesReport(
            location_id=location_id,
            report_date=report_on,
            net_due_cents=net,
            logged_by=logged_by,
            notes=notes,
            **patch,
        )
        db.session.add(report)
        db.session.flush()
        return report

    report = run_atomic(_op)
    current_app.logger.info(
        "Online lottery sales recorded for location %s on %s: total=%d net=%d",
        location_id, report_on.isoformat(), report.total_sales_cents, report.net_due_cents,
    )
    return report


def _date_filtered(q, start_date, end_date):
    start = _parse_date("start_date", start_date)
    end = _parse_date("end_date", end_date)
    if start and end and start > end:
        raise ValidationError("start_date must be on or before end_date")
    if start:
        q = q.filter(OnlineSalesReport.report_date >= start)
    if end:
        q = q.filter(OnlineSalesReport.report_date <= end)
    return q


def online_sales_totals(
    location_id: int,
    start_date: date | str | None,
    end_date: date | str | None,
) -> OnlineSalesTotals:
    """Column sums over an inclusive date range."""
    require_location(location_id)
    q = db.session.query(
        func.count(OnlineSalesReport.id),
        func.coalesce(func.sum(OnlineSalesReport.total_sales_cents), 0),
        func.coalesce(func.sum(OnlineSalesReport.payouts_cents), 0),
        func.coalesce(func.sum(OnlineSalesReport.commission_cents), 0),
        func.coalesce(func.sum(OnlineSalesReport.net_due_cents), 0),
    ).filter(OnlineSalesReport.location_id == location_id)
    count, total, payouts, commission, net = _date_filtered(q, start_date, end_date).one()
    return OnlineSalesTotals(
        report_count=int(count),
        total_sales_cents=int(total),
        payouts_cents=int(payouts),
        commission_cents=int(commission),
        net_due_cents=int(net),
    )


def list_online_sales(
    location_id: int,
    start_date: date | str | None = None,
    end_date: date | str | None = None,
) -> list[OnlineSalesReport]:
    require_location(location_id)
    q = db.session.query(OnlineSalesReport).filter(OnlineSalesReport.location_id == location_id)
    q = _date_filtered(q, start_date, end_date)
    return q.order_by(OnlineSalesReport.report_date.asc(), OnlineSalesReport.id.asc()).all()
