# Overview: Order number allocation backed by a per-day counter row.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import OrderSequence

ORDER_NUMBER_PREFIX = "ORD"


class SequenceConflict(Exception):
    """Two transactions created the same day's counter row; retry the unit of work."""


def format_order_number(day: str, number: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{day}-{number:04d}"


def next_order_number(now: datetime) -> str:
    """
    Allocate the next order number for the day of `now`: ORD-YYMMDD-NNNN.

    Runs inside the caller's transaction. The increment is a single UPDATE,
    so two orders never receive the same number; the first order of a day
    inserts the counter row, and a concurrent insert surfaces as
    SequenceConflict for the caller's retry loop.
    """
    day = now.strftime("%y%m%d")

    stmt = (
        update(OrderSequence)
        .where(OrderSequence.day == day)
        .values(next_number=OrderSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(OrderSequence.next_number)
            .filter_by(day=day)
            .scalar()
        )
        return format_order_number(day, current - 1)

    db.session.add(OrderSequence(day=day, next_number=2))
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise SequenceConflict(day) from exc
    return format_order_number(day, 1)
