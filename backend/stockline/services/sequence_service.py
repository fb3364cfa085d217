# Overview: Allocates human-readable order codes (ORD-0001, ORD-0002, ...).

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import OrderSequence


def next_order_code(*, prefix: str | None = None, pad: int | None = None) -> str:
    """
    Allocate the next order code for a prefix inside the caller's transaction.

    Uses an UPDATE ... SET next_number = next_number + 1 so two writers can
    never read the same counter value. Does not commit; the caller's commit
    (or rollback) decides whether the number is consumed.
    """
    if prefix is None:
        prefix = current_app.config.get("ORDER_CODE_PREFIX", "ORD")
    if pad is None:
        pad = current_app.config.get("ORDER_CODE_PAD", 4)

    stmt = (
        update(OrderSequence)
        .where(OrderSequence.prefix == prefix)
        .values(next_number=OrderSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(OrderSequence(prefix=prefix, next_number=2))
            return f"{prefix}-{1:0{pad}d}"
        except IntegrityError:
            # Another writer created the row first
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        db.session.query(OrderSequence.next_number)
        .filter_by(prefix=prefix)
        .scalar()
    )
    return f"{prefix}-{current - 1:0{pad}d}"
