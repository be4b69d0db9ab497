from __future__ import annotations

from collections.abc import Iterable, Mapping

from app.labtrack.db.models import RequestLineItem
from app.labtrack.repos.receiving import ReceivingRepository


def aggregate_by_line_item(db, request_id, lines: Iterable[RequestLineItem]) -> dict[str, int]:
    """Total received per line item, summed over every slip of the request.

    Every line is present in the result; lines without received rows total 0.
    """
    totals = ReceivingRepository(db).received_totals(request_id)
    return {str(line.id): totals.get(str(line.id), 0) for line in lines}


def remaining(line: RequestLineItem, total_received: int) -> int:
    return max(0, line.quantity - total_received)


def is_fully_received(lines: Iterable[RequestLineItem], totals: Mapping[str, int]) -> bool:
    lines = list(lines)
    if not lines:
        return False
    return all(totals.get(str(line.id), 0) >= line.quantity for line in lines)
