import re
from datetime import datetime, timezone
from typing import Optional


ORDER_ID_RE = re.compile(r"^ORDER-(\d+)-(\d+)$")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def make_order_id(ticket_id: int, at: datetime) -> str:
    millis = int(at.replace(tzinfo=timezone.utc).timestamp() * 1000)
    return f"ORDER-{ticket_id}-{millis}"


def parse_order_id(order_id: Optional[str]) -> Optional[int]:
    """Return the ticket id embedded in an order id, or None if malformed."""
    if not order_id:
        return None
    match = ORDER_ID_RE.match(order_id)
    if not match:
        return None
    return int(match.group(1))

