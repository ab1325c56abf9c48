"""
Event log service.

Every mutating call records exactly one notification row with a stable
schema (event_type, identity, amount, timestamp, round_number, data) so
front-ends and off-system indexers can follow the game without reading
round state directly.
"""
from typing import List, Dict, Any, Optional
import logging

from sqlalchemy.orm import Session

from models import EventLog

logger = logging.getLogger(__name__)

BET_PLACED = "BET_PLACED"
PRIZE_CLAIMED = "PRIZE_CLAIMED"
ROUND_STARTED = "ROUND_STARTED"
ADMIN_TRANSFERRED = "ADMIN_TRANSFERRED"

EVENT_TYPES = (BET_PLACED, PRIZE_CLAIMED, ROUND_STARTED, ADMIN_TRANSFERRED)


def record_event(
    db: Session,
    event_type: str,
    identity: Optional[str],
    amount: int,
    timestamp: int,
    round_number: int = 0,
    **data: Any,
) -> EventLog:
    """
    Add an event row to the current transaction.

    The row is only flushed, never committed here: if the surrounding
    operation rolls back, the event disappears with it.
    """
    event = EventLog(
        event_type=event_type,
        identity=identity,
        amount=amount,
        timestamp=timestamp,
        round_number=round_number,
        data=data,
    )
    db.add(event)
    db.flush()

    logger.info(
        f"[event] {event_type} identity={identity} amount={amount} "
        f"ts={timestamp} round={round_number}"
    )
    return event


def event_to_dict(event: EventLog) -> Dict[str, Any]:
    return {
        "id": event.id,
        "event_type": event.event_type,
        "identity": event.identity,
        "amount": event.amount,
        "timestamp": event.timestamp,
        "round_number": event.round_number,
        "data": event.data or {},
    }


def list_events(db: Session, limit: int = 50, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
    """Return the most recent events, newest first."""
    query = db.query(EventLog)
    if event_type:
        query = query.filter(EventLog.event_type == event_type)

    rows = query.order_by(EventLog.id.desc()).limit(limit).all()
    return [event_to_dict(row) for row in rows]
