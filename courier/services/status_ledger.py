"""
Status ledger for bookings, shipment exceptions and support tickets.

Every status change appends an entry (status, location, remarks, server
timestamp, actor) to the entity's history and sets its current status.
History is never edited; a mistaken status is corrected by appending
another entry.

Each entity type has a StatusPolicy:

- Bookings may move freely until they reach Delivered or Cancelled,
  after which only an override may append. Delivered stamps
  delivery_date and Returned stamps return_date.
- Exceptions and tickets follow Open → In Progress → Resolved → Closed,
  with Escalated reachable from any non-terminal state and leading back
  to In Progress or Resolved. Closed is terminal.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from courier.core.exceptions import InvalidTransition
from courier.db_types import utc_now
from courier.models.booking import (
    Booking,
    BookingStatus,
    BookingStatusHistory,
    BOOKING_TERMINAL_STATUSES,
)
from courier.models.shipment_exception import ShipmentException, ExceptionStatusHistory, CaseStatus
from courier.models.ticket import SupportTicket, TicketStatusHistory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusPolicy:
    name: str
    statuses: frozenset
    terminal: frozenset
    history_model: type
    # None means any non-terminal status may move to any known status
    transitions: Optional[dict] = None
    on_enter: dict = field(default_factory=dict)

    def check(self, current: Optional[str], new_status: str) -> None:
        if new_status not in self.statuses:
            raise InvalidTransition(f"Unknown {self.name} status '{new_status}'")
        if current in self.terminal:
            raise InvalidTransition(
                f"{self.name.capitalize()} is {current}; no further status changes are allowed"
            )
        if self.transitions is not None and current is not None:
            allowed = self.transitions.get(current, frozenset())
            if new_status not in allowed:
                raise InvalidTransition(
                    f"Cannot move {self.name} from {current} to {new_status}",
                    allowed=sorted(allowed),
                )


def _mark_delivered(entity, now: datetime, actor_id) -> None:
    if entity.delivery_date is None:
        entity.delivery_date = now


def _mark_returned(entity, now: datetime, actor_id) -> None:
    entity.return_date = now


def _mark_resolved(entity, now: datetime, actor_id) -> None:
    entity.resolved_at = now
    if actor_id is not None:
        entity.resolved_by = actor_id


def _mark_closed(entity, now: datetime, actor_id) -> None:
    if hasattr(entity, "closed_at"):
        entity.closed_at = now


def _mark_escalated(entity, now: datetime, actor_id) -> None:
    if hasattr(entity, "escalated_at"):
        entity.escalated_at = now


CASE_STATUSES = frozenset(s.value for s in CaseStatus)

CASE_TRANSITIONS = {
    CaseStatus.OPEN.value: frozenset({CaseStatus.IN_PROGRESS.value, CaseStatus.ESCALATED.value}),
    CaseStatus.IN_PROGRESS.value: frozenset({CaseStatus.RESOLVED.value, CaseStatus.ESCALATED.value}),
    CaseStatus.ESCALATED.value: frozenset({CaseStatus.IN_PROGRESS.value, CaseStatus.RESOLVED.value}),
    CaseStatus.RESOLVED.value: frozenset({CaseStatus.CLOSED.value, CaseStatus.ESCALATED.value}),
    CaseStatus.CLOSED.value: frozenset(),
}

CASE_ON_ENTER = {
    CaseStatus.RESOLVED.value: _mark_resolved,
    CaseStatus.CLOSED.value: _mark_closed,
    CaseStatus.ESCALATED.value: _mark_escalated,
}

BOOKING_POLICY = StatusPolicy(
    name="booking",
    statuses=frozenset(s.value for s in BookingStatus),
    terminal=BOOKING_TERMINAL_STATUSES,
    history_model=BookingStatusHistory,
    on_enter={
        BookingStatus.DELIVERED.value: _mark_delivered,
        BookingStatus.RETURNED.value: _mark_returned,
    },
)

EXCEPTION_POLICY = StatusPolicy(
    name="exception",
    statuses=CASE_STATUSES,
    terminal=frozenset({CaseStatus.CLOSED.value}),
    history_model=ExceptionStatusHistory,
    transitions=CASE_TRANSITIONS,
    on_enter=CASE_ON_ENTER,
)

TICKET_POLICY = StatusPolicy(
    name="ticket",
    statuses=CASE_STATUSES,
    terminal=frozenset({CaseStatus.CLOSED.value}),
    history_model=TicketStatusHistory,
    transitions=CASE_TRANSITIONS,
    on_enter=CASE_ON_ENTER,
)

POLICIES: dict[type, StatusPolicy] = {
    Booking: BOOKING_POLICY,
    ShipmentException: EXCEPTION_POLICY,
    SupportTicket: TICKET_POLICY,
}


def next_timestamp(entity: Any) -> datetime:
    """Server time, kept strictly after the entity's last history entry."""
    now = utc_now()
    if entity.status_history:
        last = entity.status_history[-1].recorded_at
        if last is not None and last >= now:
            now = last + timedelta(microseconds=1)
    return now


def policy_for(entity: Any) -> StatusPolicy:
    try:
        return POLICIES[type(entity)]
    except KeyError:
        raise TypeError(f"No status policy for {type(entity).__name__}")


def can_transition(entity: Any, new_status: str) -> bool:
    try:
        policy_for(entity).check(entity.status, new_status)
    except InvalidTransition:
        return False
    return True


def append_status(
    entity: Any,
    new_status: str,
    location: Optional[str] = None,
    remarks: Optional[str] = None,
    actor_id=None,
    override: bool = False,
):
    """
    Append a status entry and set the entity's current status.

    Raises InvalidTransition when the policy forbids the move, unless
    override is set. Returns the appended history entry.
    """
    policy = policy_for(entity)
    previous = entity.status
    if override:
        if new_status not in policy.statuses:
            raise InvalidTransition(f"Unknown {policy.name} status '{new_status}'")
        logger.warning(f"Status override on {policy.name} {entity.id}: {previous} -> {new_status}")
    else:
        policy.check(previous, new_status)

    now = next_timestamp(entity)
    entry = policy.history_model(
        status=new_status,
        location=location,
        remarks=remarks,
        updated_by=actor_id,
        recorded_at=now,
    )
    entity.status_history.append(entry)
    entity.status = new_status

    hook: Optional[Callable] = policy.on_enter.get(new_status)
    if hook:
        hook(entity, now, actor_id)

    logger.info(f"{policy.name.capitalize()} {entity.id} status {previous} -> {new_status}")
    return entry


def record_initial_status(entity: Any, location: Optional[str] = None, remarks: Optional[str] = None, actor_id=None):
    """First ledger entry for a newly created entity, in its current status."""
    policy = policy_for(entity)
    entry = policy.history_model(
        status=entity.status,
        location=location,
        remarks=remarks,
        updated_by=actor_id,
        recorded_at=utc_now(),
    )
    entity.status_history.append(entry)
    return entry
