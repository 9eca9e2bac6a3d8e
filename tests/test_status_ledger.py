import pytest

from courier.core.exceptions import InvalidTransition
from courier.models.booking import Booking, BookingStatus
from courier.models.shipment_exception import ShipmentException, CaseStatus
from courier.models.ticket import SupportTicket
from courier.services.status_ledger import append_status, can_transition, record_initial_status


def new_booking() -> Booking:
    booking = Booking(awb_number="AWB260000001", status=BookingStatus.BOOKED.value)
    record_initial_status(booking, location="Mumbai", remarks="Booking created")
    return booking


def test_each_status_change_appends_history():
    booking = new_booking()

    append_status(booking, BookingStatus.PICKED_UP.value, location="Mumbai")
    append_status(booking, BookingStatus.IN_TRANSIT.value, location="Lonavala")

    assert booking.status == BookingStatus.IN_TRANSIT.value
    assert [h.status for h in booking.status_history] == ["Booked", "Picked Up", "In Transit"]
    assert booking.status_history[-1].location == "Lonavala"
    assert booking.status_history[-1].recorded_at is not None


def test_booking_may_skip_ahead_but_not_leave_delivered():
    booking = new_booking()

    append_status(booking, BookingStatus.DELIVERED.value)
    assert booking.delivery_date is not None

    with pytest.raises(InvalidTransition):
        append_status(booking, BookingStatus.IN_TRANSIT.value)
    assert booking.status == BookingStatus.DELIVERED.value
    assert len(booking.status_history) == 2


def test_override_appends_after_terminal_status():
    booking = new_booking()
    append_status(booking, BookingStatus.CANCELLED.value)

    append_status(booking, BookingStatus.BOOKED.value, remarks="Cancelled by mistake", override=True)

    assert booking.status == BookingStatus.BOOKED.value
    assert [h.status for h in booking.status_history] == ["Booked", "Cancelled", "Booked"]


def test_unknown_status_rejected_even_with_override():
    booking = new_booking()
    with pytest.raises(InvalidTransition):
        append_status(booking, "Teleported", override=True)


def test_returned_stamps_return_date():
    booking = new_booking()
    append_status(booking, BookingStatus.RETURNED.value, remarks="Consignee refused")
    assert booking.return_date is not None


def test_case_lifecycle():
    case = ShipmentException(exception_number="EXC000001", status=CaseStatus.OPEN.value)
    record_initial_status(case)

    append_status(case, CaseStatus.IN_PROGRESS.value, actor_id=None)
    append_status(case, CaseStatus.RESOLVED.value, remarks="Redelivered")
    assert case.resolved_at is not None

    append_status(case, CaseStatus.CLOSED.value)
    with pytest.raises(InvalidTransition):
        append_status(case, CaseStatus.IN_PROGRESS.value)


def test_open_case_cannot_jump_to_resolved():
    ticket = SupportTicket(ticket_number="TKT-000001", status=CaseStatus.OPEN.value)

    with pytest.raises(InvalidTransition) as exc_info:
        append_status(ticket, CaseStatus.RESOLVED.value)

    assert exc_info.value.extra["allowed"] == ["Escalated", "In Progress"]
    assert ticket.status == CaseStatus.OPEN.value


def test_escalated_case_goes_back_to_work():
    ticket = SupportTicket(ticket_number="TKT-000002", status=CaseStatus.OPEN.value)

    append_status(ticket, CaseStatus.ESCALATED.value, remarks="Customer called twice")
    assert ticket.escalated_at is not None
    assert can_transition(ticket, CaseStatus.IN_PROGRESS.value)
    assert can_transition(ticket, CaseStatus.RESOLVED.value)
    assert not can_transition(ticket, CaseStatus.CLOSED.value)
