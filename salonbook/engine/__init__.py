from salonbook.engine.availability import find_available_slots, find_conflicts, overlaps
from salonbook.engine.refund_policy import calculate_overtime_charge, calculate_refund
from salonbook.engine.state_machine import BookingStateMachine, ReservationStateMachine

__all__ = [
    "ReservationStateMachine",
    "BookingStateMachine",
    "find_available_slots",
    "find_conflicts",
    "overlaps",
    "calculate_refund",
    "calculate_overtime_charge",
]
