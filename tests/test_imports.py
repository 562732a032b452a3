"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""


class TestPackageImports:
    def test_import_domain(self):
        from salonbook.domain import DomainError, Err, ErrorType, Ok
        assert Ok(1).ok
        assert not Err(DomainError(ErrorType.NOT_FOUND, "x")).ok

    def test_import_schemas(self):
        from salonbook.schemas import Booking, Reservation, ReservationStatusKind
        assert ReservationStatusKind.NO_SHOW == "no_show"
        assert Booking is not None and Reservation is not None

    def test_import_engine(self):
        from salonbook.engine import ReservationStateMachine, calculate_refund
        assert calculate_refund(100, 48) == 100
        assert ReservationStateMachine is not None

    def test_import_repositories(self):
        from salonbook.repositories.memory import InMemoryReservationRepository
        assert InMemoryReservationRepository().all() == []

    def test_import_usecases(self):
        from salonbook.usecases import BookingService, KeyedLocks, ReservationService
        assert len(KeyedLocks()) == 0
        assert BookingService is not None and ReservationService is not None

    def test_import_mappers(self):
        from salonbook.mappers import error_response, to_booking_response, to_reservation_response
        assert callable(error_response)
        assert callable(to_booking_response) and callable(to_reservation_response)

    def test_version(self):
        import salonbook
        assert salonbook.__version__
