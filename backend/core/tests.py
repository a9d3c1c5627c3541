from decimal import Decimal

from django.db import DatabaseError, IntegrityError, OperationalError, transaction
from django.test import SimpleTestCase, TransactionTestCase, override_settings
from rest_framework import exceptions as drf_exceptions

from core.db import atomic_with_retry, sqlstate, store_read
from core.exceptions import ConflictError, NotFoundError, StoreError, ValidationError, custom_exception_handler
from core.rounding import round_km, round_rating
from core.validators import validate_coordinates, validate_radius, validate_scale, validate_uuid


class _DriverError(Exception):
    def __init__(self, pgcode):
        super().__init__(pgcode)
        self.pgcode = pgcode


def db_error(cls, pgcode):
    error = cls(f"driver error {pgcode}")
    error.__cause__ = _DriverError(pgcode)
    return error


@override_settings(AGGREGATE_CONFLICT_RETRIES=1)
class AtomicWithRetryTests(TransactionTestCase):
    def test_sqlstate(self):
        self.assertEqual(sqlstate(db_error(OperationalError, '40001')), '40001')
        self.assertIsNone(sqlstate(DatabaseError("no cause")))

    def test_write_conflict_is_retried_once(self):
        calls = []

        @atomic_with_retry
        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise db_error(OperationalError, '40P01')
            return 'ok'

        self.assertEqual(flaky(), 'ok')
        self.assertEqual(len(calls), 2)

    def test_persistent_conflict_becomes_store_error(self):
        calls = []

        @atomic_with_retry
        def always_conflicts():
            calls.append(1)
            raise db_error(OperationalError, '40001')

        with self.assertRaises(StoreError):
            always_conflicts()
        self.assertEqual(len(calls), 2)

    def test_no_retry_inside_outer_transaction(self):
        calls = []

        @atomic_with_retry
        def conflicts():
            calls.append(1)
            raise db_error(OperationalError, '40001')

        with self.assertRaises(StoreError):
            with transaction.atomic():
                conflicts()
        self.assertEqual(len(calls), 1)

    def test_unique_violation_becomes_conflict(self):
        @atomic_with_retry
        def duplicate():
            raise db_error(IntegrityError, '23505')

        with self.assertRaises(ConflictError):
            duplicate()

    def test_other_database_error_is_not_retried(self):
        calls = []

        @atomic_with_retry
        def broken():
            calls.append(1)
            raise db_error(OperationalError, '08006')

        with self.assertRaises(StoreError):
            broken()
        self.assertEqual(len(calls), 1)

    def test_domain_errors_pass_through(self):
        @atomic_with_retry
        def invalid():
            raise ValidationError("bad input")

        with self.assertRaises(ValidationError):
            invalid()


class StoreReadTests(SimpleTestCase):
    def test_database_error_becomes_store_error(self):
        @store_read
        def cancelled():
            raise db_error(OperationalError, '57014')

        with self.assertRaises(StoreError) as ctx:
            cancelled()
        self.assertIsInstance(ctx.exception.__cause__, OperationalError)

    def test_result_and_domain_errors_pass_through(self):
        @store_read
        def lookup(value):
            if value is None:
                raise NotFoundError("missing")
            return value

        self.assertEqual(lookup(3), 3)
        with self.assertRaises(NotFoundError):
            lookup(None)


class ExceptionHandlerTests(SimpleTestCase):
    def test_domain_error_payload(self):
        response = custom_exception_handler(NotFoundError("venue not found", details={'venue_id': 'x'}), {})

        self.assertEqual(response.status_code, 404)
        error = response.data['error']
        self.assertEqual(error['code'], 'NOT_FOUND')
        self.assertEqual(error['message'], 'venue not found')
        self.assertEqual(error['details'], {'venue_id': 'x'})
        self.assertTrue(error['trace_id'].startswith('req_'))

    def test_status_codes(self):
        self.assertEqual(custom_exception_handler(ValidationError("x"), {}).status_code, 400)
        self.assertEqual(custom_exception_handler(ConflictError("x"), {}).status_code, 409)
        self.assertEqual(custom_exception_handler(StoreError("x"), {}).status_code, 503)

    def test_drf_validation_error(self):
        response = custom_exception_handler(drf_exceptions.ValidationError({'lat': ['required']}), {})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')
        self.assertEqual(response.data['error']['details'], {'lat': ['required']})

    def test_unhandled_exception_is_left_alone(self):
        self.assertIsNone(custom_exception_handler(RuntimeError("boom"), {}))


class ValidatorTests(SimpleTestCase):
    def test_coordinates(self):
        self.assertEqual(validate_coordinates('37.5', -122), (37.5, -122.0))
        self.assertEqual(validate_coordinates(90, 180), (90.0, 180.0))
        for lat, lng in [(90.1, 0), (0, -180.1), (None, 0), (True, 0), ('inf', 0)]:
            with self.assertRaises(ValidationError):
                validate_coordinates(lat, lng)

    def test_radius(self):
        self.assertEqual(validate_radius('2.5'), 2.5)
        with self.assertRaises(ValidationError):
            validate_radius(0)
        with self.assertRaises(ValidationError):
            validate_radius(60, max_km=50)

    def test_scale(self):
        self.assertIsNone(validate_scale('wifi', None, 1, 5))
        self.assertEqual(validate_scale('wifi', 5, 1, 5), 5)
        with self.assertRaises(ValidationError):
            validate_scale('wifi', None, 1, 5, required=True)
        with self.assertRaises(ValidationError):
            validate_scale('wifi', False, 1, 5)

    def test_uuid(self):
        with self.assertRaises(ValidationError):
            validate_uuid('user_id', 'nope')


class RoundingTests(SimpleTestCase):
    def test_half_up(self):
        self.assertEqual(round_rating(Decimal('4.25')), Decimal('4.3'))
        self.assertEqual(round_rating(4.35), Decimal('4.4'))
        self.assertEqual(round_km(1.005), Decimal('1.01'))
        self.assertEqual(round_km(Decimal('1.8549')), Decimal('1.85'))
