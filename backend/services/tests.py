from decimal import Decimal
from math import pi
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import requests
from django.test import SimpleTestCase, TestCase, override_settings

from accounts.models import User
from common.choices import BookingStatus
from common.utils import GeoPoint, haversine_km
from common.utils.geo import EARTH_RADIUS_KM

from .booking_lifecycle import (
	Actor,
	ActorKind,
	BookingCompletedError,
	DependencyError,
	DriverNotAvailableError,
	DriverTooFarError,
	ForbiddenActorError,
	InvalidTransitionError,
	TransitionContext,
	ValidationError,
	evaluate_transition,
)
from .identity import fetch_remote_identity, lookup_user, resolve_passenger_display
from .matching import ConnectedDriver, route_booking_notification, select_nearest_driver
from . import wallet

PASSENGER = Actor(ActorKind.PASSENGER, 1)
DRIVER = Actor(ActorKind.DRIVER, 2)
OTHER_DRIVER = Actor(ActorKind.DRIVER, 3)
DISPATCHER = Actor(ActorKind.DISPATCHER, 4)


class GeoTests(SimpleTestCase):
	def test_identical_points(self):
		self.assertEqual(haversine_km(9.0, 38.7, 9.0, 38.7), 0)

	def test_antipodal_points(self):
		self.assertAlmostEqual(haversine_km(0, 0, 0, 180), pi * EARTH_RADIUS_KM, places=6)

	def test_accepts_decimals(self):
		self.assertAlmostEqual(
			haversine_km(Decimal('9.000000'), Decimal('38.700000'), 9.02, 38.72),
			haversine_km(9.0, 38.7, 9.02, 38.72),
		)

	def test_point_from_mapping(self):
		point = GeoPoint.from_mapping({'latitude': '9.01', 'longitude': 38.7, 'address': ''})
		self.assertEqual(point, GeoPoint(9.01, 38.7, None))

		with self.assertRaises(ValueError):
			GeoPoint.from_mapping({'latitude': 95, 'longitude': 38.7})


class TransitionGuardTests(SimpleTestCase):
	def ctx(self, **facts):
		defaults = {
			'booking_passenger_id': PASSENGER.id,
			'claiming_driver_id': DRIVER.id,
			'driver_available': True,
			'driver_distance_km': 1.0,
		}
		defaults.update(facts)
		return TransitionContext(**defaults)

	def test_driver_accepts_requested(self):
		decision = evaluate_transition(BookingStatus.REQUESTED, DRIVER, BookingStatus.ACCEPTED, self.ctx())
		self.assertTrue(decision.allowed)

	def test_radius_boundary(self):
		inside = evaluate_transition(BookingStatus.REQUESTED, DRIVER, BookingStatus.ACCEPTED, self.ctx(driver_distance_km=3.0))
		outside = evaluate_transition(BookingStatus.REQUESTED, DRIVER, BookingStatus.ACCEPTED, self.ctx(driver_distance_km=3.01))

		self.assertTrue(inside.allowed)
		self.assertFalse(outside.allowed)
		self.assertIs(outside.error, DriverTooFarError)

	def test_accept_refusals(self):
		cases = [
			(PASSENGER, self.ctx(), ForbiddenActorError),
			(DRIVER, self.ctx(claiming_driver_id=OTHER_DRIVER.id), ForbiddenActorError),
			(DRIVER, self.ctx(driver_available=False), DriverNotAvailableError),
			(DRIVER, self.ctx(driver_has_active_booking=True), DriverNotAvailableError),
			(DRIVER, self.ctx(driver_distance_km=None), DriverNotAvailableError),
			(DISPATCHER, self.ctx(claiming_driver_id=None), ValidationError),
			(DISPATCHER, self.ctx(), ValidationError),
		]
		for actor, ctx, error in cases:
			decision = evaluate_transition(BookingStatus.REQUESTED, actor, BookingStatus.ACCEPTED, ctx)
			self.assertFalse(decision.allowed)
			self.assertIs(decision.error, error)

	def test_staff_accept_needs_dispatcher(self):
		decision = evaluate_transition(
			BookingStatus.REQUESTED, DISPATCHER, BookingStatus.ACCEPTED, self.ctx(dispatcher_id=DISPATCHER.id),
		)
		self.assertTrue(decision.allowed)

	def test_completed_is_terminal_for_everyone(self):
		for actor in (PASSENGER, DRIVER, DISPATCHER):
			decision = evaluate_transition(BookingStatus.COMPLETED, actor, BookingStatus.CANCELED, self.ctx(booking_driver_id=DRIVER.id))
			self.assertIs(decision.error, BookingCompletedError)
			self.assertEqual(decision.reason, 'Cannot change status of completed booking')

	def test_transition_table(self):
		ctx = self.ctx(booking_driver_id=DRIVER.id)
		self.assertIs(evaluate_transition(BookingStatus.REQUESTED, DRIVER, BookingStatus.ONGOING, ctx).error, InvalidTransitionError)
		self.assertIs(evaluate_transition(BookingStatus.ONGOING, PASSENGER, BookingStatus.CANCELED, ctx).error, InvalidTransitionError)
		self.assertIs(evaluate_transition(BookingStatus.CANCELED, DRIVER, BookingStatus.ACCEPTED, ctx).error, InvalidTransitionError)
		self.assertIs(evaluate_transition(BookingStatus.ACCEPTED, DRIVER, BookingStatus.ACCEPTED, ctx).error, InvalidTransitionError)
		self.assertTrue(evaluate_transition(BookingStatus.ACCEPTED, DRIVER, BookingStatus.ONGOING, ctx).allowed)
		self.assertTrue(evaluate_transition(BookingStatus.ONGOING, DRIVER, BookingStatus.COMPLETED, ctx).allowed)

	def test_unknown_status(self):
		decision = evaluate_transition(BookingStatus.REQUESTED, PASSENGER, 'flying', self.ctx())
		self.assertIs(decision.error, ValidationError)

	def test_cancel_permissions(self):
		ctx = self.ctx(booking_driver_id=DRIVER.id)
		stranger = Actor(ActorKind.PASSENGER, 99)

		self.assertTrue(evaluate_transition(BookingStatus.ACCEPTED, PASSENGER, BookingStatus.CANCELED, ctx).allowed)
		self.assertTrue(evaluate_transition(BookingStatus.ACCEPTED, DRIVER, BookingStatus.CANCELED, ctx).allowed)
		self.assertTrue(evaluate_transition(BookingStatus.ACCEPTED, DISPATCHER, BookingStatus.CANCELED, ctx).allowed)
		self.assertIs(evaluate_transition(BookingStatus.ACCEPTED, stranger, BookingStatus.CANCELED, ctx).error, ForbiddenActorError)
		self.assertIs(evaluate_transition(BookingStatus.ACCEPTED, OTHER_DRIVER, BookingStatus.CANCELED, ctx).error, ForbiddenActorError)

	def test_raise_if_denied(self):
		decision = evaluate_transition(BookingStatus.REQUESTED, DRIVER, BookingStatus.ACCEPTED, self.ctx(driver_distance_km=10))

		with self.assertRaises(DriverTooFarError) as ctx:
			decision.raise_if_denied()
		self.assertEqual(ctx.exception.http_status, 409)
		self.assertEqual(decision.code, 'driver_too_far')


class NearestClaimTests(SimpleTestCase):
	def test_exclusive_to_nearest_within_radius(self):
		connected = [
			ConnectedDriver(1, 9.02, 38.7),
			ConnectedDriver(2, 9.01, 38.7),
			ConnectedDriver(3),
		]

		decision = select_nearest_driver(9.0, 38.7, connected)
		self.assertTrue(decision.exclusive)
		self.assertEqual(decision.driver_id, 2)

	def test_broadcast_when_nearest_is_out_of_range(self):
		decision = select_nearest_driver(9.0, 38.7, [ConnectedDriver(1, 9.1, 38.7)])

		self.assertFalse(decision.exclusive)
		self.assertGreater(decision.distance_km, 3)

	def test_no_connected_drivers(self):
		decision = select_nearest_driver(9.0, 38.7, [])

		self.assertIsNone(decision.driver_id)
		self.assertIsNone(decision.distance_km)

	def test_tie_goes_to_first_seen(self):
		connected = [ConnectedDriver(5, 9.01, 38.7), ConnectedDriver(6, 9.01, 38.7)]

		self.assertEqual(select_nearest_driver(9.0, 38.7, connected).driver_id, 5)

	@patch('realtime.events.broadcast_to_drivers')
	@patch('realtime.events.publish_to_driver')
	@patch('bookings.serializers.serialize_booking', return_value={'id': '1'})
	def test_route_notification(self, mock_serialize, mock_publish, mock_broadcast):
		booking = SimpleNamespace(pk=1, pickup_latitude=Decimal('9.0'), pickup_longitude=Decimal('38.7'))

		route_booking_notification(booking, connected=[ConnectedDriver(2, 9.01, 38.7)])
		mock_publish.assert_called_once_with(2, 'booking:new', {'id': '1'})

		route_booking_notification(booking, connected=[])
		mock_broadcast.assert_called_once_with('booking:new', {'id': '1'})


@override_settings(IDENTITY_LOOKUP_URL_TEMPLATE='http://identity.local/{role}s/{id}', SERVICE_BEARER_TOKEN='svc')
class IdentityTests(TestCase):
	def setUp(self):
		self.bare = User.objects.create_user(username='bare', password='x')
		self.named = User.objects.create_user(username='named', password='x', first_name='Sara', phone_number='+251900')

	def response(self, status_code=200, data=None):
		return MagicMock(status_code=status_code, json=MagicMock(return_value=data))

	@patch('services.identity.requests.get')
	def test_remote_profile_unwraps_data(self, mock_get):
		mock_get.return_value = self.response(data={'data': {'fullName': 'Abebe K', 'phoneNumber': '+2519'}})

		identity = fetch_remote_identity(self.bare.pk)

		self.assertEqual(identity.name, 'Abebe K')
		self.assertEqual(identity.phone, '+2519')
		url = mock_get.call_args[0][0]
		self.assertEqual(url, 'http://identity.local/passengers/%d' % self.bare.pk)
		self.assertEqual(mock_get.call_args[1]['headers']['Authorization'], 'Bearer svc')

	@patch('services.identity.requests.get')
	def test_remote_not_found(self, mock_get):
		mock_get.return_value = self.response(status_code=404)

		self.assertIsNone(fetch_remote_identity(self.bare.pk))

	@patch('services.identity.requests.get', side_effect=requests.ConnectionError('down'))
	def test_transport_failure_is_dependency_error(self, mock_get):
		with self.assertRaises(DependencyError):
			fetch_remote_identity(self.bare.pk)

	@patch('services.identity.requests.get')
	def test_local_user_wins(self, mock_get):
		identity = lookup_user(self.named.pk)

		self.assertEqual(identity.name, 'Sara')
		mock_get.assert_not_called()

	@patch('services.identity.requests.get')
	def test_partial_local_user_falls_back_to_stored_fields(self, mock_get):
		mock_get.return_value = self.response(status_code=404)
		partial = User.objects.create_user(username='partial', password='x', first_name='Lidya')

		identity = lookup_user(partial.pk)

		self.assertEqual((identity.name, identity.phone), ('Lidya', ''))
		mock_get.assert_called_once()

	@patch('services.identity.requests.get')
	def test_display_fills_missing_phone_from_identity_service(self, mock_get):
		mock_get.return_value = self.response(data={'name': 'Remote Name', 'phone': '+2517'})
		partial = User.objects.create_user(username='partial', password='x', first_name='Lidya')

		name, phone = resolve_passenger_display(partial)

		self.assertEqual((name, phone), ('Lidya', '+2517'))

	@patch('services.identity.requests.get', side_effect=requests.Timeout('slow'))
	def test_display_degrades_to_placeholders(self, mock_get):
		name, phone = resolve_passenger_display(self.bare)

		self.assertEqual(name, 'Passenger %d' % self.bare.pk)
		self.assertEqual(phone, '+123456789%d' % self.bare.pk)

	@patch('services.identity.requests.get')
	def test_display_prefers_claims(self, mock_get):
		name, phone = resolve_passenger_display(self.bare, {'name': 'From Token', 'phone': '+2511'})

		self.assertEqual((name, phone), ('From Token', '+2511'))
		mock_get.assert_not_called()


class WalletClientTests(SimpleTestCase):
	@override_settings(WALLET_SERVICE_URL='')
	def test_unconfigured(self):
		with self.assertRaises(DependencyError):
			wallet.credit(1, Decimal('5.00'), 'driver', 'test', 'key-1')

	@override_settings(WALLET_SERVICE_URL='http://wallet.local/api/')
	@patch('services.wallet.requests.post')
	def test_credit_sends_idempotency_key(self, mock_post):
		mock_post.return_value.content = b''

		wallet.credit(1, Decimal('5.00'), 'driver', 'Trip earnings', 'key-1')

		url = mock_post.call_args[0][0]
		self.assertEqual(url, 'http://wallet.local/api/credit')
		self.assertEqual(mock_post.call_args[1]['headers']['Idempotency-Key'], 'key-1')
		self.assertEqual(mock_post.call_args[1]['json']['amount'], '5.00')

	@override_settings(WALLET_SERVICE_URL='http://wallet.local/api/')
	@patch('services.wallet.requests.post')
	def test_http_error_is_dependency_error(self, mock_post):
		mock_post.return_value.raise_for_status.side_effect = requests.HTTPError('500')

		with self.assertRaises(DependencyError):
			wallet.debit(1, Decimal('5.00'), 'passenger', 'refund', 'key-2')
