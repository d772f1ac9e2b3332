import threading
from decimal import Decimal
from unittest import skipIf
from unittest.mock import patch

from django.db import connection
from django.test import TestCase, TransactionTestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from common.choices import BookingStatus
from common.utils import GeoPoint, haversine_km
from drivers.models import DriverProfile
from earnings.models import AdminEarnings, DriverEarnings
from services.booking_lifecycle import (
	Actor,
	ActorKind,
	ActiveBookingExistsError,
	BookingCompletedError,
	ConflictError,
	DriverNotAvailableError,
	DriverTooFarError,
	ForbiddenActorError,
	InvalidTransitionError,
	ValidationError,
	assign_booking,
	create_booking,
	delete_booking,
	rate_driver,
	rate_passenger,
	transition_booking,
)
from services.booking_lifecycle import state_machine

from . import views
from .models import Booking, BookingAssignment, TripHistory

PICKUP = GeoPoint(9.000, 38.700, 'Meskel Square')
DROPOFF = GeoPoint(9.020, 38.720, 'Bole')


class BookingTestMixin:
	def make_user(self, username, role, **extra):
		return User.objects.create_user(
			username=username,
			password='pass1234',
			role=role,
			first_name=extra.pop('first_name', username.title()),
			phone_number=extra.pop('phone_number', '9000000000'),
			**extra
		)

	def make_driver(self, username, latitude=9.000, longitude=38.700, available=True):
		user = self.make_user(username, User.ROLE_DRIVER)
		DriverProfile.objects.create(
			user=user,
			vehicle_number='AA-%s' % username,
			available=available,
			current_latitude=latitude,
			current_longitude=longitude,
			last_location_update=timezone.now(),
		)
		return user

	def actor(self, user):
		return Actor(ActorKind(user.role), user.pk)

	def profile(self, user):
		return DriverProfile.objects.get(user=user)


class BookingLifecycleTests(BookingTestMixin, TestCase):
	def setUp(self):
		self.passenger = self.make_user('passenger', User.ROLE_PASSENGER)
		self.driver = self.make_driver('driver_one')
		self.booking = create_booking(self.actor(self.passenger), PICKUP, DROPOFF)

	def accept(self, driver=None):
		driver = driver or self.driver
		return transition_booking(self.actor(driver), self.booking.pk, BookingStatus.ACCEPTED)

	def run_to_completion(self):
		self.accept()
		transition_booking(self.actor(self.driver), self.booking.pk, BookingStatus.ONGOING)
		return transition_booking(self.actor(self.driver), self.booking.pk, BookingStatus.COMPLETED)

	def test_create_booking_estimates_fare_with_default_tier(self):
		distance = haversine_km(9.000, 38.700, 9.020, 38.720)

		self.assertEqual(self.booking.status, BookingStatus.REQUESTED)
		self.assertAlmostEqual(self.booking.distance_km, distance, places=6)
		self.assertAlmostEqual(self.booking.fare_estimated, (2.0 + distance * 1.0) * 1.0, places=6)
		self.assertEqual(self.booking.fare_breakdown['timeCost'], 0)
		self.assertEqual(self.booking.fare_breakdown['waitingCost'], 0)
		self.assertIsNone(self.booking.driver_id)
		self.assertIsNone(self.booking.fare_final)

	def test_create_booking_snapshots_passenger_display(self):
		self.assertEqual(self.booking.passenger_name, 'Passenger')
		self.assertEqual(self.booking.passenger_phone, '9000000000')

	def test_second_requested_booking_is_rejected(self):
		with self.assertRaises(ActiveBookingExistsError):
			create_booking(self.actor(self.passenger), PICKUP, DROPOFF)

		self.assertEqual(
			Booking.objects.filter(passenger=self.passenger, status=BookingStatus.REQUESTED).count(),
			1
		)

	def test_new_booking_allowed_after_cancel(self):
		transition_booking(self.actor(self.passenger), self.booking.pk, BookingStatus.CANCELED)

		second = create_booking(self.actor(self.passenger), PICKUP, DROPOFF)
		self.assertEqual(second.status, BookingStatus.REQUESTED)

	def test_only_passengers_create_bookings(self):
		with self.assertRaises(ForbiddenActorError):
			create_booking(self.actor(self.driver), PICKUP, DROPOFF)

	def test_driver_accept_binds_driver_and_claims(self):
		booking = self.accept()

		self.assertEqual(booking.status, BookingStatus.ACCEPTED)
		self.assertEqual(booking.driver_id, self.driver.pk)
		self.assertIsNotNone(booking.accepted_at)
		self.assertFalse(self.profile(self.driver).available)

	def test_driver_outside_radius_cannot_accept(self):
		# ~3.3 km north of the pickup
		far = self.make_driver('far_driver', latitude=9.030, longitude=38.700)

		with self.assertRaises(DriverTooFarError):
			self.accept(far)

		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, BookingStatus.REQUESTED)
		self.assertIsNone(self.booking.driver_id)
		self.assertTrue(self.profile(far).available)

	def test_driver_inside_radius_can_accept(self):
		# ~2.2 km north of the pickup
		near = self.make_driver('near_driver', latitude=9.020, longitude=38.700)

		booking = self.accept(near)
		self.assertEqual(booking.driver_id, near.pk)

	def test_driver_without_location_cannot_accept(self):
		nowhere = self.make_user('nowhere', User.ROLE_DRIVER)
		DriverProfile.objects.create(user=nowhere, available=True)

		with self.assertRaises(DriverNotAvailableError):
			self.accept(nowhere)

	def test_unavailable_driver_loses_to_available_driver(self):
		busy = self.make_driver('busy_driver', available=False)

		with self.assertRaises(ConflictError):
			self.accept(busy)
		booking = self.accept(self.driver)

		self.assertEqual(booking.driver_id, self.driver.pk)
		self.assertEqual(Booking.objects.filter(driver=busy).count(), 0)

	def test_second_accept_on_same_booking_conflicts(self):
		other = self.make_driver('driver_two')
		self.accept(self.driver)

		with self.assertRaises(ConflictError):
			self.accept(other)

		self.booking.refresh_from_db()
		self.assertEqual(self.booking.driver_id, self.driver.pk)
		self.assertTrue(self.profile(other).available)

	def test_driver_with_active_booking_cannot_accept_another(self):
		self.accept()
		other_passenger = self.make_user('passenger_two', User.ROLE_PASSENGER)
		second = create_booking(self.actor(other_passenger), PICKUP, DROPOFF)
		# Flag flipped back by hand; the active booking must still block the claim
		DriverProfile.objects.filter(user=self.driver).update(available=True)

		with self.assertRaises(DriverNotAvailableError):
			transition_booking(self.actor(self.driver), second.pk, BookingStatus.ACCEPTED)

		self.assertEqual(
			Booking.objects.filter(driver=self.driver, status__in=[BookingStatus.ACCEPTED, BookingStatus.ONGOING]).count(),
			1
		)

	def test_stale_status_write_rolls_back_claim(self):
		stale = Booking.objects.get(pk=self.booking.pk)
		Booking.objects.filter(pk=self.booking.pk).update(status=BookingStatus.CANCELED)

		with patch('services.booking_lifecycle.state_machine._load', return_value=stale):
			with self.assertRaises(ConflictError) as ctx:
				self.accept()

		self.assertEqual(ctx.exception.code, 'stale_booking')
		self.assertTrue(self.profile(self.driver).available)
		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, BookingStatus.CANCELED)
		self.assertIsNone(self.booking.driver_id)

	def test_start_and_complete_set_timestamps_and_fare(self):
		booking = self.run_to_completion()

		self.assertEqual(booking.status, BookingStatus.COMPLETED)
		self.assertIsNotNone(booking.started_at)
		self.assertIsNotNone(booking.completed_at)
		self.assertEqual(booking.fare_final, booking.fare_estimated)
		self.assertTrue(self.profile(self.driver).available)

	def test_only_assigned_driver_can_start(self):
		other = self.make_driver('driver_two')
		self.accept()

		with self.assertRaises(ForbiddenActorError):
			transition_booking(self.actor(other), self.booking.pk, BookingStatus.ONGOING)
		with self.assertRaises(ForbiddenActorError):
			transition_booking(self.actor(self.passenger), self.booking.pk, BookingStatus.ONGOING)

	def test_cannot_skip_states(self):
		with self.assertRaises(InvalidTransitionError):
			transition_booking(self.actor(self.driver), self.booking.pk, BookingStatus.COMPLETED)

	def test_invalid_status_value_is_validation_error(self):
		with self.assertRaises(ValidationError):
			transition_booking(self.actor(self.passenger), self.booking.pk, 'teleported')

	def test_completed_booking_is_frozen(self):
		self.run_to_completion()

		for target in (BookingStatus.CANCELED, BookingStatus.ONGOING, BookingStatus.COMPLETED):
			with self.assertRaises(BookingCompletedError):
				transition_booking(self.actor(self.driver), self.booking.pk, target)

	def test_completing_twice_settles_once(self):
		self.run_to_completion()

		with self.assertRaises(BookingCompletedError):
			transition_booking(self.actor(self.driver), self.booking.pk, BookingStatus.COMPLETED)

		self.assertEqual(DriverEarnings.objects.filter(booking=self.booking).count(), 1)
		self.assertEqual(AdminEarnings.objects.filter(booking=self.booking).count(), 1)

	def test_settlement_parts_add_up(self):
		self.run_to_completion()

		earnings = DriverEarnings.objects.get(booking=self.booking)
		self.assertEqual(earnings.commission_amount + earnings.net_earnings, earnings.gross_fare)
		self.assertEqual(earnings.commission_percentage, Decimal('15.00'))

	def test_cancel_accepted_booking_releases_driver(self):
		self.accept()
		booking = transition_booking(self.actor(self.passenger), self.booking.pk, BookingStatus.CANCELED)

		self.assertEqual(booking.status, BookingStatus.CANCELED)
		self.assertTrue(self.profile(self.driver).available)
		self.assertFalse(DriverEarnings.objects.filter(booking=self.booking).exists())
		self.assertFalse(AdminEarnings.objects.filter(booking=self.booking).exists())

	def test_ongoing_booking_cannot_be_canceled(self):
		self.accept()
		transition_booking(self.actor(self.driver), self.booking.pk, BookingStatus.ONGOING)

		with self.assertRaises(InvalidTransitionError):
			transition_booking(self.actor(self.passenger), self.booking.pk, BookingStatus.CANCELED)

	def test_other_passenger_cannot_cancel(self):
		stranger = self.make_user('stranger', User.ROLE_PASSENGER)

		with self.assertRaises(ForbiddenActorError):
			transition_booking(self.actor(stranger), self.booking.pk, BookingStatus.CANCELED)

	def test_every_transition_writes_history(self):
		self.run_to_completion()

		statuses = list(
			TripHistory.objects.filter(booking_id=self.booking.pk).values_list('status', flat=True)
		)
		self.assertEqual(statuses, ['requested', 'accepted', 'ongoing', 'completed'])

	def test_history_rows_are_append_only(self):
		row = TripHistory.objects.filter(booking_id=self.booking.pk).first()
		row.status = BookingStatus.CANCELED

		with self.assertRaises(ValueError):
			row.save()

	@patch('realtime.tracking.stop_tracking')
	@patch('realtime.tracking.start_tracking')
	@patch('realtime.events.publish_booking_event')
	def test_transitions_publish_on_commit(self, mock_publish, mock_start, mock_stop):
		with self.captureOnCommitCallbacks(execute=True):
			self.accept()
		with self.captureOnCommitCallbacks(execute=True):
			transition_booking(self.actor(self.driver), self.booking.pk, BookingStatus.ONGOING)
		with self.captureOnCommitCallbacks(execute=True):
			transition_booking(self.actor(self.driver), self.booking.pk, BookingStatus.COMPLETED)

		self.assertEqual(mock_publish.call_count, 3)
		event_name, payload, _ = mock_publish.call_args_list[0][0]
		self.assertEqual(event_name, 'booking:update')
		self.assertEqual(payload['status'], 'accepted')
		self.assertEqual(payload['driverId'], str(self.driver.pk))
		self.assertEqual(payload['passenger']['id'], str(self.passenger.pk))
		mock_start.assert_called_once_with(self.booking.pk, self.driver.pk, self.passenger.pk)
		mock_stop.assert_called_once_with(self.booking.pk)

	@patch('realtime.events.publish_booking_event')
	def test_rejected_transition_publishes_nothing(self, mock_publish):
		far = self.make_driver('far_driver', latitude=9.1, longitude=38.7)

		with self.captureOnCommitCallbacks(execute=True) as callbacks:
			with self.assertRaises(DriverTooFarError):
				self.accept(far)

		self.assertEqual(len(callbacks), 0)
		mock_publish.assert_not_called()


class AssignmentTests(BookingTestMixin, TestCase):
	def setUp(self):
		self.passenger = self.make_user('passenger', User.ROLE_PASSENGER)
		self.dispatcher = self.make_user('dispatcher', User.ROLE_DISPATCHER)
		self.driver = self.make_driver('driver_one')
		self.booking = create_booking(self.actor(self.passenger), PICKUP, DROPOFF)

	@patch('realtime.events.publish_booking_event')
	def test_dispatcher_assigns_driver(self, mock_publish):
		with self.captureOnCommitCallbacks(execute=True):
			booking, assignment = assign_booking(
				self.actor(self.dispatcher), self.booking.pk, str(self.driver.pk), str(self.dispatcher.pk),
				passenger_id=str(self.passenger.pk),
			)

		self.assertEqual(booking.status, BookingStatus.ACCEPTED)
		self.assertEqual(booking.driver_id, self.driver.pk)
		self.assertEqual(assignment.dispatcher, self.dispatcher)
		self.assertFalse(self.profile(self.driver).available)

		events = [c[0][0] for c in mock_publish.call_args_list]
		self.assertEqual(events, ['booking:update', 'booking:assigned'])
		assigned_payload = mock_publish.call_args_list[1][0][1]
		self.assertEqual(assigned_payload['driverId'], str(self.driver.pk))
		self.assertEqual(assigned_payload['booking']['status'], 'accepted')

	def test_assign_requires_ids(self):
		with self.assertRaises(ValidationError):
			assign_booking(self.actor(self.dispatcher), self.booking.pk, '', str(self.dispatcher.pk))
		with self.assertRaises(ValidationError):
			assign_booking(self.actor(self.dispatcher), self.booking.pk, str(self.driver.pk), None)

	def test_dispatcher_cannot_assign_on_behalf_of_another(self):
		other = self.make_user('dispatcher_two', User.ROLE_DISPATCHER)

		with self.assertRaises(ForbiddenActorError):
			assign_booking(self.actor(self.dispatcher), self.booking.pk, self.driver.pk, other.pk)

	def test_passenger_cannot_assign(self):
		with self.assertRaises(ForbiddenActorError):
			assign_booking(self.actor(self.passenger), self.booking.pk, self.driver.pk, self.dispatcher.pk)

	def test_passenger_mismatch_is_rejected(self):
		with self.assertRaises(ValidationError):
			assign_booking(
				self.actor(self.dispatcher), self.booking.pk, self.driver.pk, self.dispatcher.pk,
				passenger_id=self.dispatcher.pk,
			)

	def test_assign_respects_driver_checks(self):
		far = self.make_driver('far_driver', latitude=9.1, longitude=38.7)

		with self.assertRaises(DriverTooFarError):
			assign_booking(self.actor(self.dispatcher), self.booking.pk, far.pk, self.dispatcher.pk)
		self.assertFalse(BookingAssignment.objects.exists())

	@patch('realtime.events.publish_booking_event')
	def test_staff_accept_outside_assignment_is_rejected(self, mock_publish):
		for staff in (self.dispatcher, self.make_user('admin', User.ROLE_ADMIN)):
			with self.captureOnCommitCallbacks(execute=True):
				with self.assertRaises(ValidationError) as ctx:
					transition_booking(self.actor(staff), self.booking.pk, BookingStatus.ACCEPTED)
			self.assertIn('assign endpoint', ctx.exception.message)

		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, BookingStatus.REQUESTED)
		self.assertIsNone(self.booking.driver_id)
		self.assertTrue(self.profile(self.driver).available)
		self.assertFalse(BookingAssignment.objects.exists())
		mock_publish.assert_not_called()

	def test_only_requested_bookings_can_be_assigned(self):
		assign_booking(self.actor(self.dispatcher), self.booking.pk, self.driver.pk, self.dispatcher.pk)
		other = self.make_driver('driver_two')

		with self.assertRaises(InvalidTransitionError) as ctx:
			assign_booking(self.actor(self.dispatcher), self.booking.pk, other.pk, self.dispatcher.pk)
		self.assertIn("Only 'requested' bookings can be assigned", ctx.exception.message)


@skipIf(connection.vendor == 'sqlite', 'needs a database with concurrent writers')
class ConcurrentAcceptTests(BookingTestMixin, TransactionTestCase):
	def setUp(self):
		self.passenger = self.make_user('passenger', User.ROLE_PASSENGER)
		self.first = self.make_driver('driver_one')
		self.second = self.make_driver('driver_two')
		self.booking = create_booking(self.actor(self.passenger), PICKUP, DROPOFF)

	def race(self, *calls):
		barrier = threading.Barrier(len(calls))
		outcomes = [None] * len(calls)

		def run(position, call):
			barrier.wait()
			try:
				outcomes[position] = call()
			except ConflictError as exc:
				outcomes[position] = exc
			finally:
				connection.close()

		threads = [threading.Thread(target=run, args=(i, call)) for i, call in enumerate(calls)]
		for thread in threads:
			thread.start()
		for thread in threads:
			thread.join(timeout=30)
		return outcomes

	def accept_as(self, driver):
		return lambda: transition_booking(self.actor(driver), self.booking.pk, BookingStatus.ACCEPTED)

	def test_two_drivers_accepting_at_once(self):
		outcomes = self.race(self.accept_as(self.first), self.accept_as(self.second))

		winners = [o for o in outcomes if isinstance(o, Booking)]
		losers = [o for o in outcomes if isinstance(o, ConflictError)]
		self.assertEqual(len(winners), 1)
		self.assertEqual(len(losers), 1)

		self.booking.refresh_from_db()
		winner_id = winners[0].driver_id
		loser = self.second if winner_id == self.first.pk else self.first
		self.assertEqual(self.booking.driver_id, winner_id)
		self.assertEqual(self.booking.status, BookingStatus.ACCEPTED)
		self.assertFalse(DriverProfile.objects.get(user_id=winner_id).available)
		# The loser's claim was rolled back with its transaction
		self.assertTrue(self.profile(loser).available)
		self.assertEqual(TripHistory.objects.filter(booking_id=self.booking.pk, status=BookingStatus.ACCEPTED).count(), 1)

	def test_accept_racing_cancel(self):
		cancel = lambda: transition_booking(self.actor(self.passenger), self.booking.pk, BookingStatus.CANCELED)
		outcomes = self.race(self.accept_as(self.first), cancel)

		self.booking.refresh_from_db()
		succeeded = [o for o in outcomes if isinstance(o, Booking)]
		self.assertGreaterEqual(len(succeeded), 1)
		if self.booking.status == BookingStatus.CANCELED and self.booking.driver_id is None:
			# Cancel won outright; the accept must not have left a claim behind
			self.assertTrue(self.profile(self.first).available)
		else:
			# Accept won; a cancel that ran after it released the driver again
			self.assertEqual(self.booking.driver_id, self.first.pk)
			self.assertEqual(
				self.profile(self.first).available,
				self.booking.status == BookingStatus.CANCELED,
			)


class RatingTests(BookingTestMixin, TestCase):
	def setUp(self):
		self.passenger = self.make_user('passenger', User.ROLE_PASSENGER)
		self.driver = self.make_driver('driver_one')
		self.booking = create_booking(self.actor(self.passenger), PICKUP, DROPOFF)
		transition_booking(self.actor(self.driver), self.booking.pk, BookingStatus.ACCEPTED)

	def complete(self):
		transition_booking(self.actor(self.driver), self.booking.pk, BookingStatus.ONGOING)
		transition_booking(self.actor(self.driver), self.booking.pk, BookingStatus.COMPLETED)

	def test_rating_before_completion_is_rejected(self):
		with self.assertRaises(ConflictError) as ctx:
			rate_driver(self.actor(self.passenger), self.booking.pk, 5)
		self.assertEqual(ctx.exception.code, 'not_completed')

	def test_only_counterparty_can_rate(self):
		self.complete()
		stranger = self.make_user('stranger', User.ROLE_PASSENGER)

		with self.assertRaises(ForbiddenActorError):
			rate_driver(self.actor(stranger), self.booking.pk, 5)
		with self.assertRaises(ForbiddenActorError):
			rate_passenger(self.actor(self.passenger), self.booking.pk, 5)

	def test_both_parties_rate_after_completion(self):
		self.complete()

		rate_driver(self.actor(self.passenger), self.booking.pk, 5, 'Smooth ride')
		booking = rate_passenger(self.actor(self.driver), self.booking.pk, '4')

		self.assertEqual(booking.driver_rating, 5)
		self.assertEqual(booking.driver_comment, 'Smooth ride')
		self.assertEqual(booking.passenger_rating, 4)

	def test_rating_out_of_range(self):
		self.complete()

		for value in (0, 6, 'abc', None, True, 4.5, 'NaN', 'Infinity'):
			with self.assertRaises(ValidationError):
				rate_driver(self.actor(self.passenger), self.booking.pk, value)

	def test_whole_number_float_rating(self):
		self.complete()

		booking = rate_driver(self.actor(self.passenger), self.booking.pk, 5.0)

		self.assertEqual(booking.driver_rating, 5)


class OwnerDeleteTests(BookingTestMixin, TestCase):
	def setUp(self):
		self.passenger = self.make_user('passenger', User.ROLE_PASSENGER)
		self.booking = create_booking(self.actor(self.passenger), PICKUP, DROPOFF)

	def test_owner_deletes_requested_booking(self):
		delete_booking(self.actor(self.passenger), self.booking.pk)

		self.assertFalse(Booking.objects.filter(pk=self.booking.pk).exists())
		self.assertTrue(TripHistory.objects.filter(booking_id=self.booking.pk).exists())

	def test_accepted_booking_cannot_be_deleted(self):
		driver = self.make_driver('driver_one')
		transition_booking(self.actor(driver), self.booking.pk, BookingStatus.ACCEPTED)

		with self.assertRaises(InvalidTransitionError):
			delete_booking(self.actor(self.passenger), self.booking.pk)


class BookingViewTests(BookingTestMixin, TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.passenger = self.make_user('passenger', User.ROLE_PASSENGER)
		self.driver = self.make_driver('driver_one')
		self.dispatcher = self.make_user('dispatcher', User.ROLE_DISPATCHER)
		self.payload = {
			'vehicleType': 'mini',
			'pickup': {'latitude': 9.000, 'longitude': 38.700, 'address': 'Meskel Square'},
			'dropoff': {'latitude': 9.020, 'longitude': 38.720, 'address': 'Bole'},
		}

	def create(self):
		request = self.factory.post('/api/bookings/', self.payload, format='json')
		force_authenticate(request, user=self.passenger)
		return views.bookings_collection(request)

	def test_create_returns_normalized_booking(self):
		response = self.create()

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['status'], 'requested')
		self.assertEqual(response.data['passengerId'], str(self.passenger.pk))
		self.assertIsInstance(response.data['id'], str)
		self.assertIsNone(response.data['driver'])
		self.assertEqual(response.data['pickup']['address'], 'Meskel Square')

	def test_second_create_is_conflict(self):
		self.create()
		response = self.create()

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'active_booking_exists')

	def test_create_rejects_missing_dropoff(self):
		del self.payload['dropoff']
		request = self.factory.post('/api/bookings/', self.payload, format='json')
		force_authenticate(request, user=self.passenger)
		response = views.bookings_collection(request)

		self.assertEqual(response.status_code, 400)

	def test_estimate_does_not_persist(self):
		request = self.factory.post('/api/bookings/estimate/', self.payload, format='json')
		force_authenticate(request, user=self.passenger)
		response = views.estimate(request)

		self.assertEqual(response.status_code, 200)
		self.assertIn('fareEstimated', response.data)
		self.assertFalse(Booking.objects.exists())

	def test_lifecycle_too_far_is_conflict(self):
		booking_id = int(self.create().data['id'])
		far = self.make_driver('far_driver', latitude=9.1, longitude=38.7)

		request = self.factory.post('/lifecycle/', {'status': 'accepted'}, format='json')
		force_authenticate(request, user=far)
		response = views.lifecycle(request, booking_id=booking_id)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'driver_too_far')
		self.assertFalse(response.data['success'])

	def test_lifecycle_accept(self):
		booking_id = int(self.create().data['id'])

		request = self.factory.post('/lifecycle/', {'status': 'accepted'}, format='json')
		force_authenticate(request, user=self.driver)
		response = views.lifecycle(request, booking_id=booking_id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['driverId'], str(self.driver.pk))
		self.assertEqual(response.data['driver']['id'], str(self.driver.pk))

	def test_assign_view(self):
		booking_id = int(self.create().data['id'])

		request = self.factory.post('/assign/', {
			'driverId': str(self.driver.pk),
			'dispatcherId': str(self.dispatcher.pk),
		}, format='json')
		force_authenticate(request, user=self.dispatcher)
		response = views.assign(request, booking_id=booking_id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['assignment']['driverId'], str(self.driver.pk))

	def test_lifecycle_accept_by_dispatcher_points_to_assign(self):
		booking_id = int(self.create().data['id'])

		request = self.factory.post('/lifecycle/', {
			'status': 'accepted',
			'driverId': self.driver.pk,
		}, format='json')
		force_authenticate(request, user=self.dispatcher)
		response = views.lifecycle(request, booking_id=booking_id)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'validation_error')
		self.assertEqual(Booking.objects.get(pk=booking_id).status, BookingStatus.REQUESTED)
		self.assertFalse(BookingAssignment.objects.exists())

	def test_assign_view_forbidden_for_passenger(self):
		booking_id = int(self.create().data['id'])

		request = self.factory.post('/assign/', {
			'driverId': str(self.driver.pk),
			'dispatcherId': str(self.dispatcher.pk),
		}, format='json')
		force_authenticate(request, user=self.passenger)
		response = views.assign(request, booking_id=booking_id)

		self.assertEqual(response.status_code, 403)

	def test_rate_before_completion_view(self):
		booking_id = int(self.create().data['id'])

		request = self.factory.post('/rate-driver/', {'rating': 5}, format='json')
		force_authenticate(request, user=self.passenger)
		response = views.rate_driver_view(request, booking_id=booking_id)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'not_completed')

	def test_rating_views_are_role_gated(self):
		booking_id = int(self.create().data['id'])

		request = self.factory.post('/rate-driver/', {'rating': 5}, format='json')
		force_authenticate(request, user=self.driver)
		self.assertEqual(views.rate_driver_view(request, booking_id=booking_id).status_code, 403)

		request = self.factory.post('/rate-passenger/', {'rating': 5}, format='json')
		force_authenticate(request, user=self.passenger)
		self.assertEqual(views.rate_passenger_view(request, booking_id=booking_id).status_code, 403)

	def test_vehicle_types_for_passengers(self):
		request = self.factory.get('/api/bookings/vehicle/types/')
		force_authenticate(request, user=self.passenger)
		response = views.vehicle_types(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual([row['value'] for row in response.data], ['mini', 'sedan', 'van'])

		request = self.factory.get('/api/bookings/vehicle/types/')
		force_authenticate(request, user=self.driver)
		self.assertEqual(views.vehicle_types(request).status_code, 403)

	def test_rate_view_accepts_json_float(self):
		booking_id = int(self.create().data['id'])
		Booking.objects.filter(pk=booking_id).update(status=BookingStatus.COMPLETED, driver=self.driver)

		request = self.factory.post('/rate-driver/', {'rating': 5.0}, format='json')
		force_authenticate(request, user=self.passenger)
		response = views.rate_driver_view(request, booking_id=booking_id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(Booking.objects.get(pk=booking_id).driver_rating, 5)

	def test_booking_outside_scope_is_not_found(self):
		booking_id = int(self.create().data['id'])
		stranger = self.make_user('stranger', User.ROLE_PASSENGER)

		request = self.factory.get('/api/bookings/%d/' % booking_id)
		force_authenticate(request, user=stranger)
		response = views.booking_detail(request, booking_id=booking_id)

		self.assertEqual(response.status_code, 404)

	def test_delete_view(self):
		booking_id = int(self.create().data['id'])

		request = self.factory.delete('/api/bookings/%d/' % booking_id)
		force_authenticate(request, user=self.passenger)
		response = views.booking_detail(request, booking_id=booking_id)

		self.assertEqual(response.status_code, 204)

	def test_history_view(self):
		booking_id = int(self.create().data['id'])

		request = self.factory.get('/history/')
		force_authenticate(request, user=self.passenger)
		response = views.history(request, booking_id=booking_id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data[0]['status'], 'requested')

	def test_pending_nearby_lists_close_bookings(self):
		self.create()

		request = self.factory.get('/api/bookings/nearby/pending/')
		force_authenticate(request, user=self.driver)
		response = views.pending_nearby(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['count'], 1)
		self.assertEqual(response.data['bookings'][0]['distanceToPickupKm'], 0.0)

	def test_list_filters_by_status(self):
		self.create()

		request = self.factory.get('/api/bookings/', {'status': 'completed'})
		force_authenticate(request, user=self.passenger)
		response = views.bookings_collection(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data, [])
