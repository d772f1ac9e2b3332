from decimal import Decimal

from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from bookings.models import Booking
from common.choices import BookingStatus
from services.booking_lifecycle import DriverNotAvailableError, DriverNotFoundError, ValidationError
from services.matching import available_nearby

from . import services
from .models import DriverProfile
from .views import AvailableDriversView, DriverAvailabilityView, DriverEarningsView, DriverLocationView


class DriverRegistryTests(TestCase):
	def setUp(self):
		self.passenger = User.objects.create_user(username='passenger', password='x', role='passenger')
		self.driver = User.objects.create_user(username='driver', password='x', role='driver')
		self.profile = DriverProfile.objects.create(
			user=self.driver,
			available=True,
			current_latitude=9.0,
			current_longitude=38.7
		)

	def make_booking(self, status, driver=None):
		return Booking.objects.create(
			passenger=self.passenger,
			driver=driver,
			pickup_latitude=9.0,
			pickup_longitude=38.7,
			dropoff_latitude=9.02,
			dropoff_longitude=38.72,
			status=status
		)

	def test_try_claim_marks_driver_unavailable(self):
		self.assertTrue(services.try_claim(self.driver.pk))

		self.profile.refresh_from_db()
		self.assertFalse(self.profile.available)

	def test_try_claim_fails_when_unavailable(self):
		services.try_claim(self.driver.pk)

		self.assertFalse(services.try_claim(self.driver.pk))

	def test_try_claim_fails_with_active_booking(self):
		self.make_booking(BookingStatus.ONGOING, driver=self.driver)

		self.assertFalse(services.try_claim(self.driver.pk))
		self.profile.refresh_from_db()
		self.assertTrue(self.profile.available)

	def test_release_is_idempotent(self):
		services.try_claim(self.driver.pk)
		services.release(self.driver.pk)
		services.release(self.driver.pk)

		self.profile.refresh_from_db()
		self.assertTrue(self.profile.available)

	def test_update_location_rounds_and_validates_bearing(self):
		profile = services.update_location(self.driver.pk, 9.12345678, 38.7654321, bearing=400)
		profile.refresh_from_db()

		self.assertEqual(profile.current_latitude, Decimal('9.123457'))
		self.assertIsNone(profile.bearing)
		self.assertIsNotNone(profile.last_location_update)

		profile = services.update_location(self.driver.pk, 9.1, 38.7, bearing=90)
		self.assertEqual(profile.bearing, 90)

	def test_update_location_rejects_out_of_range(self):
		with self.assertRaises(ValidationError):
			services.update_location(self.driver.pk, 91, 38.7)

	def test_update_location_creates_missing_profile(self):
		newcomer = User.objects.create_user(username='newcomer', password='x', role='driver')

		services.update_location(newcomer.pk, 9.0, 38.7)
		self.assertTrue(DriverProfile.objects.filter(user=newcomer).exists())

	def test_cannot_go_available_with_active_booking(self):
		DriverProfile.objects.filter(pk=self.profile.pk).update(available=False)
		self.make_booking(BookingStatus.ACCEPTED, driver=self.driver)

		with self.assertRaises(DriverNotAvailableError):
			services.set_availability(self.driver.pk, True)

		profile = services.set_availability(self.driver.pk, False)
		self.assertFalse(profile.available)

	def test_missing_profile(self):
		with self.assertRaises(DriverNotFoundError):
			services.get_profile(self.passenger.pk)

	def test_active_booking_id(self):
		self.assertIsNone(services.active_booking_id(self.driver.pk))
		booking = self.make_booking(BookingStatus.ACCEPTED, driver=self.driver)

		self.assertEqual(services.active_booking_id(self.driver.pk), booking.pk)


class AvailableNearbyTests(TestCase):
	def make_driver(self, username, latitude, longitude, available=True, vehicle_type='mini'):
		user = User.objects.create_user(username=username, password='x', role='driver')
		DriverProfile.objects.create(
			user=user,
			available=available,
			vehicle_type=vehicle_type,
			current_latitude=latitude,
			current_longitude=longitude
		)
		return user

	def test_sorted_by_distance_within_radius(self):
		far = self.make_driver('far', 9.03, 38.7)
		near = self.make_driver('near', 9.01, 38.7)
		self.make_driver('outside', 9.2, 38.7)
		self.make_driver('offline', 9.0, 38.7, available=False)

		results = available_nearby(9.0, 38.7)
		self.assertEqual([r.profile.user_id for r in results], [near.pk, far.pk])

	def test_vehicle_type_filter(self):
		self.make_driver('mini', 9.01, 38.7)
		van = self.make_driver('van', 9.01, 38.7, vehicle_type='van')

		results = available_nearby(9.0, 38.7, vehicle_type='van')
		self.assertEqual([r.profile.user_id for r in results], [van.pk])

	def test_equal_distances_keep_insertion_order(self):
		first = self.make_driver('first', 9.01, 38.7)
		second = self.make_driver('second', 9.01, 38.7)

		results = available_nearby(9.0, 38.7)
		self.assertEqual([r.profile.user_id for r in results], [first.pk, second.pk])


class DriverViewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.driver = User.objects.create_user(username='driver', password='x', role='driver')
		self.passenger = User.objects.create_user(username='passenger', password='x', role='passenger')
		DriverProfile.objects.create(user=self.driver, vehicle_number='AA-1')

	def test_location_then_available(self):
		request = self.factory.post('/api/drivers/location/', {'latitude': 9.0, 'longitude': 38.7}, format='json')
		force_authenticate(request, user=self.driver)
		response = DriverLocationView.as_view()(request)
		self.assertEqual(response.status_code, 200)

		request = self.factory.post('/api/drivers/availability/', {'available': True}, format='json')
		force_authenticate(request, user=self.driver)
		response = DriverAvailabilityView.as_view()(request)
		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['available'])

		request = self.factory.get('/api/drivers/available/', {'latitude': 9.0, 'longitude': 38.7})
		force_authenticate(request, user=self.passenger)
		response = AvailableDriversView.as_view()(request)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['count'], 1)
		self.assertEqual(response.data['drivers'][0]['id'], str(self.driver.pk))
		self.assertEqual(response.data['drivers'][0]['distanceKm'], 0.0)

	def test_available_requires_coordinates(self):
		request = self.factory.get('/api/drivers/available/')
		force_authenticate(request, user=self.passenger)
		response = AvailableDriversView.as_view()(request)

		self.assertEqual(response.status_code, 400)

	def test_passenger_cannot_toggle_availability(self):
		request = self.factory.post('/api/drivers/availability/', {'available': True}, format='json')
		force_authenticate(request, user=self.passenger)
		response = DriverAvailabilityView.as_view()(request)

		self.assertEqual(response.status_code, 403)

	def test_earnings_summary_empty(self):
		request = self.factory.get('/api/drivers/earnings/')
		force_authenticate(request, user=self.driver)
		response = DriverEarningsView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['trips'], 0)
		self.assertEqual(response.data['netEarnings'], '0.00')
