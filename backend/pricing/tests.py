from unittest.mock import patch

from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from common.utils import GeoPoint, haversine_km
from services.booking_lifecycle import ConflictError, NotFoundError, ValidationError

from . import services
from .models import PricingTier
from .views import PricingDetailView, PricingListView

PICKUP = GeoPoint(9.000, 38.700)
DROPOFF = GeoPoint(9.020, 38.720)


class FareEstimateTests(TestCase):
	def test_default_tier_formula(self):
		estimate = services.estimate_fare('mini', PICKUP, DROPOFF)
		distance = haversine_km(9.000, 38.700, 9.020, 38.720)

		self.assertAlmostEqual(estimate.distance_km, distance, places=9)
		self.assertAlmostEqual(estimate.fare_estimated, (2.0 + distance * 1.0) * 1.0, places=9)
		self.assertEqual(estimate.fare_breakdown['base'], 2.0)
		self.assertEqual(estimate.fare_breakdown['timeCost'], 0)

	def test_active_tier_overrides_default(self):
		PricingTier.objects.create(vehicle_type='sedan', base_fare=5, per_km=2, surge_multiplier=1.5)

		estimate = services.estimate_fare('sedan', PICKUP, DROPOFF)
		self.assertAlmostEqual(estimate.fare_estimated, (5 + estimate.distance_km * 2) * 1.5, places=9)

	def test_inactive_tier_is_ignored(self):
		PricingTier.objects.create(vehicle_type='mini', base_fare=50, is_active=False)

		estimate = services.estimate_fare('mini', PICKUP, PICKUP)
		self.assertEqual(estimate.fare_estimated, 2.0)

	def test_zero_distance_costs_base_fare(self):
		estimate = services.estimate_fare('van', PICKUP, PICKUP)

		self.assertEqual(estimate.distance_km, 0)
		self.assertEqual(estimate.fare_estimated, 2.0)


class PricingAdminTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.admin = User.objects.create_user(username='admin', password='x', role='admin')
		self.passenger = User.objects.create_user(username='passenger', password='x', role='passenger')
		self.tier = services.create_tier(vehicle_type='mini', base_fare=3, per_km=1.2)

	def test_create_requires_vehicle_type(self):
		with self.assertRaises(ValidationError):
			services.create_tier(base_fare=3)

	def test_duplicate_tier_is_conflict(self):
		with self.assertRaises(ConflictError) as ctx:
			services.create_tier(vehicle_type='mini', base_fare=3, per_km=1.2)
		self.assertEqual(ctx.exception.code, 'duplicate_pricing')

	def test_update_missing_tier(self):
		with self.assertRaises(NotFoundError):
			services.update_tier(9999, base_fare=4)

	@patch('realtime.events.broadcast')
	def test_update_broadcasts_pricing_update(self, mock_broadcast):
		with self.captureOnCommitCallbacks(execute=True):
			tier = services.update_tier(self.tier.pk, surge_multiplier=2)

		self.assertEqual(tier.surge_multiplier, 2)
		mock_broadcast.assert_called_once()
		event_name, payload = mock_broadcast.call_args[0]
		self.assertEqual(event_name, 'pricing:update')
		self.assertEqual(payload['surgeMultiplier'], 2.0)

	def test_put_view_admin_only(self):
		request = self.factory.put('/api/pricing/%d/' % self.tier.pk, {'baseFare': 4}, format='json')
		force_authenticate(request, user=self.passenger)
		response = PricingDetailView.as_view()(request, tier_id=self.tier.pk)
		self.assertEqual(response.status_code, 403)

		request = self.factory.put('/api/pricing/%d/' % self.tier.pk, {'baseFare': 4}, format='json')
		force_authenticate(request, user=self.admin)
		response = PricingDetailView.as_view()(request, tier_id=self.tier.pk)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['baseFare'], 4.0)

	def test_list_view(self):
		request = self.factory.get('/api/pricing/')
		force_authenticate(request, user=self.passenger)
		response = PricingListView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(len(response.data), 1)
		self.assertEqual(response.data[0]['vehicleType'], 'mini')

	def test_post_duplicate_view_returns_409(self):
		request = self.factory.post('/api/pricing/', {'vehicleType': 'mini', 'baseFare': 3, 'perKm': 1.2}, format='json')
		force_authenticate(request, user=self.admin)
		response = PricingListView.as_view()(request)

		self.assertEqual(response.status_code, 409)
