from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from bookings.models import Booking
from common.choices import BookingStatus
from services.booking_lifecycle import DependencyError, ValidationError

from . import services
from .models import AdminEarnings, Commission, DriverEarnings
from .tasks import credit_driver_wallet
from .views import CommissionView


class SettlementTests(TestCase):
	def setUp(self):
		self.passenger = User.objects.create_user(username='passenger', password='x', role='passenger')
		self.driver = User.objects.create_user(username='driver', password='x', role='driver')
		self.booking = Booking.objects.create(
			passenger=self.passenger,
			driver=self.driver,
			pickup_latitude=9.0,
			pickup_longitude=38.7,
			dropoff_latitude=9.02,
			dropoff_longitude=38.72,
			status=BookingStatus.COMPLETED,
			fare_estimated=10.005,
			fare_final=10.005,
			completed_at=timezone.now()
		)

	def test_split_fare_has_no_drift(self):
		for gross, pct in [(10.005, 15), (3.33, 33.33), (0.01, 50), (123.456, 12.5), (7, 0), (7, 100)]:
			total, commission, net = services.split_fare(gross, pct)
			self.assertEqual(commission + net, total)
			self.assertEqual(total.as_tuple().exponent, -2)

	def test_settle_once(self):
		first = services.settle(self.booking)
		second = services.settle(self.booking)

		self.assertTrue(first.created)
		self.assertFalse(second.created)
		self.assertEqual(DriverEarnings.objects.count(), 1)
		self.assertEqual(AdminEarnings.objects.count(), 1)
		self.assertEqual(second.driver_earnings.pk, first.driver_earnings.pk)

	def test_settle_snapshots_commission(self):
		services.set_commission(20)
		settlement = services.settle(self.booking)
		services.set_commission(30)

		earnings = DriverEarnings.objects.get(pk=settlement.driver_earnings.pk)
		self.assertEqual(earnings.commission_percentage, Decimal('20.00'))
		self.assertEqual(earnings.gross_fare, Decimal('10.01'))
		self.assertEqual(earnings.commission_amount, Decimal('2.00'))
		self.assertEqual(earnings.net_earnings, Decimal('8.01'))
		self.assertEqual(settlement.admin_earnings.commission_earned, Decimal('2.00'))

	def test_set_commission_keeps_single_active(self):
		services.set_commission(10)
		services.set_commission(12.5, description='Holiday rate')

		self.assertEqual(Commission.objects.count(), 2)
		self.assertEqual(Commission.objects.filter(is_active=True).count(), 1)
		self.assertEqual(services.current_percentage(), Decimal('12.50'))

	def test_set_commission_out_of_range(self):
		for value in (-1, 101, 'abc'):
			with self.assertRaises(ValidationError):
				services.set_commission(value)

	def test_driver_summary(self):
		services.settle(self.booking)

		summary = services.driver_earnings_summary(self.driver.pk)
		self.assertEqual(summary['trips'], 1)
		self.assertEqual(summary['grossFare'], '10.01')

	@override_settings(DISPATCH={'WALLET_SETTLEMENT_ENABLED': True})
	@patch('earnings.tasks.credit_driver_wallet.delay')
	def test_wallet_credit_queued_on_commit(self, mock_delay):
		with self.captureOnCommitCallbacks(execute=True):
			settlement = services.settle(self.booking)

		mock_delay.assert_called_once_with(settlement.driver_earnings.pk)

	@patch('earnings.tasks.credit_driver_wallet.delay')
	def test_wallet_credit_disabled_by_default(self, mock_delay):
		with self.captureOnCommitCallbacks(execute=True):
			services.settle(self.booking)

		mock_delay.assert_not_called()


class WalletCreditTaskTests(TestCase):
	def setUp(self):
		passenger = User.objects.create_user(username='passenger', password='x', role='passenger')
		driver = User.objects.create_user(username='driver', password='x', role='driver')
		booking = Booking.objects.create(
			passenger=passenger,
			driver=driver,
			pickup_latitude=9.0,
			pickup_longitude=38.7,
			dropoff_latitude=9.02,
			dropoff_longitude=38.72,
			status=BookingStatus.COMPLETED,
			fare_final=20,
			completed_at=timezone.now()
		)
		self.earnings = services.settle(booking).driver_earnings

	@patch('services.wallet.credit')
	def test_credits_net_earnings_with_idempotency_key(self, mock_credit):
		result = credit_driver_wallet.apply(args=[self.earnings.pk]).get()

		self.assertTrue(result)
		kwargs = mock_credit.call_args[1]
		self.assertEqual(kwargs['amount'], self.earnings.net_earnings)
		self.assertEqual(kwargs['idempotency_key'], 'booking-%d-driver-earnings' % self.earnings.booking_id)

	@patch('earnings.tasks.credit_driver_wallet.retry', side_effect=RuntimeError('retry'))
	@patch('services.wallet.credit', side_effect=DependencyError('down'))
	def test_wallet_failure_retries(self, mock_credit, mock_retry):
		with self.assertRaises(RuntimeError):
			credit_driver_wallet.apply(args=[self.earnings.pk], throw=True).get()

		mock_retry.assert_called_once()

	def test_missing_earnings(self):
		self.assertFalse(credit_driver_wallet.apply(args=[99999]).get())


class CommissionViewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.admin = User.objects.create_user(username='admin', password='x', role='admin')
		self.driver = User.objects.create_user(username='driver', password='x', role='driver')

	def test_admin_sets_commission(self):
		request = self.factory.post('/api/earnings/commission/', {'percentage': '18.5'}, format='json')
		force_authenticate(request, user=self.admin)
		response = CommissionView.as_view()(request)

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['percentage'], '18.50')
		self.assertEqual(response.data['createdBy'], str(self.admin.pk))

	def test_default_percentage_without_rows(self):
		request = self.factory.get('/api/earnings/commission/')
		force_authenticate(request, user=self.admin)
		response = CommissionView.as_view()(request)

		self.assertEqual(response.data['percentage'], '15.00')
		self.assertIsNone(response.data['commission'])

	def test_driver_cannot_set_commission(self):
		request = self.factory.post('/api/earnings/commission/', {'percentage': '18.5'}, format='json')
		force_authenticate(request, user=self.driver)
		response = CommissionView.as_view()(request)

		self.assertEqual(response.status_code, 403)
