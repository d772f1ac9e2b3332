from django.test import TestCase
from rest_framework.test import APIRequestFactory

from drivers.models import DriverProfile
from services.booking_lifecycle import ActorKind, actor_for

from .models import User
from .views import LoginView, RefreshTokenView, RegisterView


class RegistrationTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()

	def register(self, **overrides):
		body = {
			'username': 'abebe',
			'email': 'abebe@example.com',
			'password': 'pass1234',
			'role': 'passenger',
			'phone_number': '+251911000000',
		}
		body.update(overrides)
		request = self.factory.post('/api/auth/register/', body, format='json')
		return RegisterView.as_view()(request)

	def test_register_passenger_returns_tokens(self):
		response = self.register()

		self.assertEqual(response.status_code, 201)
		self.assertIn('access', response.data['tokens'])
		self.assertEqual(response.data['user']['role'], 'passenger')
		self.assertFalse(DriverProfile.objects.exists())

	def test_register_driver_creates_profile(self):
		response = self.register(role='driver', vehicle_number='AA-1001', vehicle_type='sedan')

		self.assertEqual(response.status_code, 201)
		profile = DriverProfile.objects.get(user__username='abebe')
		self.assertEqual(profile.vehicle_type, 'sedan')
		self.assertFalse(profile.available)

	def test_staff_roles_cannot_self_register(self):
		response = self.register(role='dispatcher')

		self.assertEqual(response.status_code, 400)
		self.assertFalse(User.objects.exists())

	def test_login_and_refresh(self):
		self.register()

		request = self.factory.post('/api/auth/login/', {'username': 'abebe', 'password': 'pass1234'}, format='json')
		response = LoginView.as_view()(request)
		self.assertEqual(response.status_code, 200)

		request = self.factory.post('/api/auth/refresh/', {'refresh': response.data['tokens']['refresh']}, format='json')
		response = RefreshTokenView.as_view()(request)
		self.assertEqual(response.status_code, 200)
		self.assertIn('access', response.data)

	def test_login_with_wrong_password(self):
		self.register()

		request = self.factory.post('/api/auth/login/', {'username': 'abebe', 'password': 'nope'}, format='json')
		response = LoginView.as_view()(request)
		self.assertEqual(response.status_code, 400)


class ActorTests(TestCase):
	def test_actor_follows_role(self):
		driver = User.objects.create_user(username='driver', password='x', role='driver')

		actor = actor_for(driver)
		self.assertEqual(actor.kind, ActorKind.DRIVER)
		self.assertEqual(actor.id, driver.pk)
		self.assertFalse(actor.is_staff)

	def test_superuser_is_admin(self):
		root = User.objects.create_superuser(username='root', password='x', email='root@example.com')

		actor = actor_for(root)
		self.assertEqual(actor.kind, ActorKind.ADMIN)
		self.assertTrue(actor.is_staff)
