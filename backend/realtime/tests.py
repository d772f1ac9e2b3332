from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIRequestFactory
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import User
from dispatch_backend.views import health_check

from . import events, tracking
from .connections import CONNECTED_KEY, DriverConnectionIndex
from .consumers.driver_consumer import DriverConsumer
from .consumers.passenger_consumer import PassengerConsumer
from .middleware import JWTOrCookieAuthMiddleware


def socket_user(user_id, role):
	return SimpleNamespace(id=user_id, pk=user_id, role=role, is_anonymous=False, is_superuser=False)


class EventPublishTests(SimpleTestCase):
	def setUp(self):
		self.layer = get_channel_layer()
		self.channel = async_to_sync(self.layer.new_channel)()

	def listen(self, group):
		async_to_sync(self.layer.group_add)(group, self.channel)

	def next_message(self):
		return async_to_sync(self.layer.receive)(self.channel)

	def test_publish_sends_dispatch_event(self):
		self.listen('user_42')

		self.assertTrue(events.publish('booking:update', {'id': '1'}, ['user_42']))
		message = self.next_message()

		self.assertEqual(message['type'], 'dispatch.event')
		self.assertEqual(message['event'], 'booking:update')
		self.assertEqual(message['payload'], {'id': '1'})

	def test_booking_event_reaches_driver_group(self):
		self.listen('user_7')
		booking = SimpleNamespace(pk=3, passenger_id=5, driver_id=7)

		events.publish_booking_event('booking:update', {'id': '3'}, booking)
		self.assertEqual(self.next_message()['payload'], {'id': '3'})

	def test_publish_failure_is_not_raised(self):
		broken = MagicMock()
		broken.group_send = AsyncMock(side_effect=RuntimeError('layer down'))

		with patch('realtime.events.get_channel_layer', return_value=broken):
			self.assertFalse(events.publish('booking:update', {}, ['user_1']))

	def test_stop_tracking_goes_to_booking_group(self):
		self.listen('booking_9')

		tracking.stop_tracking(9)
		message = self.next_message()
		self.assertEqual(message['event'], 'tracking:stop')
		self.assertEqual(message['payload'], {'bookingId': '9'})


class ConnectionIndexTests(SimpleTestCase):
	def setUp(self):
		self.client = MagicMock()
		self.pipe = self.client.pipeline.return_value
		self.index = DriverConnectionIndex(client=self.client, ttl_seconds=60)

	def test_register_keeps_first_connect_time(self):
		self.index.register(7, 'chan-a', latitude=9.0, longitude=38.7, vehicle_type='mini')

		zadd_args, zadd_kwargs = self.pipe.zadd.call_args
		self.assertEqual(zadd_args[0], CONNECTED_KEY)
		self.assertTrue(zadd_kwargs['nx'])
		self.pipe.expire.assert_called_once_with('dispatch:driver:7', 60)
		self.pipe.execute.assert_called_once()

	def test_evict_ignores_stale_socket(self):
		self.client.hget.return_value = 'chan-new'

		self.assertFalse(self.index.evict(7, 'chan-old'))
		self.client.pipeline.assert_not_called()

	def test_evict_matching_socket(self):
		self.client.hget.return_value = 'chan-a'

		self.assertTrue(self.index.evict(7, 'chan-a'))
		self.pipe.zrem.assert_called_once_with(CONNECTED_KEY, '7')
		self.pipe.delete.assert_called_once_with('dispatch:driver:7')

	def test_connected_drivers_drops_expired(self):
		self.client.zrange.return_value = ['7', '8']
		self.client.hgetall.side_effect = [
			{'latitude': '9.0', 'longitude': '38.7', 'vehicle_type': 'mini'},
			{},
		]

		drivers = self.index.connected_drivers()

		self.assertEqual([d.driver_id for d in drivers], [7])
		self.assertEqual(drivers[0].latitude, 9.0)
		self.client.zrem.assert_called_once_with(CONNECTED_KEY, '8')

	def test_update_position_requires_registration(self):
		self.client.exists.return_value = 0

		self.assertFalse(self.index.update_position(7, 9.0, 38.7))

	def test_touch_extends_live_entry_only(self):
		self.client.expire.return_value = True
		self.assertTrue(self.index.touch(7))
		self.client.expire.assert_called_once_with('dispatch:driver:7', 60)

		self.client.expire.return_value = False
		self.assertFalse(self.index.touch(7))
		self.client.hset.assert_not_called()


class DriverConsumerTests(SimpleTestCase):
	def setUp(self):
		self.index = MagicMock()
		patcher = patch('realtime.consumers.driver_consumer.get_connection_index', return_value=self.index)
		patcher.start()
		self.addCleanup(patcher.stop)
		profile = AsyncMock(return_value={'available': True, 'latitude': 9.0, 'longitude': 38.7, 'vehicle_type': 'mini'})
		patcher = patch.object(DriverConsumer, '_load_profile', new=profile)
		patcher.start()
		self.addCleanup(patcher.stop)

	def communicator(self, user):
		communicator = WebsocketCommunicator(DriverConsumer.as_asgi(), '/ws/driver/')
		communicator.scope['user'] = user
		return communicator

	async def test_connect_registers_and_disconnect_evicts(self):
		communicator = self.communicator(socket_user(7, 'driver'))
		connected, _ = await communicator.connect()
		self.assertTrue(connected)

		hello = await communicator.receive_json_from()
		self.assertEqual(hello['type'], 'connection_established')
		self.assertTrue(hello['available'])
		register_args = self.index.register.call_args
		self.assertEqual(register_args[0][0], 7)
		self.assertEqual(register_args[1]['latitude'], 9.0)

		await communicator.disconnect()
		self.assertEqual(self.index.evict.call_args[0][0], 7)

	async def test_forwards_routed_booking(self):
		communicator = self.communicator(socket_user(7, 'driver'))
		await communicator.connect()
		await communicator.receive_json_from()

		await get_channel_layer().group_send('driver_7', {
			'type': 'dispatch.event',
			'event': 'booking:new',
			'payload': {'id': '11'},
		})
		message = await communicator.receive_json_from()

		self.assertEqual(message, {'type': 'booking:new', 'payload': {'id': '11'}})
		await communicator.disconnect()

	async def test_passenger_rejected_on_driver_socket(self):
		communicator = self.communicator(socket_user(5, 'passenger'))
		connected, _ = await communicator.connect()

		self.assertFalse(connected)

	async def test_anonymous_rejected(self):
		communicator = self.communicator(AnonymousUser())
		connected, _ = await communicator.connect()

		self.assertFalse(connected)

	async def test_location_update_requires_coordinates(self):
		communicator = self.communicator(socket_user(7, 'driver'))
		await communicator.connect()
		await communicator.receive_json_from()

		await communicator.send_json_to({'type': 'driver_location_update', 'latitude': 9.0})
		message = await communicator.receive_json_from()

		self.assertEqual(message['type'], 'error')
		await communicator.disconnect()

	async def test_location_update_reregisters_expired_entry(self):
		self.index.update_position.return_value = False
		saved = {'latitude': 9.01, 'longitude': 38.71, 'bearing': None}
		communicator = self.communicator(socket_user(7, 'driver'))

		with patch.object(DriverConsumer, '_save_location', new=AsyncMock(return_value=saved)):
			await communicator.connect()
			await communicator.receive_json_from()
			await communicator.send_json_to({'type': 'driver_location_update', 'latitude': 9.01, 'longitude': 38.71})
			message = await communicator.receive_json_from()

		self.assertEqual(message['type'], 'location_updated')
		self.assertEqual(self.index.register.call_count, 2)
		first, again = self.index.register.call_args_list
		self.assertEqual(again[0], first[0])
		self.assertEqual(again[1]['latitude'], 9.01)
		self.assertEqual(again[1]['vehicle_type'], 'mini')
		await communicator.disconnect()

	async def test_location_update_keeps_live_entry(self):
		self.index.update_position.return_value = True
		saved = {'latitude': 9.01, 'longitude': 38.71, 'bearing': None}
		communicator = self.communicator(socket_user(7, 'driver'))

		with patch.object(DriverConsumer, '_save_location', new=AsyncMock(return_value=saved)):
			await communicator.connect()
			await communicator.receive_json_from()
			await communicator.send_json_to({'type': 'driver_location_update', 'latitude': 9.01, 'longitude': 38.71})
			await communicator.receive_json_from()

		self.assertEqual(self.index.register.call_count, 1)
		await communicator.disconnect()

	async def test_heartbeat_refreshes_or_reregisters(self):
		communicator = self.communicator(socket_user(7, 'driver'))
		await communicator.connect()
		await communicator.receive_json_from()

		self.index.touch.return_value = True
		await communicator.send_json_to({'type': 'driver_heartbeat'})
		self.assertEqual((await communicator.receive_json_from())['type'], 'heartbeat_ack')
		self.assertEqual(self.index.register.call_count, 1)

		self.index.touch.return_value = False
		await communicator.send_json_to({'type': 'driver_heartbeat'})
		self.assertEqual((await communicator.receive_json_from())['type'], 'heartbeat_ack')
		self.assertEqual(self.index.register.call_count, 2)
		self.assertEqual(self.index.register.call_args[1]['latitude'], 9.0)
		await communicator.disconnect()


class PassengerConsumerTests(SimpleTestCase):
	async def test_booking_request_replies_with_routing(self):
		result = {'booking': {'id': '1', 'status': 'requested'}, 'routedTo': '7'}
		communicator = WebsocketCommunicator(PassengerConsumer.as_asgi(), '/ws/passenger/')
		communicator.scope['user'] = socket_user(5, 'passenger')

		with patch.object(PassengerConsumer, '_create_and_route', new=AsyncMock(return_value=result)):
			await communicator.connect()
			await communicator.receive_json_from()
			await communicator.send_json_to({
				'type': 'booking_request',
				'pickup': {'latitude': 9.0, 'longitude': 38.7},
				'dropoff': {'latitude': 9.02, 'longitude': 38.72},
			})
			message = await communicator.receive_json_from()

		self.assertEqual(message['type'], 'booking_created')
		self.assertEqual(message['routedTo'], '7')
		await communicator.disconnect()

	async def test_booking_request_validates_locations(self):
		communicator = WebsocketCommunicator(PassengerConsumer.as_asgi(), '/ws/passenger/')
		communicator.scope['user'] = socket_user(5, 'passenger')
		await communicator.connect()
		await communicator.receive_json_from()

		await communicator.send_json_to({'type': 'booking_request', 'pickup': {'latitude': 9.0}})
		message = await communicator.receive_json_from()

		self.assertEqual(message['type'], 'error')
		self.assertEqual(message['code'], 'validation_error')
		await communicator.disconnect()


class MiddlewareTests(TestCase):
	def setUp(self):
		self.user = User.objects.create_user(username='driver', password='x', role='driver')

	async def run_middleware(self, query_string):
		seen = {}

		async def inner(scope, receive, send):
			seen['user'] = scope['user']

		await JWTOrCookieAuthMiddleware(inner)({'type': 'websocket', 'query_string': query_string}, None, None)
		return seen['user']

	async def test_valid_token_authenticates(self):
		token = str(AccessToken.for_user(self.user))

		user = await self.run_middleware(('token=%s' % token).encode())
		self.assertEqual(user.pk, self.user.pk)

	async def test_invalid_token_is_anonymous(self):
		user = await self.run_middleware(b'token=not-a-jwt')
		self.assertTrue(user.is_anonymous)

	async def test_missing_token_is_anonymous(self):
		user = await self.run_middleware(b'')
		self.assertTrue(user.is_anonymous)


class HealthCheckTests(TestCase):
	@patch('dispatch_backend.views.redis.Redis.from_url')
	def test_redis_down_is_degraded(self, mock_from_url):
		mock_from_url.return_value.ping.side_effect = ConnectionError('refused')

		response = health_check(APIRequestFactory().get('/health/'))

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['status'], 'degraded')
		self.assertEqual(response.data['services']['database'], 'healthy')
