from decimal import Decimal
from unittest.mock import Mock, patch

import requests
from django.test import TestCase, SimpleTestCase, override_settings
from rest_framework.test import APIClient

from accounts.models import User
from common.utils.geo import GeoPoint
from realtime.apps import get_occupancy_registry

from . import services
from .exceptions import GeocodingError
from .geocoding import geocode_address, parse_coordinates
from .models import Bar, QueueEntry, Rating
from .tasks import geocode_bar_task


class BarApiTests(TestCase):
	def setUp(self):
		self.client = APIClient()
		self.user = User.objects.create_user(username='alice', password='pass12345')
		self.other = User.objects.create_user(username='bob', password='pass12345')

		self.bar = Bar.objects.create(
			name='The Anchor',
			address='1 Harbour St',
			latitude=Decimal('40.000000'),
			longitude=Decimal('-74.000000'),
		)
		self.unlocated = Bar.objects.create(name='Basement', address='Somewhere')

		self.registry = get_occupancy_registry()
		self.registry.clear()

	def tearDown(self):
		self.registry.clear()

	def test_list_is_public_and_includes_live_popularity(self):
		self.registry.mark_present(str(self.bar.id), 'u1')
		self.registry.mark_present(str(self.bar.id), 'u2')

		response = self.client.get('/api/bars/')
		self.assertEqual(response.status_code, 200)

		by_name = {item['name']: item for item in response.data}
		self.assertEqual(by_name['The Anchor']['popularity'], 2)
		self.assertEqual(by_name['The Anchor']['coordinates'], {'latitude': 40.0, 'longitude': -74.0})
		self.assertEqual(by_name['Basement']['popularity'], 0)
		self.assertIsNone(by_name['Basement']['coordinates'])

	def test_create_requires_authentication(self):
		response = self.client.post('/api/bars/', {'name': 'New', 'address': 'x'}, format='json')
		self.assertIn(response.status_code, (401, 403))

	def test_create_with_coordinates(self):
		self.client.force_authenticate(self.user)
		response = self.client.post('/api/bars/', {
			'name': 'Dockside',
			'address': '9 Pier Rd',
			'latitude': '40.001',
			'longitude': '-74.002',
		}, format='json')

		self.assertEqual(response.status_code, 201)
		bar = Bar.objects.get(pk=response.data['id'])
		self.assertEqual(bar.created_by, self.user)
		self.assertEqual(response.data['queue_count'], 0)
		self.assertFalse(response.data['in_queue'])

	def test_create_rejects_half_coordinates(self):
		self.client.force_authenticate(self.user)
		response = self.client.post('/api/bars/', {
			'name': 'Half',
			'address': 'x',
			'latitude': '40.0',
		}, format='json')
		self.assertEqual(response.status_code, 400)

	def test_create_geocodes_coordinate_address_after_commit(self):
		self.client.force_authenticate(self.user)
		with self.captureOnCommitCallbacks(execute=True):
			response = self.client.post('/api/bars/', {
				'name': 'Pinned',
				'address': '40.5, -73.5',
			}, format='json')

		self.assertEqual(response.status_code, 201)
		bar = Bar.objects.get(pk=response.data['id'])
		self.assertEqual(bar.latitude, Decimal('40.500000'))
		self.assertEqual(bar.longitude, Decimal('-73.500000'))

	def test_detail_and_missing_bar(self):
		response = self.client.get(f'/api/bars/{self.bar.id}/')
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['name'], 'The Anchor')
		self.assertIsNone(response.data['average_rating'])

		response = self.client.get('/api/bars/99999/')
		self.assertEqual(response.status_code, 404)

	def test_rating_is_replaced_on_resubmission(self):
		self.client.force_authenticate(self.user)
		self.client.post(f'/api/bars/{self.bar.id}/rate/', {'value': 2}, format='json')
		response = self.client.post(f'/api/bars/{self.bar.id}/rate/', {'value': 4}, format='json')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(Rating.objects.filter(bar=self.bar).count(), 1)
		self.assertEqual(response.data['average_rating'], 4.0)

		self.client.force_authenticate(self.other)
		response = self.client.post(f'/api/bars/{self.bar.id}/rate/', {'value': 5}, format='json')
		self.assertEqual(response.data['average_rating'], 4.5)
		self.assertEqual(response.data['ratings_count'], 2)

	def test_rating_out_of_range(self):
		self.client.force_authenticate(self.user)
		for value in (0, 6):
			response = self.client.post(f'/api/bars/{self.bar.id}/rate/', {'value': value}, format='json')
			self.assertEqual(response.status_code, 400)

	def test_cover_fee_and_traffic_reports(self):
		self.client.force_authenticate(self.user)
		response = self.client.post(f'/api/bars/{self.bar.id}/cover/', {'amount': '10.00'}, format='json')
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['latest_cover_fee'], Decimal('10.00'))

		response = self.client.post(f'/api/bars/{self.bar.id}/cover/', {'amount': '-1'}, format='json')
		self.assertEqual(response.status_code, 400)

		response = self.client.post(f'/api/bars/{self.bar.id}/traffic/', {'level': 'Busy'}, format='json')
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['latest_traffic_level'], 'Busy')

		response = self.client.post(f'/api/bars/{self.bar.id}/traffic/', {'level': 'Chaos'}, format='json')
		self.assertEqual(response.status_code, 400)

	def test_reports_require_authentication(self):
		response = self.client.post(f'/api/bars/{self.bar.id}/rate/', {'value': 3}, format='json')
		self.assertIn(response.status_code, (401, 403))

	def test_queue_join_check_leave(self):
		self.client.force_authenticate(self.user)
		url = f'/api/queue/{self.bar.id}/'

		self.assertEqual(self.client.get(url).status_code, 404)

		response = self.client.post(url)
		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['queue_count'], 1)

		response = self.client.post(url)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['queue_count'], 1)

		response = self.client.get(url)
		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['in_queue'])

		response = self.client.delete(url)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['queue_count'], 0)
		self.assertFalse(QueueEntry.objects.exists())

	def test_queue_count_is_derived_from_entries(self):
		services.join_queue(self.bar, self.user)
		services.join_queue(self.bar, self.other)
		services.rate_bar(self.bar, self.user, 3)
		services.rate_bar(self.bar, self.other, 5)

		bar = services.get_bar(self.bar.id)
		self.assertEqual(bar.queue_count, 2)
		self.assertEqual(bar.average_rating, 4)

	def test_queue_for_missing_bar(self):
		self.client.force_authenticate(self.user)
		self.assertEqual(self.client.post('/api/queue/99999/').status_code, 404)

	def test_venue_locations_skip_unlocated_bars(self):
		response = self.client.get('/api/bars/locations/')
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data, [{
			'venue_id': str(self.bar.id),
			'coordinates': {'latitude': 40.0, 'longitude': -74.0},
		}])

	def test_popularity_endpoint(self):
		self.registry.mark_present(str(self.bar.id), 'u1')

		response = self.client.get('/api/bars/popularity/')
		self.assertEqual(response.data, {
			'venues': {str(self.bar.id): {'count': 1, 'presentUserIds': ['u1']}},
		})

		response = self.client.get('/api/bars/popularity/', {'venue_id': 'nowhere'})
		self.assertEqual(response.data, {'venues': {'nowhere': {'count': 0, 'presentUserIds': []}}})

	def test_popularity_is_read_only(self):
		self.registry.mark_present(str(self.bar.id), 'u1')
		staff = User.objects.create_user(username='staff', password='pass12345', is_staff=True)
		self.client.force_authenticate(staff)

		self.assertEqual(self.client.post('/api/bars/popularity/').status_code, 405)
		self.assertEqual(self.client.post('/api/bars/popularity/reset/').status_code, 404)
		self.assertEqual(self.registry.count(str(self.bar.id)), 1)

	def test_get_venue_location(self):
		self.assertEqual(services.get_venue_location(str(self.bar.id)).coordinates, GeoPoint(40.0, -74.0))
		self.assertIsNone(services.get_venue_location(str(self.unlocated.id)).coordinates)
		self.assertIsNone(services.get_venue_location('99999'))
		self.assertIsNone(services.get_venue_location('not-a-number'))


class GeocodingTests(SimpleTestCase):
	def _session(self, payload):
		session = Mock()
		session.get.return_value.json.return_value = payload
		return session

	def test_parse_coordinates(self):
		self.assertEqual(parse_coordinates('40.7, -74.0'), GeoPoint(40.7, -74.0))
		self.assertIsNone(parse_coordinates('1 Harbour St, Springfield'))
		self.assertIsNone(parse_coordinates('95, 10'))
		self.assertIsNone(parse_coordinates(''))

	@override_settings(GOOGLE_MAPS_API_KEY='')
	def test_no_api_key_means_unknown(self):
		session = Mock()
		self.assertIsNone(geocode_address('1 Harbour St', session=session))
		session.get.assert_not_called()

	@override_settings(GOOGLE_MAPS_API_KEY='key')
	def test_google_result(self):
		session = self._session({
			'status': 'OK',
			'results': [{'geometry': {'location': {'lat': 51.5, 'lng': -0.12}}}],
		})
		self.assertEqual(geocode_address('London', session=session), GeoPoint(51.5, -0.12))
		self.assertEqual(session.get.call_args.kwargs['params'], {'address': 'London', 'key': 'key'})

	@override_settings(GOOGLE_MAPS_API_KEY='key')
	def test_zero_results_and_errors(self):
		self.assertIsNone(geocode_address('Atlantis', session=self._session({'status': 'ZERO_RESULTS', 'results': []})))

		with self.assertRaises(GeocodingError):
			geocode_address('London', session=self._session({'status': 'REQUEST_DENIED', 'error_message': 'bad key'}))

		session = Mock()
		session.get.side_effect = requests.ConnectionError('down')
		with self.assertRaises(GeocodingError):
			geocode_address('London', session=session)


class GeocodeTaskTests(TestCase):
	def test_missing_bar(self):
		self.assertFalse(geocode_bar_task(99999))

	@override_settings(GOOGLE_MAPS_API_KEY='key')
	@patch('bars.geocoding.requests.get')
	def test_task_stores_coordinates(self, mock_get):
		mock_get.return_value.json.return_value = {
			'status': 'OK',
			'results': [{'geometry': {'location': {'lat': 40.1234567, 'lng': -74.7654321}}}],
		}
		bar = Bar.objects.create(name='Lookup', address='5 Main St')

		self.assertTrue(geocode_bar_task(bar.id))
		bar.refresh_from_db()
		self.assertEqual(bar.latitude, Decimal('40.123457'))
		self.assertEqual(bar.longitude, Decimal('-74.765432'))

	@override_settings(GOOGLE_MAPS_API_KEY='key')
	@patch('bars.geocoding.requests.get', side_effect=requests.Timeout('slow'))
	def test_task_failure_keeps_null_coordinates(self, _mock_get):
		bar = Bar.objects.create(name='Lookup', address='5 Main St')

		self.assertFalse(geocode_bar_task(bar.id))
		bar.refresh_from_db()
		self.assertFalse(bar.has_coordinates)
