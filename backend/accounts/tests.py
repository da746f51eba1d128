from django.test import TestCase
from rest_framework.test import APIClient

from .models import User


class AuthFlowTests(TestCase):
	def setUp(self):
		self.client = APIClient()

	def test_register_returns_tokens(self):
		response = self.client.post('/api/auth/register/', {
			'username': 'carol',
			'password': 'longenough1',
			'display_name': 'Carol',
		}, format='json')

		self.assertEqual(response.status_code, 201)
		self.assertIn('access', response.data['tokens'])
		self.assertEqual(response.data['user']['display_name'], 'Carol')
		self.assertTrue(User.objects.filter(username='carol').exists())

	def test_register_validation(self):
		response = self.client.post('/api/auth/register/', {'username': 'dave', 'password': 'short'}, format='json')
		self.assertEqual(response.status_code, 400)

		User.objects.create_user(username='erin', password='longenough1', email='erin@example.com')
		response = self.client.post('/api/auth/register/', {
			'username': 'erin2',
			'password': 'longenough1',
			'email': 'erin@example.com',
		}, format='json')
		self.assertEqual(response.status_code, 400)

	def test_login_refresh_and_me(self):
		User.objects.create_user(username='frank', password='longenough1')

		response = self.client.post('/api/auth/login/', {'username': 'frank', 'password': 'wrong'}, format='json')
		self.assertEqual(response.status_code, 401)

		response = self.client.post('/api/auth/login/', {'username': 'frank', 'password': 'longenough1'}, format='json')
		self.assertEqual(response.status_code, 200)
		tokens = response.data['tokens']

		response = self.client.post('/api/auth/refresh/', {'refresh': tokens['refresh']}, format='json')
		self.assertEqual(response.status_code, 200)
		self.assertIn('access', response.data)

		response = self.client.post('/api/auth/refresh/', {'refresh': 'garbage'}, format='json')
		self.assertEqual(response.status_code, 401)

		self.assertIn(self.client.get('/api/auth/me/').status_code, (401, 403))
		self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
		response = self.client.get('/api/auth/me/')
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['username'], 'frank')
