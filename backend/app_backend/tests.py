from unittest.mock import patch

import redis
from django.test import TestCase
from rest_framework.test import APIClient


class HealthCheckTests(TestCase):
	@patch("app_backend.views.redis.Redis.from_url")
	def test_healthy(self, mock_redis):
		response = APIClient().get("/health/")

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data["status"], "healthy")
		self.assertEqual(set(response.data["services"]), {"database", "redis", "channels", "celery"})
		mock_redis.return_value.ping.assert_called_once()

	@patch("app_backend.views.redis.Redis.from_url")
	def test_redis_down(self, mock_redis):
		mock_redis.return_value.ping.side_effect = redis.ConnectionError("refused")
		response = APIClient().get("/health/")

		self.assertEqual(response.status_code, 503)
		self.assertTrue(response.data["services"]["redis"].startswith("unhealthy"))
		self.assertEqual(response.data["services"]["database"], "healthy")
