import json
import os
import tempfile
import threading
from unittest.mock import Mock, patch

from django.test import SimpleTestCase

from common.utils.geo import GeoPoint, VenueLocation

from .channel import EventChannel, SocketChannel, fetch_venue_locations
from .exceptions import ChannelError, GeolocationUnavailable
from .loop import TrackingLoop, TrackingStatus
from .sources import LocationSource, ReplayLocationSource

VENUE_A = VenueLocation("A", GeoPoint(40.0, -74.0))
VENUE_B = VenueLocation("B", GeoPoint(40.01, -74.0))

AT_A = GeoPoint(40.0, -74.0)
NEAR_A = GeoPoint(40.0001, -74.0)
AT_B = GeoPoint(40.01, -74.0)
NOWHERE = GeoPoint(41.0, -75.0)


class RecordingChannel(EventChannel):
	def __init__(self):
		self.events = []

	def send_event(self, event):
		self.events.append(event)


class BrokenSource(LocationSource):
	def __iter__(self):
		raise GeolocationUnavailable("permission denied")
		yield  # pragma: no cover


class FixThenLostSource(LocationSource):
	def __init__(self, *points):
		self.points = points

	def __iter__(self):
		yield from self.points
		raise GeolocationUnavailable("signal lost")


class TrackingLoopTests(SimpleTestCase):
	def _loop(self, points, venues=(VENUE_A, VENUE_B)):
		self.channel = RecordingChannel()
		return TrackingLoop(ReplayLocationSource(points), self.channel, "u1", venues=venues)

	def test_emits_only_on_venue_change(self):
		loop = self._loop([NOWHERE, NOWHERE, AT_A, NEAR_A, AT_B, NOWHERE])
		self.assertEqual(loop.status, TrackingStatus.IDLE)

		self.assertEqual(loop.run(), TrackingStatus.TRACKING)
		self.assertEqual([e["venueId"] for e in self.channel.events], [None, "A", "B", None])

	def test_event_shape(self):
		loop = self._loop([AT_A])
		loop.run()
		self.assertEqual(self.channel.events, [{
			"type": "location-update",
			"userId": "u1",
			"position": {"latitude": 40.0, "longitude": -74.0},
			"venueId": "A",
		}])

	def test_first_sample_is_always_reported(self):
		loop = self._loop([])
		self.assertEqual(loop.handle_sample(NOWHERE)["venueId"], None)
		self.assertIsNone(loop.handle_sample(NOWHERE))

	def test_stop_sends_final_exit_when_matched(self):
		loop = self._loop([AT_A])
		loop.run()

		final = loop.stop()
		self.assertEqual(final["venueId"], None)
		self.assertEqual(final["position"], AT_A.to_dict())
		self.assertEqual(loop.status, TrackingStatus.STOPPED)
		self.assertIsNone(loop.current_venue_id)

		self.assertIsNone(loop.handle_sample(AT_B))
		self.assertIsNone(loop.stop())
		self.assertEqual(len(self.channel.events), 2)

	def test_stop_without_match_sends_nothing(self):
		loop = self._loop([NOWHERE])
		loop.run()
		self.assertIsNone(loop.stop())
		self.assertEqual(len(self.channel.events), 1)

	def test_run_after_stop_does_nothing(self):
		loop = self._loop([AT_A])
		loop.stop()
		self.assertEqual(loop.run(), TrackingStatus.STOPPED)
		self.assertEqual(self.channel.events, [])

	def test_unavailable_geolocation(self):
		channel = RecordingChannel()
		loop = TrackingLoop(BrokenSource(), channel, "u1", venues=[VENUE_A])
		self.assertEqual(loop.run(), TrackingStatus.UNAVAILABLE)
		self.assertEqual(channel.events, [])

	def test_losing_geolocation_while_matched_releases_the_venue(self):
		channel = RecordingChannel()
		loop = TrackingLoop(FixThenLostSource(AT_A), channel, "u1", venues=[VENUE_A])

		self.assertEqual(loop.run(), TrackingStatus.UNAVAILABLE)
		self.assertEqual([e["venueId"] for e in channel.events], ["A", None])
		self.assertEqual(channel.events[-1]["position"], AT_A.to_dict())
		self.assertIsNone(loop.current_venue_id)

		self.assertIsNone(loop.handle_sample(AT_A))
		self.assertIsNone(loop.stop())
		self.assertEqual(loop.status, TrackingStatus.STOPPED)
		self.assertEqual(len(channel.events), 2)

	def test_empty_recording_is_unavailable(self):
		loop = self._loop([])
		self.assertEqual(loop.run(), TrackingStatus.UNAVAILABLE)

	def test_update_venues_applies_to_next_sample(self):
		loop = self._loop([], venues=())
		self.assertIsNone(loop.handle_sample(AT_A)["venueId"])

		loop.update_venues([VENUE_A])
		self.assertEqual(loop.handle_sample(AT_A)["venueId"], "A")

	def test_stop_from_another_thread_ends_paced_replay(self):
		channel = RecordingChannel()
		source = ReplayLocationSource([AT_A, AT_B, NOWHERE], interval=5)
		loop = TrackingLoop(source, channel, "u1", venues=[VENUE_A, VENUE_B])

		worker = threading.Thread(target=loop.run)
		worker.start()
		while not channel.events:
			pass
		loop.stop()
		worker.join(timeout=2)

		self.assertFalse(worker.is_alive())
		self.assertEqual([e["venueId"] for e in channel.events], ["A", None])
		self.assertEqual(loop.status, TrackingStatus.STOPPED)


class ReplayLocationSourceTests(SimpleTestCase):
	def test_accepts_dicts_and_points(self):
		source = ReplayLocationSource([{"latitude": 1, "longitude": 2}, GeoPoint(3, 4)])
		self.assertEqual(list(source), [GeoPoint(1, 2), GeoPoint(3, 4)])

	def test_invalid_point(self):
		with self.assertRaises(ValueError):
			ReplayLocationSource([{"latitude": 100, "longitude": 2}])

	def test_close_stops_iteration(self):
		source = ReplayLocationSource([GeoPoint(1, 2), GeoPoint(3, 4)])
		iterator = iter(source)
		next(iterator)
		source.close()
		self.assertEqual(list(iterator), [])

	def test_from_file(self):
		with tempfile.TemporaryDirectory() as tmp:
			path = os.path.join(tmp, "track.json")
			with open(path, "w", encoding="utf-8") as fh:
				json.dump({"positions": [{"latitude": 1, "longitude": 2}]}, fh)
			self.assertEqual(ReplayLocationSource.from_file(path).points, [GeoPoint(1, 2)])


class ChannelTests(SimpleTestCase):
	def test_fetch_venue_locations(self):
		session = Mock()
		session.get.return_value.json.return_value = [
			{"venue_id": "1", "coordinates": {"latitude": 40.0, "longitude": -74.0}},
		]

		venues = fetch_venue_locations("http://localhost:8000/", session=session)
		self.assertEqual(venues, [VenueLocation("1", GeoPoint(40.0, -74.0))])
		self.assertEqual(session.get.call_args.args[0], "http://localhost:8000/api/bars/locations/")

	def test_socket_url_carries_token(self):
		channel = SocketChannel("https://bars.example.com", token="abc")
		self.assertEqual(channel.url, "wss://bars.example.com/ws/popularity/?token=abc")
		self.assertEqual(SocketChannel("http://localhost:8000").url, "ws://localhost:8000/ws/popularity/")

	@patch("tracking.channel.websocket.create_connection")
	def test_send_event_connects_lazily(self, mock_connect):
		ws = mock_connect.return_value
		ws.recv.side_effect = [
			json.dumps({"type": "connection_established", "user_id": "7"}),
			json.dumps({"type": "popularity-snapshot", "venues": {"A": {"count": 1, "presentUserIds": ["7"]}}}),
		]

		channel = SocketChannel("http://localhost:8000", token="abc")
		venues = channel.request_snapshot()

		mock_connect.assert_called_once()
		self.assertEqual(json.loads(ws.send.call_args.args[0]), {"type": "request-snapshot"})
		self.assertEqual(venues, {"A": {"count": 1, "presentUserIds": ["7"]}})

		channel.close()
		ws.close.assert_called_once()

	@patch("tracking.channel.websocket.create_connection", side_effect=ConnectionRefusedError())
	def test_connect_failure(self, _mock_connect):
		with self.assertRaises(ChannelError):
			SocketChannel("http://localhost:8000").connect()
