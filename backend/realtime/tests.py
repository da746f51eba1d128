import threading
from decimal import Decimal

from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.test import SimpleTestCase, TransactionTestCase, override_settings
from unittest.mock import patch

from bars.models import Bar
from common.utils.geo import GeoPoint, distance_meters
from .broadcast import broadcast_snapshot_async, build_snapshot_message
from .consumers.popularity_consumer import PopularityConsumer
from .events import Leave, LocationUpdate, SnapshotRequest, parse_event
from .exceptions import IdentityMismatchError, MalformedEventError, SessionClosedError
from .occupancy import OccupancyRegistry
from .presence import DISCONNECT, ENTER, EXIT, SWITCH, PresenceSession


class OccupancyRegistryTests(SimpleTestCase):
	def setUp(self):
		self.registry = OccupancyRegistry()

	def test_mark_present_is_idempotent(self):
		self.registry.mark_present("A", "u1")
		snapshot = self.registry.mark_present("A", "u1")
		self.assertEqual(snapshot.count("A"), 1)
		self.assertEqual(snapshot["A"].present_users, frozenset({"u1"}))

	def test_user_is_present_at_one_venue_at_most(self):
		self.registry.mark_present("A", "u1")
		snapshot = self.registry.mark_present("B", "u1")
		self.assertNotIn("A", snapshot)
		self.assertEqual(snapshot.count("B"), 1)
		self.assertEqual(self.registry.venue_of("u1"), "B")

	def test_mark_absent_is_a_no_op_when_not_present(self):
		self.registry.mark_present("A", "u1")
		snapshot = self.registry.mark_absent("B", "u1")
		self.assertEqual(snapshot.count("A"), 1)
		snapshot = self.registry.mark_absent("A", "u2")
		self.assertEqual(snapshot.count("A"), 1)

	def test_empty_entries_are_pruned(self):
		self.registry.mark_present("A", "u1")
		snapshot = self.registry.mark_absent("A", "u1")
		self.assertEqual(len(snapshot), 0)
		self.assertEqual(snapshot.count("A"), 0)
		self.assertIsNone(self.registry.venue_of("u1"))

	def test_snapshot_is_a_copy(self):
		snapshot = self.registry.mark_present("A", "u1")
		self.registry.mark_present("A", "u2")
		self.assertEqual(snapshot.count("A"), 1)
		self.assertEqual(self.registry.count("A"), 2)

	def test_ids_are_normalised_to_strings(self):
		self.registry.mark_present(7, 42)
		self.assertEqual(self.registry.count("7"), 1)
		self.assertEqual(self.registry.venue_of("42"), "7")

	def test_payload_shape(self):
		self.registry.mark_present("A", "u2")
		self.registry.mark_present("A", "u1")
		snapshot = self.registry.snapshot()
		self.assertEqual(snapshot.to_payload(), {"A": {"count": 2, "presentUserIds": ["u1", "u2"]}})
		self.assertEqual(snapshot.to_payload("Z"), {"Z": {"count": 0, "presentUserIds": []}})

	def test_clear(self):
		self.registry.mark_present("A", "u1")
		self.registry.clear()
		self.assertEqual(len(self.registry.snapshot()), 0)

	def test_concurrent_moves_keep_counts_consistent(self):
		def move(user_id):
			for i in range(200):
				self.registry.mark_present("A" if i % 2 else "B", user_id)

		threads = [threading.Thread(target=move, args=(f"u{n}",)) for n in range(8)]
		for thread in threads:
			thread.start()
		for thread in threads:
			thread.join()

		snapshot = self.registry.snapshot()
		self.assertEqual(sum(entry.count for entry in snapshot.values()), 8)


class PresenceSessionTests(SimpleTestCase):
	def setUp(self):
		self.registry = OccupancyRegistry()
		self.session = PresenceSession(self.registry, user_id="u1")

	def test_enter_switch_exit(self):
		transition = self.session.apply("A")
		self.assertEqual(transition.kind, ENTER)
		self.assertEqual(transition.snapshot.count("A"), 1)

		transition = self.session.apply("B")
		self.assertEqual(transition.kind, SWITCH)
		self.assertEqual(transition.previous_venue_id, "A")
		self.assertEqual(transition.snapshot.count("A"), 0)
		self.assertEqual(transition.snapshot.count("B"), 1)

		transition = self.session.apply(None)
		self.assertEqual(transition.kind, EXIT)
		self.assertEqual(len(transition.snapshot), 0)
		self.assertFalse(self.session.is_present)

	def test_unchanged_candidate_produces_no_transition(self):
		self.assertIsNone(self.session.apply(None))
		self.session.apply("A")
		self.assertIsNone(self.session.apply("A"))
		self.assertEqual(self.registry.count("A"), 1)

	def test_leave_only_applies_to_current_venue(self):
		self.session.apply("A")
		self.assertIsNone(self.session.leave("B"))
		self.assertEqual(self.registry.count("A"), 1)

		transition = self.session.leave("A")
		self.assertEqual(transition.kind, EXIT)
		self.assertEqual(self.registry.count("A"), 0)

	def test_close_releases_presence_once(self):
		self.session.apply("A")
		transition = self.session.close()
		self.assertEqual(transition.kind, DISCONNECT)
		self.assertEqual(self.registry.count("A"), 0)
		self.assertIsNone(self.session.close())

		with self.assertRaises(SessionClosedError):
			self.session.apply("A")

	def test_close_without_presence(self):
		self.assertIsNone(self.session.close())
		self.assertTrue(self.session.closed)

	def test_bind_user(self):
		session = PresenceSession(self.registry)
		with self.assertRaises(IdentityMismatchError):
			session.bind_user(None)
		self.assertEqual(session.bind_user(5), "5")
		self.assertEqual(session.bind_user(None), "5")
		with self.assertRaises(IdentityMismatchError):
			session.bind_user("6")

	def test_apply_requires_bound_user(self):
		with self.assertRaises(IdentityMismatchError):
			PresenceSession(self.registry).apply("A")

	def test_two_sessions_share_a_venue(self):
		other = PresenceSession(self.registry, user_id="u2")
		self.session.apply("A")
		other.apply("A")
		self.session.close()
		entry = self.registry.snapshot()["A"]
		self.assertEqual(entry.count, 1)
		self.assertEqual(entry.present_users, frozenset({"u2"}))

	def test_repeat_candidate_re_enters_after_another_connection_moved_user(self):
		other = PresenceSession(self.registry, user_id="u1")
		self.session.apply("A")
		other.apply("B")
		self.assertEqual(self.registry.venue_of("u1"), "B")

		transition = self.session.apply("A")
		self.assertEqual(transition.kind, ENTER)
		self.assertEqual(self.registry.venue_of("u1"), "A")
		self.assertEqual(self.registry.count("B"), 0)

	def test_exit_is_silent_when_user_already_moved(self):
		other = PresenceSession(self.registry, user_id="u1")
		self.session.apply("A")
		other.apply("B")

		self.assertIsNone(self.session.apply(None))
		self.assertFalse(self.session.is_present)
		self.assertEqual(self.registry.venue_of("u1"), "B")

		self.session.apply("A")
		other.apply("B")
		self.assertIsNone(self.session.leave("A"))
		self.assertEqual(self.registry.count("B"), 1)

	def test_close_is_silent_when_user_already_moved(self):
		other = PresenceSession(self.registry, user_id="u1")
		self.session.apply("A")
		other.apply("B")

		self.assertIsNone(self.session.close())
		self.assertTrue(self.session.closed)
		self.assertEqual(self.registry.venue_of("u1"), "B")

	def test_exit_after_registry_cleared_is_silent(self):
		self.session.apply("A")
		self.registry.clear()
		self.assertIsNone(self.session.apply(None))
		self.assertEqual(len(self.registry.snapshot()), 0)


class ParseEventTests(SimpleTestCase):
	def test_location_update(self):
		event = parse_event({
			"type": "location-update",
			"userId": "u1",
			"position": {"latitude": 40.0, "longitude": -74.0},
			"venueId": "A",
		})
		self.assertEqual(event, LocationUpdate("u1", GeoPoint(40.0, -74.0), "A"))

	def test_location_update_with_null_venue_and_candidate_key(self):
		event = parse_event({
			"type": "location-update",
			"userId": 3,
			"position": {"latitude": 1, "longitude": 2},
			"venueId": None,
		})
		self.assertIsNone(event.venue_id)
		self.assertEqual(event.user_id, "3")

		event = parse_event({
			"type": "location-update",
			"position": {"latitude": 1, "longitude": 2},
			"candidateVenueId": "B",
		})
		self.assertEqual(event.venue_id, "B")
		self.assertIsNone(event.user_id)

	def test_leave_and_alias(self):
		self.assertEqual(parse_event({"type": "leave", "userId": "u1", "venueId": "A"}), Leave("u1", "A"))
		self.assertEqual(parse_event({"type": "explicit-leave", "venueId": "A"}), Leave(None, "A"))

	def test_snapshot_request(self):
		self.assertEqual(parse_event({"type": "request-snapshot"}), SnapshotRequest())
		self.assertEqual(parse_event({"type": "request-snapshot", "venueId": "A"}), SnapshotRequest("A"))

	def test_malformed_events(self):
		bad_frames = [
			[],
			"location-update",
			{},
			{"type": ["location-update"]},
			{"type": "teleport"},
			{"type": "location-update", "userId": "u1", "venueId": "A"},
			{"type": "location-update", "position": {"latitude": 91, "longitude": 0}},
			{"type": "location-update", "position": {"latitude": "40.0", "longitude": "-74.0"}},
			{"type": "location-update", "position": {"latitude": 1, "longitude": 2}, "venueId": {"id": 1}},
			{"type": "location-update", "position": {"latitude": 1, "longitude": 2}, "userId": ""},
			{"type": "leave", "userId": "u1"},
			{"type": "leave", "venueId": True},
		]
		for frame in bad_frames:
			with self.subTest(frame=frame):
				with self.assertRaises(MalformedEventError):
					parse_event(frame)


class BroadcastTests(SimpleTestCase):
	def test_build_snapshot_message(self):
		registry = OccupancyRegistry()
		registry.mark_present("A", "u1")
		message = build_snapshot_message(registry.snapshot())
		self.assertEqual(message, {
			"type": "popularity-snapshot",
			"venues": {"A": {"count": 1, "presentUserIds": ["u1"]}},
		})

	@patch("realtime.broadcast.get_channel_layer", return_value=None)
	async def test_broadcast_without_channel_layer(self, _mock_layer):
		result = await broadcast_snapshot_async(OccupancyRegistry().snapshot())
		self.assertFalse(result["broadcasted"])
		self.assertEqual(result["reason"], "no_channel_layer")


def location_update(user_id, venue_id, latitude=40.0, longitude=-74.0):
	return {
		"type": "location-update",
		"userId": user_id,
		"position": {"latitude": latitude, "longitude": longitude},
		"venueId": venue_id,
	}


class ConsumerTestCase(TransactionTestCase):
	def setUp(self):
		self.registry = OccupancyRegistry()

	async def _connect(self):
		communicator = WebsocketCommunicator(
			PopularityConsumer.as_asgi(registry=self.registry),
			"/ws/popularity/",
		)
		connected, _ = await communicator.connect()
		self.assertTrue(connected)

		greeting = await communicator.receive_json_from()
		self.assertEqual(greeting["type"], "connection_established")
		initial = await communicator.receive_json_from()
		self.assertEqual(initial["type"], "popularity-snapshot")
		return communicator, greeting

	async def _flush_layer(self):
		await get_channel_layer().flush()


@override_settings(PROXIMITY_REVALIDATE=False)
class PopularityConsumerTests(ConsumerTestCase):
	async def test_switching_venues_broadcasts_consistent_counts(self):
		await self._flush_layer()
		communicator, _ = await self._connect()

		await communicator.send_json_to(location_update("u1", "A"))
		message = await communicator.receive_json_from()
		self.assertEqual(message["venues"], {"A": {"count": 1, "presentUserIds": ["u1"]}})

		await communicator.send_json_to(location_update("u1", "B"))
		message = await communicator.receive_json_from()
		self.assertEqual(message["type"], "popularity-snapshot")
		self.assertEqual(message["venues"], {"B": {"count": 1, "presentUserIds": ["u1"]}})
		self.assertEqual(self.registry.count("A"), 0)
		self.assertEqual(self.registry.count("B"), 1)

		await communicator.disconnect()

	async def test_disconnect_removes_only_that_user(self):
		await self._flush_layer()
		first, _ = await self._connect()
		second, _ = await self._connect()

		await first.send_json_to(location_update("u1", "A"))
		await first.receive_json_from()
		await second.receive_json_from()

		await second.send_json_to(location_update("u2", "A"))
		await first.receive_json_from()
		await second.receive_json_from()
		self.assertEqual(self.registry.count("A"), 2)

		await first.disconnect()
		message = await second.receive_json_from()
		self.assertEqual(message["venues"], {"A": {"count": 1, "presentUserIds": ["u2"]}})

		await second.disconnect()
		self.assertEqual(len(self.registry.snapshot()), 0)

	async def test_snapshot_request_replies_to_requester_only(self):
		await self._flush_layer()
		self.registry.mark_present("A", "someone")
		watcher, _ = await self._connect()
		requester, _ = await self._connect()

		await requester.send_json_to({"type": "request-snapshot"})
		reply = await requester.receive_json_from()
		self.assertEqual(reply, {
			"type": "popularity-snapshot",
			"venues": {"A": {"count": 1, "presentUserIds": ["someone"]}},
		})
		self.assertTrue(await watcher.receive_nothing())
		self.assertEqual(self.registry.count("A"), 1)

		await requester.send_json_to({"type": "request-snapshot", "venueId": "Z"})
		reply = await requester.receive_json_from()
		self.assertEqual(reply["venues"], {"Z": {"count": 0, "presentUserIds": []}})

		await watcher.disconnect()
		await requester.disconnect()

	async def test_malformed_events_are_dropped_silently(self):
		await self._flush_layer()
		communicator, _ = await self._connect()

		await communicator.send_to(text_data="not json")
		await communicator.send_json_to({"type": "location-update", "userId": "u1", "venueId": "A"})
		await communicator.send_json_to({"type": "teleport"})
		self.assertTrue(await communicator.receive_nothing())
		self.assertEqual(len(self.registry.snapshot()), 0)

		await communicator.disconnect()

	async def test_identity_mismatch_is_dropped(self):
		await self._flush_layer()
		communicator, _ = await self._connect()

		await communicator.send_json_to(location_update("u1", "A"))
		await communicator.receive_json_from()

		await communicator.send_json_to(location_update("intruder", "B"))
		self.assertTrue(await communicator.receive_nothing())
		self.assertEqual(self.registry.venue_of("u1"), "A")
		self.assertIsNone(self.registry.venue_of("intruder"))

		await communicator.disconnect()

	async def test_explicit_leave(self):
		await self._flush_layer()
		communicator, _ = await self._connect()

		await communicator.send_json_to(location_update("u1", "A"))
		await communicator.receive_json_from()

		await communicator.send_json_to({"type": "explicit-leave", "userId": "u1", "venueId": "B"})
		self.assertTrue(await communicator.receive_nothing())

		await communicator.send_json_to({"type": "leave", "userId": "u1", "venueId": "A"})
		message = await communicator.receive_json_from()
		self.assertEqual(message["venues"], {})

		await communicator.disconnect()

	async def test_repeated_candidate_does_not_broadcast(self):
		await self._flush_layer()
		communicator, _ = await self._connect()

		await communicator.send_json_to(location_update("u1", "A"))
		await communicator.receive_json_from()
		await communicator.send_json_to(location_update("u1", "A", latitude=40.0001))
		self.assertTrue(await communicator.receive_nothing())

		await communicator.disconnect()


@override_settings(PROXIMITY_REVALIDATE=True, PROXIMITY_RADIUS_METERS=100.0)
class PopularityRevalidationTests(ConsumerTestCase):
	def setUp(self):
		super().setUp()
		self.bar = Bar.objects.create(
			name='The Anchor',
			address='1 Harbour St',
			latitude=Decimal('40.000000'),
			longitude=Decimal('-74.000000'),
		)
		self.unlocated = Bar.objects.create(name='Basement', address='Somewhere')
		self.venue_id = str(self.bar.pk)

	async def _send_then_sync(self, communicator, frame):
		await communicator.send_json_to(frame)
		# Frames are handled in order, so this reply follows the update
		await communicator.send_json_to({"type": "request-snapshot"})
		reply = await communicator.receive_json_from()
		self.assertEqual(reply["type"], "popularity-snapshot")
		return reply

	async def test_candidate_within_radius_is_accepted(self):
		await self._flush_layer()
		communicator, _ = await self._connect()

		# ~50m north
		await communicator.send_json_to(location_update("u1", self.venue_id, latitude=40.00045))
		message = await communicator.receive_json_from()
		self.assertEqual(message["venues"], {self.venue_id: {"count": 1, "presentUserIds": ["u1"]}})

		await communicator.disconnect()

	async def test_candidate_outside_radius_is_rejected(self):
		await self._flush_layer()
		communicator, _ = await self._connect()

		# ~150m north
		reply = await self._send_then_sync(communicator, location_update("u1", self.venue_id, latitude=40.00135))
		self.assertEqual(reply["venues"], {})
		self.assertIsNone(self.registry.venue_of("u1"))

		await communicator.send_json_to(location_update("u1", self.venue_id))
		message = await communicator.receive_json_from()
		self.assertEqual(message["venues"][self.venue_id]["count"], 1)

		# Walking away turns the stale candidate into an exit
		await communicator.send_json_to(location_update("u1", self.venue_id, latitude=40.00135))
		message = await communicator.receive_json_from()
		self.assertEqual(message["venues"], {})

		await communicator.disconnect()

	async def test_unknown_or_unlocated_venue_is_rejected(self):
		await self._flush_layer()
		communicator, _ = await self._connect()

		for venue_id in ["999999", "not-a-bar", str(self.unlocated.pk)]:
			with self.subTest(venue_id=venue_id):
				reply = await self._send_then_sync(communicator, location_update("u1", venue_id))
				self.assertEqual(reply["venues"], {})
		self.assertEqual(len(self.registry.snapshot()), 0)

		await communicator.disconnect()

	async def test_candidate_exactly_at_radius_is_rejected(self):
		await self._flush_layer()
		communicator, _ = await self._connect()
		exact = distance_meters(GeoPoint(40.00045, -74.0), GeoPoint(40.0, -74.0))
		frame = location_update("u1", self.venue_id, latitude=40.00045)

		with override_settings(PROXIMITY_RADIUS_METERS=exact):
			reply = await self._send_then_sync(communicator, frame)
		self.assertEqual(reply["venues"], {})

		with override_settings(PROXIMITY_RADIUS_METERS=exact + 0.01):
			await communicator.send_json_to(frame)
			message = await communicator.receive_json_from()
		self.assertEqual(message["venues"], {self.venue_id: {"count": 1, "presentUserIds": ["u1"]}})

		await communicator.disconnect()
