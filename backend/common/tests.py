import math

from django.test import SimpleTestCase

from common.utils.geo import (
	GeoPoint,
	VenueLocation,
	calculate_distance,
	distance_meters,
	find_nearest_venue,
)


class GeoPointTests(SimpleTestCase):
	def test_coordinates_are_coerced_to_float(self):
		point = GeoPoint(40, "-74.5")
		self.assertEqual(point.latitude, 40.0)
		self.assertEqual(point.longitude, -74.5)

	def test_out_of_range_coordinates_are_rejected(self):
		for lat, lon in [(90.01, 0), (-91, 0), (0, 180.5), (0, -181), (math.nan, 0), ("north", 0)]:
			with self.assertRaises(ValueError):
				GeoPoint(lat, lon)

	def test_boundaries_are_valid(self):
		GeoPoint(90, 180)
		GeoPoint(-90, -180)

	def test_from_dict_requires_both_numbers(self):
		self.assertEqual(GeoPoint.from_dict({"latitude": 1, "longitude": 2}), GeoPoint(1, 2))
		for bad in [None, [], {"latitude": 1}, {"latitude": True, "longitude": 2}, {"latitude": "40.0", "longitude": -74}]:
			with self.assertRaises(ValueError):
				GeoPoint.from_dict(bad)

	def test_points_are_immutable(self):
		point = GeoPoint(1, 2)
		with self.assertRaises(AttributeError):
			point.latitude = 3

	def test_venue_location_from_dict(self):
		venue = VenueLocation.from_dict({"venue_id": 7, "coordinates": {"latitude": 1, "longitude": 2}})
		self.assertEqual(venue.venue_id, "7")
		self.assertEqual(venue.coordinates, GeoPoint(1, 2))
		self.assertIsNone(VenueLocation.from_dict({"venue_id": "x", "coordinates": None}).coordinates)


class DistanceTests(SimpleTestCase):
	def test_identical_points_are_zero_apart(self):
		point = GeoPoint(40.0, -74.0)
		self.assertEqual(distance_meters(point, point), 0.0)

	def test_distance_is_symmetric(self):
		a = GeoPoint(40.7128, -74.0060)
		b = GeoPoint(51.5074, -0.1278)
		self.assertEqual(distance_meters(a, b), distance_meters(b, a))

	def test_known_distance(self):
		# New York -> London, roughly 5570 km
		distance = calculate_distance(40.7128, -74.0060, 51.5074, -0.1278)
		self.assertAlmostEqual(distance / 1000, 5570, delta=15)

	def test_short_hop_across_antimeridian(self):
		distance = distance_meters(GeoPoint(0, 179.9995), GeoPoint(0, -179.9995))
		self.assertAlmostEqual(distance, 111.19, delta=0.5)

	def test_antipodes_and_poles(self):
		half_circumference = math.pi * 6371000.0
		self.assertAlmostEqual(distance_meters(GeoPoint(0, 0), GeoPoint(0, 180)), half_circumference, delta=1)
		self.assertAlmostEqual(distance_meters(GeoPoint(90, 0), GeoPoint(-90, 0)), half_circumference, delta=1)
		self.assertAlmostEqual(distance_meters(GeoPoint(90, 0), GeoPoint(90, 120)), 0.0, delta=1e-6)


class FindNearestVenueTests(SimpleTestCase):
	def setUp(self):
		self.user = GeoPoint(40.0, -74.0)

	def test_user_at_venue_matches(self):
		venues = [VenueLocation("A", GeoPoint(40.0, -74.0))]
		self.assertEqual(find_nearest_venue(self.user, venues, 100), "A")

	def test_venue_beyond_radius_does_not_match(self):
		# ~150m north
		venues = [VenueLocation("A", GeoPoint(40.00135, -74.0))]
		self.assertIsNone(find_nearest_venue(self.user, venues, 100))

	def test_closest_of_several_wins(self):
		venues = [
			VenueLocation("B", GeoPoint(39.99928, -74.0)),  # ~80m
			VenueLocation("A", GeoPoint(40.00045, -74.0)),  # ~50m
		]
		self.assertEqual(find_nearest_venue(self.user, venues, 100), "A")

	def test_threshold_is_exclusive(self):
		venue = VenueLocation("A", GeoPoint(40.00045, -74.0))
		exact = distance_meters(self.user, venue.coordinates)
		self.assertIsNone(find_nearest_venue(self.user, [venue], exact))
		self.assertEqual(find_nearest_venue(self.user, [venue], exact + 0.01), "A")

	def test_tie_resolves_to_first_seen(self):
		origin = GeoPoint(0.0, 0.0)
		venues = [
			VenueLocation("east", GeoPoint(0.0, 0.0005)),
			VenueLocation("west", GeoPoint(0.0, -0.0005)),
		]
		self.assertEqual(find_nearest_venue(origin, venues, 100), "east")
		self.assertEqual(find_nearest_venue(origin, list(reversed(venues)), 100), "west")

	def test_no_candidates(self):
		self.assertIsNone(find_nearest_venue(self.user, [], 100))
		self.assertIsNone(find_nearest_venue(self.user, [VenueLocation("A"), VenueLocation("B", None)], 100))

	def test_default_radius_is_100m(self):
		self.assertEqual(find_nearest_venue(self.user, [VenueLocation("A", GeoPoint(40.00045, -74.0))]), "A")
		self.assertIsNone(find_nearest_venue(self.user, [VenueLocation("A", GeoPoint(40.00135, -74.0))]))
