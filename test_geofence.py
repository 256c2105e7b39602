"""
Geofence math: haversine distance, coordinate validation and location matching.
"""

from types import SimpleNamespace

import pytest

from utils.geofence import (
    InvalidCoordinatesError,
    find_matching_location,
    haversine_dist,
    is_within_radius,
    validate_coordinates,
)


def site(id, lat, lng, radius_meters):
    return SimpleNamespace(id=id, lat=lat, lng=lng, radius_meters=radius_meters)


def test_haversine_zero_distance():
    assert haversine_dist(0, 0, 0, 0) == 0


def test_haversine_is_symmetric():
    a = haversine_dist(33.8223, -96.6662, 33.83, -96.67)
    b = haversine_dist(33.83, -96.67, 33.8223, -96.6662)
    assert a == pytest.approx(b)


def test_haversine_one_degree_of_latitude():
    # ~111.2 km per degree on a 6371 km sphere
    assert haversine_dist(0, 0, 1, 0) == pytest.approx(111195, rel=1e-3)


def test_is_within_radius():
    assert is_within_radius(33.8223, -96.6662, 33.8223, -96.6662, 10)
    assert not is_within_radius(33.8323, -96.6662, 33.8223, -96.6662, 75)


@pytest.mark.parametrize("lat,lng", [(None, 1), (1, None), ("abc", 1), (True, 1), (float("nan"), 0)])
def test_validate_coordinates_rejects_missing_or_garbage(lat, lng):
    with pytest.raises(InvalidCoordinatesError, match="Valid GPS coordinates are required."):
        validate_coordinates(lat, lng)


def test_validate_coordinates_rejects_out_of_range():
    with pytest.raises(InvalidCoordinatesError, match="out of range"):
        validate_coordinates(91, 0)
    with pytest.raises(InvalidCoordinatesError, match="out of range"):
        validate_coordinates(0, -181)


def test_validate_coordinates_accepts_numeric_strings():
    assert validate_coordinates("33.8223", "-96.6662") == (33.8223, -96.6662)


def test_point_inside_single_location_matches():
    shop = site(1, 33.8223, -96.6662, 75)
    match = find_matching_location(33.8224, -96.6662, [shop])
    assert match.location is shop
    assert match.distance_meters < 75
    assert match.effective_location is shop


def test_nearest_of_overlapping_locations_wins():
    far = site(1, 33.8230, -96.6662, 500)
    near = site(2, 33.8224, -96.6662, 500)
    match = find_matching_location(33.8223, -96.6662, [far, near])
    assert match.location is near


def test_equal_distance_keeps_first_location():
    a = site(1, 33.8223, -96.6662, 100)
    b = site(2, 33.8223, -96.6662, 100)
    assert find_matching_location(33.8223, -96.6662, [a, b]).location is a


def test_outside_everything_falls_back_to_adhoc_template():
    shop = site(1, 33.8223, -96.6662, 75)
    adhoc = site(2, 0, 0, 0)
    match = find_matching_location(40.0, -100.0, [shop, adhoc])
    assert match.location is None
    assert match.adhoc_location is adhoc
    assert match.effective_location is adhoc


def test_no_match_and_no_template():
    match = find_matching_location(40.0, -100.0, [site(1, 33.8223, -96.6662, 75)])
    assert match.effective_location is None


def test_zero_radius_never_matches_by_distance():
    adhoc = site(1, 33.8223, -96.6662, 0)
    match = find_matching_location(33.8223, -96.6662, [adhoc])
    assert match.location is None
    assert match.effective_location is adhoc
