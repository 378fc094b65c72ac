import pytest

from vehicle_crawler.exceptions import InvalidRegion
from vehicle_crawler.spatial.regions import Region, middle_between, slices_for_zoom, subdivide_region


def test_subdivide_two_by_two_tiles_parent_exactly():
    parent = Region(north_east_lat=2.0, north_east_lon=4.0, south_west_lat=0.0, south_west_lon=0.0, zoom=15)

    children = subdivide_region(parent, new_found=7, rows=2, cols=2)

    assert len(children) == 4
    # south-west first, row by row
    assert [(c.south_west_lat, c.south_west_lon) for c in children] == [(0.0, 0.0), (0.0, 2.0), (1.0, 0.0), (1.0, 2.0)]
    assert [(c.north_east_lat, c.north_east_lon) for c in children] == [(1.0, 2.0), (1.0, 4.0), (2.0, 2.0), (2.0, 4.0)]
    assert all(c.zoom == 16 for c in children)
    assert all(c.found_by_parent == 7 for c in children)

    # areas add up and no child leaves the parent
    area = sum((c.north_east_lat - c.south_west_lat) * (c.north_east_lon - c.south_west_lon) for c in children)
    assert area == pytest.approx(8.0)
    assert min(c.south_west_lat for c in children) == parent.south_west_lat
    assert max(c.north_east_lon for c in children) == parent.north_east_lon


def test_subdivide_shares_inner_edges_on_real_coordinates(seed_region):
    rows, cols = slices_for_zoom(seed_region.zoom)
    lower, upper = subdivide_region(seed_region, new_found=10, rows=rows, cols=cols)

    # odd zoom: two rows stacked north of each other, longitudes untouched
    assert lower.north_east_lat == upper.south_west_lat
    assert lower.south_west_lat == seed_region.south_west_lat
    assert upper.north_east_lat == seed_region.north_east_lat
    for child in (lower, upper):
        assert child.south_west_lon == seed_region.south_west_lon
        assert child.north_east_lon == seed_region.north_east_lon


@pytest.mark.parametrize("zoom, expected", [(15, (2, 1)), (16, (1, 2)), (17, (2, 1)), (20, (1, 2))])
def test_slices_alternate_with_zoom(zoom, expected):
    assert slices_for_zoom(zoom) == expected


def test_degenerate_region_is_rejected():
    with pytest.raises(InvalidRegion):
        Region(north_east_lat=51.0, north_east_lon=13.7, south_west_lat=51.0, south_west_lon=13.7, zoom=15)


def test_inverted_region_is_rejected():
    with pytest.raises(InvalidRegion):
        Region(north_east_lat=51.0, north_east_lon=13.7, south_west_lat=51.1, south_west_lon=13.8, zoom=15)


def test_invalid_region_is_a_value_error():
    with pytest.raises(ValueError):
        Region(north_east_lat=51.0, north_east_lon=13.8, south_west_lat=51.1, south_west_lon=13.7, zoom=15)


def test_middle_between():
    assert middle_between(3.0, 1.0) == 2.0
    with pytest.raises(InvalidRegion):
        middle_between(1.5, 1.5)


def test_center_of_region(seed_region):
    assert seed_region.south_west_lat < seed_region.center_lat < seed_region.north_east_lat
    assert seed_region.south_west_lon < seed_region.center_lon < seed_region.north_east_lon
