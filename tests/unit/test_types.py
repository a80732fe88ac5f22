"""
Unit tests for record types and their persisted shapes
"""

import pytest

from common.types import (
    CacheRecord,
    FullProjection,
    GridCell,
    GridMetadata,
    GridStats,
    MinimalProjection,
    MinimalSummary,
    PointRecord,
    project,
    projection_from_dict,
)
from tests.conftest import make_point


class TestPointRecord:
    """Validation on construction"""

    def test_numeric_strings_are_coerced(self):
        p = PointRecord(id="a", name="A", latitude="49.5", longitude="-123")
        assert p.latitude == 49.5
        assert p.longitude == -123.0

    @pytest.mark.parametrize(
        "lat,lng",
        [(None, 0.0), ("north", 0.0), (float("nan"), 0.0), (0.0, float("nan")), (90.1, 0.0), (0.0, -180.5)],
    )
    def test_invalid_coordinates(self, lat, lng):
        with pytest.raises(ValueError):
            PointRecord(id="a", name="A", latitude=lat, longitude=lng)

    def test_missing_id(self):
        with pytest.raises(ValueError, match="id is required"):
            PointRecord(id="", name="A", latitude=0.0, longitude=0.0)

    def test_world_edges_accepted(self):
        PointRecord(id="a", name="A", latitude=90.0, longitude=180.0)
        PointRecord(id="b", name="B", latitude=-90.0, longitude=-180.0)


class TestProjection:
    """Zoom-dependent projection"""

    def test_minimal_below_detailed_zoom(self):
        proj = project(make_point("p1", 49.0, -123.0), zoom=4, detailed_zoom=6)
        assert isinstance(proj, MinimalProjection)
        assert set(proj.to_dict()) == {"id", "name", "latitude", "longitude", "path", "country", "region"}

    def test_minimal_keeps_classification(self):
        """Cell country/region sets are rebuilt from minimal entries too"""
        proj = project(make_point("p1", 49.0, -123.0, country="usa", region="washington"), zoom=2, detailed_zoom=6)
        assert (proj.country, proj.region) == ("usa", "washington")

    def test_full_at_detailed_zoom(self):
        proj = project(make_point("p1", 49.0, -123.0), zoom=6, detailed_zoom=6)
        assert isinstance(proj, FullProjection)
        d = proj.to_dict()
        assert d["amenities"] == ["water", "fire-pit", "toilet"]
        assert d["hasImages"] is True

    def test_full_without_images(self):
        proj = project(make_point("p1", 49.0, -123.0, images=()), zoom=8, detailed_zoom=6, max_amenities=1)
        assert proj.has_images is False
        assert proj.amenities == ["water"]

    def test_variant_recovered_from_dict(self):
        p = make_point("p1", 49.0, -123.0)
        for zoom, cls in ((2, MinimalProjection), (8, FullProjection)):
            proj = project(p, zoom, detailed_zoom=6)
            again = projection_from_dict(proj.to_dict())
            assert isinstance(again, cls)
            assert again == proj


class TestGridCell:
    """Cell aggregation"""

    def test_counts_follow_points(self):
        cell = GridCell.empty(2, 1, 3)
        assert cell.upsert(project(make_point("a", 49.0, -123.0, country="canada"), 2, 6))
        assert cell.upsert(project(make_point("b", 47.0, -122.0, country="usa", region="washington"), 2, 6))
        assert cell.count == 2
        assert cell.countries == ["canada", "usa"]
        assert cell.regions == ["alberta", "washington"]

    def test_upsert_replaces_in_place(self):
        cell = GridCell.empty(2, 1, 3)
        cell.upsert(project(make_point("a", 49.0, -123.0), 2, 6))
        cell.upsert(project(make_point("b", 48.0, -123.0), 2, 6))
        assert cell.upsert(project(make_point("a", 49.0, -123.0, name="Renamed"), 2, 6)) is False
        assert [p.id for p in cell.points] == ["a", "b"]
        assert cell.points[0].name == "Renamed"
        assert cell.count == 2

    def test_persisted_shape(self):
        cell = GridCell.empty(2, 1, 3)
        cell.upsert(project(make_point("a", 49.0, -123.0), 2, 6))
        d = cell.to_dict()
        assert set(d) == {"bounds", "count", "countries", "regions", "points"}
        assert d["bounds"] == {"minLat": 45.0, "maxLat": 90.0, "minLng": -135.0, "maxLng": -90.0}
        assert d["count"] == len(d["points"]) == 1

    def test_from_dict_collapses_duplicate_ids(self):
        raw = {
            "points": [
                {"id": "a", "name": "old", "latitude": 49.0, "longitude": -123.0, "path": "/a"},
                {"id": "b", "name": "b", "latitude": 48.0, "longitude": -123.0, "path": "/b"},
                {"id": "a", "name": "new", "latitude": 49.0, "longitude": -123.0, "path": "/a"},
            ]
        }
        cell = GridCell.from_dict(2, 1, 3, raw)
        assert [(p.id, p.name) for p in cell.points] == [("a", "new"), ("b", "b")]
        assert cell.bounds.min_lat == 45.0


class TestMetadataShapes:
    """Metadata, summary and cache sidecar dictionaries"""

    def test_metadata_grid_config(self):
        stats = GridStats(total_points=1, grid_cell_counts={"z2": 1})
        meta = GridMetadata(generated="2024-01-01T00:00:00.000Z", zoom_levels=(2, 4), stats=stats)
        d = meta.to_dict()
        assert d["gridConfig"] == {"2": 45.0, "4": 11.25}
        assert d["worldBounds"]["maxLng"] == 180.0
        assert GridMetadata.from_dict(d).zoom_levels == (2, 4)

    def test_stats_counts_regions_by_country(self):
        stats = GridStats()
        stats.add_point(make_point("a", 49.0, -123.0))
        stats.add_point(make_point("b", 49.0, -123.0, region="british-columbia"))
        assert stats.total_points == 2
        assert stats.country_counts == {"canada": 2}
        assert stats.region_counts == {"canada/alberta": 1, "canada/british-columbia": 1}

    def test_stats_discard_undoes_add(self):
        stats = GridStats()
        stats.add_point(make_point("a", 49.0, -123.0))
        stats.add_point(make_point("b", 47.0, -122.0, country="usa", region="washington"))
        stats.discard_point(make_point("b", 47.0, -122.0, country="usa", region="washington"))
        assert stats.total_points == 1
        assert stats.country_counts == {"canada": 1}
        assert stats.region_counts == {"canada/alberta": 1}

    def test_summary_round_trip_with_unknown_centroid(self):
        raw = {
            "meta": {"total": 3, "countryCount": 2, "generated": "g", "centroidsExact": False},
            "summary": [
                {"country": "canada", "count": 2, "centroid": {"lat": 50.0, "lng": -120.0}},
                {"country": "usa", "count": 1, "centroid": None},
            ],
        }
        summary = MinimalSummary.from_dict(raw)
        assert summary.summary[1].centroid is None
        assert summary.to_dict() == raw

    def test_cache_record_requires_hash(self):
        with pytest.raises(ValueError):
            CacheRecord.from_dict({"lastGenerated": "x"})
