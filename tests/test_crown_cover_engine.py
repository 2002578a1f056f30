"""
Unit tests for the crown cover geometry engine.

Tests cover:
- Geometry helpers
- Polar transforms
- Plot layout
- Tree placement
- Cover statistics and their invariants
- Configuration
"""
import math
import pickle
import warnings

import pytest
from shapely.errors import GEOSException
from shapely.geometry import LineString, box

from canopy_cover.domain.exceptions import CoverComputationError, TreePlacementError
from canopy_cover.services.domain import crown_cover_engine
from canopy_cover.services.domain.crown_cover_engine import (
    BASAL_AREA_FACTOR,
    CoverConfig,
    CrownCoverEngine,
    summarize_cover,
)
from canopy_cover.services.domain.plot_layout import (
    build_plot_layout,
    get_plot_layout,
    lobes_are_disjoint,
    subplot_centers,
)
from canopy_cover.services.domain.tree_placement import place_tree, place_trees
from canopy_cover.utils.geometry import (
    area_of,
    clip_to_boundary,
    dissolve,
    make_disk,
    polygonal_part,
    safe_intersection,
    suppress_geometry_warnings,
)
from canopy_cover.utils.polar import offset_from, polar_to_offset, polar_to_offsets


SAMPLED_AREA = 4 * math.pi * 24 ** 2
CROWN_20_AREA = math.pi * 10 ** 2


# ============================================================
# Geometry Helper Tests
# ============================================================

class TestGeometryHelpers:
    """Tests for buffering, clipping, dissolving and area."""

    def test_disk_area_close_to_circle(self):
        """A buffered disk should approximate pi * r^2."""
        disk = make_disk((0, 0), 10.0, quad_segments=64)

        assert disk.area == pytest.approx(CROWN_20_AREA, rel=1e-3)

    def test_non_positive_radius_gives_empty_disk(self):
        """Zero, negative and NaN radii produce empty polygons."""
        assert make_disk((0, 0), 0.0).is_empty
        assert make_disk((0, 0), -1.0).is_empty
        assert make_disk((0, 0), float("nan")).is_empty

    def test_clip_disjoint_is_empty(self):
        """A disk away from the boundary clips to nothing."""
        boundary = make_disk((0, 0), 24.0)
        disk = make_disk((100, 100), 5.0)

        assert clip_to_boundary(disk, boundary).is_empty

    def test_clip_inside_returns_footprint(self):
        """A disk fully inside the boundary is unchanged."""
        boundary = make_disk((0, 0), 24.0)
        disk = make_disk((0, 0), 5.0)

        assert clip_to_boundary(disk, boundary).area == pytest.approx(disk.area)

    def test_touching_polygons_have_no_area(self):
        """Intersections that are lines or points count as empty."""
        result = safe_intersection(box(0, 0, 1, 1), box(1, 0, 2, 1))

        assert result.is_empty
        assert area_of(result) == 0.0

    def test_polygonal_part_drops_lines(self):
        """Non-polygonal geometry carries no area."""
        assert polygonal_part(LineString([(0, 0), (1, 1)])).is_empty

    def test_dissolve_merges_overlap(self):
        """Union of two overlapping squares counts the overlap once."""
        merged = dissolve([box(0, 0, 2, 2), box(1, 0, 3, 2)])

        assert merged.area == pytest.approx(6.0)

    def test_dissolve_empty_input(self):
        """Nothing to dissolve yields an empty polygon."""
        assert dissolve([]).is_empty
        assert dissolve([make_disk((0, 0), 0)]).is_empty

    def test_area_tolerance(self):
        """Slivers at or below the tolerance report zero area."""
        sliver = box(0, 0, 1e-6, 1e-6)

        assert area_of(sliver, tolerance=1e-9) == 0.0
        assert area_of(sliver) > 0.0

    def test_geometry_warnings_suppressed(self):
        """RuntimeWarnings from degenerate geometry are silenced."""
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            with suppress_geometry_warnings():
                warnings.warn("invalid value encountered in intersection", RuntimeWarning)

        assert not caught


# ============================================================
# Polar Transform Tests
# ============================================================

class TestPolarTransforms:
    """Tests for distance/azimuth conversion."""

    def test_north_is_positive_y(self):
        x, y = polar_to_offset(10.0, 0.0)
        assert x == pytest.approx(0.0, abs=1e-12)
        assert y == pytest.approx(10.0)

    def test_east_is_positive_x(self):
        x, y = polar_to_offset(10.0, 90.0)
        assert x == pytest.approx(10.0)
        assert y == pytest.approx(0.0, abs=1e-12)

    def test_south(self):
        x, y = polar_to_offset(10.0, 180.0)
        assert x == pytest.approx(0.0, abs=1e-12)
        assert y == pytest.approx(-10.0)

    def test_vectorized_matches_scalar(self):
        offsets = polar_to_offsets([5.0, 7.5], [45.0, 300.0])

        for (x, y), (d, az) in zip(offsets, [(5.0, 45.0), (7.5, 300.0)]):
            assert (x, y) == pytest.approx(polar_to_offset(d, az))

    def test_offset_from_origin(self):
        assert offset_from((1.0, 2.0), 3.0, 90.0) == pytest.approx((4.0, 2.0))


# ============================================================
# Plot Layout Tests
# ============================================================

class TestPlotLayout:
    """Tests for subplot centers and the sampled boundary."""

    def test_subplot_centers(self, layout):
        """Subplots sit at the canonical offsets."""
        centers = layout.subplot_centers
        s = 120 * math.sin(math.radians(120))

        assert centers[1] == pytest.approx((0.0, 0.0))
        assert centers[2] == pytest.approx((0.0, 120.0))
        assert centers[3] == pytest.approx((s, -60.0))
        assert centers[4] == pytest.approx((-s, -60.0))

    def test_sampled_area_is_four_disks(self, layout):
        assert layout.sampled_area == pytest.approx(SAMPLED_AREA)
        assert layout.sampled_area == pytest.approx(7238.23, abs=0.01)

    def test_boundary_has_four_lobes(self, layout):
        """Disjoint lobes dissolve to a four-part MultiPolygon."""
        assert layout.boundary.geom_type == "MultiPolygon"
        assert len(layout.boundary.geoms) == 4
        assert layout.boundary.area == pytest.approx(SAMPLED_AREA, rel=1e-3)
        assert layout.boundary.area <= layout.sampled_area

    def test_layout_is_cached(self):
        assert build_plot_layout() is build_plot_layout()
        assert get_plot_layout() is get_plot_layout()

    def test_cached_centers_are_read_only(self):
        """Callers cannot alter the centers shared by every engine."""
        centers = build_plot_layout().subplot_centers

        with pytest.raises(TypeError):
            centers[2] = (0.0, 0.0)

        assert build_plot_layout().subplot_centers[2] == pytest.approx((0.0, 120.0))
        assert build_plot_layout().subplot_ids == (1, 2, 3, 4)

    def test_layout_pickles_for_worker_processes(self, layout):
        restored = pickle.loads(pickle.dumps(layout))

        assert dict(restored.subplot_centers) == dict(layout.subplot_centers)
        assert restored.sampled_area == layout.sampled_area

    def test_overlapping_lobes_use_polygon_area(self):
        """A compact design with overlapping lobes measures its union."""
        compact = build_plot_layout(subplot_radius=24.0, subplot_distance=30.0)

        assert not lobes_are_disjoint(compact.subplot_centers, 24.0)
        assert compact.boundary.geom_type == "Polygon"
        assert compact.sampled_area == pytest.approx(compact.boundary.area)
        assert compact.sampled_area < 4 * math.pi * 24 ** 2

    def test_geojson(self, layout):
        geojson = layout.to_geojson()

        assert geojson["type"] == "MultiPolygon"
        assert len(geojson["coordinates"]) == 4

    def test_subplot_centers_function(self):
        centers = subplot_centers(120.0, [0.0, 120.0, 240.0])

        assert sorted(centers) == [1, 2, 3, 4]


# ============================================================
# Tree Placement Tests
# ============================================================

class TestTreePlacement:
    """Tests for converting subplot-relative positions."""

    def test_subplot_two_center(self, make_tree, layout):
        """A tree at distance 0 on subplot 2 sits at (0, 120)."""
        placed = place_tree(make_tree(subp=2, dist=0, azimuth=0), layout.subplot_centers)

        assert placed.coordinates == pytest.approx((0.0, 120.0))

    def test_offset_from_subplot(self, make_tree, layout):
        placed = place_tree(make_tree(subp=2, dist=10, azimuth=90), layout.subplot_centers)

        assert placed.coordinates == pytest.approx((10.0, 120.0))

    def test_crown_radius(self, make_tree, layout):
        placed = place_tree(make_tree(crown_width=20.0), layout.subplot_centers)

        assert placed.crown_radius == 10.0

    @pytest.mark.parametrize("kwargs", [
        {"subp": 5},
        {"subp": 0},
        {"dist": -1.0},
        {"dist": float("nan")},
        {"azimuth": 360.0},
        {"azimuth": -5.0},
    ])
    def test_invalid_inputs_raise(self, make_tree, layout, kwargs):
        with pytest.raises(TreePlacementError):
            place_tree(make_tree(**kwargs), layout.subplot_centers)

    def test_place_trees_records_diagnostics(self, make_tree, layout):
        """Unresolvable trees are excluded, the rest are placed."""
        trees = [make_tree(subp=1), make_tree(subp=7), make_tree(subp=3)]

        placed, diagnostics = place_trees(trees, layout.subplot_centers)

        assert len(placed) == 2
        assert len(diagnostics) == 1
        assert diagnostics[0].subplot == 7
        assert "unknown subplot" in diagnostics[0].reason


# ============================================================
# Cover Engine Tests
# ============================================================

class TestCoverEngine:
    """Tests for per-plot cover statistics."""

    def test_single_tree_area_conservation(self, engine, make_tree):
        """One crown fully inside: covered == total == pi * r^2."""
        stats = engine.compute_plot_cover("1001", [make_tree(crown_width=20)]).statistics

        assert stats.area_covered == pytest.approx(CROWN_20_AREA, rel=1e-3)
        assert stats.total_crown_area == pytest.approx(stats.area_covered)
        assert stats.overlap_prop == pytest.approx(0.0, abs=1e-9)

    def test_single_tree_cover_proportion(self, engine, make_tree):
        """Crown width 20 on a 7238.23 sq ft plot is about 4.34% cover."""
        stats = engine.compute_plot_cover("1001", [make_tree(crown_width=20)]).statistics

        assert stats.area_covered == pytest.approx(314.16, rel=1e-3)
        assert stats.crown_cover_prop_no_overlap == pytest.approx(0.0434, abs=1e-4)

    def test_coincident_crowns(self, engine, make_tree):
        """Two identical crowns: total is twice covered, overlap is 0.5."""
        trees = [make_tree(crown_width=20), make_tree(crown_width=20)]

        stats = engine.compute_plot_cover("1001", trees).statistics

        assert stats.total_crown_area == pytest.approx(2 * stats.area_covered, rel=1e-6)
        assert stats.overlap_prop == pytest.approx(0.5, abs=1e-6)

    def test_partial_overlap(self, engine, make_tree):
        """Crowns 5 apart overlap partially."""
        trees = [
            make_tree(dist=0, azimuth=0, crown_width=20),
            make_tree(dist=5, azimuth=90, crown_width=20),
        ]

        stats = engine.compute_plot_cover("1001", trees).statistics

        assert CROWN_20_AREA * 1.001 < stats.area_covered < 2 * CROWN_20_AREA * 0.999
        assert 0.0 < stats.overlap_prop < 0.5

    def test_crown_outside_boundary(self, engine, make_tree):
        """A crown away from every subplot contributes nothing."""
        trees = [make_tree(subp=1, dist=60, azimuth=90, crown_width=10)]

        stats = engine.compute_plot_cover("1001", trees).statistics

        assert stats.area_covered == 0.0
        assert stats.total_crown_area == 0.0
        assert stats.tree_count == 1

    def test_outside_crown_does_not_change_cover(self, engine, make_tree):
        inside = make_tree(crown_width=20)
        outside = make_tree(subp=1, dist=60, azimuth=90, crown_width=10)

        alone = engine.compute_plot_cover("1001", [inside]).statistics
        both = engine.compute_plot_cover("1001", [inside, outside]).statistics

        assert both.area_covered == pytest.approx(alone.area_covered)
        assert both.total_crown_area == pytest.approx(alone.total_crown_area)

    def test_crown_on_boundary_is_clipped(self, engine, make_tree):
        """A crown centered on the subplot edge keeps less than half its area."""
        tree = make_tree(subp=1, dist=24, azimuth=90, crown_width=10)

        stats = engine.compute_plot_cover("1001", [tree]).statistics
        fraction = stats.area_covered / (math.pi * 5 ** 2)

        assert 0.4 < fraction < 0.5

    def test_zero_tree_plot(self, engine):
        """An empty plot has zero cover and no overlap proportion."""
        result = engine.compute_plot_cover("1003", [])
        stats = result.statistics

        assert stats.area_covered == 0.0
        assert stats.total_crown_area == 0.0
        assert stats.crown_cover_prop_no_overlap == 0.0
        assert stats.crown_cover_prop_with_overlap == 0.0
        assert stats.overlap_prop is None
        assert stats.is_degenerate
        assert result.diagnostics == []

    def test_monotonicity(self, engine, make_tree):
        """Adding trees never decreases covered or total crown area."""
        trees = [
            make_tree(subp=1, dist=0, azimuth=0, crown_width=20),
            make_tree(subp=1, dist=5, azimuth=45, crown_width=18),
            make_tree(subp=2, dist=20, azimuth=180, crown_width=15),
            make_tree(subp=1, dist=60, azimuth=90, crown_width=10),
            make_tree(subp=3, dist=23, azimuth=300, crown_width=25),
            make_tree(subp=1, dist=0, azimuth=0, crown_width=20),
        ]

        previous_covered = previous_total = 0.0
        for n in range(1, len(trees) + 1):
            stats = engine.compute_plot_cover("1001", trees[:n]).statistics
            assert stats.area_covered >= previous_covered - 1e-9
            assert stats.total_crown_area >= previous_total - 1e-9
            previous_covered = stats.area_covered
            previous_total = stats.total_crown_area

    def test_heavy_overlap_bounds(self, engine, make_tree):
        """Naive cover may exceed 1; corrected cover never does."""
        trees = [make_tree(subp=s, crown_width=40) for s in (1, 2, 3, 4) for _ in range(3)]

        stats = engine.compute_plot_cover("1001", trees).statistics

        assert stats.crown_cover_prop_with_overlap > 1.0
        assert 0.0 <= stats.crown_cover_prop_no_overlap <= 1.0
        assert stats.crown_cover_prop_no_overlap <= stats.crown_cover_prop_with_overlap

    def test_full_cover_is_bounded(self, engine, make_tree):
        """A crown larger than the whole plot is clipped to the sampled area."""
        stats = engine.compute_plot_cover("1001", [make_tree(crown_width=600)]).statistics

        assert stats.crown_cover_prop_no_overlap == pytest.approx(1.0, rel=1e-3)
        assert stats.crown_cover_prop_no_overlap <= 1.0

    @pytest.mark.parametrize("width", [None, 0.0, -4.0, float("nan"), float("inf")])
    def test_invalid_crown_width_excluded(self, engine, make_tree, width):
        trees = [make_tree(crown_width=20), make_tree(crown_width=width)]

        result = engine.compute_plot_cover("1001", trees)

        assert result.statistics.tree_count == 1
        assert result.statistics.excluded_tree_count == 1
        assert "crown width" in result.diagnostics[0].reason

    def test_invalid_subplot_excluded(self, engine, make_tree):
        trees = [make_tree(subp=1), make_tree(subp=9)]

        result = engine.compute_plot_cover("1001", trees)

        assert result.statistics.tree_count == 1
        assert result.statistics.excluded_tree_count == 1
        assert result.statistics.area_covered == pytest.approx(CROWN_20_AREA, rel=1e-3)

    def test_geometry_returned_on_request(self, engine, make_tree):
        trees = [make_tree(crown_width=20), make_tree(subp=2, crown_width=10)]

        result = engine.compute_plot_cover("1001", trees, include_geometry=True)

        assert result.canopy.area == pytest.approx(result.statistics.area_covered)
        assert len(result.footprints) == 2

    def test_geometry_omitted_by_default(self, engine, make_tree):
        result = engine.compute_plot_cover("1001", [make_tree()])

        assert result.canopy is None
        assert result.footprints is None

    def test_stand_attributes(self, engine, make_tree):
        """Trees per acre and basal area sum over the trees in the engine."""
        trees = [
            make_tree(dia=10.0, tpa_unadj=6.018),
            make_tree(dia=20.0, tpa_unadj=6.018, subp=2),
        ]

        stats = engine.compute_plot_cover("1001", trees).statistics

        assert stats.trees_per_acre == pytest.approx(12.036)
        assert stats.basal_area_per_acre == pytest.approx(
            BASAL_AREA_FACTOR * (100 + 400) * 6.018
        )

    def test_geometry_failure_raises_domain_error(self, engine, make_tree, monkeypatch):
        """Irrecoverable GEOS failures surface as CoverComputationError."""
        def broken_dissolve(geometries):
            raise GEOSException("TopologyException: side location conflict")

        monkeypatch.setattr(crown_cover_engine, "dissolve", broken_dissolve)

        with pytest.raises(CoverComputationError) as exc_info:
            engine.compute_plot_cover("1001", [make_tree()])

        assert exc_info.value.plot_key == "1001"


# ============================================================
# Statistics Tests
# ============================================================

class TestSummarizeCover:
    """Tests for deriving proportions from areas."""

    def test_proportions(self):
        stats = summarize_cover("p", total_crown_area=200.0, area_covered=150.0, sampled_area=1000.0)

        assert stats.overlap_prop == pytest.approx(0.25)
        assert stats.crown_cover_prop_no_overlap == pytest.approx(0.15)
        assert stats.crown_cover_prop_with_overlap == pytest.approx(0.2)

    def test_zero_total_has_no_overlap(self):
        stats = summarize_cover("p", total_crown_area=0.0, area_covered=0.0, sampled_area=1000.0)

        assert stats.overlap_prop is None

    def test_covered_clamped_to_total(self):
        """Union noise cannot make covered exceed total."""
        stats = summarize_cover("p", total_crown_area=100.0, area_covered=100.0000001, sampled_area=1000.0)

        assert stats.area_covered == 100.0
        assert stats.overlap_prop == 0.0

    def test_non_positive_sampled_area_rejected(self):
        with pytest.raises(ValueError):
            summarize_cover("p", total_crown_area=1.0, area_covered=1.0, sampled_area=0.0)

    def test_statistics_are_immutable(self):
        stats = summarize_cover("p", total_crown_area=1.0, area_covered=1.0, sampled_area=10.0)

        with pytest.raises(Exception):
            stats.area_covered = 5.0


# ============================================================
# Configuration Tests
# ============================================================

class TestConfiguration:
    """Tests for configuration handling."""

    def test_default_config(self):
        engine = CrownCoverEngine()

        assert engine.config.crown_quad_segments == 64
        assert engine.config.sliver_area_tolerance == 1e-9
        assert engine.layout.sampled_area == pytest.approx(SAMPLED_AREA)

    def test_custom_config(self, layout, make_tree):
        """Coarser disks still land near the circle area."""
        engine = CrownCoverEngine(config=CoverConfig(crown_quad_segments=8), layout=layout)

        stats = engine.compute_plot_cover("1001", [make_tree(crown_width=20)]).statistics

        assert engine.config.crown_quad_segments == 8
        assert stats.area_covered == pytest.approx(CROWN_20_AREA, rel=2e-2)

    def test_include_geometry_config(self, layout, make_tree):
        engine = CrownCoverEngine(config=CoverConfig(include_geometry=True), layout=layout)

        result = engine.compute_plot_cover("1001", [make_tree()])

        assert result.canopy is not None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
