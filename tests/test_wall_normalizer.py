"""
Tests for wall normalization
"""

import pytest

from roomtrace.parser.segment import SegmentKind
from roomtrace.services.wall_normalizer import (
    WallNormalizer,
    axis_orientation,
    HORIZONTAL,
    VERTICAL,
    DIVIDING_WALL_OFFSET,
)


@pytest.fixture
def normalizer():
    return WallNormalizer()


class TestThicknessMeasurement:

    def test_modal_separation(self, normalizer, double_wall_room):
        assert normalizer.measure_wall_thickness(double_wall_room, 12) == pytest.approx(10.0)

    def test_no_pairs_within_envelope(self, normalizer, double_wall_room):
        assert normalizer.measure_wall_thickness(double_wall_room, 5) is None

    def test_parallel_pairs_indices(self, normalizer, make_segment):
        lines = [
            make_segment((0, 0), (100, 0)),
            make_segment((0, 100), (0, 0)),
            make_segment((0, 8), (100, 8)),
        ]
        assert normalizer.parallel_pairs(lines, 10) == [(0, 2, pytest.approx(8.0))]

    def test_axis_orientation(self, make_segment):
        assert axis_orientation(make_segment((0, 0), (100, 2))) == HORIZONTAL
        assert axis_orientation(make_segment((0, 0), (2, 100))) == VERTICAL
        assert axis_orientation(make_segment((0, 0), (50, 50))) is None


class TestWallPairs:
    """Collapsing and inner-boundary extraction"""

    def test_collapse_to_centerlines(self, normalizer, double_wall_room):
        result = normalizer.collapse_parallel_walls(double_wall_room, 12)

        assert [s.points for s in result] == [
            ((0.0, 0.0), (200.0, 0.0)),
            ((200.0, 0.0), (200.0, 100.0)),
            ((200.0, 100.0), (0.0, 100.0)),
            ((0.0, 100.0), (0.0, 0.0)),
        ]
        assert all(s.kind == SegmentKind.CENTERLINE for s in result)
        assert all(s.wall_thickness == pytest.approx(10.0) for s in result)
        assert [s.origin_index for s in result] == [0, 1, 2, 3]

    def test_inner_boundaries_keep_room_faces(self, normalizer, double_wall_room):
        result = normalizer.extract_inner_boundaries(double_wall_room, 12)

        assert [s.origin_index for s in result] == [4, 5, 6, 7]
        assert all(s.kind == SegmentKind.INNER_BOUNDARY for s in result)

    def test_unpaired_lines_pass_through(self, normalizer, make_segment):
        lone = make_segment((0, 0), (100, 0))
        assert normalizer.collapse_parallel_walls([lone], 12) == [lone]


class TestCollinearMerge:

    def test_pieces_merge(self, normalizer, make_segment):
        lines = [make_segment((0, 0), (50, 0), index=0), make_segment((52, 0), (100, 0), index=1)]

        result = normalizer.merge_collinear_segments(lines, 5)

        assert len(result) == 1
        assert result[0].points == ((0.0, 0.0), (100.0, 0.0))
        assert result[0].kind == SegmentKind.MERGED
        assert result[0].origin_index == 0

    def test_crossing_wall_blocks_merge(self, normalizer, make_segment):
        lines = [
            make_segment((0, 0), (50, 0), index=0),
            make_segment((52, 0), (100, 0), index=1),
            make_segment((51, -10), (51, 10), index=2),
        ]

        result = normalizer.merge_collinear_segments(lines, 5)

        assert result == lines

    def test_distant_pieces_stay_apart(self, normalizer, make_segment):
        lines = [make_segment((0, 0), (50, 0), index=0), make_segment((70, 0), (100, 0), index=1)]
        assert normalizer.merge_collinear_segments(lines, 5) == lines


class TestExtension:

    def test_horizontal_extends_to_both_walls(self, normalizer, make_segment):
        lines = [
            make_segment((10, 0), (90, 0), index=0),
            make_segment((0, -50), (0, 50), index=1),
            make_segment((100, -50), (100, 50), index=2),
        ]

        result = normalizer.extend_to_intersections(lines, 40)

        assert result[0].points == ((0.0, 0.0), (100.0, 0.0))
        assert result[0].kind == SegmentKind.EXTENDED
        assert result[1] is lines[1]
        assert result[2] is lines[2]

    def test_vertical_extends_to_spanning_horizontal(self, normalizer, make_segment):
        lines = [
            make_segment((0, 0), (100, 0), index=0),
            make_segment((50, 10), (50, 100), index=1),
        ]

        result = normalizer.extend_to_intersections(lines, 40)

        assert result[0] is lines[0]
        assert result[1].points == ((50.0, 0.0), (50.0, 100.0))

    def test_out_of_reach_untouched(self, normalizer, make_segment):
        lines = [
            make_segment((100, 0), (200, 0), index=0),
            make_segment((0, -50), (0, 50), index=1),
        ]
        assert normalizer.extend_to_intersections(lines, 40) == lines


class TestOpenLines:

    def test_stray_line_dropped_t_junction_kept(self, normalizer, rectangle_edges, make_segment):
        square = rectangle_edges(0, 0, 200, 100)
        stem = make_segment((100, 0), (100, 100), index=4)
        stray = make_segment((300, 300), (400, 300), index=5)

        result = normalizer.filter_open_lines(square + [stem, stray], 20)

        assert result == square + [stem]


class TestDividingWalls:

    def test_interior_wall_duplicated(self, normalizer, rectangle_edges, make_segment):
        lines = rectangle_edges(0, 0, 200, 100) + [make_segment((100, 0), (100, 100), index=4)]

        result = normalizer.duplicate_dividing_walls(lines, 20)

        assert len(result) == 6
        copy = result[-1]
        assert copy.kind == SegmentKind.DUPLICATED
        assert copy.origin_index == 4
        assert copy.start[0] == pytest.approx(100 + DIVIDING_WALL_OFFSET)
        assert (copy.start[1], copy.end[1]) == (0.0, 100.0)

    def test_exterior_walls_not_duplicated(self, normalizer, rectangle_edges):
        lines = rectangle_edges(0, 0, 200, 100)
        assert normalizer.duplicate_dividing_walls(lines, 20) == lines

    def test_too_few_lines(self, normalizer, make_segment):
        lines = [make_segment((0, 0), (100, 0)), make_segment((50, 0), (50, 100))]
        assert normalizer.duplicate_dividing_walls(lines, 20) == lines


class TestNormalize:
    """Full wall pass sequence"""

    def test_collapse_mode(self, normalizer, double_wall_room):
        result = normalizer.normalize(double_wall_room, 12)

        assert result.measured_thickness == pytest.approx(10.0)
        assert result.inset_thickness == pytest.approx(10.0)
        assert not result.inner_boundary_mode
        assert [s.points for s in result.segments] == [
            ((0.0, 0.0), (200.0, 0.0)),
            ((200.0, 0.0), (200.0, 100.0)),
            ((200.0, 100.0), (0.0, 100.0)),
            ((0.0, 100.0), (0.0, 0.0)),
        ]

    def test_inner_boundary_mode(self, normalizer, double_wall_room):
        result = normalizer.normalize(double_wall_room, 12, skip_collapse=True)

        assert result.inner_boundary_mode
        assert result.inset_thickness is None
        assert result.measured_thickness == pytest.approx(10.0)
        assert [s.origin_index for s in result.segments] == [4, 5, 6, 7]

    def test_no_pairs_uses_configured_thickness(self, normalizer, rectangle_edges):
        result = normalizer.normalize(rectangle_edges(0, 0, 200, 100), 12)

        assert result.measured_thickness is None
        assert result.working_thickness == 12
        assert result.inset_thickness is None
        assert len(result.segments) == 4

    def test_polylines_exploded(self, normalizer, make_segment):
        ring = make_segment((0, 0), (200, 0), (200, 100), (0, 100), (0, 0), index=3)

        lines = normalizer.explode([ring])

        assert len(lines) == 4
        assert all(len(s.points) == 2 and s.origin_index == 3 for s in lines)
