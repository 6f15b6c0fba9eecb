"""
Tests for gap bridging
"""

import pytest

from roomtrace.parser.segment import Segment, SegmentKind
from roomtrace.services.gap_bridger import GapBridger, UnionFind


@pytest.fixture
def bridger():
    return GapBridger()


class TestCollinearBridging:
    """Ends running along the same line"""

    def test_collinear_gap_bridged_at_midpoint(self, bridger, make_segment):
        a = make_segment((0, 0), (100, 0), index=0)
        b = make_segment((110, 0), (200, 0), index=1)

        result = bridger.bridge([a, b], 50)

        assert len(result.segments) == 1
        merged = result.segments[0]
        assert merged.points == ((0.0, 0.0), (105.0, 0.0), (200.0, 0.0))
        assert merged.kind == SegmentKind.MERGED
        assert merged.origin_index == 0
        assert result.merge_count == 1

    def test_reversed_input_gives_reversed_chain(self, bridger, make_segment):
        a = make_segment((0, 0), (100, 0), index=0)
        b = make_segment((110, 0), (200, 0), index=1)

        result = bridger.bridge([b, a], 50)

        assert len(result.segments) == 1
        assert result.segments[0].points == ((200.0, 0.0), (105.0, 0.0), (0.0, 0.0))

    def test_gap_beyond_tolerance_not_bridged(self, bridger, make_segment):
        a = make_segment((0, 0), (100, 0), index=0)
        b = make_segment((160, 0), (200, 0), index=1)

        result = bridger.bridge([a, b], 50)

        assert result.segments == [a, b]
        assert result.merge_count == 0

    def test_parallel_corridor_not_bridged(self, bridger, make_segment):
        a = make_segment((0, 0), (100, 0), index=0)
        b = make_segment((0, 10), (100, 10), index=1)

        result = bridger.bridge([a, b], 50)

        assert result.segments == [a, b]

    def test_identical_endpoints_join(self, bridger, make_segment):
        a = make_segment((0, 0), (100, 0), index=0)
        b = make_segment((100.05, 0), (100.05, 80), index=1)

        result = bridger.bridge([a, b], 0.01)

        assert len(result.segments) == 1
        assert result.segments[0].points[1] == pytest.approx((100.025, 0.0))


class TestPerpendicularBridging:
    """Corners with a gap at the joint"""

    def test_corner_meets_at_intersection(self, bridger, make_segment):
        a = make_segment((0, 0), (100, 0), index=0)
        b = make_segment((110, 10), (110, 100), index=1)

        result = bridger.bridge([a, b], 50)

        assert len(result.segments) == 1
        assert result.segments[0].points == ((0.0, 0.0), (110.0, 0.0), (110.0, 100.0))

    def test_intersection_too_far_not_bridged(self, bridger, make_segment):
        a = make_segment((0, 0), (100, 0), index=0)
        b = make_segment((110, 10), (110, 100), index=1)

        result = bridger.bridge([a, b], 5)

        assert len(result.segments) == 2

    def test_reversed_corner_gives_reversed_chain(self, bridger, make_segment):
        a = make_segment((0, 0), (100, 0), index=0)
        b = make_segment((110, 10), (110, 100), index=1)

        forward = bridger.bridge([a, b], 50).segments
        backward = bridger.bridge([b, a], 50).segments

        assert len(forward) == len(backward) == 1
        assert backward[0].points == forward[0].points[::-1]

    def test_t_junction_keeps_through_wall(self, bridger, make_segment):
        through = make_segment((0, 0), (100, 0), index=0)
        stem = make_segment((60, 5), (60, 200), index=1)

        result = bridger.bridge([through, stem], 50)

        assert result.segments == [through, stem]
        assert result.segments[0].end == (100.0, 0.0)
        assert result.merge_count == 0

    def test_small_corner_overshoot_trimmed(self, bridger, make_segment):
        a = make_segment((0, 0), (100, 0), index=0)
        b = make_segment((100, -0.5), (100, 100), index=1)

        result = bridger.bridge([a, b], 50)

        assert len(result.segments) == 1
        assert result.segments[0].points == ((0.0, 0.0), (100.0, 0.0), (100.0, 100.0))

    def test_long_overshoot_not_cut_back(self, bridger, make_segment):
        a = make_segment((0, 0), (100, 0), index=0)
        b = make_segment((100, -20), (100, 100), index=1)

        result = bridger.bridge([a, b], 50)

        assert result.segments == [a, b]


class TestClosing:
    """Chains whose own ends come together"""

    def test_near_closed_chain_gets_closing_point(self, bridger, make_segment):
        seg = make_segment((0, 0), (100, 0), (100, 100), (0, 100), (0, 0.5))

        result = bridger.bridge([seg], 50)

        assert result.closed_count == 1
        assert result.segments[0].is_closed
        assert result.segments[0].points[-1] == (0.0, 0.0)

    def test_open_u_shape_closes_at_corner(self, bridger, make_segment):
        seg = make_segment((0, 0), (100, 0), (100, 100), (0, 100), (0, 30))

        result = bridger.bridge([seg], 50)

        assert result.closed_count == 1
        assert result.segments[0].points == (
            (0.0, 0.0), (100.0, 0.0), (100.0, 100.0), (0.0, 100.0), (0.0, 0.0)
        )

    def test_closed_rectangles_never_merge(self, bridger, make_segment):
        first = make_segment((0, 0), (10, 0), (10, 10), (0, 10), (0, 0), index=0)
        second = make_segment((10, 0), (20, 0), (20, 10), (10, 10), (10, 0), index=1)

        result = bridger.bridge([first, second], 50)

        assert result.segments == [first, second]
        assert result.merge_count == 0


class TestMergedAttributes:
    """Attributes carried by merged chains"""

    def test_width_flags_and_origin(self, bridger, make_segment):
        a = make_segment((0, 0), (100, 0), width=1.0, index=5)
        b = make_segment((110, 0), (200, 0), width=3.0, index=2, is_filled=True)

        result = bridger.bridge([a, b], 50)

        merged = result.segments[0]
        assert merged.line_width == 3.0
        assert merged.is_filled
        assert merged.is_stroked
        assert merged.origin_index == 2
        assert result.groups == {0: (2, 5)}

    def test_unmerged_segments_returned_unchanged(self, bridger, make_segment):
        seg = make_segment((0, 0), (100, 0), width=2.0, index=9)

        result = bridger.bridge([seg], 50)

        assert result.segments[0] is seg

    def test_empty_input(self, bridger):
        assert bridger.bridge([], 50).segments == []

    def test_bridge_pair(self, bridger):
        a = Segment(points=((0, 0), (100, 0)), origin_index=7)
        b = Segment(points=((110, 0), (200, 0)), origin_index=9)

        merged = bridger.bridge_pair(a, b, 50)

        assert merged is not None
        assert merged.origin_index == 7
        assert merged.points == ((0.0, 0.0), (105.0, 0.0), (200.0, 0.0))
        assert bridger.bridge_pair(a, b, 5) is None


class TestUnionFind:

    def test_smaller_index_is_root(self):
        uf = UnionFind(5)
        assert uf.union(3, 1) == 1
        assert uf.union(4, 3) == 1
        assert uf.find(4) == 1
        assert uf.find(2) == 2
