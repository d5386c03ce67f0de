"""Shared fixtures for the nesting tests."""

import itertools

import pytest
from shapely.geometry import Polygon

from sheetnester.datatypes.imported_part import ImportedPart
from sheetnester.datatypes.shape import Shape


@pytest.fixture
def rectangle_part():
    """Factory for rectangular parts wrapped in a single block instance."""
    def make(part_id, width, height, quantity=1, as_block=True):
        return ImportedPart.rectangle(part_id, width, height, quantity=quantity, as_block=as_block)
    return make


@pytest.fixture
def l_shape_part():
    """Factory for an L-shaped part: a size x size square missing its upper right quarter."""
    def make(part_id, size=40.0, quantity=1):
        half = size / 2.0
        outline = {
            "type": "LWPOLYLINE",
            "closed": True,
            "vertices": [
                {"x": 0.0, "y": 0.0},
                {"x": size, "y": 0.0},
                {"x": size, "y": half},
                {"x": half, "y": half},
                {"x": half, "y": size},
                {"x": 0.0, "y": size},
            ],
        }
        block = f"{part_id}_block"
        return ImportedPart(
            part_id,
            entities=[{"type": "INSERT", "name": block, "position": {"x": 0.0, "y": 0.0}}],
            blocks={block: {"entities": [outline]}},
            width=size, height=size, quantity=quantity,
        )
    return make


@pytest.fixture
def box_shape():
    """Factory for a Shape whose working and raw outline is an axis-aligned box."""
    def make(part_id, min_x, min_y, max_x, max_y):
        polygon = Polygon([(min_x, min_y), (max_x, min_y), (max_x, max_y), (min_x, max_y)])
        return Shape(part_id, polygon)
    return make


@pytest.fixture
def assert_valid_layout():
    """
    Checks a NestingResult against the part shapes it was built from: raw
    outlines on the same sheet keep at least ``gap`` apart and stay inside
    the margins.
    """
    def check(result, shapes_by_id, width, height, margin=0.0, gap=0.0, tolerance=0.05):
        outlines = {}
        for placed in result.placed:
            shape = shapes_by_id[placed.part_id].placed_at(placed.rotation, placed.x, placed.y)
            outline = shape.unbuffered_polygon
            min_x, min_y, max_x, max_y = outline.bounds
            assert min_x >= margin - 1e-6 and min_y >= margin - 1e-6
            assert max_x <= width - margin + 1e-6 and max_y <= height - margin + 1e-6
            outlines.setdefault(placed.bin_id, []).append(outline)

        for polygons in outlines.values():
            for a, b in itertools.combinations(polygons, 2):
                assert a.intersection(b).area < 1e-6
                if gap > 0:
                    assert a.distance(b) >= gap - tolerance
    return check
