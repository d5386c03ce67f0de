"""Tests for the data containers shared by every strategy."""

import math

import pytest
from shapely.geometry import Polygon, box

from sheetnester.datatypes.imported_part import ImportedPart
from sheetnester.datatypes.nesting_result import NestingResult
from sheetnester.datatypes.placed_part import PlacedPart
from sheetnester.datatypes.shape import Shape
from sheetnester.datatypes.sheet import Sheet


class TestPlacedPart:

    def test_rotation_is_normalised(self):
        assert PlacedPart("p", 0, 0, rotation=-90).rotation == 270.0
        assert PlacedPart("p", 0, 0, rotation=360).rotation == 0.0

    def test_uuids_are_unique(self):
        assert PlacedPart("p", 0, 0).uuid != PlacedPart("p", 0, 0).uuid

    def test_dict_round_trip(self):
        part = PlacedPart("p", 1.5, 2.5, rotation=90, bin_id=3, uuid="abc")
        copy = PlacedPart.from_dict(part.to_dict())
        assert copy.to_dict() == part.to_dict()
        assert copy.shape is None


class TestNestingResult:

    def test_parts_on_bin(self):
        result = NestingResult(placed=[PlacedPart("a", 0, 0, bin_id=0), PlacedPart("b", 0, 0, bin_id=1)],
                               total_bins=2)
        assert [p.part_id for p in result.parts_on_bin(1)] == ["b"]

    def test_from_dict(self):
        data = {"placed": [{"part_id": "a", "x": 1, "y": 2}], "failed": ["b", "b"],
                "efficiency": 0.5, "total_bins": 1, "algorithm": "guillotine"}
        result = NestingResult.from_dict(data)
        assert result.placed[0].bin_id == 0
        assert result.failed == ["b", "b"]
        assert result.to_dict()["algorithm"] == "guillotine"


class TestImportedPart:

    def test_rectangle_defaults(self):
        part = ImportedPart.rectangle("r", 20, 10, quantity=4)
        assert part.gross_area == 200.0
        assert part.net_area == 200.0
        assert part.quantity == 4
        assert part.entities[0]["type"] == "INSERT"
        assert "r_block" in part.blocks

    def test_loose_rectangle(self):
        part = ImportedPart.rectangle("r", 20, 10, as_block=False)
        assert part.blocks == {}
        assert part.entities[0]["type"] == "LWPOLYLINE"


    def test_from_entities_measures_net_area(self):
        entities = [
            {"type": "LWPOLYLINE", "closed": True, "vertices": [
                {"x": 10, "y": 10}, {"x": 110, "y": 10}, {"x": 110, "y": 110}, {"x": 10, "y": 110}]},
            {"type": "CIRCLE", "center": {"x": 60, "y": 60}, "radius": 10},
        ]
        part = ImportedPart.from_entities("plate", entities, quantity=2)
        assert (part.width, part.height) == pytest.approx((100.0, 100.0))
        assert part.gross_area == pytest.approx(10000.0)
        assert part.net_area == pytest.approx(10000.0 - math.pi * 100.0, rel=1e-2)
        assert part.quantity == 2

    def test_open_outline_falls_back_to_gross_area(self):
        entities = [{"type": "LINE", "vertices": [{"x": 0, "y": 0}, {"x": 20, "y": 0}]},
                    {"type": "LINE", "vertices": [{"x": 20, "y": 0}, {"x": 20, "y": 10}]}]
        part = ImportedPart.from_entities("corner", entities)
        assert part.net_area == part.gross_area == pytest.approx(200.0)


class TestShape:

    @pytest.fixture
    def master(self):
        working = box(0, 0, 22, 12)
        raw = box(1, 1, 21, 11)
        return Shape("s", working, raw, offset=1.0)

    def test_rotation_starts_from_master(self, master):
        twice = master.rotated(90).rotated(180)
        assert twice.angle == 180.0
        assert twice.bounds == pytest.approx(master.rotated(180).bounds)
        assert twice.master is master

    def test_rotating_to_zero_returns_master(self, master):
        assert master.rotated(90).rotated(0) is master
        assert master.rotated(360) is master

    def test_placed_at_uses_raw_corner(self, master):
        placed = master.placed_at(90, 50, 60)
        assert placed.placement_origin() == pytest.approx((50.0, 60.0))
        assert placed.bounds == pytest.approx((49.0, 59.0, 61.0, 81.0))
        assert placed.offset == 1.0

    def test_moved_to_uses_working_corner(self, master):
        assert master.moved(5, 5).moved_to(10, 20).bounds[:2] == pytest.approx((10.0, 20.0))

    def test_areas(self, master):
        assert master.area == pytest.approx(264.0)
        assert master.net_area == pytest.approx(200.0)
        assert master.bounding_box() == pytest.approx((0.0, 0.0, 22.0, 12.0))

    def test_outer_and_holes(self):
        frame = Polygon([(0, 0), (10, 0), (10, 10), (0, 10)], [[(2, 2), (4, 2), (4, 4), (2, 4)]])
        shape = Shape("f", frame)
        assert len(shape.outer) == 4
        assert len(shape.holes) == 1
        assert len(shape.holes[0]) == 4


class TestSheet:

    def test_add_part_sets_bin(self):
        sheet = Sheet(3, 100, 100)
        part = PlacedPart("p", 0, 0)
        sheet.add_part(part)
        assert part.bin_id == 3
        assert len(sheet) == 1
        sheet.remove_part(part.uuid)
        assert list(sheet) == []

    def test_fill_percentage(self):
        sheet = Sheet(0, 100, 100)
        sheet.add_part(PlacedPart("p", 0, 0, shape=Shape("p", box(0, 0, 52, 52), box(1, 1, 51, 51))))
        assert sheet.calculate_fill_percentage() == pytest.approx(25.0)
        assert sheet.calculate_fill_percentage(use_unbuffered_area=False) == pytest.approx(27.04)

    def test_placement_validity(self):
        sheet = Sheet(0, 100, 100, margin=5, crop_lines=[{"type": "horizontal", "position": 50}])
        placed = PlacedPart("p", 5, 5, shape=Shape("p", box(5, 5, 25, 25)))
        sheet.add_part(placed)

        assert sheet.is_placement_valid(Shape("q", box(25, 5, 45, 25)))
        assert not sheet.is_placement_valid(Shape("q", box(2, 30, 22, 45)))
        assert not sheet.is_placement_valid(Shape("q", box(10, 10, 30, 30)))
        assert sheet.is_placement_valid(Shape("q", box(10, 10, 30, 30)), part_to_ignore=placed.uuid)
        assert not sheet.is_placement_valid(Shape("q", box(60, 40, 80, 60)))

    def test_remnants_from_crop_lines(self):
        """The vertical cut gives the largest single piece, so it runs edge to edge."""
        sheet = Sheet(0, 200, 100, crop_lines=[{"type": "vertical", "position": 50},
                                               {"type": "vertical", "position": 20},
                                               {"type": "horizontal", "position": 80}])
        remnants = sheet.remnants()
        assert [(r["x"], r["y"], r["width"], r["height"]) for r in remnants] == [
            (50.0, 0.0, 150.0, 100.0), (0.0, 80.0, 50.0, 20.0)]
        assert [r["kind"] for r in remnants] == ["primary", "secondary"]

    def test_no_crop_lines_no_remnants(self):
        assert Sheet(0, 100, 100).remnants() == []
