"""Tests for the nest() entry point and the background controller."""

import pytest

from sheetnester.datatypes.imported_part import ImportedPart
from sheetnester.datatypes.nesting_result import NestingResult
from sheetnester.tools.nesting import nesting_logic
from sheetnester.tools.nesting.nesting_controller import NestingController


def open_corner(part_id):
    """Two loose lines forming an open corner."""
    return ImportedPart(part_id, entities=[
        {"type": "LINE", "vertices": [{"x": 0, "y": 0}, {"x": 10, "y": 0}]},
        {"type": "LINE", "vertices": [{"x": 10, "y": 0}, {"x": 10, "y": 10}]},
    ])


class TestNest:
    """Tests for nesting_logic.nest."""

    @pytest.mark.parametrize("kwargs", [
        dict(width=0, height=100),
        dict(width=100, height=-1),
        dict(width=100, height=100, margin=-1),
        dict(width=100, height=100, gap=-0.5),
        dict(width=100, height=100, kerf=-2),
        dict(width=100, height=100, algorithm="simulated-annealing"),
    ])
    def test_invalid_arguments(self, rectangle_part, kwargs):
        with pytest.raises(ValueError):
            nesting_logic.nest([rectangle_part("r", 10, 10)], **kwargs)

    @pytest.mark.parametrize("algorithm", nesting_logic.ALGORITHMS)
    def test_algorithm_is_recorded(self, rectangle_part, algorithm):
        result = nesting_logic.nest([rectangle_part("r", 10, 10)], 50, 50, algorithm=algorithm,
                                    generations=2, population_size=2)
        assert isinstance(result, NestingResult)
        assert result.algorithm == algorithm
        assert len(result.placed) == 1

    def test_quantities_override(self, rectangle_part):
        parts = [rectangle_part("a", 10, 10, quantity=5), rectangle_part("b", 10, 10, quantity=1)]
        result = nesting_logic.nest(parts, 100, 100, quantities={"a": 2, "b": 0})
        assert sorted(p.part_id for p in result.placed) == ["a", "a"]

    def test_empty_input(self):
        result = nesting_logic.nest([], 100, 100, algorithm="nfp-first-fit")
        assert result.placed == []
        assert result.failed == []
        assert result.total_bins == 0
        assert result.efficiency == 0.0

    def test_geometry_failures_come_first(self, rectangle_part):
        parts = [rectangle_part("big", 500, 500), rectangle_part("loose", 10, 10, as_block=False)]
        result = nesting_logic.nest(parts, 100, 100, algorithm="nfp-first-fit")
        assert result.failed == ["loose", "big"]

    def test_open_contour_is_failed_unless_forced(self):
        parts = [open_corner("corner")]
        strict = nesting_logic.nest(parts, 100, 100, algorithm="nfp-first-fit", require_block=False)
        assert strict.failed == ["corner"]

        forced = nesting_logic.nest(parts, 100, 100, algorithm="nfp-first-fit", require_block=False,
                                    force_close=True)
        assert forced.failed == []
        assert forced.efficiency == pytest.approx(50.0 / 10000.0)

    def test_gap_and_kerf_share_the_offset(self, rectangle_part):
        cache = {}
        nesting_logic.nest([rectangle_part("r", 10, 10)], 100, 100, algorithm="nfp-first-fit",
                           gap=1.0, kerf=2.0, processed_shape_cache=cache)
        assert list(cache) == [("r", 1.5, True, False)]
        assert cache[("r", 1.5, True, False)].offset == 1.5

    def test_efficiency_uses_raw_area(self, rectangle_part):
        result = nesting_logic.nest([rectangle_part("r", 50, 50)], 100, 100, algorithm="nfp-first-fit", gap=4)
        assert result.efficiency == pytest.approx(0.25)

    @pytest.mark.parametrize("algorithm", ["true-shape-genetic", "nfp-first-fit"])
    @pytest.mark.parametrize("entity", [
        {"type": "ARC", "center": {"x": 0, "y": 0}, "start_angle": 0, "end_angle": 90},
        {"type": "LINE", "vertices": [{"x": 0, "y": 0}]},
    ])
    def test_malformed_entity_fails_only_its_part(self, rectangle_part, algorithm, entity):
        bad = ImportedPart("bad", entities=[{"type": "INSERT", "name": "bad_block", "position": {"x": 0, "y": 0}}],
                           blocks={"bad_block": {"entities": [entity]}})
        result = nesting_logic.nest([bad, rectangle_part("good", 50, 50)], 100, 100, algorithm=algorithm,
                                    generations=2, population_size=2)
        assert result.failed == ["bad"]
        assert [p.part_id for p in result.placed] == ["good"]


class TestNestingController:
    """Tests for background runs."""

    @pytest.fixture
    def controller(self):
        controller = NestingController()
        yield controller
        controller.shutdown()

    def test_run_reports_done(self, controller, rectangle_part):
        messages = []
        run = controller.start([rectangle_part("r", 20, 20, quantity=3)], 100, 100,
                               algorithm="nfp-first-fit", progress_callback=messages.append)
        result = controller.wait(timeout=60)

        assert len(result.placed) == 3
        assert controller.last_result is result
        assert not controller.is_running()
        assert messages[-1]["type"] == "DONE"
        assert messages[-1]["run_id"] == run.run_id
        assert messages[-1]["cancelled"] is False
        assert len(messages[-1]["result"]["placed"]) == 3

    def test_failed_run_reports_error(self, controller, rectangle_part):
        messages = []
        run = controller.start([rectangle_part("r", 20, 20)], 100, 100, algorithm="bogus",
                               progress_callback=messages.append)
        with pytest.raises(ValueError):
            controller.wait(timeout=60)

        assert not controller.is_running()
        assert controller.last_result is None
        assert messages[-1]["type"] == "ERROR"
        assert messages[-1]["run_id"] == run.run_id
        assert "bogus" in messages[-1]["message"]

    def test_shape_cache_is_kept_between_runs(self, controller, rectangle_part):
        parts = [rectangle_part("r", 20, 20)]
        controller.start(parts, 100, 100, algorithm="nfp-first-fit")
        controller.wait(timeout=60)
        cached = dict(controller.processed_shape_cache)
        controller.start(parts, 100, 100, algorithm="nfp-first-fit")
        controller.wait(timeout=60)
        assert controller.processed_shape_cache == cached

    def test_new_run_supersedes_running_one(self, controller, rectangle_part):
        messages = []
        slow = controller.start([rectangle_part("s", 7, 5, quantity=40)], 100, 100,
                                algorithm="true-shape-genetic", progress_callback=messages.append,
                                generations=500, population_size=20, grid_step=1.0)
        fast = controller.start([rectangle_part("f", 10, 10)], 100, 100,
                                algorithm="guillotine", progress_callback=messages.append)
        result = controller.wait(timeout=120)

        assert slow.cancelled
        assert slow.result(timeout=120) is not None
        assert len(result.placed) == 1
        assert controller.last_result is result

        done = [m for m in messages if m["type"] == "DONE"]
        assert [m["run_id"] for m in done] == [fast.run_id]
        assert all(m["run_id"] in (slow.run_id, fast.run_id) for m in messages)

    def test_cancel(self, controller, rectangle_part):
        run = controller.start([rectangle_part("s", 7, 5, quantity=40)], 100, 100,
                               algorithm="true-shape-genetic", generations=500, grid_step=1.0)
        controller.cancel()
        result = run.result(timeout=120)
        assert run.cancelled
        assert len(result.placed) + len(result.failed) == 40
        assert controller.last_result is None
