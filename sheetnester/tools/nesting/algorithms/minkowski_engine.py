import logging
from threading import Lock

from shapely.geometry import LineString, Polygon, Point, box
from shapely.affinity import translate
from shapely.ops import unary_union

from . import minkowski_utils

logger = logging.getLogger(__name__)


class MinkowskiEngine:
    """
    Handles geometric operations for no-fit-polygon nesting: NFP generation
    and caching, the forbidden region of a sheet, candidate positions and the
    conversion between NFP anchors and stored placements.

    Anchors are positions of a shape's local origin, i.e. the translation
    applied to the master geometry after rotating it. Stored placements use
    the corner of the rotated raw outline instead.
    """
    def __init__(self, bin_width, bin_height, margin=0.0, safety_margin=0.5, nfp_client=None, log_callback=None):
        self.bin_width = bin_width
        self.bin_height = bin_height
        self.margin = margin
        self.safety_margin = safety_margin
        self.nfp_client = nfp_client
        self.log_callback = log_callback
        self._log_lock = Lock()
        self._cache_lock = Lock()
        self.nfp_cache = {}
        self.decomposition_cache = {}

    def log(self, message, level="info"):
        if self.log_callback:
            with self._log_lock:
                self.log_callback("MINKOWSKI_ENGINE: " + message, level=level)
        else:
            getattr(logger, level, logger.info)(message)

    # --- Anchors ---

    @staticmethod
    def anchor_of(shape):
        """Translation of a placed shape relative to its rotated master."""
        rotated = shape.rotated(shape.angle)
        return shape.bounds[0] - rotated.bounds[0], shape.bounds[1] - rotated.bounds[1]

    @staticmethod
    def rotated_offset(shape, angle):
        """Raw outline corner of the master rotated by ``angle``, relative to the local origin."""
        min_x, min_y, _, _ = shape.rotated(angle).unbuffered_polygon.bounds
        return min_x, min_y

    def anchor_to_placement(self, shape, angle, anchor):
        ox, oy = self.rotated_offset(shape, angle)
        return anchor[0] + ox, anchor[1] + oy

    def placement_to_anchor(self, shape, angle, placement):
        ox, oy = self.rotated_offset(shape, angle)
        return placement[0] - ox, placement[1] - oy

    # --- NFPs ---

    def get_nfp(self, fixed_shape, fixed_angle, moving_shape, moving_angle):
        """
        NFP of ``moving_shape`` around ``fixed_shape`` with both at their
        local origins. Cached per part pair, rotations and inflation.
        """
        cache_key = (
            fixed_shape.part_id, moving_shape.part_id,
            round(fixed_angle % 360.0, 4), round(moving_angle % 360.0, 4),
            fixed_shape.offset, moving_shape.offset,
        )
        with self._cache_lock:
            cached = self.nfp_cache.get(cache_key)
        if cached is not None:
            return cached

        fixed_master = fixed_shape.master.polygon
        moving_master = moving_shape.master.polygon
        if self.nfp_client is not None:
            coords = self.nfp_client.calculate_nfp(
                list(fixed_master.exterior.coords), list(moving_master.exterior.coords),
                fixed_angle, moving_angle, ids=(fixed_shape.part_id, moving_shape.part_id))
            nfp = Polygon(coords) if coords else None
        else:
            nfp = minkowski_utils.no_fit_polygon(fixed_master, moving_master, fixed_angle, moving_angle,
                                                 cache=self.decomposition_cache)

        if nfp is None or nfp.is_empty:
            self.log(f"Empty NFP for {fixed_shape.part_id} vs {moving_shape.part_id}.", level="warning")
            return None

        with self._cache_lock:
            self.nfp_cache[cache_key] = nfp
        return nfp

    def forbidden_region(self, sheet, moving_shape, angle):
        """
        Union of the NFPs of every part on the sheet, moved to the parts'
        anchors and grown by the safety margin. None on an empty sheet.
        """
        nfps = []
        for placed in sheet.parts:
            if placed.shape is None:
                continue
            nfp = self.get_nfp(placed.shape, placed.shape.angle, moving_shape, angle)
            if nfp is None:
                continue
            dx, dy = self.anchor_of(placed.shape)
            nfps.append(translate(nfp, xoff=dx, yoff=dy))
        if not nfps:
            return None

        region = unary_union(nfps)
        if self.safety_margin > 0:
            region = region.buffer(self.safety_margin, join_style="round")
        return region

    def inner_fit_bounds(self, rotated_shape):
        """Range of anchors keeping the rotated working outline inside the margins."""
        min_x, min_y, max_x, max_y = rotated_shape.bounds
        return (self.margin - min_x, self.margin - min_y,
                self.bin_width - self.margin - max_x, self.bin_height - self.margin - max_y)

    @staticmethod
    def inner_fit_region(lo_x, lo_y, hi_x, hi_y):
        """
        The inner-fit rectangle as geometry. A part spanning the full usable
        width or height collapses it to a segment, or to a point when both.
        """
        flat_x = hi_x - lo_x <= 1e-9
        flat_y = hi_y - lo_y <= 1e-9
        if flat_x and flat_y:
            return Point(lo_x, lo_y)
        if flat_x:
            return LineString([(lo_x, lo_y), (lo_x, hi_y)])
        if flat_y:
            return LineString([(lo_x, lo_y), (hi_x, lo_y)])
        return box(lo_x, lo_y, hi_x, hi_y)

    @staticmethod
    def _vertices(geometry):
        """All coordinates of a polygonal, linear or point geometry."""
        if geometry.is_empty:
            return []
        if hasattr(geometry, 'geoms'):
            return [p for part in geometry.geoms for p in MinkowskiEngine._vertices(part)]
        if geometry.geom_type == 'Polygon':
            points = list(geometry.exterior.coords)
            for interior in geometry.interiors:
                points.extend(interior.coords)
            return points
        return list(geometry.coords)

    def get_candidate_positions(self, rotated_shape, forbidden):
        """
        Candidate anchors sorted bottom-up, then left to right: the vertices
        of the feasible part of the inner-fit rectangle and its corners.
        Points inside the forbidden region are dropped.
        """
        lo_x, lo_y, hi_x, hi_y = self.inner_fit_bounds(rotated_shape)
        eps = 1e-9
        if hi_x < lo_x - eps or hi_y < lo_y - eps:
            return []

        points = [(lo_x, lo_y), (hi_x, lo_y), (lo_x, hi_y), (hi_x, hi_y)]
        if forbidden is not None:
            hi_x, hi_y = max(hi_x, lo_x), max(hi_y, lo_y)
            feasible = self.inner_fit_region(lo_x, lo_y, hi_x, hi_y).difference(forbidden)
            points.extend(self._vertices(feasible))

        candidates = set()
        for x, y in points:
            if lo_x - eps <= x <= hi_x + eps and lo_y - eps <= y <= hi_y + eps:
                candidates.add((min(max(x, lo_x), hi_x), min(max(y, lo_y), hi_y)))

        if forbidden is not None:
            candidates = {p for p in candidates if not forbidden.contains(Point(p))}
        return sorted(candidates, key=lambda p: (p[1], p[0]))

    def find_position(self, rotated_shape, sheet):
        """
        First candidate anchor at which the rotated shape is a valid placement
        on the sheet, as a placed Shape, or None.
        """
        forbidden = self.forbidden_region(sheet, rotated_shape, rotated_shape.angle)
        for x, y in self.get_candidate_positions(rotated_shape, forbidden):
            candidate = rotated_shape.moved(x, y)
            if sheet.is_placement_valid(candidate):
                return candidate
        return None
