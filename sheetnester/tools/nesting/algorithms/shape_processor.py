# sheetnester/tools/nesting/algorithms/shape_processor.py

"""
This module contains functions for turning imported drawing entities into
nesting geometry. It resolves block instances, discretises arcs and bulged
polyline edges, stitches loose segments into closed loops, and creates the
inflated shapely boundary used by the true-shape strategies.

Entity dicts understood here:

- ``LINE``: ``vertices`` (two points)
- ``LWPOLYLINE`` / ``POLYLINE``: ``vertices`` (points with optional
  ``bulge``), ``closed``
- ``ARC``: ``center``, ``radius``, ``start_angle``, ``end_angle`` (degrees, CCW)
- ``CIRCLE``: ``center``, ``radius``
- ``INSERT``: ``name``, ``position``, ``scale``, ``rotation`` (degrees)

Points are ``{"x": .., "y": ..}`` dicts. Entities flagged ``in_paper_space``
are ignored.
"""
import logging
import math
from collections import namedtuple

from shapely.geometry import Polygon, MultiPolygon
from shapely.affinity import translate
from shapely.validation import make_valid

from ....datatypes.shape import Shape

logger = logging.getLogger(__name__)

# 2x3 affine matrices in shapely's order: (a, b, d, e, xoff, yoff)
IDENTITY = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)
MAX_BLOCK_DEPTH = 32
STITCH_TOLERANCE = 0.1
MIN_ARC_SEGMENTS = 12
MAX_ARC_SEGMENTS = 64

# Entity types that carry no cutting geometry.
ANNOTATION_TYPES = {"TEXT", "MTEXT", "DIMENSION", "POINT", "HATCH", "ATTDEF", "ATTRIB"}

FlatEntity = namedtuple("FlatEntity", ["entity", "transform"])


class GeometryError(ValueError):
    """Raised when a part's drawing cannot be turned into a usable polygon."""
    pass


class CyclicBlockReferenceError(GeometryError):
    """Raised when block instances reference each other in a cycle."""
    pass


class GatekeeperError(GeometryError):
    """Raised when a part is not a single block instance."""
    pass


class OpenContourError(GeometryError):
    """Raised when segments cannot be stitched into a closed loop."""
    pass


class Segment(object):
    """An open or closed run of points produced from one drawing entity."""
    def __init__(self, path):
        self.path = list(path)

    def __repr__(self):
        return f"<Segment: {len(self.path)} points>"

    @property
    def start(self):
        return self.path[0]

    @property
    def end(self):
        return self.path[-1]


# --- Affine helpers ---

def compose(outer, inner):
    """Returns the matrix applying ``inner`` first, then ``outer``."""
    a1, b1, d1, e1, x1, y1 = outer
    a2, b2, d2, e2, x2, y2 = inner
    return (
        a1 * a2 + b1 * d2,
        a1 * b2 + b1 * e2,
        d1 * a2 + e1 * d2,
        d1 * b2 + e1 * e2,
        a1 * x2 + b1 * y2 + x1,
        d1 * x2 + e1 * y2 + y1,
    )


def apply_transform(matrix, point):
    a, b, d, e, xoff, yoff = matrix
    x, y = point
    return (a * x + b * y + xoff, d * x + e * y + yoff)


def _xy(point, default=(0.0, 0.0)):
    if point is None:
        return default
    if isinstance(point, dict):
        return (float(point.get("x", default[0])), float(point.get("y", default[1])))
    return (float(point[0]), float(point[1]))


def insert_matrix(insert, block=None):
    """
    Matrix of a block instance: scale, then rotate, then translate to the
    insertion point. The block's base point, if any, maps to the insertion point.
    """
    px, py = _xy(insert.get("position"))
    sx, sy = _xy(insert.get("scale"), default=(1.0, 1.0))
    angle = math.radians(float(insert.get("rotation", 0.0)))
    base_x, base_y = _xy((block or {}).get("base_point"))
    cos_a, sin_a = math.cos(angle), math.sin(angle)

    to_base = (1.0, 0.0, 0.0, 1.0, -base_x, -base_y)
    rotate_scale = (cos_a * sx, -sin_a * sy, sin_a * sx, cos_a * sy, px, py)
    return compose(rotate_scale, to_base)


def is_mirrored(matrix):
    a, b, d, e, _, _ = matrix
    return a * e - b * d < 0


# --- Block resolution ---

def flatten(entities, blocks, transform=IDENTITY, _chain=()):
    """
    Resolves block instances recursively and returns primitive entities
    paired with their accumulated transform.

    Raises CyclicBlockReferenceError when a block (directly or indirectly)
    inserts itself, or when nesting exceeds MAX_BLOCK_DEPTH.
    """
    flat = []
    for entity in entities:
        if entity.get("in_paper_space"):
            continue
        if entity.get("type") != "INSERT":
            flat.append(FlatEntity(entity, transform))
            continue

        name = entity.get("name")
        if name in _chain:
            raise CyclicBlockReferenceError(f"Block '{name}' references itself via {' -> '.join(_chain)}")
        if len(_chain) >= MAX_BLOCK_DEPTH:
            raise CyclicBlockReferenceError(f"Block nesting deeper than {MAX_BLOCK_DEPTH} at '{name}'")
        block = blocks.get(name)
        if block is None:
            raise GeometryError(f"Unknown block '{name}'")

        try:
            matrix = compose(transform, insert_matrix(entity, block))
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise GeometryError(f"Malformed INSERT of block '{name}': {e!r}") from e
        flat.extend(flatten(block.get("entities", []), blocks, matrix, _chain + (name,)))
    return flat


def run_gatekeeper(part):
    """
    Accepts only parts whose model-space geometry is exactly one block
    instance. Loose lines, arcs or polylines next to it are rejected.
    """
    model_space = [e for e in part.entities if not e.get("in_paper_space")]
    inserts = [e for e in model_space if e.get("type") == "INSERT"]
    loose = [e for e in model_space
             if e.get("type") != "INSERT" and e.get("type") not in ANNOTATION_TYPES]

    if loose:
        raise GatekeeperError(
            f"Part '{part.id}' has loose {loose[0].get('type')} geometry outside a block")
    if len(inserts) != 1:
        raise GatekeeperError(f"Part '{part.id}' must be exactly one block instance, found {len(inserts)}")
    if inserts[0].get("name") not in part.blocks:
        raise GatekeeperError(f"Part '{part.id}' references missing block '{inserts[0].get('name')}'")


# --- Curves ---

def discretize_arc(center, radius, start, end):
    """
    Returns points along a counter-clockwise arc from ``start`` to ``end``
    (radians), both endpoints included. Equal angles mean a full circle.
    """
    cx, cy = center
    sweep = end - start
    if abs(sweep) < 1e-9:
        sweep = 2 * math.pi
    elif sweep < 0:
        sweep += 2 * math.pi

    arc_length = radius * sweep
    segments = int(math.ceil(arc_length / 2.0))
    segments = max(MIN_ARC_SEGMENTS, min(MAX_ARC_SEGMENTS, segments))

    points = []
    for i in range(segments + 1):
        angle = start + sweep * i / segments
        points.append((cx + radius * math.cos(angle), cy + radius * math.sin(angle)))
    return points


def bulge_to_arc(p1, p2, bulge):
    """
    Converts a bulged polyline edge into (center, radius, start_angle,
    end_angle). Angles are in radians and measured at the center towards
    p1 and p2. A positive bulge runs counter-clockwise from p1 to p2.
    """
    dx, dy = p2[0] - p1[0], p2[1] - p1[1]
    chord = math.hypot(dx, dy)
    radius = chord * (1 + bulge * bulge) / (4 * abs(bulge))
    center_scale = (1 - bulge * bulge) / (4 * bulge)
    mid_x, mid_y = (p1[0] + p2[0]) / 2.0, (p1[1] + p2[1]) / 2.0
    center = (mid_x - dy * center_scale, mid_y + dx * center_scale)
    start = math.atan2(p1[1] - center[1], p1[0] - center[0])
    end = math.atan2(p2[1] - center[1], p2[0] - center[0])
    return center, radius, start, end


def bulge_points(p1, p2, bulge):
    """Points from p1 to p2 along a bulged edge, endpoints exact."""
    if abs(bulge) < 1e-12 or p1 == p2:
        return [p1, p2]
    center, radius, start, end = bulge_to_arc(p1, p2, bulge)
    if bulge > 0:
        points = discretize_arc(center, radius, start, end)
    else:
        points = list(reversed(discretize_arc(center, radius, end, start)))
    points[0] = p1
    points[-1] = p2
    return points


def _polyline_path(entity):
    vertices = entity.get("vertices", [])
    points = [_xy(v) for v in vertices]
    bulges = [float(v.get("bulge", 0.0) or 0.0) if isinstance(v, dict) else 0.0 for v in vertices]
    if len(points) < 2:
        return points

    closed = entity.get("closed", False)
    count = len(points) if closed else len(points) - 1
    path = [points[0]]
    for i in range(count):
        start, end = points[i], points[(i + 1) % len(points)]
        path.extend(bulge_points(start, end, bulges[i])[1:])
    return path


def entity_path(entity):
    """Local-space points of one primitive entity, or None for non-geometry."""
    kind = entity.get("type")
    if kind == "LINE":
        vertices = entity.get("vertices")
        if vertices:
            return [_xy(vertices[0]), _xy(vertices[1])]
        return [_xy(entity.get("start")), _xy(entity.get("end"))]
    if kind in ("LWPOLYLINE", "POLYLINE"):
        return _polyline_path(entity)
    if kind == "ARC":
        return discretize_arc(
            _xy(entity.get("center")),
            float(entity["radius"]),
            math.radians(float(entity.get("start_angle", 0.0))),
            math.radians(float(entity.get("end_angle", 360.0))),
        )
    if kind == "CIRCLE":
        points = discretize_arc(_xy(entity.get("center")), float(entity["radius"]), 0.0, 2 * math.pi)
        points[-1] = points[0]
        return points
    if kind not in ANNOTATION_TYPES:
        logger.debug("Skipping unsupported entity type %s", kind)
    return None


def extract_segments(flat_entities):
    """
    Discretises every flattened entity in its local space and maps the points
    through the entity's transform. Non-uniform block scaling is therefore
    exact for arcs as well. An entity missing required data raises
    GeometryError.
    """
    segments = []
    for entity, matrix in flat_entities:
        try:
            path = entity_path(entity)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise GeometryError(f"Malformed {entity.get('type')} entity: {e!r}") from e
        if not path or len(path) < 2:
            continue
        segments.append(Segment([apply_transform(matrix, p) for p in path]))
    return segments


def entities_bounds(flat_entities):
    """Axis-aligned (min_x, min_y, max_x, max_y) of flattened geometry."""
    points = [p for seg in extract_segments(flat_entities) for p in seg.path]
    if not points:
        raise GeometryError("No geometry to measure")
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return min(xs), min(ys), max(xs), max(ys)


# --- Loops ---

def points_equal(a, b, tolerance=STITCH_TOLERANCE):
    return (a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2 <= tolerance * tolerance


def stitch_segments(segments, tolerance=STITCH_TOLERANCE, force_close=False):
    """
    Chains open segments into closed loops by greedily matching endpoints in
    either orientation. Returns loops as point lists without the closing
    vertex. A chain with no continuation raises OpenContourError, or is closed
    by a straight edge when ``force_close`` is set.
    """
    remaining = [list(s.path if isinstance(s, Segment) else s) for s in segments]
    loops = []

    while remaining:
        current = remaining.pop(0)
        while not (len(current) > 2 and points_equal(current[0], current[-1], tolerance)):
            tail = current[-1]
            for i, path in enumerate(remaining):
                if points_equal(path[0], tail, tolerance):
                    current.extend(path[1:])
                    break
                if points_equal(path[-1], tail, tolerance):
                    current.extend(reversed(path[:-1]))
                    break
            else:
                if not force_close:
                    raise OpenContourError(
                        f"Open contour from ({current[0][0]:.3f}, {current[0][1]:.3f}) "
                        f"to ({tail[0]:.3f}, {tail[1]:.3f})")
                logger.warning("Force-closing open contour with %d points", len(current))
                current.append(current[0])
                break
            remaining.pop(i)

        loop = current[:-1]
        if len(loop) >= 3:
            loops.append(loop)
    return loops


def _largest_polygon(geometry):
    if isinstance(geometry, Polygon):
        return geometry
    if isinstance(geometry, MultiPolygon):
        return max(geometry.geoms, key=lambda p: p.area)
    polygons = [g for g in getattr(geometry, "geoms", []) if isinstance(g, (Polygon, MultiPolygon))]
    if not polygons:
        return None
    return max((_largest_polygon(g) for g in polygons), key=lambda p: p.area)


def _repair(polygon):
    if polygon.is_valid:
        return polygon
    return _largest_polygon(make_valid(polygon))


def loops_to_polygon(loops):
    """
    Builds a polygon with holes: the largest loop is the outer boundary and
    loops lying inside it become holes. Loops outside it are dropped.
    """
    candidates = []
    for loop in loops:
        poly = _repair(Polygon(loop))
        if poly is not None and not poly.is_empty and poly.area > 0:
            candidates.append(poly)
    if not candidates:
        raise GeometryError("No closed loop encloses any area")

    candidates.sort(key=lambda p: p.area, reverse=True)
    outer = candidates[0]
    holes = []
    for poly in candidates[1:]:
        if outer.contains(poly.representative_point()):
            holes.append(poly.exterior.coords)
        else:
            logger.warning("Dropping loop outside the outer boundary (area %.3f)", poly.area)

    polygon = _repair(Polygon(outer.exterior.coords, holes))
    if polygon is None or polygon.is_empty:
        raise GeometryError("Loops did not produce a usable polygon")
    return polygon


def offset(polygon, delta):
    """
    Inflates (positive delta) or deflates (negative delta) a polygon with
    round joins. Returns the largest resulting polygon.
    """
    if delta == 0:
        return polygon
    result = _largest_polygon(polygon.buffer(delta, join_style="round"))
    if result is None or result.is_empty:
        raise GeometryError(f"Offset by {delta} did not produce a valid polygon")
    return result


def build_part_geometry(part, offset_delta=0.0, require_block=True, force_close=False,
                        tolerance=STITCH_TOLERANCE):
    """
    Produces the nesting Shape of an ImportedPart. The working polygon is the
    raw outline inflated by ``offset_delta``; both polygons are moved so the
    working polygon's bounding box corner is at the origin.
    """
    if require_block:
        run_gatekeeper(part)

    flat = flatten(part.entities, part.blocks)
    segments = extract_segments(flat)
    if not segments:
        raise GeometryError(f"Part '{part.id}' contains no cutting geometry")

    loops = stitch_segments(segments, tolerance=tolerance, force_close=force_close)
    if not loops:
        raise GeometryError(f"Part '{part.id}' has no closed loops")

    raw = loops_to_polygon(loops)
    working = offset(raw, offset_delta)

    min_x, min_y, _, _ = working.bounds
    working = translate(working, xoff=-min_x, yoff=-min_y)
    raw = translate(raw, xoff=-min_x, yoff=-min_y)
    return Shape(part.id, working, raw, offset=offset_delta)


def calculate_net_area(entities, blocks=None, force_close=False, tolerance=STITCH_TOLERANCE):
    """
    Material area of a set of entities: the outer loop minus its holes.
    Returns 0.0 when the entities hold no closed loop.
    """
    segments = extract_segments(flatten(entities, blocks or {}))
    if not segments:
        return 0.0
    try:
        loops = stitch_segments(segments, tolerance=tolerance, force_close=force_close)
        return loops_to_polygon(loops).area if loops else 0.0
    except GeometryError as e:
        logger.debug("No net area: %s", e)
        return 0.0
