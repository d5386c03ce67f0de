"""
Tiered overlap tests shared by every placement strategy and by the
interactive editing tools.

All functions are stateless and operate on plain coordinate lists, except
the ``shapes_*`` helpers which unpack a Shape first. Rings are given without
the closing vertex. The order of the tiers is AABB, then oriented bounding
boxes (SAT), then the exact edge and containment test.
"""
import math

# Length tolerance shared by all tiers. Contact within EPSILON is touching,
# not overlapping.
EPSILON = 1e-6


def aabb_overlap(a, b, eps=EPSILON):
    """True when two (min_x, min_y, max_x, max_y) boxes overlap by more than eps."""
    return (a[0] < b[2] - eps and b[0] < a[2] - eps and
            a[1] < b[3] - eps and b[1] < a[3] - eps)


def _project(axis, points):
    dots = [p[0] * axis[0] + p[1] * axis[1] for p in points]
    return min(dots), max(dots)


def obb_overlap(corners_a, corners_b, eps=EPSILON):
    """
    Separating axis test on two convex quadrilaterals. Checks the edge normals
    of both boxes and returns False as soon as a separating axis is found.
    """
    for corners in (corners_a, corners_b):
        n = len(corners)
        for i in range(n):
            p1 = corners[i]
            p2 = corners[(i + 1) % n]
            edge = (p2[0] - p1[0], p2[1] - p1[1])
            length = math.hypot(edge[0], edge[1])
            if length == 0:
                continue
            axis = (-edge[1] / length, edge[0] / length)

            min1, max1 = _project(axis, corners_a)
            min2, max2 = _project(axis, corners_b)
            if max1 <= min2 + eps or max2 <= min1 + eps:
                return False
    return True


def segments_cross(p1, p2, q1, q2, eps=EPSILON):
    """
    Proper intersection of segments p1-p2 and q1-q2. Contacts within eps of
    either segment's endpoints and collinear overlaps do not count.
    """
    rx, ry = p2[0] - p1[0], p2[1] - p1[1]
    sx, sy = q2[0] - q1[0], q2[1] - q1[1]
    denom = rx * sy - ry * sx
    if abs(denom) < eps:
        return False
    qpx, qpy = q1[0] - p1[0], q1[1] - p1[1]
    t = (qpx * sy - qpy * sx) / denom
    u = (qpx * ry - qpy * rx) / denom
    return eps < t < 1 - eps and eps < u < 1 - eps


def _edges(ring):
    n = len(ring)
    for i in range(n):
        yield ring[i], ring[(i + 1) % n]


def point_segment_distance(p, a, b):
    abx, aby = b[0] - a[0], b[1] - a[1]
    length_sq = abx * abx + aby * aby
    if length_sq == 0:
        return math.hypot(p[0] - a[0], p[1] - a[1])
    t = ((p[0] - a[0]) * abx + (p[1] - a[1]) * aby) / length_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(p[0] - (a[0] + t * abx), p[1] - (a[1] + t * aby))


def point_in_ring(point, ring):
    """Even-odd ray casting. Points on the boundary may fall either way."""
    x, y = point
    inside = False
    n = len(ring)
    j = n - 1
    for i in range(n):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside


def point_in_material(point, outer, holes=(), eps=EPSILON):
    """
    True when the point lies strictly inside the outer ring and outside every
    hole. Points within eps of any boundary are treated as touching.
    """
    for ring in [outer] + list(holes):
        for a, b in _edges(ring):
            if point_segment_distance(point, a, b) <= eps:
                return False
    if not point_in_ring(point, outer):
        return False
    return not any(point_in_ring(point, hole) for hole in holes)


def ring_centroid(ring):
    area = 0.0
    cx = cy = 0.0
    for (x1, y1), (x2, y2) in _edges(ring):
        cross = x1 * y2 - x2 * y1
        area += cross
        cx += (x1 + x2) * cross
        cy += (y1 + y2) * cross
    if abs(area) < EPSILON:
        n = float(len(ring))
        return sum(p[0] for p in ring) / n, sum(p[1] for p in ring) / n
    area *= 0.5
    return cx / (6.0 * area), cy / (6.0 * area)


def _sample_points(ring):
    samples = list(ring)
    samples.extend(((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0) for a, b in _edges(ring))
    samples.append(ring_centroid(ring))
    return samples


def _ring_bounds(ring):
    xs = [p[0] for p in ring]
    ys = [p[1] for p in ring]
    return min(xs), min(ys), max(xs), max(ys)


def polygons_overlap(outer_a, holes_a, outer_b, holes_b, eps=EPSILON):
    """
    Exact overlap test for two polygons with holes: any proper crossing of
    their edges, or a sample point of one strictly inside the other's material.
    """
    rings_a = [outer_a] + list(holes_a or [])
    rings_b = [outer_b] + list(holes_b or [])
    box_a = _ring_bounds(outer_a)
    box_b = _ring_bounds(outer_b)

    edges_b = []
    for ring in rings_b:
        for a, b in _edges(ring):
            edges_b.append((a, b, min(a[0], b[0]), min(a[1], b[1]), max(a[0], b[0]), max(a[1], b[1])))

    for ring in rings_a:
        for p1, p2 in _edges(ring):
            e_min_x, e_max_x = min(p1[0], p2[0]), max(p1[0], p2[0])
            e_min_y, e_max_y = min(p1[1], p2[1]), max(p1[1], p2[1])
            if e_max_x < box_b[0] or e_min_x > box_b[2] or e_max_y < box_b[1] or e_min_y > box_b[3]:
                continue
            for q1, q2, q_min_x, q_min_y, q_max_x, q_max_y in edges_b:
                if e_max_x < q_min_x or q_max_x < e_min_x or e_max_y < q_min_y or q_max_y < e_min_y:
                    continue
                if segments_cross(p1, p2, q1, q2, eps):
                    return True

    for point in _sample_points(outer_a):
        if box_b[0] <= point[0] <= box_b[2] and box_b[1] <= point[1] <= box_b[3]:
            if point_in_material(point, outer_b, holes_b or [], eps):
                return True
    for point in _sample_points(outer_b):
        if box_a[0] <= point[0] <= box_a[2] and box_a[1] <= point[1] <= box_a[3]:
            if point_in_material(point, outer_a, holes_a or [], eps):
                return True
    return False


def shapes_collide(shape_a, shape_b, eps=EPSILON):
    """
    Tiered test on two placed Shapes: AABB, then OBB, then exact. Disjoint
    polygons are rejected by shapely before the exact tier; ``shape_b`` is
    usually the placed part, so its prepared geometry is reused.
    """
    if not aabb_overlap(shape_a.bounds, shape_b.bounds, eps):
        return False
    if not obb_overlap(shape_a.mabb, shape_b.mabb, eps):
        return False
    if not shape_b.prepared.intersects(shape_a.polygon):
        return False
    return polygons_overlap(shape_a.outer, shape_a.holes, shape_b.outer, shape_b.holes, eps)


def within_sheet(points, width, height, margin=0.0, eps=EPSILON):
    """True when every point lies inside [margin, dim - margin] on both axes."""
    for x, y in points:
        if x < margin - eps or x > width - margin + eps:
            return False
        if y < margin - eps or y > height - margin + eps:
            return False
    return True


def bounds_within_sheet(bounds, width, height, margin=0.0, eps=EPSILON):
    min_x, min_y, max_x, max_y = bounds
    return (min_x >= margin - eps and min_y >= margin - eps and
            max_x <= width - margin + eps and max_y <= height - margin + eps)


def crop_line_segment(line, width, height, overhang=1.0):
    """
    Converts a crop line ``{"type": "vertical" | "horizontal", "position": p}``
    into a segment spanning the whole sheet plus ``overhang`` on both ends.
    """
    position = float(line["position"])
    if line["type"] == "vertical":
        return (position, -overhang), (position, height + overhang)
    if line["type"] == "horizontal":
        return (-overhang, position), (width + overhang, position)
    raise ValueError(f"Unknown crop line type: {line['type']!r}")


def resolve_crop_lines(width, height, crop_lines):
    """
    The cut that bounds the used region from (0, 0): the outermost vertical
    and horizontal crop lines, or the sheet edge where there is none.
    """
    cut_x = max((float(l["position"]) for l in crop_lines or [] if l["type"] == "vertical"), default=width)
    cut_y = max((float(l["position"]) for l in crop_lines or [] if l["type"] == "horizontal"), default=height)
    return cut_x, cut_y


def calculate_remnants(width, height, cut_x, cut_y):
    """
    Offcut rectangles left after cutting the sheet at (cut_x, cut_y). A
    crossing cut yields at most two rectangles: whichever cut line can run
    edge to edge while producing the largest single piece wins, and the other
    offcut is trimmed by it. Returned largest first as dicts with ``x``,
    ``y``, ``width``, ``height``, ``area`` and ``kind`` (primary/secondary).
    """
    cut_x = max(0.0, min(float(cut_x), width))
    cut_y = max(0.0, min(float(cut_y), height))

    def rect(x, y, w, h, kind):
        return {"x": x, "y": y, "width": w, "height": h, "area": w * h, "kind": kind}

    if cut_x >= width and cut_y >= height:
        return []
    if cut_x >= width or cut_x == 0:
        if 0 < cut_y < height:
            return [rect(0.0, cut_y, width, height - cut_y, "primary")]
        return []
    if cut_y >= height or cut_y == 0:
        return [rect(cut_x, 0.0, width - cut_x, height, "primary")]

    # Horizontal cut runs edge to edge
    top_full = width * (height - cut_y)
    right_short = (width - cut_x) * cut_y
    # Vertical cut runs edge to edge
    right_full = (width - cut_x) * height
    top_short = cut_x * (height - cut_y)

    if max(top_full, right_short) >= max(right_full, top_short):
        remnants = [rect(0.0, cut_y, width, height - cut_y, "primary"),
                    rect(cut_x, 0.0, width - cut_x, cut_y, "secondary")]
    else:
        remnants = [rect(cut_x, 0.0, width - cut_x, height, "primary"),
                    rect(0.0, cut_y, cut_x, height - cut_y, "secondary")]
    remnants = [r for r in remnants if r["area"] > 0]
    return sorted(remnants, key=lambda r: r["area"], reverse=True)


def crosses_crop_lines(rings, crop_lines, width, height, eps=EPSILON):
    """True when any edge of ``rings`` properly crosses one of the crop lines."""
    if not crop_lines:
        return False
    segments = [crop_line_segment(line, width, height) for line in crop_lines]
    for ring in rings:
        for p1, p2 in _edges(ring):
            for q1, q2 in segments:
                if segments_cross(p1, p2, q1, q2, eps):
                    return True
    return False


def detect_collisions(entries, width, height, margin=0.0, crop_lines=None, eps=EPSILON):
    """
    Runs the full suite over one sheet layout. ``entries`` is a list of
    ``(uuid, shape)`` pairs with shapes already at their placed position.
    Returns the uuids that leave the usable area, cross a crop line or
    overlap another entry, in input order.
    """
    colliding = set()
    for uuid, shape in entries:
        if not within_sheet(shape.outer, width, height, margin, eps):
            colliding.add(uuid)
        elif crosses_crop_lines([shape.outer], crop_lines, width, height, eps):
            colliding.add(uuid)

    for i in range(len(entries)):
        uuid_a, shape_a = entries[i]
        for j in range(i + 1, len(entries)):
            uuid_b, shape_b = entries[j]
            if shapes_collide(shape_a, shape_b, eps):
                colliding.add(uuid_a)
                colliding.add(uuid_b)

    return [uuid for uuid, _ in entries if uuid in colliding]
