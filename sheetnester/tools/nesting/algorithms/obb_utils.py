"""
Convex hull and minimum-area bounding rectangle helpers.

The minimum-area rectangle (MABB) of a part is computed once when the part
geometry is prepared. During placement trials the four corners are only
rotated and translated along with the part, never recomputed.
"""
import math


def _cross(o, a, b):
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def convex_hull(points):
    """
    Returns the convex hull of ``points`` as a counter-clockwise list of
    vertices without collinear points (Andrew's monotone chain).
    """
    pts = sorted(set((float(p[0]), float(p[1])) for p in points))
    if len(pts) <= 2:
        return pts

    lower = []
    for p in pts:
        while len(lower) >= 2 and _cross(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)

    upper = []
    for p in reversed(pts):
        while len(upper) >= 2 and _cross(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)

    return lower[:-1] + upper[:-1]


def aabb_corners(points):
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    min_x, max_x, min_y, max_y = min(xs), max(xs), min(ys), max(ys)
    return [(min_x, min_y), (max_x, min_y), (max_x, max_y), (min_x, max_y)]


def polygon_area(points):
    """Unsigned shoelace area of a closed ring given without its closing vertex."""
    area = 0.0
    n = len(points)
    for i in range(n):
        x1, y1 = points[i]
        x2, y2 = points[(i + 1) % n]
        area += x1 * y2 - x2 * y1
    return abs(area) / 2.0


def min_area_rect(points):
    """
    Minimum-area enclosing rectangle by rotating calipers over the hull edges.
    Returns the four corners in counter-clockwise order. Degenerate inputs
    (fewer than three hull points) fall back to the axis-aligned box.
    """
    if not points:
        return []
    hull = convex_hull(points)
    if len(hull) < 3:
        return aabb_corners(points)

    best = None
    n = len(hull)
    for i in range(n):
        p1 = hull[i]
        p2 = hull[(i + 1) % n]
        edge_len = math.hypot(p2[0] - p1[0], p2[1] - p1[1])
        if edge_len == 0:
            continue
        ux = (p2[0] - p1[0]) / edge_len
        uy = (p2[1] - p1[1]) / edge_len
        # Perpendicular axis
        vx, vy = -uy, ux

        min_u = min_v = float('inf')
        max_u = max_v = float('-inf')
        for x, y in hull:
            u = x * ux + y * uy
            v = x * vx + y * vy
            min_u, max_u = min(min_u, u), max(max_u, u)
            min_v, max_v = min(min_v, v), max(max_v, v)

        area = (max_u - min_u) * (max_v - min_v)
        if best is None or area < best[0]:
            best = (area, ux, uy, vx, vy, min_u, max_u, min_v, max_v)

    if best is None:
        return aabb_corners(points)

    _, ux, uy, vx, vy, min_u, max_u, min_v, max_v = best
    corners = []
    for u, v in ((min_u, min_v), (max_u, min_v), (max_u, max_v), (min_u, max_v)):
        corners.append((u * ux + v * vx, u * uy + v * vy))
    return corners


def rotate_points(points, angle, origin=(0.0, 0.0)):
    """Rotates points counter-clockwise by ``angle`` degrees about ``origin``."""
    rad = math.radians(angle)
    cos_a, sin_a = math.cos(rad), math.sin(rad)
    ox, oy = origin
    rotated = []
    for x, y in points:
        dx, dy = x - ox, y - oy
        rotated.append((ox + dx * cos_a - dy * sin_a, oy + dx * sin_a + dy * cos_a))
    return rotated


def translate_points(points, dx, dy):
    return [(x + dx, y + dy) for x, y in points]
