import math

import shapely
from shapely.geometry import Polygon, MultiPoint
from shapely.ops import unary_union
from shapely.affinity import rotate, scale


def decompose_if_needed(polygon, cache=None):
    """
    Decomposes a polygon's outer boundary into convex pieces. Convex inputs
    are returned as-is; others are split into constrained Delaunay triangles.
    """
    if polygon is None or polygon.is_empty:
        return []

    if polygon.geom_type == 'MultiPolygon':
        all_decomposed_parts = []
        for p in polygon.geoms:
            all_decomposed_parts.extend(decompose_if_needed(p, cache))
        return all_decomposed_parts

    outline = Polygon(polygon.exterior.coords)
    cache_key = outline.wkb
    if cache is not None and cache_key in cache:
        return cache[cache_key]

    if math.isclose(outline.area, outline.convex_hull.area, rel_tol=1e-9):
        decomposed = [outline]
    else:
        triangles = shapely.constrained_delaunay_triangles(outline)
        decomposed = [tri for tri in triangles.geoms if tri.area > 0]

    if cache is not None:
        cache[cache_key] = decomposed
    return decomposed


def minkowski_sum_convex(poly1, poly2):
    """Computes the Minkowski sum of two convex polygons."""
    # The Minkowski sum of two convex polygons is the convex hull of the sum of their vertices.
    v1 = poly1.exterior.coords
    v2 = poly2.exterior.coords

    sum_vertices = []
    for p1 in v1:
        for p2 in v2:
            sum_vertices.append((p1[0] + p2[0], p1[1] + p2[1]))

    return MultiPoint(sum_vertices).convex_hull


def reflect(polygon):
    """Point reflection through the origin, i.e. the polygon -P."""
    return scale(polygon, xfact=-1.0, yfact=-1.0, origin=(0, 0))


def minkowski_sum(parts1, parts2):
    """Union of the pairwise sums of two lists of convex pieces."""
    minkowski_parts = []
    for p1 in parts1:
        for p2 in parts2:
            minkowski_parts.append(minkowski_sum_convex(p1, p2))
    return unary_union(minkowski_parts)


def largest_ring_polygon(geometry):
    """The largest polygon of a geometry, reduced to its outer ring."""
    if geometry is None or geometry.is_empty:
        return None
    if geometry.geom_type == 'Polygon':
        return Polygon(geometry.exterior.coords)
    polygons = [g for g in getattr(geometry, 'geoms', []) if g.geom_type == 'Polygon']
    if not polygons:
        return None
    return Polygon(max(polygons, key=lambda p: p.area).exterior.coords)


def no_fit_polygon(poly_a, poly_b, angle_a=0.0, angle_b=0.0, cache=None):
    """
    No-fit polygon of B orbiting A: the set of positions of B's local origin
    at which B touches or overlaps A. Computed as A (+) (-B) after rotating
    both about their local origins. Convex decompositions are taken from the
    unrotated polygons and the pieces rotated afterwards.
    """
    if poly_a is None or poly_a.is_empty or poly_b is None or poly_b.is_empty:
        return None

    parts_a = [rotate(p, angle_a, origin=(0, 0)) for p in decompose_if_needed(poly_a, cache)]
    parts_b = [reflect(rotate(p, angle_b, origin=(0, 0))) for p in decompose_if_needed(poly_b, cache)]
    return largest_ring_polygon(minkowski_sum(parts_a, parts_b))
