# sheetnester/datatypes/shape.py

"""
This module contains the Shape class, the nesting geometry of a part. It
holds the working (inflated) polygon used for every collision and fit test,
the raw un-inflated polygon used for area and placement reporting, and the
oriented bounding box corners used by the fast collision tier.

A Shape is immutable: rotating or moving it returns a new Shape. Both
polygons always share the same transform, so the raw outline can be
recovered from any trial position.
"""
from shapely.affinity import translate, rotate
from shapely.prepared import prep

from ..tools.nesting.algorithms import obb_utils


class Shape:
    """
    Nesting geometry of a single part.

    The master Shape produced by the shape processor lives in a local frame:
    angle 0 and its working polygon's bounding box corner at the origin.
    Rotations are always applied about the local origin, starting from the
    master geometry, so repeated trials never accumulate error.
    """
    def __init__(self, part_id, polygon, unbuffered_polygon=None, mabb=None, angle=0.0, offset=0.0):
        self.part_id = part_id
        self.polygon = polygon
        self.unbuffered_polygon = unbuffered_polygon if unbuffered_polygon is not None else polygon
        self.offset = offset # Inflation distance applied to the raw outline
        self._angle = angle % 360.0
        self._mabb = mabb
        self._outer = None
        self._holes = None
        self._prepared = None

        # The geometry this shape was derived from, at angle 0 in the local frame.
        self.master = self

    def __repr__(self):
        min_x, min_y, w, h = self.bounding_box()
        return f"<Shape: {self.part_id}, angle={self._angle}, bbox=({min_x:.2f}, {min_y:.2f}, {w:.2f}, {h:.2f})>"

    def _derive(self, polygon, unbuffered_polygon, mabb, angle):
        result = Shape(self.part_id, polygon, unbuffered_polygon, mabb=mabb, angle=angle, offset=self.offset)
        result.master = self.master
        return result

    def rotated(self, angle):
        """
        Returns a copy at the absolute ``angle`` (degrees), rotated about the
        local origin from the master geometry. The result is not moved.
        """
        master = self.master
        if abs((angle - master.angle) % 360.0) < 1e-12:
            return master
        polygon = rotate(master.polygon, angle, origin=(0, 0))
        unbuffered = rotate(master.unbuffered_polygon, angle, origin=(0, 0))
        mabb = obb_utils.rotate_points(master.mabb, angle)
        return self._derive(polygon, unbuffered, mabb, angle)

    def moved(self, dx, dy):
        """Returns a copy translated by (dx, dy)."""
        if dx == 0 and dy == 0:
            return self
        polygon = translate(self.polygon, xoff=dx, yoff=dy)
        unbuffered = translate(self.unbuffered_polygon, xoff=dx, yoff=dy)
        mabb = obb_utils.translate_points(self.mabb, dx, dy)
        return self._derive(polygon, unbuffered, mabb, self._angle)

    def moved_to(self, x, y):
        """Returns a copy whose working bounding box corner sits at (x, y)."""
        min_x, min_y, _, _ = self.polygon.bounds
        return self.moved(x - min_x, y - min_y)

    def placed_at(self, angle, x, y):
        """
        Returns the copy matching a stored placement: rotated by ``angle`` and
        moved so the raw outline's bounding box corner sits at (x, y).
        """
        rotated = self.rotated(angle)
        min_x, min_y, _, _ = rotated.unbuffered_polygon.bounds
        return rotated.moved(x - min_x, y - min_y)

    def placement_origin(self):
        """The raw outline's bounding box corner, as reported in placements."""
        min_x, min_y, _, _ = self.unbuffered_polygon.bounds
        return min_x, min_y

    def bounding_box(self):
        """
        Returns the bounding box of the working polygon as (min_x, min_y, width, height).
        """
        if self.polygon is None or self.polygon.is_empty:
            return (0, 0, 0, 0)
        min_x, min_y, max_x, max_y = self.polygon.bounds
        return min_x, min_y, max_x - min_x, max_y - min_y

    @property
    def bounds(self):
        return self.polygon.bounds

    @property
    def outer(self):
        """Outer ring of the working polygon, without the closing vertex."""
        if self._outer is None:
            self._outer = list(self.polygon.exterior.coords)[:-1]
        return self._outer

    @property
    def holes(self):
        if self._holes is None:
            self._holes = [list(ring.coords)[:-1] for ring in self.polygon.interiors]
        return self._holes

    @property
    def mabb(self):
        """The four corners of the oriented minimum-area bounding box."""
        if self._mabb is None:
            self._mabb = obb_utils.min_area_rect(self.outer)
        return self._mabb

    @property
    def area(self):
        """Area of the working polygon, holes excluded."""
        return self.polygon.area

    @property
    def net_area(self):
        """Area of the raw outline, holes excluded."""
        return self.unbuffered_polygon.area

    @property
    def angle(self):
        return self._angle

    @property
    def prepared(self):
        """Prepared working polygon for repeated intersection queries."""
        if self._prepared is None:
            self._prepared = prep(self.polygon)
        return self._prepared
