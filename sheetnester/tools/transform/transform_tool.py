# sheetnester/tools/transform/transform_tool.py

"""
This module contains the TransformTool class, which implements manual
moving and rotating of parts in a finished layout. Every edit is checked
against the full collision suite; edits that would leave a part colliding
are rejected and the part is put back where it was.
"""

import logging

from ..nesting.algorithms import collision

logger = logging.getLogger(__name__)


class TransformTool:
    """
    Edits the placements of a layout in place.

    ``shapes`` maps a part id to its master Shape, prepared with the same
    offset as the layout so that spacing is preserved by the checks.
    ``cancel()`` restores the placements as they were when the tool was
    created or last saved.
    """
    def __init__(self, placed_parts, shapes, width, height, margin=0.0, crop_lines=None):
        self.placements = {p.uuid: p for p in placed_parts}
        self.shapes = shapes
        self.width = width
        self.height = height
        self.margin = margin
        self.crop_lines = list(crop_lines or [])
        self.original_placements = {}
        self.save()

    def __repr__(self):
        return f"<TransformTool: {len(self.placements)} parts>"

    def shape_of(self, placed):
        """The placed Shape of a PlacedPart."""
        return self.shapes[placed.part_id].placed_at(placed.rotation, placed.x, placed.y)

    def collisions(self, bin_id=None):
        """uuids of all parts that currently collide, optionally on one sheet only."""
        bins = sorted({p.bin_id for p in self.placements.values()}) if bin_id is None else [bin_id]
        colliding = []
        for b in bins:
            entries = [(p.uuid, self.shape_of(p)) for p in self.placements.values() if p.bin_id == b]
            colliding.extend(collision.detect_collisions(
                entries, self.width, self.height, self.margin, self.crop_lines))
        return colliding

    def _apply(self, uuid, x, y, rotation, bin_id):
        """Applies an edit and keeps it only when the part ends up collision free."""
        placed = self.placements[uuid]
        previous = (placed.x, placed.y, placed.rotation, placed.bin_id)
        placed.x, placed.y, placed.rotation, placed.bin_id = x, y, rotation % 360.0, bin_id

        colliding = self.collisions(bin_id)
        if uuid in colliding:
            placed.x, placed.y, placed.rotation, placed.bin_id = previous
            logger.info("Rejected edit of %s: collides with %s", uuid,
                        [c for c in colliding if c != uuid] or "sheet boundary")
            return False, colliding
        return True, colliding

    def move_part(self, uuid, dx, dy):
        """Drags a part by (dx, dy). Returns (accepted, colliding uuids)."""
        placed = self.placements[uuid]
        return self._apply(uuid, placed.x + dx, placed.y + dy, placed.rotation, placed.bin_id)

    def move_part_to(self, uuid, x, y, bin_id=None):
        placed = self.placements[uuid]
        return self._apply(uuid, x, y, placed.rotation, placed.bin_id if bin_id is None else bin_id)

    def rotate_part(self, uuid, angle):
        """
        Rotates a part by ``angle`` degrees about the center of its raw
        bounding box. Returns (accepted, colliding uuids).
        """
        placed = self.placements[uuid]
        current = self.shape_of(placed)
        min_x, min_y, max_x, max_y = current.unbuffered_polygon.bounds
        center_x, center_y = (min_x + max_x) / 2.0, (min_y + max_y) / 2.0

        new_rotation = (placed.rotation + angle) % 360.0
        rotated = self.shapes[placed.part_id].rotated(new_rotation)
        r_min_x, r_min_y, r_max_x, r_max_y = rotated.unbuffered_polygon.bounds
        x = center_x - (r_max_x - r_min_x) / 2.0
        y = center_y - (r_max_y - r_min_y) / 2.0
        return self._apply(uuid, x, y, new_rotation, placed.bin_id)

    def save(self):
        """Makes the current placements the ones ``cancel()`` returns to."""
        self.original_placements = {
            uuid: (p.x, p.y, p.rotation, p.bin_id) for uuid, p in self.placements.items()
        }

    def cancel(self):
        """Restores every part to its saved placement."""
        for uuid, (x, y, rotation, bin_id) in self.original_placements.items():
            placed = self.placements[uuid]
            placed.x, placed.y, placed.rotation, placed.bin_id = x, y, rotation, bin_id
