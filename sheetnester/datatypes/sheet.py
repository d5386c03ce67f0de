# sheetnester/datatypes/sheet.py

"""
This module contains the Sheet class, which represents a single bin or sheet
in the nesting layout.
"""

from ..tools.nesting.algorithms import collision


class Sheet:
    """
    Represents a single sheet (or bin) in the nesting layout. It contains
    the parts that have been placed on it.
    """
    def __init__(self, sheet_id, width, height, margin=0.0, crop_lines=None):
        self.id = sheet_id
        self.width = width
        self.height = height
        self.margin = margin
        self.crop_lines = list(crop_lines or []) # [{"type": "vertical"|"horizontal", "position": p}]
        self.parts = [] # List of PlacedPart objects

    def __repr__(self):
        return f"<Sheet id={self.id}, parts={len(self.parts)}>"

    def __iter__(self):
        """Allows iterating directly over the parts on the sheet."""
        return iter(self.parts)

    def __len__(self):
        """Returns the number of parts on the sheet."""
        return len(self.parts)

    def add_part(self, placed_part):
        """Adds a part to the sheet."""
        placed_part.bin_id = self.id
        self.parts.append(placed_part)

    def remove_part(self, uuid):
        self.parts = [p for p in self.parts if p.uuid != uuid]

    def remnants(self):
        """Reusable offcut rectangles left by the sheet's crop lines, largest first."""
        if not self.crop_lines:
            return []
        cut_x, cut_y = collision.resolve_crop_lines(self.width, self.height, self.crop_lines)
        return collision.calculate_remnants(self.width, self.height, cut_x, cut_y)

    def used_area(self, use_unbuffered_area=True):
        """Sum of the areas of the placed parts' shapes."""
        total = 0.0
        for part in self.parts:
            if part.shape is None:
                continue
            total += part.shape.net_area if use_unbuffered_area else part.shape.area
        return total

    def calculate_fill_percentage(self, use_unbuffered_area=True):
        """
        Calculates the fill percentage of the sheet.

        Args:
            use_unbuffered_area (bool): If True, uses the original part area without spacing.
                                        If False, uses the buffered area (including spacing).

        Returns:
            float: The fill percentage (0-100), or 0 if sheet area is zero.
        """
        sheet_area = self.width * self.height
        if sheet_area == 0:
            return 0.0
        return (self.used_area(use_unbuffered_area) / sheet_area) * 100.0

    def is_placement_valid(self, shape_to_check, part_to_ignore=None):
        """
        Checks if a shape's placement is valid on this sheet: inside the
        margins, clear of the crop lines and not overlapping any placed part.

        Args:
            shape_to_check (Shape): The shape at the desired location.
            part_to_ignore (str, optional): uuid of a placed part to exclude from the check.

        Returns:
            bool: True if the placement is valid, False otherwise.
        """
        if shape_to_check is None or shape_to_check.polygon is None:
            return False

        if not collision.bounds_within_sheet(shape_to_check.bounds, self.width, self.height, self.margin):
            return False

        if collision.crosses_crop_lines([shape_to_check.outer], self.crop_lines, self.width, self.height):
            return False

        for placed_part in self.parts:
            if placed_part.uuid == part_to_ignore or placed_part.shape is None:
                continue
            if collision.shapes_collide(shape_to_check, placed_part.shape):
                return False

        return True
