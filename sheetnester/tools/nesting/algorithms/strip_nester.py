"""
Guillotine strip packing on bounding rectangles.

Parts are treated as their axis-aligned rectangles only. Two shelf runs are
made, one filling columns and one filling rows, and the run with fewer
sheets wins.
"""
from .base_nester import BaseNester
from ....datatypes.placed_part import PlacedPart
from ....datatypes.nesting_result import NestingResult

VERTICAL = "vertical"
HORIZONTAL = "horizontal"


class StripRun(object):
    """Outcome of one shelf run in a single direction."""
    def __init__(self, direction):
        self.direction = direction
        self.placed = []
        self.failed = []
        self.bin_count = 0
        self.used_area = 0.0

    def __repr__(self):
        return (f"<StripRun {self.direction}: placed={len(self.placed)}, "
                f"bins={self.bin_count}, used={self.used_area:.1f}>")

    def rank(self):
        # Lower sorts first
        return (self.bin_count, -self.used_area, -len(self.placed))


class StripNester(BaseNester):
    """
    A nester that packs bounding rectangles into shelves. The gap is split
    in two: every rectangle is padded by half the gap on each side, so
    neighbouring parts end up one full gap apart.
    """
    def __init__(self, width, height, rotation_steps=2, **kwargs):
        super().__init__(width, height, rotation_steps, **kwargs)
        self.allow_rotation = kwargs.get("allow_rotation", rotation_steps > 1)
        self.directions = kwargs.get("directions", (VERTICAL, HORIZONTAL))

    @property
    def usable_width(self):
        return self._bin_width - 2 * self.margin

    @property
    def usable_height(self):
        return self._bin_height - 2 * self.margin

    def _orient(self, width, height):
        """
        Returns the rotation (0 or 90) for a part, or None when its padded
        rectangle fits the usable area in neither orientation.
        """
        uw, uh = self.usable_width, self.usable_height
        padded_w, padded_h = width + self.gap, height + self.gap
        fits = padded_w <= uw and padded_h <= uh
        fits_rotated = padded_h <= uw and padded_w <= uh

        if not self.allow_rotation:
            return 0 if fits else None
        if not fits:
            return 90 if fits_rotated else None
        # Align the part's long side with the sheet's long side.
        if fits_rotated and ((uw < uh and width > height) or (uw > uh and height > width)):
            return 90
        return 0

    def _run(self, parts, direction):
        run = StripRun(direction)
        items = []
        for part in parts:
            rotation = self._orient(part.width, part.height)
            if rotation is None:
                self.log(f"Part '{part.id}' ({part.width:.1f}x{part.height:.1f}) does not fit the sheet.", level="warning")
                run.failed.append(part.id)
                continue
            w, h = (part.height, part.width) if rotation == 90 else (part.width, part.height)
            items.append((part, rotation, w, h))

        # The strip thickness is the primary sort key.
        if direction == VERTICAL:
            items.sort(key=lambda item: (item[2], item[3]), reverse=True)
        else:
            items.sort(key=lambda item: (item[3], item[2]), reverse=True)

        half_gap = self.gap / 2.0
        uw, uh = self.usable_width, self.usable_height
        eps = 1e-9
        bin_id = 0
        cursor_x = cursor_y = shelf = 0.0

        for part, rotation, w, h in items:
            box_w, box_h = w + self.gap, h + self.gap

            if direction == VERTICAL:
                if cursor_y + box_h > uh + eps:
                    cursor_x += shelf
                    cursor_y = shelf = 0.0
                if cursor_x + box_w > uw + eps:
                    bin_id += 1
                    cursor_x = cursor_y = shelf = 0.0
                x, y = cursor_x, cursor_y
                cursor_y += box_h
                shelf = max(shelf, box_w)
            else:
                if cursor_x + box_w > uw + eps:
                    cursor_y += shelf
                    cursor_x = shelf = 0.0
                if cursor_y + box_h > uh + eps:
                    bin_id += 1
                    cursor_x = cursor_y = shelf = 0.0
                x, y = cursor_x, cursor_y
                cursor_x += box_w
                shelf = max(shelf, box_h)

            run.placed.append(PlacedPart(part.id, self.margin + x + half_gap, self.margin + y + half_gap,
                                         rotation=rotation, bin_id=bin_id))
            run.used_area += w * h

        run.bin_count = bin_id + 1 if run.placed else 0
        return run

    def nest(self, parts):
        """
        Packs part instances (one ImportedPart entry per instance) and returns
        the better of the column-first and row-first runs.
        """
        runs = [self._run(parts, direction) for direction in self.directions]
        for run in runs:
            self.log(f"Guillotine {run.direction}: {len(run.placed)} placed on {run.bin_count} sheet(s), "
                     f"{len(run.failed)} failed.")
        best = min(runs, key=lambda r: r.rank())

        sheet_area = self._bin_width * self._bin_height
        efficiency = best.used_area / (best.bin_count * sheet_area) if best.bin_count and sheet_area > 0 else 0.0
        return NestingResult(placed=best.placed, failed=best.failed, efficiency=efficiency,
                             total_bins=best.bin_count)
