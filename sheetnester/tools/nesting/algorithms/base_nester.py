import logging

from ....datatypes.sheet import Sheet
from ....datatypes.placed_part import PlacedPart
from ....datatypes.nesting_result import NestingResult

logger = logging.getLogger(__name__)


# --- Base Packer Class ---
class BaseNester(object):
    """Base class for nesting algorithms. Relies on the shapely library."""
    def __init__(self, width, height, rotation_steps=1, **kwargs):
        self._bin_width = width
        self._bin_height = height
        self.rotation_steps = rotation_steps if rotation_steps > 0 else 1
        self.margin = kwargs.get("margin", 0.0)
        self.gap = kwargs.get("gap", 0.0)
        self.kerf = kwargs.get("kerf", 0.0)
        self.max_bins = kwargs.get("max_bins", 50)
        self.crop_lines = kwargs.get("crop_lines", None)
        self.update_callback = kwargs.get("update_callback", None)
        self.log_callback = kwargs.get("log_callback", None)
        self.cancel_event = kwargs.get("cancel_event", None)

        self.parts_to_place = [] # This list will hold Shape objects
        self.sheets = []

    def log(self, message, level="info"):
        """Routes a message to the log callback, or to the module logger."""
        if self.log_callback:
            self.log_callback(message, level=level)
        else:
            getattr(logger, level, logger.info)(message)

    def is_cancelled(self):
        return self.cancel_event is not None and self.cancel_event.is_set()

    def rotation_angles(self):
        """The rotation set of this nester, in degrees."""
        return [i * (360.0 / self.rotation_steps) for i in range(self.rotation_steps)]

    def _new_sheet(self, sheet_id):
        return Sheet(sheet_id, self._bin_width, self._bin_height, margin=self.margin, crop_lines=self.crop_lines)

    def _attempt_placement_on_sheet(self, part, sheet, preferred_angle=None):
        """
        Attempts to place a part on a sheet, and if successful, finalizes
        its placement and adds it to the sheet.
        Returns True on success, False on failure.
        """
        placed_shape = self._try_place_part_on_sheet(part, sheet, preferred_angle)

        # Final validation to ensure the returned part is valid before accepting it.
        if placed_shape is not None and sheet.is_placement_valid(placed_shape):
            x, y = placed_shape.placement_origin()
            sheet.add_part(PlacedPart(part.part_id, x, y, rotation=placed_shape.angle,
                                      bin_id=sheet.id, shape=placed_shape))
            return True
        elif placed_shape is not None:
            self.log(f"Nester algorithm returned an invalid placement for {part.part_id}. Discarding.", level="warning")

        return False

    def nest(self, parts):
        """
        Main nesting loop. Places parts largest first, trying the open
        sheets before opening a new one, until every part is placed or the
        sheet cap is reached.
        """
        self.parts_to_place = list(parts)
        self._sort_parts_by_area() # Sorts self.parts_to_place in-place
        self.sheets, unplaced = self._place_sequence([(p, None) for p in self.parts_to_place])
        return self._build_result(self.sheets, unplaced)

    def _place_sequence(self, sequence):
        """
        Places ``(shape, preferred_angle)`` pairs in order with first-fit over
        the open sheets. Returns the sheets and the unplaced shapes.
        """
        sheets = []
        unplaced_shapes = []

        for index, (shape, angle) in enumerate(sequence):
            if self.is_cancelled():
                unplaced_shapes.extend(s for s, _ in sequence[index:])
                break

            placed = False
            # Try to place on existing sheets first
            for sheet in sheets:
                if self._attempt_placement_on_sheet(shape, sheet, angle):
                    placed = True
                    break

            if not placed and len(sheets) < self.max_bins:
                # If it didn't fit on any existing sheet, try a new one
                new_sheet = self._new_sheet(len(sheets))
                if self._attempt_placement_on_sheet(shape, new_sheet, angle):
                    sheets.append(new_sheet)
                    placed = True

            if not placed:
                unplaced_shapes.append(shape)

        return sheets, unplaced_shapes

    def _build_result(self, sheets, unplaced_shapes):
        placed = [p for sheet in sheets for p in sheet.parts]
        used = sum(sheet.used_area() for sheet in sheets)
        sheet_area = self._bin_width * self._bin_height
        efficiency = used / (len(sheets) * sheet_area) if sheets and sheet_area > 0 else 0.0
        return NestingResult(placed=placed, failed=[s.part_id for s in unplaced_shapes],
                             efficiency=efficiency, total_bins=len(sheets))

    def _sort_parts_by_area(self):
        """Sorts the list of parts to be nested in-place, largest area first."""
        self.parts_to_place.sort(key=lambda p: p.area, reverse=True)

    def _try_place_part_on_sheet(self, part_to_place, sheet, preferred_angle=None):
        """
        Subclasses must implement this. Tries to place a single shape on a given sheet.
        Returns the placed shape on success, None on failure.
        """
        raise NotImplementedError
