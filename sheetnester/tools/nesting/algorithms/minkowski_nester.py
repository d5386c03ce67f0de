from .base_nester import BaseNester
from .minkowski_engine import MinkowskiEngine


class MinkowskiNester(BaseNester):
    """
    A first-fit nester driven by no-fit polygons. Parts are placed once,
    largest first. On each sheet every rotation is tried: its candidate
    positions come from the NFPs of the parts already on the sheet, and the
    lowest, then leftmost, valid position over all rotations wins.
    """
    def __init__(self, width, height, rotation_steps=4, **kwargs):
        super().__init__(width, height, rotation_steps, **kwargs)
        self.safety_margin = kwargs.get("safety_margin", 0.5)
        self.engine = MinkowskiEngine(
            width, height,
            margin=self.margin,
            safety_margin=self.safety_margin,
            nfp_client=kwargs.get("nfp_client", None),
            log_callback=self.log_callback,
        )

    def nest(self, parts):
        result = super().nest(parts)
        if result.failed and len(self.sheets) >= self.max_bins:
            self.log(f"Sheet limit of {self.max_bins} reached; {len(result.failed)} part(s) left unplaced.",
                     level="warning")
        return result

    def _try_place_part_on_sheet(self, part_to_place, sheet, preferred_angle=None):
        best = None
        for angle in self.rotation_angles():
            rotated = part_to_place.rotated(angle)
            placed = self.engine.find_position(rotated, sheet)
            if placed is None:
                continue
            min_x, min_y, _, _ = placed.bounds
            metric = (round(min_y, 6), round(min_x, 6))
            if best is None or metric < best[0]:
                best = (metric, placed)

        return best[1] if best is not None else None
