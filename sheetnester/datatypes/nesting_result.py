# sheetnester/datatypes/nesting_result.py

"""
This module contains the NestingResult class returned by every strategy.
"""

from .placed_part import PlacedPart


class NestingResult:
    """
    Outcome of a nesting run.

    ``failed`` holds one part id per unplaced instance, so a part requested
    three times that never fits appears three times.
    """
    def __init__(self, placed=None, failed=None, efficiency=0.0, total_bins=0, algorithm=None):
        self.placed = list(placed or [])
        self.failed = list(failed or [])
        self.efficiency = efficiency
        self.total_bins = total_bins
        self.algorithm = algorithm

    def __repr__(self):
        return (f"<NestingResult: placed={len(self.placed)}, failed={len(self.failed)}, "
                f"bins={self.total_bins}, efficiency={self.efficiency:.3f}>")

    def parts_on_bin(self, bin_id):
        return [p for p in self.placed if p.bin_id == bin_id]

    def to_dict(self):
        return {
            "placed": [p.to_dict() for p in self.placed],
            "failed": list(self.failed),
            "efficiency": self.efficiency,
            "total_bins": self.total_bins,
            "algorithm": self.algorithm,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            placed=[PlacedPart.from_dict(p) for p in data.get("placed", [])],
            failed=data.get("failed", []),
            efficiency=data.get("efficiency", 0.0),
            total_bins=data.get("total_bins", 0),
            algorithm=data.get("algorithm"),
        )
