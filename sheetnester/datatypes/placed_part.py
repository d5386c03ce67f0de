# sheetnester/datatypes/placed_part.py

"""
This module contains the PlacedPart class, which represents the result of
a successful placement of a part by a nesting algorithm.
"""

import uuid as uuid_lib


class PlacedPart:
    """
    A data container that holds the final placement information for a part.

    ``x`` and ``y`` are the minimum corner of the part's raw outline after it
    has been rotated by ``rotation`` degrees, i.e. the corner of its rotated
    bounding box on sheet ``bin_id``.
    """
    def __init__(self, part_id, x, y, rotation=0.0, bin_id=0, uuid=None, shape=None):
        self.uuid = uuid or uuid_lib.uuid4().hex
        self.part_id = part_id
        self.x = float(x)
        self.y = float(y)
        self.rotation = float(rotation) % 360.0
        self.bin_id = int(bin_id)
        self.shape = shape # Placed Shape, when the strategy worked on true geometry

    def __repr__(self):
        return (f"<PlacedPart: {self.part_id} [{self.uuid[:8]}], bin={self.bin_id}, "
                f"pos=({self.x:.2f}, {self.y:.2f}), angle={self.rotation}>")

    def to_dict(self):
        return {
            "uuid": self.uuid,
            "part_id": self.part_id,
            "x": self.x,
            "y": self.y,
            "rotation": self.rotation,
            "bin_id": self.bin_id,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            data["part_id"],
            data["x"],
            data["y"],
            rotation=data.get("rotation", 0.0),
            bin_id=data.get("bin_id", 0),
            uuid=data.get("uuid"),
        )
