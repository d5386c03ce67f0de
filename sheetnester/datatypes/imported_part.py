# sheetnester/datatypes/imported_part.py

"""
This module contains the ImportedPart class, the read-only description of a
part as it arrives from the drawing importer. The nesting engine never
modifies it; geometry used for nesting is derived from it by the shape
processor.
"""

from ..tools.nesting.algorithms import shape_processor


class ImportedPart:
    """
    A part imported from a CAD drawing.

    Entities are plain dicts (see ``shape_processor`` for the recognised
    types). ``blocks`` maps a block name to ``{"entities": [...]}`` and is
    used to resolve INSERT entities.
    """
    def __init__(self, part_id, name=None, entities=None, blocks=None, width=0.0, height=0.0,
                 gross_area=None, net_area=None, quantity=1):
        self.id = part_id
        self.name = name or str(part_id)
        self.entities = list(entities or [])
        self.blocks = dict(blocks or {})
        self.width = float(width)
        self.height = float(height)
        self.gross_area = float(gross_area) if gross_area is not None else self.width * self.height
        self.net_area = float(net_area) if net_area is not None else self.gross_area
        self.quantity = int(quantity)

    def __repr__(self):
        return f"<ImportedPart: {self.id}, {self.width:.2f}x{self.height:.2f}, qty={self.quantity}>"

    @classmethod
    def rectangle(cls, part_id, width, height, quantity=1, as_block=True):
        """
        Convenience constructor for a plain rectangular part. When ``as_block``
        is set the outline is wrapped in a single block instance, which is the
        form the true-shape strategies accept.
        """
        outline = {
            "type": "LWPOLYLINE",
            "closed": True,
            "vertices": [
                {"x": 0.0, "y": 0.0},
                {"x": float(width), "y": 0.0},
                {"x": float(width), "y": float(height)},
                {"x": 0.0, "y": float(height)},
            ],
        }
        if as_block:
            block_name = f"{part_id}_block"
            entities = [{"type": "INSERT", "name": block_name, "position": {"x": 0.0, "y": 0.0}}]
            blocks = {block_name: {"entities": [outline]}}
        else:
            entities = [outline]
            blocks = {}
        return cls(part_id, entities=entities, blocks=blocks, width=width, height=height, quantity=quantity)

    @classmethod
    def from_entities(cls, part_id, entities, blocks=None, quantity=1, name=None):
        """
        Builds a part from raw drawing entities, measuring its bounding box
        and its net area. The net area falls back to the gross area when the
        entities hold no closed loop.
        """
        flat = shape_processor.flatten(entities, blocks or {})
        min_x, min_y, max_x, max_y = shape_processor.entities_bounds(flat)
        width, height = max_x - min_x, max_y - min_y
        net_area = shape_processor.calculate_net_area(entities, blocks)
        if net_area < 0.1:
            net_area = None
        return cls(part_id, name=name, entities=entities, blocks=blocks, width=width, height=height,
                   net_area=net_area, quantity=quantity)
