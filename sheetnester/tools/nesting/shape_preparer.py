import logging

from .algorithms import shape_processor

logger = logging.getLogger(__name__)


class ShapePreparer:
    """
    Handles the preparation of shapes for nesting.
    - Derives the nesting geometry of each distinct part once per offset.
    - Expands parts into one entry per requested instance.
    - Records parts whose geometry cannot be used as failed instead of
      aborting the batch.
    """
    def __init__(self, processed_shape_cache=None, log_callback=None):
        self.processed_shape_cache = processed_shape_cache if processed_shape_cache is not None else {}
        self.log_callback = log_callback

    def log(self, message, level="info"):
        if self.log_callback:
            self.log_callback(message, level=level)
        else:
            getattr(logger, level, logger.info)(message)

    @staticmethod
    def quantity_of(part, quantities=None):
        if quantities and part.id in quantities:
            return int(quantities[part.id])
        return part.quantity

    def expand_instances(self, parts, quantities=None):
        """One entry per instance, for strategies that only need the part's rectangle."""
        instances = []
        for part in parts:
            instances.extend([part] * max(0, self.quantity_of(part, quantities)))
        return instances

    def get_shape(self, part, offset_delta=0.0, require_block=True, force_close=False):
        """
        Returns the cached master Shape of a part, building it on first use.
        Raises shape_processor.GeometryError when the geometry is unusable.
        """
        # Cache Key: (Part id, Offset, Block requirement, Force-close)
        cache_key = (part.id, offset_delta, require_block, force_close)
        shape = self.processed_shape_cache.get(cache_key)
        if shape is None:
            shape = shape_processor.build_part_geometry(
                part, offset_delta, require_block=require_block, force_close=force_close)
            self.processed_shape_cache[cache_key] = shape
        return shape

    def prepare_parts(self, parts, offset_delta=0.0, quantities=None, require_block=True, force_close=False):
        """
        Main entry point to prepare parts.

        Args:
            parts (list[ImportedPart]): Distinct parts to nest.
            offset_delta (float): Inflation applied to every outline.
            quantities (dict): Optional { part_id: quantity } overriding part.quantity.

        Returns:
            tuple(list[Shape], list[str]): One master Shape per instance, and
            one failed part id per instance whose geometry was rejected.
        """
        shapes = []
        failed = []
        for part in parts:
            quantity = self.quantity_of(part, quantities)
            if quantity <= 0:
                continue
            try:
                shape = self.get_shape(part, offset_delta, require_block=require_block, force_close=force_close)
            except shape_processor.GeometryError as e:
                self.log(f"Could not create boundary for '{part.id}', it will be skipped. Error: {e}", level="warning")
                failed.extend([part.id] * quantity)
                continue
            shapes.extend([shape] * quantity)
        return shapes, failed
