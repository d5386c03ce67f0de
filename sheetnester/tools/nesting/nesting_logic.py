from .algorithms import (
    genetic_nester,
    minkowski_nester,
    strip_nester)
from .shape_preparer import ShapePreparer

GUILLOTINE = 'guillotine'
TRUE_SHAPE_GENETIC = 'true-shape-genetic'
NFP_FIRST_FIT = 'nfp-first-fit'

ALGORITHMS = (GUILLOTINE, TRUE_SHAPE_GENETIC, NFP_FIRST_FIT)


# --- Public Function ---
def nest(parts, width, height, algorithm=GUILLOTINE, margin=0.0, gap=0.0, kerf=0.0,
         rotation_step=15, rotation_steps=4, quantities=None, update_callback=None, **kwargs):
    """
    Convenience function to run a nesting strategy.

    Args:
        parts (list[ImportedPart]): Distinct parts; each is placed ``quantity`` times.
        width, height (float): Sheet size.
        algorithm (str): 'guillotine', 'true-shape-genetic' or 'nfp-first-fit'.
        margin (float): Keep-out distance along the sheet edges.
        gap (float): Minimum distance between parts.
        kerf (float): Cutting width, added to the gap for true-shape strategies.
        rotation_step (float): Rotation granularity of the genetic strategy, degrees.
        rotation_steps (int): Number of evenly spaced rotations for the NFP strategy.
        quantities (dict): Optional { part_id: quantity } override.
        update_callback (callable): Receives progress dicts during long runs.

    Returns:
        NestingResult
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Sheet size must be positive, got {width}x{height}")
    if margin < 0 or gap < 0 or kerf < 0:
        raise ValueError("margin, gap and kerf must not be negative")

    nester_class = {
        GUILLOTINE: strip_nester.StripNester,
        TRUE_SHAPE_GENETIC: genetic_nester.GeneticNester,
        NFP_FIRST_FIT: minkowski_nester.MinkowskiNester,
    }.get(algorithm)
    if nester_class is None:
        raise ValueError(f"Unknown nesting algorithm '{algorithm}'. Expected one of {', '.join(ALGORITHMS)}.")

    preparer = ShapePreparer(kwargs.pop("processed_shape_cache", None), kwargs.get("log_callback"))
    require_block = kwargs.pop("require_block", True)
    force_close = kwargs.pop("force_close", False)

    if algorithm == GUILLOTINE:
        nester = nester_class(width, height, margin=margin, gap=gap, update_callback=update_callback, **kwargs)
        result = nester.nest(preparer.expand_instances(parts, quantities))
    else:
        # Each side of a cut contributes half of the gap and half of the kerf.
        offset_delta = (gap + kerf) / 2.0
        shapes, geometry_failures = preparer.prepare_parts(
            parts, offset_delta, quantities, require_block=require_block, force_close=force_close)
        nester = nester_class(width, height, rotation_steps, margin=margin, gap=gap, kerf=kerf,
                              rotation_step=rotation_step, update_callback=update_callback, **kwargs)
        result = nester.nest(shapes)
        result.failed = geometry_failures + result.failed

    result.algorithm = algorithm
    return result
