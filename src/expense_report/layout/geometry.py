from typing import Tuple


def fit_to_box(source_width: float, source_height: float,
               box_width: float, box_height: float) -> Tuple[float, float]:
    """Scales a (width, height) pair to fit inside the box, keeping its aspect ratio.

    The result never exceeds the box on either axis. Fitting an already fitted
    size into the same box returns it unchanged.
    """
    if source_width <= 0 or source_height <= 0:
        raise ValueError(f"Source dimensions must be positive, got {source_width}x{source_height}")
    if box_width <= 0 or box_height <= 0:
        raise ValueError(f"Box dimensions must be positive, got {box_width}x{box_height}")

    ratio = min(box_width / source_width, box_height / source_height)
    return source_width * ratio, source_height * ratio
