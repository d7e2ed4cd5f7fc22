'''
colors.py -- cell values and color parsing

A cell is either None (empty) or the color value a script returned for it.
Color values stay as the script produced them until the mesh is built; only
then are they turned into RGB floats in the 0.0-1.0 range.
'''

import numbers

from PIL import ImageColor

EMPTY = None


def _is_number(value):
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def is_color_value(value):
    """ True for values a cell can hold as its color (before parsing). """
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return len(value) > 0
    if isinstance(value, numbers.Integral):
        return value != 0
    if isinstance(value, (tuple, list)):
        return len(value) in (3, 4) and all(_is_number(c) for c in value)
    return False


def to_cell(result, default_color):
    """ Convert a draw() result into a cell value.

    Color-like values are kept, True becomes `default_color` and anything
    else (False, None, 0, '', other objects) leaves the cell empty.
    """
    if result is True:
        return default_color
    if is_color_value(result):
        if isinstance(result, list):
            return tuple(result)
        return result
    return EMPTY


def parse_color(value):
    """ Return `value` as an (r, g, b) tuple of floats in 0.0-1.0.

    Accepts CSS color strings (hex, names, rgb(), hsl()), 0xRRGGBB integers
    and RGB sequences. Sequences of floats all within 0-1 are taken as unit
    floats, anything else as 0-255 components. Raises ValueError.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not a color: {value!r}")
    if isinstance(value, str):
        rgb = ImageColor.getrgb(value.strip())
        return tuple(c / 255.0 for c in rgb[:3])
    if isinstance(value, numbers.Integral):
        if not 0 <= value <= 0xFFFFFF:
            raise ValueError(f"color integer out of range: {value!r}")
        return (((value >> 16) & 0xFF) / 255.0, ((value >> 8) & 0xFF) / 255.0, (value & 0xFF) / 255.0)
    if isinstance(value, (tuple, list)) and len(value) in (3, 4) and all(_is_number(c) for c in value):
        rgb = value[:3]
        if all(isinstance(c, float) for c in rgb) and all(0.0 <= c <= 1.0 for c in rgb):
            return tuple(float(c) for c in rgb)
        if any(c < 0 or c > 255 for c in rgb):
            raise ValueError(f"color component out of range: {value!r}")
        return tuple(c / 255.0 for c in rgb)
    raise ValueError(f"not a color: {value!r}")
