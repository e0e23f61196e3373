# capture_math.py

from collections import namedtuple

import capture_constants as const

GuideGeometry = namedtuple("GuideGeometry", ["center_x", "center_y", "radius"])
CoverTransform = namedtuple("CoverTransform", ["scale", "offset_x", "offset_y"])

def clamp(value, low, high):
    return max(low, min(high, value))

def guide_diameter(width, height):
    """Diameter of the guide circle for a capture frame of the given size (px)."""
    base = min(width, height) * const.GUIDE_DIAMETER_RATIO
    return clamp(base, const.GUIDE_MIN_DIAMETER, const.GUIDE_MAX_DIAMETER)

def guide_geometry(width, height):
    """
    Returns the guide circle for a capture frame of width x height display pixels.
    The circle is centered in the frame; its radius never leaves
    [GUIDE_MIN_DIAMETER / 2, GUIDE_MAX_DIAMETER / 2] whatever the frame size.
    """
    return GuideGeometry(width / 2.0, height / 2.0, guide_diameter(width, height) / 2.0)

def guide_stroke_width(radius):
    return int(clamp(round(radius * const.GUIDE_STROKE_RATIO), const.GUIDE_MIN_STROKE, const.GUIDE_MAX_STROKE))

def box_center(x, y, width, height):
    return x + width / 2.0, y + height / 2.0

def in_circle(px, py, geometry):
    """True if (px, py) lies inside or exactly on the guide circle."""
    dx = px - geometry.center_x
    dy = py - geometry.center_y
    return (dx * dx + dy * dy) <= geometry.radius * geometry.radius

def cover_transform(video_w, video_h, display_w, display_h):
    """
    Transform used to show a video_w x video_h frame inside a display_w x display_h
    area with object-cover semantics: uniform scale until both sides are filled,
    overflow cropped evenly on both sides.
    """
    if video_w <= 0 or video_h <= 0:
        return CoverTransform(1.0, 0.0, 0.0)
    scale = max(display_w / video_w, display_h / video_h)
    offset_x = (display_w - video_w * scale) / 2.0
    offset_y = (display_h - video_h * scale) / 2.0
    return CoverTransform(scale, offset_x, offset_y)

def video_to_display(x, y, transform):
    return x * transform.scale + transform.offset_x, y * transform.scale + transform.offset_y

def map_box_to_display(x, y, width, height, video_size, display_size):
    """Maps a box in video pixels to display pixels. Identity when both sizes match."""
    transform = cover_transform(video_size[0], video_size[1], display_size[0], display_size[1])
    dx, dy = video_to_display(x, y, transform)
    return dx, dy, width * transform.scale, height * transform.scale

def is_aligned(detection, video_size, display_size):
    """
    Alignment test for one detection: the box center, mapped onto the display,
    must fall within the guide circle computed for display_size.
    """
    if detection is None:
        return False
    x, y, w, h = map_box_to_display(detection.x, detection.y, detection.width, detection.height,
                                    video_size, display_size)
    cx, cy = box_center(x, y, w, h)
    return in_circle(cx, cy, guide_geometry(display_size[0], display_size[1]))
