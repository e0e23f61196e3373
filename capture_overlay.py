# capture_overlay.py

import cv2
import numpy as np

import capture_constants as const
import capture_math

# --- Drawing Helpers ---

# Hershey fonts only cover ASCII
_ASCII_SUBSTITUTES = {"…": "...", "—": "-", "–": "-"}

def to_ascii(text):
    for src, dst in _ASCII_SUBSTITUTES.items():
        text = text.replace(src, dst)
    return text.encode("ascii", "replace").decode("ascii")

def draw_text_with_shadow(image, text, origin, scale=0.8, color=(255, 255, 255), thickness=1,
                          font=cv2.FONT_HERSHEY_DUPLEX):
    x, y = origin
    text = to_ascii(text)
    cv2.putText(image, text, (x + 1, y + 1), font, scale, (30, 30, 30), thickness + 1, cv2.LINE_AA)
    cv2.putText(image, text, (x, y), font, scale, color, thickness, cv2.LINE_AA)

def fit_cover(frame, width, height):
    """Scales and center-crops frame so it exactly fills width x height (object-cover)."""
    vh, vw = frame.shape[:2]
    t = capture_math.cover_transform(vw, vh, width, height)
    sw, sh = max(width, int(round(vw * t.scale))), max(height, int(round(vh * t.scale)))
    resized = cv2.resize(frame, (sw, sh), interpolation=cv2.INTER_AREA if t.scale < 1 else cv2.INTER_LINEAR)
    x0, y0 = (sw - width) // 2, (sh - height) // 2
    return resized[y0:y0 + height, x0:x0 + width]

def fit_contain(frame, width, height):
    """Scales frame to fit inside width x height, letterboxed on black."""
    vh, vw = frame.shape[:2]
    scale = min(width / vw, height / vh)
    sw, sh = max(1, int(vw * scale)), max(1, int(vh * scale))
    canvas = np.zeros((height, width, 3), dtype=np.uint8)
    px, py = (width - sw) // 2, (height - sh) // 2
    canvas[py:py + sh, px:px + sw] = cv2.resize(frame, (sw, sh), interpolation=cv2.INTER_AREA)
    return canvas

def draw_guide(image, geometry, color):
    """Darkens everything outside the guide circle and strokes the circle in color."""
    h, w = image.shape[:2]
    center = (int(round(geometry.center_x)), int(round(geometry.center_y)))
    radius = int(round(geometry.radius))
    outside = np.full((h, w), 255, dtype=np.uint8)
    cv2.circle(outside, center, radius, 0, -1)
    dimmed = (image * (1.0 - const.GUIDE_MASK_ALPHA)).astype(np.uint8)
    image[outside > 0] = dimmed[outside > 0]
    cv2.circle(image, center, radius, color, capture_math.guide_stroke_width(geometry.radius), cv2.LINE_AA)
    return image

# --- Screen Composition ---

def render_capture_frame(surface):
    """The capture frame area: live feed with guide, or the frozen still once captured."""
    dims = surface.viewport.dims
    if surface.still_frame is not None:
        return fit_contain(surface.still_frame, dims.width, dims.height)
    frame = surface.camera.sink.frame
    if frame is None:
        pane = np.zeros((dims.height, dims.width, 3), dtype=np.uint8)
    else:
        pane = fit_cover(frame, dims.width, dims.height).copy()
    geometry = capture_math.guide_geometry(dims.width, dims.height)
    return draw_guide(pane, geometry, surface.guide_color)

def render_message_bar(surface, width):
    bar = np.full((const.MESSAGE_BAR_HEIGHT, width, 3), 24, dtype=np.uint8)
    draw_text_with_shadow(bar, surface.title, (12, 28), scale=0.8, thickness=1)
    if surface.error:
        draw_text_with_shadow(bar, surface.error, (12, 56), scale=0.5, color=(80, 80, 240))
    else:
        draw_text_with_shadow(bar, surface.status_text, (12, 56), scale=0.55, color=(180, 180, 180))

    if surface.captured_image is not None:
        hints = "[R] Retake   [U] Use Photo   [Q] Close"
        hint_color = (255, 255, 255)
    elif surface.can_capture:
        hints = "[ENTER] Capture   [Q] Close"
        hint_color = (255, 255, 255)
    else:
        hints = "[ENTER] Capture (disabled)   [Q] Close"
        hint_color = (110, 110, 110)
    draw_text_with_shadow(bar, hints, (12, 92), scale=0.55, color=hint_color)
    return bar

def render_surface(surface):
    """Full window content for the surface: capture frame stacked over the message bar."""
    frame_pane = render_capture_frame(surface)
    return np.vstack((frame_pane, render_message_bar(surface, frame_pane.shape[1])))
