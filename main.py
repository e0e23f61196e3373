# main.py

import argparse
import asyncio
import logging
import signal
import sys

import cv2

# --- Project Modules ---
import capture_constants as const
import capture_overlay
from camera_session import CameraConstraints
from face_capture import FaceCaptureSurface

logger = logging.getLogger("main")

KEY_ENTER, KEY_SPACE, KEY_ESC = 13, 32, 27

# --- Helpers ---

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Align your face in the circle and take a photo.")
    parser.add_argument("--camera", type=int, default=const.CAMERA_INDEX, help="OpenCV camera index")
    parser.add_argument("--width", type=int, default=const.CAMERA_PREFERRED_WIDTH, help="Preferred video width")
    parser.add_argument("--height", type=int, default=const.CAMERA_PREFERRED_HEIGHT, help="Preferred video height")
    parser.add_argument("--title", default=None, help="Title shown above the controls")
    parser.add_argument("--output", default="capture.jpg", help="Where to write the photo on 'Use Photo'")
    parser.add_argument("--data-url", action="store_true", help="Also print the photo as a data: URL")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)

def configure_logging(level):
    logging.basicConfig(
        level=getattr(logging, level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

def handle_key(surface, key):
    """Maps one key press to a surface action. Returns False once the window should close."""
    if key in (ord('q'), KEY_ESC):
        surface.close()
        return False
    if key in (KEY_ENTER, KEY_SPACE):
        if surface.can_capture:
            surface.capture()
    elif key == ord('r'):
        surface.retake()
    elif key == ord('u'):
        surface.commit()
    return surface.is_open

def observe_window(surface, window_name):
    """Feeds the window's current capture-frame size into the viewport tracker."""
    _, _, win_w, win_h = cv2.getWindowImageRect(window_name)
    if win_w > 0 and win_h > const.MESSAGE_BAR_HEIGHT:
        surface.viewport.notify(win_w, win_h - const.MESSAGE_BAR_HEIGHT)

def save_image(image, path):
    with open(path, "wb") as f:
        f.write(image.data)
    logger.info("Photo saved to %s (%dx%d)", path, image.width, image.height)

# --- Main Application Logic ---

async def run_capture_window(args):
    """Runs the capture surface in an OpenCV window until the photo is used or the window closed."""
    result = {}
    closed = asyncio.Event()

    def on_captured(image):
        result['image'] = image

    surface = FaceCaptureSurface(
        on_captured=on_captured,
        on_close=closed.set,
        title=args.title,
        constraints=CameraConstraints(device_index=args.camera, width=args.width, height=args.height),
    )

    loop = asyncio.get_running_loop()

    def signal_handler(sig, frame):
        print("\nCtrl+C detected! Closing the camera...")
        loop.call_soon_threadsafe(surface.close)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    cv2.namedWindow(const.WINDOW_NAME, cv2.WINDOW_NORMAL)
    cv2.resizeWindow(const.WINDOW_NAME, const.DEFAULT_VIEWPORT_WIDTH,
                     const.DEFAULT_VIEWPORT_HEIGHT + const.MESSAGE_BAR_HEIGHT)
    try:
        async with surface:
            while not closed.is_set():
                observe_window(surface, const.WINDOW_NAME)
                cv2.imshow(const.WINDOW_NAME, capture_overlay.render_surface(surface))
                key = cv2.waitKey(1) & 0xFF
                if key != 0xFF and not handle_key(surface, key):
                    break
                if cv2.getWindowProperty(const.WINDOW_NAME, cv2.WND_PROP_VISIBLE) < 1:
                    break
                await asyncio.sleep(const.FRAME_INTERVAL_S)
    finally:
        cv2.destroyAllWindows()
    return result.get('image')

def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.log_level)
    image = asyncio.run(run_capture_window(args))
    if image is None:
        print("Capture was closed without a photo.")
        return 1
    save_image(image, args.output)
    if args.data_url:
        print(image.to_data_url())
    return 0

if __name__ == "__main__":
    sys.exit(main())
