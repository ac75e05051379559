"""Headless command line front end.

Builds a crop session over an off-screen surface, optionally places the crop
rect, runs ``save()`` on a worker thread and exits when the session reports.
"""

from __future__ import annotations

import argparse
import os
import sys
import threading

from PySide6.QtCore import QCoreApplication, QEventLoop

from image_cropper.crop_controller import CompressFormat, CropBuilder
from image_cropper.errors import CropConfigurationError, CropError
from image_cropper.logger import get_logger, setup_logger
from image_cropper.ops.rect import RectF
from image_cropper.settings_manager import SettingsManager
from image_cropper.ui.crop_surface import CropSurface

logger = get_logger("main")

_DEFAULT_VIEW = (1280, 800)


def _pair(sep: str):
    def parse(text: str) -> tuple[int, int]:
        parts = text.lower().split(sep)
        try:
            a, b = (int(p) for p in parts)
        except ValueError:
            raise argparse.ArgumentTypeError(f"expected two integers separated by {sep!r}, got {text!r}") from None
        return a, b

    return parse


def _rect(text: str) -> RectF:
    try:
        left, top, right, bottom = (float(p) for p in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected L,T,R,B, got {text!r}") from None
    rect = RectF(left, top, right, bottom)
    if rect.is_empty():
        raise argparse.ArgumentTypeError(f"empty rect {text!r}")
    return rect


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="image-cropper", description="Crop a region of an image")
    p.add_argument("input", help="Source image path or file:// URI")
    p.add_argument("output", help="Destination image path or file:// URI")
    shape = p.add_mutually_exclusive_group()
    shape.add_argument("--square", action="store_true", help="Fix the crop to 1:1")
    shape.add_argument("--aspect", type=_pair(":"), metavar="X:Y", help="Fix the crop aspect ratio")
    p.add_argument("--max-size", type=_pair("x"), metavar="WxH", help="Bound the output size")
    p.add_argument("--format", choices=[f.value for f in CompressFormat], help="Output format")
    p.add_argument("--quality", type=int, help="Output quality for lossy formats (1-100)")
    p.add_argument(
        "--rect", type=_rect, metavar="L,T,R,B", help="Crop rect in full-resolution, displayed coordinates"
    )
    p.add_argument("--view-size", type=_pair("x"), metavar="WxH", help="Size of the off-screen view")
    p.add_argument("--settings", help="JSON settings file")
    p.add_argument("--log-level", help="Set log level")
    p.add_argument("--log-cats", help="Set log categories")
    return p


class _Outcome:
    """Collects the session's terminal callback."""

    def __init__(self) -> None:
        self.output: str | None = None
        self.failed = False
        self.errors: list[BaseException] = []

    def on_crop_finished(self, output: str) -> None:
        self.output = output

    def on_crop_failed(self) -> None:
        self.failed = True

    def on_error(self, exc: BaseException) -> None:
        self.errors.append(exc)

    def on_fatal_error(self, exc: BaseException) -> None:
        self.failed = True
        self.errors.append(exc)


def run(argv: list[str] | None = None) -> int:
    """Application entrypoint (packaging-friendly)."""
    if argv is None:
        argv = sys.argv[1:]
    args = build_parser().parse_args(argv)

    if args.log_level:
        os.environ["IMAGE_CROPPER_LOG_LEVEL"] = args.log_level
    if args.log_cats:
        os.environ["IMAGE_CROPPER_LOG_CATS"] = args.log_cats
    setup_logger()

    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([sys.argv[0] if sys.argv else "image-cropper"])

    settings = SettingsManager(args.settings) if args.settings else None
    view_w, view_h = args.view_size or (settings.view_size if settings else _DEFAULT_VIEW)
    surface = CropSurface(view_w, view_h)
    outcome = _Outcome()

    try:
        builder = CropBuilder(surface, args.input, args.output)
        if settings is not None:
            builder.apply_settings(settings)
        if args.square:
            builder.as_square()
        elif args.aspect:
            builder.with_aspect_ratio(*args.aspect)
        if args.max_size:
            builder.with_max_size(*args.max_size)
        if args.format or args.quality is not None:
            quality = args.quality if args.quality is not None else builder.quality
            builder.compression(args.format or builder.compress_format, quality)
        builder.with_crop_finished_listener(outcome).with_error_listener(outcome)
    except CropConfigurationError as e:
        logger.error("invalid configuration: %s", e)
        return 2

    controller = builder.build()
    try:
        if not controller.start():
            logger.error("could not open %s", args.input)
            return 1
        if args.rect is not None:
            hv = controller.crop_rectangle
            if hv is None:
                logger.error("no crop rect attached")
                return 1
            try:
                hv.set_crop_rect(args.rect.scaled(1.0 / controller.sample_size))
            except ValueError as e:
                logger.error("invalid --rect: %s", e)
                return 2

        loop = QEventLoop()

        def _save() -> None:
            try:
                controller.save()
            except CropError:
                logger.exception("save failed")
            finally:
                surface.post(loop.quit)

        worker = threading.Thread(target=_save, name="image-cropper-save", daemon=True)
        worker.start()
        loop.exec()
        worker.join(timeout=5)
    finally:
        controller.release()

    if outcome.output is not None:
        logger.info("wrote %s", outcome.output)
        return 0
    for exc in outcome.errors:
        logger.error("crop failed: %s", exc)
    return 1


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
