from __future__ import annotations

import logging
import sys

from image_cropper.logger import get_logger, setup_logger


def _stderr_handlers(logger: logging.Logger) -> list[logging.Handler]:
    return [h for h in logger.handlers if getattr(h, "stream", None) is sys.stderr]


def test_single_handler_across_calls() -> None:
    base = setup_logger()
    setup_logger()
    get_logger("crop_controller")
    assert len(_stderr_handlers(base)) == 1
    assert base.propagate is False


def test_child_loggers_share_the_base() -> None:
    child = get_logger("decoder")
    assert child.name == "image_cropper.decoder"
    assert get_logger() is logging.getLogger("image_cropper")


def test_env_level_override(monkeypatch) -> None:
    monkeypatch.setenv("IMAGE_CROPPER_LOG_LEVEL", "debug")
    assert setup_logger().level == logging.DEBUG
    monkeypatch.setenv("IMAGE_CROPPER_LOG_LEVEL", "error")
    assert setup_logger().level == logging.ERROR
    monkeypatch.delenv("IMAGE_CROPPER_LOG_LEVEL")
    assert setup_logger().level == logging.INFO


def test_category_filter(monkeypatch) -> None:
    monkeypatch.setenv("IMAGE_CROPPER_LOG_CATS", "decoder, surface_bridge")
    (handler,) = _stderr_handlers(setup_logger())

    def record(name: str) -> logging.LogRecord:
        return logging.LogRecord(name, logging.INFO, __file__, 1, "msg", None, None)

    assert handler.filter(record("image_cropper.decoder"))
    assert handler.filter(record("image_cropper.surface_bridge"))
    assert not handler.filter(record("image_cropper.highlight"))

    monkeypatch.delenv("IMAGE_CROPPER_LOG_CATS")
    (handler,) = _stderr_handlers(setup_logger())
    assert handler.filter(record("image_cropper.highlight"))
