"""Session-wide Qt setup.

Crop surfaces deliver cross-thread work through queued signals, which needs a
Qt application on the test thread. One is created before collection and kept
for the whole run.
"""

from __future__ import annotations

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

_APP = None


def pytest_configure(config) -> None:  # noqa: ARG001
    from PySide6.QtWidgets import QApplication

    global _APP
    _APP = QApplication.instance() or QApplication([])


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is not None:
        # drain queued surface tasks before interpreter teardown
        app.processEvents()
        app.quit()
