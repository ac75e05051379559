from __future__ import annotations

import os
from pathlib import Path
from typing import IO, Protocol, runtime_checkable
from urllib.parse import unquote, urlparse


@runtime_checkable
class ContentResolver(Protocol):
    """Opens input/output streams for URI-like references.

    ``open_input`` may be called any number of times; every call must return an
    independent stream positioned at the start.
    """

    def open_input(self, ref: str) -> IO[bytes]: ...

    def open_output(self, ref: str) -> IO[bytes]: ...


def to_local_path(ref: str | os.PathLike) -> Path:
    text = os.fspath(ref)
    if text.startswith("file://"):
        parsed = urlparse(text)
        path = unquote(parsed.path)
        # file:///C:/x on Windows parses to /C:/x
        if os.name == "nt" and len(path) > 2 and path[0] == "/" and path[2] == ":":
            path = path[1:]
        return Path(path)
    return Path(text)


class FileContentResolver:
    """Default resolver for plain paths and file:// URIs."""

    def open_input(self, ref: str) -> IO[bytes]:
        return open(to_local_path(ref), "rb")

    def open_output(self, ref: str) -> IO[bytes]:
        path = to_local_path(ref)
        if path.parent and not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        return open(path, "wb")
