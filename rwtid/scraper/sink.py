from __future__ import annotations

"""Append-only writer for the incidents output file."""

from pathlib import Path
from typing import Optional, TextIO

from .error_codes import AlreadyExistsError
from .parser import IncidentRecord


class IncidentSink:
    """Own the output file handle for the lifetime of a run.

    Rows are written one per call and flushed immediately, so a crash loses
    at most the row being written. The format is not quoted CSV: commas are
    removed from field content and fields are joined with bare commas.
    """

    def __init__(self, path: Path, handle: TextIO) -> None:
        self.path = Path(path)
        self._handle: Optional[TextIO] = handle
        self.count = 0

    @classmethod
    def open(cls, path: Path, *, overwrite_guard: bool = False) -> "IncidentSink":
        path = Path(path)
        if overwrite_guard and path.exists():
            raise AlreadyExistsError(f"{path} file already exists", path=str(path))
        path.parent.mkdir(parents=True, exist_ok=True)
        return cls(path, path.open("w", encoding="utf-8"))

    @property
    def closed(self) -> bool:
        return self._handle is None

    def append(self, record: IncidentRecord) -> None:
        if self._handle is None:
            raise ValueError(f"append to closed sink {self.path}")
        self._handle.write(record.as_line() + "\n")
        self._handle.flush()
        self.count += 1

    def close(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        handle.flush()
        handle.close()

    def __enter__(self) -> "IncidentSink":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()


__all__ = ["IncidentSink"]
