"""
Local JSON File Storage Implementation

DESIGN DECISION: All slots live in ONE UTF-8 JSON document
({slot_key: slot_json_text}). Writes go to a temporary file in the
same directory which is then renamed over the original, so:
1. A multi-slot write is atomic - a crash leaves the old or the new file
2. Readers never see a half-written document
3. Vietnamese text is stored as-is (ensure_ascii=False)

TRADEOFFS:
- Every write rewrites the whole document (fine for personal data sizes)
- Two processes sharing the file race; the last writer wins
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Mapping, Optional, Union

import structlog

from fintrack.services.storage.interface import (
    QuotaExceededError,
    SlotStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class JsonFileSlotStorage(SlotStorageInterface):
    """
    Slots persisted to a single JSON file on disk.

    Args:
        path: File to read and write. Created on first write.
        max_bytes: Optional quota; writes producing a larger file are refused.
    """

    def __init__(
        self,
        path: Union[str, Path],
        max_bytes: Optional[int] = None,
    ):
        self._path = Path(path)
        self._max_bytes = max_bytes

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {self._path}: {e}")
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"Storage file {self._path} is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise StorageError(f"Storage file {self._path} does not hold a slot mapping")
        return data

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def keys(self) -> list[str]:
        return list(self._read_all())

    def set_many(self, values: Mapping[str, str]) -> None:
        slots = self._read_all()
        slots.update(values)
        payload = json.dumps(slots, ensure_ascii=False, indent=2).encode("utf-8")

        if self._max_bytes is not None and len(payload) > self._max_bytes:
            raise QuotaExceededError(
                f"Writing {', '.join(values)} would grow {self._path.name} to "
                f"{len(payload)} bytes (quota {self._max_bytes})"
            )

        directory = self._path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=directory,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "wb") as tmp:
                    tmp.write(payload)
                    tmp.flush()
                    os.fsync(tmp.fileno())
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {self._path}: {e}")

        logger.debug(
            "slots_written",
            path=str(self._path),
            slots=list(values),
            size_bytes=len(payload),
        )
