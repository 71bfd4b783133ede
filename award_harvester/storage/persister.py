"""JSON persistence for enriched records and category batches."""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel

from ..exceptions import FileSystemError
from ..models.awards import EnrichedRecord


DIRECTORY_MODE = 0o755
FILE_MODE = 0o644


def to_jsonable(value: Any) -> Any:
    """Convert records (and sequences of them) into plain JSON data."""
    if isinstance(value, EnrichedRecord):
        return value.to_payload()
    if isinstance(value, BaseModel):
        to_payload = getattr(value, "to_payload", None)
        if callable(to_payload):
            return to_payload()
        return value.model_dump(mode="json", by_alias=True, exclude_unset=True)
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return [to_jsonable(v) for v in value]
    return value


class JsonPersister:
    """Writes values as indented UTF-8 JSON, atomically."""

    def __init__(self, indent: int = 2):
        self.indent = indent
        self.files_written = 0

    def save(self, value: Any, path: str | Path) -> Path:
        """Write `value` to `path`, creating parent directories and overwriting.

        The file is written to a temporary sibling and renamed into place, so
        `path` either holds the complete new content or is left untouched.

        Raises:
            FileSystemError: encoding or any I/O step failed
        """
        target = Path(path)
        try:
            data = to_jsonable(value)
            text = json.dumps(data, indent=self.indent, ensure_ascii=False) + "\n"
        except (TypeError, ValueError) as e:
            raise FileSystemError(
                f"Failed to encode {target.name}: {e}",
                file_path=str(target),
                operation="encode",
                cause=e,
            ) from e

        try:
            target.parent.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{target.stem}_", suffix=".json.tmp", dir=str(target.parent)
            )
        except OSError as e:
            raise FileSystemError(
                f"Failed to prepare {target}: {e}",
                file_path=str(target),
                operation="mkdir",
                cause=e,
            ) from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            # mkstemp creates the file owner-only.
            os.chmod(tmp_path, FILE_MODE)
            os.replace(tmp_path, target)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise FileSystemError(
                f"Failed to write {target}: {e}",
                file_path=str(target),
                operation="write",
                cause=e,
            ) from e

        self.files_written += 1
        logger.debug(f"Wrote {target}")
        return target
