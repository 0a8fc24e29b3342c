"""Durable "current video" selection.

The selection survives restarts the way the browser app keeps
``currentVideoId`` in local storage. Keys are namespaced by owner unless
``namespace_by_owner`` is disabled, which reproduces a single profile-wide key.
"""

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

import structlog

logger = structlog.get_logger(__name__)

SELECTION_KEY = "currentVideoId"


class SelectionStore(ABC):
    """Key-value storage for the selected video id."""

    def __init__(self, namespace_by_owner: bool = True) -> None:
        self.namespace_by_owner = namespace_by_owner

    def key_for(self, owner_id: str) -> str:
        if self.namespace_by_owner:
            return f"{SELECTION_KEY}:{owner_id}"
        return SELECTION_KEY

    @abstractmethod
    def get(self, owner_id: str) -> Optional[str]:
        """Return the persisted video id, if any."""
        pass

    @abstractmethod
    def set(self, owner_id: str, video_id: str) -> None:
        """Persist a video id as the current selection."""
        pass

    @abstractmethod
    def clear(self, owner_id: str) -> None:
        """Remove the persisted selection."""
        pass


class MemorySelectionStore(SelectionStore):
    """Process-local selection store."""

    def __init__(self, namespace_by_owner: bool = True) -> None:
        super().__init__(namespace_by_owner)
        self._values: Dict[str, str] = {}

    def get(self, owner_id: str) -> Optional[str]:
        return self._values.get(self.key_for(owner_id))

    def set(self, owner_id: str, video_id: str) -> None:
        self._values[self.key_for(owner_id)] = video_id

    def clear(self, owner_id: str) -> None:
        self._values.pop(self.key_for(owner_id), None)

    def items(self) -> Dict[str, str]:
        return dict(self._values)


class FileSelectionStore(SelectionStore):
    """
    Selection store backed by a JSON object file.

    Writes go to a sibling temp file that is then renamed over the target, so
    a crash mid-write never leaves a truncated file. A missing or unreadable
    file reads as empty.
    """

    def __init__(self, path: Union[str, Path], namespace_by_owner: bool = True) -> None:
        """
        Initialize file selection store.

        Args:
            path: JSON file location (parent directories are created on write)
            namespace_by_owner: Store one key per owner
        """
        super().__init__(namespace_by_owner)
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("selection_file_unreadable", path=str(self.path), error=str(e))
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("selection_file_corrupt", path=str(self.path), error=str(e))
            return {}

        if not isinstance(data, dict):
            logger.warning("selection_file_corrupt", path=str(self.path), error="not a JSON object")
            return {}

        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def get(self, owner_id: str) -> Optional[str]:
        return self._read().get(self.key_for(owner_id))

    def set(self, owner_id: str, video_id: str) -> None:
        data = self._read()
        data[self.key_for(owner_id)] = video_id
        self._write(data)

    def clear(self, owner_id: str) -> None:
        data = self._read()
        if data.pop(self.key_for(owner_id), None) is not None:
            self._write(data)
