"""Change feed event models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from video_library.models.video import VideoRecord


class ChangeKind(str, Enum):
    """Kind of committed mutation delivered by the change feed."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """A single change notification for the videos table.

    ``record`` is the new row snapshot for inserts and updates. Deletes usually
    only carry the old primary key in ``old_id``.
    """

    kind: ChangeKind
    record: Optional[VideoRecord] = None
    old_id: Optional[str] = None

    @property
    def record_id(self) -> Optional[str]:
        """Id of the affected record."""
        if self.record is not None:
            return self.record.id
        return self.old_id

    @property
    def is_removal(self) -> bool:
        """True for deletes and for updates that deactivate the record."""
        if self.kind == ChangeKind.DELETE:
            return True
        return self.record is not None and not self.record.is_active
