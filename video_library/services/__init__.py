"""Service layer implementations."""

from video_library.services.library_sync import (
    ALL_CATEGORIES,
    BatchAddResult,
    LibraryState,
    LogNotifier,
    Notifier,
    PendingKind,
    PendingOperation,
    VideoLibrarySync,
    VideoStats,
)
from video_library.services.selection import (
    SELECTION_KEY,
    FileSelectionStore,
    MemorySelectionStore,
    SelectionStore,
)
from video_library.services.sessions import SessionManager, session_cleanup_scheduler

__all__ = [
    # Library sync
    "ALL_CATEGORIES",
    "BatchAddResult",
    "LibraryState",
    "LogNotifier",
    "Notifier",
    "PendingKind",
    "PendingOperation",
    "VideoLibrarySync",
    "VideoStats",
    # Selection
    "SELECTION_KEY",
    "FileSelectionStore",
    "MemorySelectionStore",
    "SelectionStore",
    # Sessions
    "SessionManager",
    "session_cleanup_scheduler",
]
