"""File Watcher component for monitoring the screenshot directory."""

import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class EventKind(enum.Enum):
    CREATE = "create"
    MODIFY = "modify"
    REMOVE = "remove"
    OTHER = "other"


_KIND_BY_EVENT_TYPE = {
    'created': EventKind.CREATE,
    'modified': EventKind.MODIFY,
    'deleted': EventKind.REMOVE,
}


@dataclass(frozen=True)
class FileEvent:
    """A raw filesystem event as reported by the OS."""
    kind: EventKind
    paths: tuple[Path, ...] = ()
    
    @property
    def is_actionable(self) -> bool:
        return self.kind is EventKind.CREATE and len(self.paths) > 0
    
    @classmethod
    def from_watchdog(cls, event: FileSystemEvent) -> "FileEvent":
        """Translate a watchdog event without filtering it."""
        kind = _KIND_BY_EVENT_TYPE.get(event.event_type, EventKind.OTHER)
        paths = [Path(os.fsdecode(event.src_path))]
        dest_path = getattr(event, 'dest_path', '')
        if dest_path:
            paths.append(Path(os.fsdecode(dest_path)))
        return cls(kind=kind, paths=tuple(paths))


EventSink = Callable[[FileEvent], None]


class WatchSetupFailed(Exception):
    """Exception raised when the directory watch cannot be established."""
    pass


class DirectoryWatcher(FileSystemEventHandler):
    """Forward every native event of one directory to a sink.
    
    The watchdog observer runs the blocking watch loop on its own thread;
    the sink is called from that thread in the order events are reported.
    """
    
    def __init__(self) -> None:
        super().__init__()
        self._observer: Observer | None = None
        self._directory: Path | None = None
        self._sink: EventSink | None = None
    
    @property
    def directory(self) -> Path | None:
        return self._directory
    
    @property
    def is_alive(self) -> bool:
        return self._observer is not None and self._observer.is_alive()
    
    def start(self, directory: str | Path, sink: EventSink) -> None:
        """Start monitoring a directory, non-recursively.
        
        Args:
            directory: Directory to monitor.
            sink: Callable receiving each FileEvent.
        
        Raises:
            WatchSetupFailed: If the directory cannot be watched.
        """
        dir_path = Path(directory).expanduser()
        if not dir_path.is_dir():
            raise WatchSetupFailed(f"Directory does not exist: {dir_path}")
        
        self._directory = dir_path
        self._sink = sink
        
        observer = Observer()
        try:
            observer.schedule(self, str(dir_path), recursive=False)
            observer.start()
        except OSError as e:
            raise WatchSetupFailed(f"Failed to watch {dir_path}: {e}") from e
        
        self._observer = observer
        logger.info(f"Monitoring: {dir_path}")
    
    def stop(self) -> None:
        """Stop the observer thread and wait for it to exit."""
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=5.0)
    
    def on_any_event(self, event: FileSystemEvent) -> None:
        """Handle every event reported by watchdog.
        
        Args:
            event: File system event from watchdog.
        """
        if self._is_watch_target_gone(event):
            logger.error(f"Watched directory is no longer reachable: {self._directory}")
            if self._observer is not None:
                # Called from the observer thread, so it must not be joined here.
                self._observer.stop()
            return
        
        if self._sink is None:
            return
        
        file_event = FileEvent.from_watchdog(event)
        try:
            self._sink(file_event)
        except Exception as e:
            logger.error(f"Failed to hand off event {file_event}: {e}")
    
    def _is_watch_target_gone(self, event: FileSystemEvent) -> bool:
        if event.event_type != 'deleted' or not event.is_directory:
            return False
        if self._directory is None:
            return False
        return Path(os.fsdecode(event.src_path)) == self._directory
