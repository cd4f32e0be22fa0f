# Temp Resources - Temp file lifecycle for Receipt Print Agent
# Files are deleted right after use, or after a grace delay when deferred

import logging
import os
import tempfile
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, TypeVar

from .models import TempArtifact

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_GRACE_SECONDS = 30.0


class TempResourceTracker:
    """Creates uniquely-named temp files and guarantees their deletion"""

    def __init__(self, temp_dir: Optional[str] = None, prefix: str = 'receipt_',
                 grace_seconds: float = DEFAULT_GRACE_SECONDS):
        self.temp_dir = temp_dir or tempfile.gettempdir()
        self.prefix = prefix
        self.grace_seconds = grace_seconds
        self._artifacts: Dict[str, TempArtifact] = {}
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def create(self, content: bytes, suffix: str = '.pdf', owner: Optional[str] = None) -> TempArtifact:
        """Write content to a new temp file and start tracking it"""
        os.makedirs(self.temp_dir, exist_ok=True)
        # Timestamp plus random suffix keeps concurrent requests apart
        name = f"{self.prefix}{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}{suffix}"
        path = os.path.join(self.temp_dir, name)
        with open(path, 'xb') as f:
            f.write(content)

        artifact = TempArtifact(path=path, owner=owner)
        with self._lock:
            self._artifacts[path] = artifact
        logger.debug(f"Temp file created: {path} ({len(content)} bytes)")
        return artifact

    def delete(self, path: str) -> bool:
        """Delete a tracked file now; returns True if the file is gone"""
        with self._lock:
            self._artifacts.pop(path, None)
            timer = self._timers.pop(path, None)
        if timer:
            timer.cancel()

        try:
            os.remove(path)
            logger.debug(f"Temp file cleaned up: {path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to cleanup temp file {path}: {e}")
            return False
        return True

    def defer_delete(self, path: str, grace_seconds: Optional[float] = None) -> None:
        """Delete the file after the grace delay instead of now"""
        delay = self.grace_seconds if grace_seconds is None else grace_seconds
        timer = threading.Timer(delay, self.delete, args=(path,))
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(path, None)
            self._timers[path] = timer
        if previous:
            previous.cancel()
        timer.start()
        logger.debug(f"Temp file {path} scheduled for deletion in {delay}s")

    @contextmanager
    def temp_file(self, content: bytes, suffix: str = '.pdf', owner: Optional[str] = None,
                  defer: bool = False, grace_seconds: Optional[float] = None):
        """Context manager yielding the temp file path"""
        artifact = self.create(content, suffix=suffix, owner=owner)
        try:
            yield artifact.path
        finally:
            if defer:
                self.defer_delete(artifact.path, grace_seconds)
            else:
                self.delete(artifact.path)

    def with_temp_file(self, content: bytes, fn: Callable[[str], T], suffix: str = '.pdf',
                       owner: Optional[str] = None, defer: bool = False,
                       grace_seconds: Optional[float] = None) -> T:
        """Call fn(path) with a temp file that is removed on every exit path"""
        with self.temp_file(content, suffix=suffix, owner=owner, defer=defer,
                            grace_seconds=grace_seconds) as path:
            return fn(path)

    def pending(self) -> List[TempArtifact]:
        with self._lock:
            return list(self._artifacts.values())

    def shutdown(self) -> int:
        """Delete every file still tracked, including deferred ones"""
        pending = self.pending()
        for artifact in pending:
            self.delete(artifact.path)
        if pending:
            logger.info(f"Shutdown: removed {len(pending)} pending temp files")
        return len(pending)
