"""Per-run temporary file namespace

Every pipeline run writes its scratch files (audio container, per-segment
audio, downloaded clips, concat lists) into a private directory so that
concurrent runs never collide and a single cleanup removes everything.
"""

import logging
import shutil
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)


class RunWorkspace:
    """Scoped temporary directory owned by exactly one run"""

    def __init__(self, temp_root: Union[str, Path], run_id: Optional[str] = None):
        self.run_id = run_id or new_run_id()
        self.temp_root = Path(temp_root)
        self.directory = self.temp_root / f"run_{self.run_id}"
        self._files: List[Path] = []
        self._created = False
        self._closed = False

    def __enter__(self) -> "RunWorkspace":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()

    def path(self, name: str) -> Path:
        """Return a tracked path inside the workspace (file is not created)"""
        if self._closed:
            raise RuntimeError(f"Workspace {self.run_id} is already cleaned up")
        if not self._created:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._created = True
        file_path = self.directory / name
        self._files.append(file_path)
        return file_path

    def write_bytes(self, name: str, data: bytes) -> Path:
        file_path = self.path(name)
        file_path.write_bytes(data)
        return file_path

    @property
    def tracked_files(self) -> List[Path]:
        return list(self._files)

    def cleanup(self) -> None:
        """Delete every file of this run and the run directory itself"""
        if self._closed:
            return
        self._closed = True
        for file_path in self._files:
            try:
                file_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to delete {file_path}: {e}")
        if self._created and self.directory.exists():
            shutil.rmtree(self.directory, ignore_errors=True)
        logger.debug(f"Workspace {self.run_id} cleaned up ({len(self._files)} tracked files)")


def new_run_id() -> str:
    """Timestamp plus a random suffix, unique per run"""
    return f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"
