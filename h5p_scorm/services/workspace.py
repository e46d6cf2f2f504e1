"""
Workspace Manager

Hands out one private set of working directories per conversion request
and removes them again when the request is over.

Layout under the working-directory root::

    <root>/downloads_tmp/<token>   uploaded archive staging
    <root>/workspace/<token>       extracted H5P content
    <root>/temp/<token>            SCORM package assembly
    <root>/output/<token>          finished zip

Tokens are generated per request, so two uploads sharing a filename never
share a path. The root itself belongs to the process: it is created by
``init_root`` at startup and wiped by ``teardown_root`` at shutdown.
"""

import logging
import re
import shutil
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

from ..exceptions import WorkspaceError
from ..utils.validation import sanitize_upload_name

logger = logging.getLogger(__name__)

UPLOAD_AREA = "downloads_tmp"
EXTRACTION_AREA = "workspace"
ASSEMBLY_AREA = "temp"
OUTPUT_AREA = "output"
AREAS = (UPLOAD_AREA, EXTRACTION_AREA, ASSEMBLY_AREA, OUTPUT_AREA)

_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


@dataclass
class Workspace:
    """Directories owned by a single conversion request"""
    token: str
    upload_dir: Path
    extraction_dir: Path
    assembly_dir: Path
    output_dir: Path
    released: bool = field(default=False, compare=False)

    @property
    def directories(self) -> Tuple[Path, Path, Path, Path]:
        return (
            self.upload_dir,
            self.extraction_dir,
            self.assembly_dir,
            self.output_dir,
        )


class WorkspaceManager:
    """Allocates and reclaims request-scoped workspaces under one root"""

    def __init__(self, root: Path):
        self.root = Path(root)
        self._lock = threading.Lock()
        self._active: Dict[str, Workspace] = {}

    def area(self, name: str) -> Path:
        return self.root / name

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    def init_root(self) -> None:
        """Create the working-directory root and its four areas."""
        try:
            for name in AREAS:
                self.area(name).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Cannot create working directory %s: %s", self.root, e)
            raise WorkspaceError(f"Cannot create working directory {self.root}: {e}") from e
        logger.info("Working directory ready at %s", self.root)

    def teardown_root(self) -> None:
        """Remove the whole working-directory tree (process shutdown)."""
        with self._lock:
            self._active.clear()
        try:
            shutil.rmtree(self.root)
            logger.info("Removed working directory %s", self.root)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Failed to remove working directory %s: %s", self.root, e)

    @staticmethod
    def new_token(filename: Optional[str] = None) -> str:
        """Request-unique token: sanitized upload stem plus a random suffix."""
        return f"{sanitize_upload_name(filename)}-{uuid.uuid4().hex}"

    def allocate(self, token: str) -> Workspace:
        """
        Create the four directories for ``token``.

        Leftovers from an earlier, no longer active workspace with the same
        token are cleared first.

        Raises:
            WorkspaceError: token malformed or already active, or the
                filesystem refused to create a directory
        """
        if not token or not _TOKEN_PATTERN.match(token):
            raise WorkspaceError(f"Invalid workspace token: {token!r}")

        workspace = Workspace(
            token=token,
            upload_dir=self.area(UPLOAD_AREA) / token,
            extraction_dir=self.area(EXTRACTION_AREA) / token,
            assembly_dir=self.area(ASSEMBLY_AREA) / token,
            output_dir=self.area(OUTPUT_AREA) / token,
        )

        with self._lock:
            if token in self._active:
                raise WorkspaceError(f"Workspace token already in use: {token}")
            self._active[token] = workspace

        try:
            for directory in workspace.directories:
                if directory.exists():
                    shutil.rmtree(directory)
                directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Workspace allocation failed for %s: %s", token, e)
            self.release(workspace)
            raise WorkspaceError(f"Cannot allocate workspace {token}: {e}") from e

        logger.debug("Allocated workspace %s", token)
        return workspace

    def release(self, workspace: Workspace) -> bool:
        """
        Remove every directory of ``workspace``.

        Safe to call repeatedly and from several threads: the directories
        are removed by the first call only, later calls return ``False``.
        Removal failures are logged and never raised.
        """
        with self._lock:
            if workspace.released:
                return False
            workspace.released = True
            if self._active.get(workspace.token) is workspace:
                del self._active[workspace.token]

        for directory in workspace.directories:
            try:
                shutil.rmtree(directory)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error(
                    "Failed to remove %s for workspace %s: %s",
                    directory, workspace.token, e,
                )
        logger.debug("Released workspace %s", workspace.token)
        return True

    @contextmanager
    def scoped(self, token: str) -> Iterator[Workspace]:
        """Allocate a workspace that is released on every exit path."""
        workspace = self.allocate(token)
        try:
            yield workspace
        finally:
            self.release(workspace)
