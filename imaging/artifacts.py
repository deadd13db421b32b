# =============================================================================
# MCP-VL Image Analysis - Temporary Artifact Manager
# =============================================================================
# Owns the dedicated temp directory that clipboard captures and downloads are
# written into.  Hands out collision-free file names and deletes files once
# the pipeline is done with them.  Deletion failures are logged and never
# escalated.
# =============================================================================

import logging
import os
import shutil
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from shared.schemas import Provenance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AcquiredImage:
    """
    Raw image bytes on disk plus where they came from.

    Attributes:
        path:            Location of the raw bytes.
        provenance:      file, clipboard or url.
        is_temporary:    True when the pipeline created the file and must
                         delete it after analysis.
        detected_format: Format reported by a validation decode, when one ran.
    """

    path: Path
    provenance: Provenance
    is_temporary: bool = False
    detected_format: Optional[str] = None


class TempArtifactManager:
    """
    Bookkeeping for files the pipeline creates solely to ferry bytes.

    Args:
        root: Dedicated temp directory; created on demand with mode 0755.
    """

    def __init__(self, root: Union[str, Path]):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def ensure_dir(self) -> Path:
        """Create the temp directory if needed and return it."""
        self._root.mkdir(mode=0o755, parents=True, exist_ok=True)
        return self._root

    def new_path(self, prefix: str, suffix: str, tag: Optional[str] = None) -> Path:
        """
        Return a fresh, unused path inside the temp directory.

        Names look like ``<prefix>_<ms timestamp>_<tag>.<suffix>``.  When no
        tag is given a random hex token is used, so concurrent invocations
        within the same millisecond still get distinct files.
        """
        self.ensure_dir()
        timestamp = int(time.time() * 1000)
        tag = tag or uuid.uuid4().hex[:8]
        return self._root / f"{prefix}_{timestamp}_{tag}.{suffix.lstrip('.')}"

    def release(self, path: Union[str, Path]) -> None:
        """
        Delete one temp file.  Never raises.

        Args:
            path: File previously handed out by ``new_path``.
        """
        try:
            os.unlink(path)
            logger.info("Temp file removed: %s", path)
        except FileNotFoundError:
            logger.debug("Temp file already gone: %s", path)
        except OSError as exc:
            logger.warning("Failed to remove temp file %s: %s", path, exc)

    def purge(self) -> bool:
        """
        Delete the entire temp directory (out-of-band cleanup).

        Returns:
            True if the directory no longer exists afterwards.
        """
        try:
            shutil.rmtree(self._root)
            logger.info("Temp directory removed: %s", self._root)
        except FileNotFoundError:
            logger.debug("Temp directory does not exist: %s", self._root)
        except OSError as exc:
            logger.warning("Failed to remove temp directory %s: %s", self._root, exc)
        return not self._root.exists()
