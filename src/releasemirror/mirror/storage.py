"""
Mirror storage

Owns the mirror root: startup cleanup of interrupted downloads, safe path
mapping for repository/tag/asset names, crash-safe staging of new files, and
removal that never escapes the root.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterable, Optional

from releasemirror.constants import MIRRORED_FILE_PERMISSIONS, TEMP_FILE_PREFIX
from releasemirror.exceptions import PathValidationError, StorageError
from releasemirror.log_utils import logger as default_logger

from .interfaces import Pathish


def _sanitize_path_component(component: Optional[str]) -> Optional[str]:
    """
    Validate a single filesystem path component.

    Returns the component unchanged if it is a safe relative segment, or None
    when it is empty, "." or "..", absolute, contains a null byte, or contains a
    path separator.
    """
    if component is None:
        return None

    if not component.strip() or component in {".", ".."}:
        return None

    if os.path.isabs(component):
        return None

    if "\x00" in component:
        return None

    for separator in ("/", os.sep, os.altsep):
        if separator and separator in component:
            return None

    return component


def _is_within_base(real_base_dir: str, candidate: str) -> bool:
    try:
        return os.path.commonpath([real_base_dir, candidate]) == real_base_dir
    except ValueError:
        return False


class Storage:
    """
    The on-disk mirror tree rooted at `root`.

    Layout: `<root>/<owner>/<name>/<tag_name>/<asset_name>`. Files are staged
    as `<root>/.tmp*` and renamed into place, so the whole tree must live on
    one filesystem for the rename to stay atomic.
    """

    def __init__(self, root: Path, logger: Optional[logging.Logger] = None):
        self.root = root
        self.logger = logger or default_logger

    @classmethod
    def init(
        cls, root_path: Pathish, logger: Optional[logging.Logger] = None
    ) -> "Storage":
        """
        Create the mirror root if needed and remove temp files left by an interrupted run.

        Only files directly inside the root whose names start with the temp
        prefix are removed. A throwaway temp file is then created and removed to
        confirm the root accepts new files.

        Raises:
            StorageError: If the root cannot be created, scanned, cleaned, or written to.
        """
        log = logger or default_logger
        root = Path(root_path).expanduser()
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log.critical(f"Failed to create storage directory {root}: {e}")
            raise StorageError(
                "Failed to create storage directory", path=str(root), details=str(e)
            ) from e

        try:
            with os.scandir(root) as entries:
                for entry in entries:
                    if entry.name.startswith(TEMP_FILE_PREFIX) and entry.is_file(
                        follow_symlinks=False
                    ):
                        log.info(f"Removing stale temporary file {entry.path}")
                        os.remove(entry.path)
        except OSError as e:
            raise StorageError(
                "Failed to clean up storage directory", path=str(root), details=str(e)
            ) from e

        try:
            fd, check_path = tempfile.mkstemp(dir=root, prefix=TEMP_FILE_PREFIX)
            os.close(fd)
            os.remove(check_path)
        except OSError as e:
            log.critical(f"Storage directory {root} is not writable: {e}")
            raise StorageError(
                "Storage directory is not writable", path=str(root), details=str(e)
            ) from e

        return cls(root.resolve(), log)

    def repository_dir(self, repository: str) -> Path:
        """
        Map an `owner/name` repository path to its directory.

        Raises:
            PathValidationError: If any segment of the repository path is unsafe.
        """
        parts = repository.split("/")
        for part in parts:
            if _sanitize_path_component(part) is None:
                raise PathValidationError(
                    f"Unsafe repository path {repository!r}", path=repository
                )
        return self.root.joinpath(*parts)

    def path_for(
        self, repository: str, tag_name: str, asset_name: Optional[str] = None
    ) -> Path:
        """
        Map a release (and optionally one of its assets) to its location in the tree.

        Raises:
            PathValidationError: If the tag or asset name can't be used as a single path segment.
        """
        if _sanitize_path_component(tag_name) is None:
            raise PathValidationError(f"Unsafe release tag {tag_name!r}", path=tag_name)
        release_dir = self.repository_dir(repository) / tag_name
        if asset_name is None:
            return release_dir
        if _sanitize_path_component(asset_name) is None:
            raise PathValidationError(
                f"Unsafe asset name {asset_name!r}", path=asset_name
            )
        return release_dir / asset_name

    def stage_and_persist(self, destination: Pathish, chunks: Iterable[bytes]) -> int:
        """
        Write `chunks` to a temp file in the root, then atomically move it to `destination`.

        The file gets 0644 permissions and missing parent directories are
        created. On failure the destination is left untouched; the temp file is
        removed if possible and otherwise swept by the next `Storage.init`.

        Returns:
            int: Number of bytes written.

        Raises:
            OSError: If writing, chmod, directory creation, or the rename fails.
            DownloadError: Propagated unchanged from the chunk iterator.
        """
        destination = Path(destination)
        fd, temp_path = tempfile.mkstemp(dir=self.root, prefix=TEMP_FILE_PREFIX)
        written = 0
        try:
            with os.fdopen(fd, "wb") as temp_f:
                for chunk in chunks:
                    temp_f.write(chunk)
                    written += len(chunk)
            os.chmod(temp_path, MIRRORED_FILE_PERMISSIONS)
            destination.parent.mkdir(parents=True, exist_ok=True)
            os.replace(temp_path, destination)
        except BaseException:
            try:
                os.remove(temp_path)
            except OSError as e_rm:
                self.logger.debug(f"Leaving {temp_path} for startup cleanup: {e_rm}")
            raise
        return written

    def _check_removable(self, path: Path) -> bool:
        real_root = os.path.realpath(self.root)
        if os.path.islink(path):
            candidate = os.path.realpath(os.path.dirname(os.path.abspath(path)))
        else:
            candidate = os.path.realpath(path)
        if candidate == real_root or not _is_within_base(real_root, candidate):
            self.logger.warning(
                f"Skipping removal of {path} because it resolves outside the storage root"
            )
            return False
        return True

    def remove_file(self, path: Pathish) -> bool:
        """Remove one mirrored file; returns `False` (after logging) on refusal or error."""
        path = Path(path)
        if not self._check_removable(path):
            return False
        try:
            os.remove(path)
        except OSError as e:
            self.logger.warning(f"Failed to remove {path}: {e}")
            return False
        return True

    def remove_tree(self, path: Pathish) -> bool:
        """Recursively remove a release directory; returns `False` (after logging) on refusal or error."""
        path = Path(path)
        if not self._check_removable(path):
            return False
        try:
            if os.path.islink(path) or not path.is_dir():
                os.unlink(path)
            else:
                shutil.rmtree(path)
        except OSError as e:
            self.logger.warning(f"Failed to remove {path}: {e}")
            return False
        return True
