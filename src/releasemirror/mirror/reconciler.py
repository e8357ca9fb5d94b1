"""
Repository reconciliation

Brings one repository's directory in the mirror tree in line with its
filtered release listing. Failures are contained at the narrowest level: a
listing failure skips the repository, while a bad tag, a failed delete, or a
failed download skips only that item.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from releasemirror.constants import DEFAULT_DOWNLOAD_RETRIES, DOWNLOAD_TIMEOUT
from releasemirror.exceptions import (
    DownloadError,
    PathValidationError,
    ReleaseListingError,
)
from releasemirror.log_utils import logger as default_logger
from releasemirror.utils import open_download_stream

from .filters import asset_required, release_required
from .github_source import GithubReleaseSource
from .interfaces import AssetRecord, ReleaseRecord, RepositoryPolicy
from .storage import Storage

if TYPE_CHECKING:
    from releasemirror.config import MirrorConfig


@dataclass
class ReconcileSummary:
    """Counters for one repository pass."""

    repository: str
    fetch_failed: bool = False
    releases: int = 0
    filtered_releases: int = 0
    removed_releases: int = 0
    rejected: int = 0
    downloaded: int = 0
    present: int = 0
    removed_assets: int = 0
    failed: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.downloaded or self.removed_assets or self.removed_releases)


class Reconciler:
    """
    Reconciles repositories against their policies, one release and one asset at a time.

    Per release:
    - tag names that can't be a directory name are logged and skipped
    - filtered-out releases have their directory removed if it exists
    - required releases get missing required assets downloaded and
      present-but-filtered assets removed; existing files are never re-fetched
    """

    def __init__(
        self,
        storage: Storage,
        source: GithubReleaseSource,
        download_timeout: int = DOWNLOAD_TIMEOUT,
        download_retries: int = DEFAULT_DOWNLOAD_RETRIES,
        logger: Optional[logging.Logger] = None,
    ):
        self.storage = storage
        self.source = source
        self.download_timeout = download_timeout
        self.download_retries = download_retries
        self.logger = logger or default_logger

    def reconcile_repository(self, policy: RepositoryPolicy) -> ReconcileSummary:
        """
        Run one reconciliation pass for `policy`.

        Never raises for listing, filesystem, or download failures; they are
        logged and reflected in the returned summary.
        """
        summary = ReconcileSummary(repository=policy.path)
        self.logger.info(f"Processing repository {policy.path!r}")

        try:
            releases = self.source.fetch_aggregated(policy.path, policy.include_tags)
        except ReleaseListingError as e:
            self.logger.critical(
                f"Failed to get releases list for {policy.path}: {e}"
            )
            summary.fetch_failed = True
            return summary

        for release in releases:
            summary.releases += 1
            self._reconcile_release(policy, release, summary)

        self.logger.info(
            f"Finished {policy.path}: {summary.downloaded} downloaded, "
            f"{summary.present} present, {summary.removed_assets} assets and "
            f"{summary.removed_releases} releases removed, {summary.failed} failed"
        )
        return summary

    def _reconcile_release(
        self, policy: RepositoryPolicy, release: ReleaseRecord, summary: ReconcileSummary
    ) -> None:
        self.logger.debug(f"Processing release {release.tag_name!r}")
        try:
            release_dir = self.storage.path_for(policy.path, release.tag_name)
        except PathValidationError:
            self.logger.warning(
                f"Release {release.tag_name!r} can't be mapped to a directory name. Skipping."
            )
            summary.rejected += 1
            return

        if not release_required(policy.release_filter, release):
            self.logger.debug(f"Skipping release {release.tag_name!r} by filter")
            summary.filtered_releases += 1
            try:
                present = release_dir.exists() or release_dir.is_symlink()
            except OSError as e:
                self._lookup_failed(release_dir, e, summary)
                return
            if present:
                self.logger.info(f"Cleaning up unwanted release {release.tag_name!r}")
                if self.storage.remove_tree(release_dir):
                    summary.removed_releases += 1
                else:
                    summary.failed += 1
            return

        for asset in release.assets:
            self._reconcile_asset(policy, release, asset, summary)

    def _lookup_failed(self, path, error: OSError, summary: ReconcileSummary) -> None:
        self.logger.warning(f"Can't inspect {path}, skipping: {error}")
        summary.failed += 1

    def _reconcile_asset(
        self,
        policy: RepositoryPolicy,
        release: ReleaseRecord,
        asset: AssetRecord,
        summary: ReconcileSummary,
    ) -> None:
        try:
            destination = self.storage.path_for(policy.path, release.tag_name, asset.name)
        except PathValidationError:
            self.logger.warning(
                f"Asset {asset.name!r} of release {release.tag_name!r} has an unsafe name. Skipping."
            )
            summary.rejected += 1
            return

        try:
            downloaded = destination.exists()
            present = downloaded or destination.is_symlink()
        except OSError as e:
            self._lookup_failed(destination, e, summary)
            return

        if not asset_required(policy.asset_filter, asset):
            if present:
                self.logger.info(f"Cleaning up unwanted asset {destination}")
                if self.storage.remove_file(destination):
                    summary.removed_assets += 1
                else:
                    summary.failed += 1
            return

        if downloaded:
            self.logger.debug(f"Asset {destination} already downloaded, skipping")
            summary.present += 1
            return

        self.logger.info(f"Downloading {asset.download_url}")
        try:
            with open_download_stream(
                asset.download_url,
                timeout=self.download_timeout,
                retries=self.download_retries,
            ) as chunks:
                size = self.storage.stage_and_persist(destination, chunks)
        except (DownloadError, OSError) as e:
            self.logger.warning(
                f"Failed to download {asset.download_url}, skipping: {e}"
            )
            summary.failed += 1
            return

        summary.downloaded += 1
        self.logger.info(f"Downloaded: {destination.name} ({size} bytes)")


def reconcile_repository(
    policy: RepositoryPolicy, storage: Storage, config: "MirrorConfig"
) -> ReconcileSummary:
    """Reconcile a single repository using the source and download settings from `config`."""
    reconciler = Reconciler(
        storage,
        config.create_source(),
        download_timeout=config.download_timeout,
        download_retries=config.download_retries,
        logger=storage.logger,
    )
    return reconciler.reconcile_repository(policy)
