"""
Mirror run orchestration

Sequences a full mirror run: storage initialization, then one reconciliation
pass per configured repository, then a run summary.
"""

import time
from typing import List, Optional

from releasemirror import log_utils
from releasemirror.config import MirrorConfig, load_config
from releasemirror.log_utils import logger

from .reconciler import ReconcileSummary, Reconciler
from .storage import Storage


class MirrorOrchestrator:
    """
    Runs every configured repository through the reconciler, strictly one after another.

    Storage failures at startup are fatal and propagate as StorageError.
    Everything after that is contained per repository by the Reconciler.
    """

    def __init__(self, config: MirrorConfig):
        self.config = config
        self.summaries: List[ReconcileSummary] = []

    def run(self) -> List[ReconcileSummary]:
        """
        Reconcile all configured repositories.

        Returns:
            List[ReconcileSummary]: One summary per repository, in config order.

        Raises:
            StorageError: If the storage root can't be created or cleaned.
        """
        start_time = time.time()
        storage = Storage.init(self.config.storage)
        reconciler = Reconciler(
            storage,
            self.config.create_source(),
            download_timeout=self.config.download_timeout,
            download_retries=self.config.download_retries,
        )

        logger.info(
            f"Mirroring {len(self.config.repositories)} repositories into {storage.root}"
        )
        self.summaries = []
        for policy in self.config.repositories:
            self.summaries.append(reconciler.reconcile_repository(policy))

        self._log_run_summary(start_time)
        return self.summaries

    def _log_run_summary(self, start_time: float) -> None:
        elapsed = time.time() - start_time
        downloaded = sum(s.downloaded for s in self.summaries)
        removed = sum(s.removed_assets + s.removed_releases for s in self.summaries)
        failed = sum(s.failed for s in self.summaries)
        failed_repos = [s.repository for s in self.summaries if s.fetch_failed]

        logger.info(
            f"Mirror run completed in {elapsed:.1f}s: {downloaded} downloaded, "
            f"{removed} removed, {failed} failed"
        )
        if failed_repos:
            logger.warning(
                f"Release listing failed for: {', '.join(failed_repos)}"
            )


def configure_logging(config: MirrorConfig, level_override: Optional[str] = None) -> None:
    level = level_override or config.log_level
    if level:
        log_utils.set_log_level(level)
    if config.log_dir:
        log_utils.add_file_logging(config.log_dir, level or "INFO")
    if config.syslog:
        log_utils.add_syslog_logging(level_name=level or "INFO")


def run_mirror(
    config_path: str, log_level: Optional[str] = None
) -> List[ReconcileSummary]:
    """
    Load `config_path`, set up logging from it, and run a full mirror pass.

    Raises:
        ConfigurationError: If the config can't be read or validated.
        StorageError: If the storage root is unusable.
    """
    config = load_config(config_path)
    configure_logging(config, log_level)
    try:
        return MirrorOrchestrator(config).run()
    finally:
        log_utils.shutdown_logging()
