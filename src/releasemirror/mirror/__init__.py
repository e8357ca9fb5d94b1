"""
releasemirror reconciliation engine

Core Components:
- interfaces: Release, asset, and repository policy records
- filters: Release and asset filter variants and their evaluation
- github_source: Paginated release/tag listings from the GitHub API
- storage: The on-disk mirror tree
- reconciler: Per-repository reconciliation of the tree against the listing
- orchestrator: Whole-run sequencing over configured repositories
"""

from .filters import asset_required, release_required
from .github_source import GithubReleaseSource
from .interfaces import AssetRecord, ReleaseRecord, RepositoryPolicy
from .reconciler import ReconcileSummary, Reconciler
from .storage import Storage

__all__ = [
    # Records
    "AssetRecord",
    "ReleaseRecord",
    "RepositoryPolicy",
    # Filters
    "asset_required",
    "release_required",
    # Components
    "GithubReleaseSource",
    "Storage",
    "Reconciler",
    "ReconcileSummary",
]
