"""
Core data structures for the releasemirror reconciliation engine.

Release and asset records are rebuilt from the API on every fetch and never
persisted; the mirror tree on disk is the only state that outlives a run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, List, Union

Pathish = Union[str, Path]

if TYPE_CHECKING:
    from .filters import AssetFilter, ReleaseFilter


@dataclass(frozen=True)
class AssetRecord:
    """Represents a downloadable file belonging to a release."""

    name: str
    """File name the asset is stored under inside its release directory"""

    download_url: str
    """Direct URL to download the asset"""


@dataclass
class ReleaseRecord:
    """A published release, or a tag synthesized into release shape."""

    tag_name: str
    """Directory name of the release under its repository (e.g. 'v2.7.8' or 'tag_v2.7.8')"""

    published_at: datetime
    """Timezone-aware publish time; fetch time for tag-derived records"""

    assets: List[AssetRecord] = field(default_factory=list)
    """Assets in API order, followed by the synthetic source archives"""


@dataclass(frozen=True)
class RepositoryPolicy:
    """Mirroring policy for one configured repository."""

    path: str
    """Repository identifier in `owner/name` form"""

    release_filter: "ReleaseFilter"
    asset_filter: "AssetFilter"
    include_tags: bool = False
