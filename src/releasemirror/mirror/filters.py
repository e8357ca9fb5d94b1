"""
Release and asset filters.

Each filter kind is a closed set of small frozen dataclasses evaluated by one
pure function per kind. Evaluation does no I/O and cannot fail for a valid
variant; malformed patterns are rejected when the config is loaded.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import FrozenSet, Optional, Union

from .interfaces import AssetRecord, ReleaseRecord


@dataclass(frozen=True)
class AllowAll:
    """Accept every release or asset."""


@dataclass(frozen=True)
class DateRange:
    """Accept releases published within fixed, optional bounds (inclusive)."""

    min: Optional[datetime] = None
    max: Optional[datetime] = None


@dataclass(frozen=True)
class DateWindow:
    """
    Accept releases whose age falls within bounds relative to the current instant.

    `min_from_now` drops releases older than that span; `max_from_now` drops
    releases younger than that span (e.g. "only mirror releases at least 7 days old").
    """

    min_from_now: Optional[timedelta] = None
    max_from_now: Optional[timedelta] = None


@dataclass(frozen=True)
class FixedList:
    """Accept only releases whose tag name is listed."""

    names: FrozenSet[str]


@dataclass(frozen=True)
class Regex:
    """Accept releases whose tag name matches the pattern."""

    pattern: "re.Pattern[str]"


@dataclass(frozen=True)
class FileRegex:
    """Accept assets whose file name matches the pattern."""

    pattern: "re.Pattern[str]"


ReleaseFilter = Union[AllowAll, DateRange, DateWindow, FixedList, Regex]
AssetFilter = Union[AllowAll, FileRegex]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def release_required(
    release_filter: ReleaseFilter,
    release: ReleaseRecord,
    now: Optional[datetime] = None,
) -> bool:
    """
    Decide whether a release belongs in the mirror.

    Parameters:
        release_filter (ReleaseFilter): The repository's release filter.
        release (ReleaseRecord): The candidate release.
        now (Optional[datetime]): Reference instant for DateWindow; read from the clock at call time when omitted.

    Returns:
        bool: `True` if the release passes the filter.
    """
    if isinstance(release_filter, AllowAll):
        return True

    if isinstance(release_filter, DateRange):
        if release_filter.min is not None and release.published_at < release_filter.min:
            return False
        if release_filter.max is not None and release.published_at > release_filter.max:
            return False
        return True

    if isinstance(release_filter, DateWindow):
        current = now if now is not None else utc_now()
        if (
            release_filter.min_from_now is not None
            and current - release_filter.min_from_now > release.published_at
        ):
            return False
        if (
            release_filter.max_from_now is not None
            and current - release_filter.max_from_now < release.published_at
        ):
            return False
        return True

    if isinstance(release_filter, FixedList):
        return release.tag_name in release_filter.names

    if isinstance(release_filter, Regex):
        return release_filter.pattern.search(release.tag_name) is not None

    raise TypeError(f"Unsupported release filter: {release_filter!r}")


def asset_required(asset_filter: AssetFilter, asset: AssetRecord) -> bool:
    """Return `True` if the asset passes the repository's asset filter."""
    if isinstance(asset_filter, AllowAll):
        return True

    if isinstance(asset_filter, FileRegex):
        return asset_filter.pattern.search(asset.name) is not None

    raise TypeError(f"Unsupported asset filter: {asset_filter!r}")
