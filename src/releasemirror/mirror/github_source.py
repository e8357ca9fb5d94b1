"""
GitHub Release Source

This module pages through a repository's release and tag listings on the
GitHub API and normalizes both into ReleaseRecord objects.
"""

import json
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import requests  # type: ignore[import-untyped]

from releasemirror.constants import (
    GITHUB_API_TIMEOUT,
    GITHUB_API_URL,
    LISTING_MAX_PAGES,
    LISTING_PAGE_SIZE,
    PAGE_REQUEST_DELAY,
    RELEASES_ENDPOINT,
    TAG_RECORD_PREFIX,
    TAGS_ENDPOINT,
    TARBALL_SUFFIX,
    ZIPBALL_SUFFIX,
)
from releasemirror.exceptions import ReleaseListingError
from releasemirror.log_utils import logger
from releasemirror.utils import make_github_api_request

from .interfaces import AssetRecord, ReleaseRecord


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a GitHub ISO 8601 timestamp (e.g. `2024-05-01T12:00:00Z`) into an aware datetime.

    Raises:
        ValueError: If the value is not a string or is not a valid timestamp.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"invalid timestamp {value!r}")
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def source_archive_assets(
    name: str, tarball_url: Any, zipball_url: Any
) -> List[AssetRecord]:
    """Build the `<name>.tar.gz` / `<name>.zip` source-archive assets, skipping missing URLs."""
    assets = []
    for suffix, url in ((TARBALL_SUFFIX, tarball_url), (ZIPBALL_SUFFIX, zipball_url)):
        if isinstance(url, str) and url:
            assets.append(AssetRecord(name=f"{name}{suffix}", download_url=url))
    return assets


def create_release_from_github_data(release_data: Dict[str, Any]) -> ReleaseRecord:
    """
    Create a ReleaseRecord from GitHub API release data.

    Published binaries come first, in API order, followed by the tarball and
    zipball source archives of the release's tag.

    Parameters:
        release_data (Dict[str, Any]): Raw release object from the releases endpoint.

    Returns:
        ReleaseRecord: The normalized release.

    Raises:
        ValueError: If `tag_name`, the timestamps, or the asset list are malformed.
    """
    tag_name = release_data.get("tag_name")
    if not isinstance(tag_name, str) or not tag_name:
        raise ValueError("release without a tag_name")

    # Drafts have no published_at
    published_at = parse_timestamp(
        release_data.get("published_at") or release_data.get("created_at")
    )

    assets_data = release_data.get("assets") or []
    if not isinstance(assets_data, list):
        raise ValueError(f"release {tag_name} has a malformed assets field")

    assets: List[AssetRecord] = []
    for asset_data in assets_data:
        if not isinstance(asset_data, dict):
            raise ValueError(f"release {tag_name} has a malformed asset entry")
        name = asset_data.get("name")
        url = asset_data.get("browser_download_url")
        if not isinstance(name, str) or not isinstance(url, str):
            raise ValueError(f"release {tag_name} has an asset without name or URL")
        assets.append(AssetRecord(name=name, download_url=url))

    assets.extend(
        source_archive_assets(
            tag_name, release_data.get("tarball_url"), release_data.get("zipball_url")
        )
    )
    return ReleaseRecord(tag_name=tag_name, published_at=published_at, assets=assets)


def create_release_from_github_tag(
    tag_data: Dict[str, Any], fetched_at: datetime
) -> ReleaseRecord:
    """
    Synthesize a ReleaseRecord from a GitHub tag object.

    Tags carry no publish time, so the record is stamped with `fetched_at`.
    The record's tag name is prefixed with `tag_` so it never collides with a
    real release; the archive assets keep the bare tag name.

    Raises:
        ValueError: If the tag has no name.
    """
    name = tag_data.get("name")
    if not isinstance(name, str) or not name:
        raise ValueError("tag without a name")

    return ReleaseRecord(
        tag_name=f"{TAG_RECORD_PREFIX}{name}",
        published_at=fetched_at,
        assets=source_archive_assets(
            name, tag_data.get("tarball_url"), tag_data.get("zipball_url")
        ),
    )


def release_to_dict(release: ReleaseRecord) -> Dict[str, Any]:
    """Render a ReleaseRecord in the GitHub-like shape printed by `list-releases`."""
    return {
        "tag_name": release.tag_name,
        "published_at": release.published_at.isoformat(),
        "assets": [
            {"name": asset.name, "browser_download_url": asset.download_url}
            for asset in release.assets
        ],
    }


def listing_to_json(releases: List[ReleaseRecord], indent: Optional[int] = None) -> str:
    return json.dumps([release_to_dict(r) for r in releases], indent=indent)


class GithubReleaseSource:
    """
    Paginated release and tag listings for GitHub repositories.

    Pages are requested sequentially with a fixed pause between them. Paging
    stops at the first empty page or at `max_pages`. Any failed or
    undecodable page raises ReleaseListingError and discards what was
    collected so far.

    Usage:
        source = GithubReleaseSource(github_token=token)
        releases = source.fetch_aggregated("owner/repo", include_tags=True)
    """

    def __init__(
        self,
        api_url: str = GITHUB_API_URL,
        github_token: Optional[str] = None,
        allow_env_token: bool = True,
        page_size: int = LISTING_PAGE_SIZE,
        max_pages: int = LISTING_MAX_PAGES,
        page_delay: float = PAGE_REQUEST_DELAY,
        timeout: int = GITHUB_API_TIMEOUT,
    ):
        self.api_url = api_url.rstrip("/")
        self.github_token = github_token
        self.allow_env_token = allow_env_token
        self.page_size = page_size
        self.max_pages = max_pages
        self.page_delay = page_delay
        self.timeout = timeout

    def fetch_releases(self, repo_path: str) -> List[ReleaseRecord]:
        """
        Fetch every published release of `repo_path`, newest first.

        Raises:
            ReleaseListingError: If any page fails to download or decode.
        """
        url = self.api_url + RELEASES_ENDPOINT.format(path=repo_path)
        return self._fetch_all(url, create_release_from_github_data)

    def fetch_tags(self, repo_path: str) -> List[ReleaseRecord]:
        """
        Fetch every tag of `repo_path` as a synthesized ReleaseRecord.

        Raises:
            ReleaseListingError: If any page fails to download or decode.
        """
        url = self.api_url + TAGS_ENDPOINT.format(path=repo_path)
        fetched_at = datetime.now(timezone.utc)
        return self._fetch_all(
            url, lambda tag: create_release_from_github_tag(tag, fetched_at)
        )

    def fetch_aggregated(
        self, repo_path: str, include_tags: bool = False
    ) -> List[ReleaseRecord]:
        """Releases first, then tags when `include_tags` is set."""
        records = self.fetch_releases(repo_path)
        if include_tags:
            records.extend(self.fetch_tags(repo_path))
        return records

    def _fetch_page(self, url: str, page: int) -> List[Any]:
        params = {"per_page": self.page_size, "page": page}
        try:
            response = make_github_api_request(
                url,
                self.github_token,
                allow_env_token=self.allow_env_token,
                params=params,
                timeout=self.timeout,
            )
            data = response.json()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise ReleaseListingError(
                f"Failed to fetch page {page} of {url}",
                endpoint=url,
                status_code=status,
                details=str(e),
            ) from e
        except (requests.RequestException, json.JSONDecodeError, ValueError) as e:
            raise ReleaseListingError(
                f"Failed to fetch page {page} of {url}", endpoint=url, details=str(e)
            ) from e

        if not isinstance(data, list):
            raise ReleaseListingError(
                f"Unexpected response for page {page} of {url}",
                endpoint=url,
                details=f"expected a JSON array, got {type(data).__name__}",
            )
        return data

    def _fetch_all(
        self, url: str, parse_item: Callable[[Dict[str, Any]], ReleaseRecord]
    ) -> List[ReleaseRecord]:
        records: List[ReleaseRecord] = []
        for page in range(1, self.max_pages + 1):
            if page > 1:
                time.sleep(self.page_delay)

            items = self._fetch_page(url, page)
            if not items:
                logger.debug(f"Listing {url} ended at empty page {page}")
                return records

            for item in items:
                if not isinstance(item, dict):
                    raise ReleaseListingError(
                        f"Malformed entry on page {page} of {url}",
                        endpoint=url,
                        details=f"expected an object, got {type(item).__name__}",
                    )
                try:
                    records.append(parse_item(item))
                except (KeyError, TypeError, ValueError) as e:
                    raise ReleaseListingError(
                        f"Malformed entry on page {page} of {url}",
                        endpoint=url,
                        details=str(e),
                    ) from e

        logger.warning(
            f"Stopped paging {url} after {self.max_pages} pages; listing may be incomplete"
        )
        return records
