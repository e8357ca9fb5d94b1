"""
Configuration loading for releasemirror.

The config file is YAML (plain JSON also parses). Filters use externally
tagged variants: a bare string for variants without a payload, or a
single-key mapping for the rest:

    release_filter: AllowAll
    release_filter: {DateRange: {min: 2024-01-01T00:00:00Z}}
    release_filter: {DateWindow: {max_from_now: 7d}}
    release_filter: {FixedList: [v1.0, v1.1]}
    release_filter: {Regex: {pattern: '^v\\d+'}}
    asset_filter: {FileRegex: {pattern: '\\.deb$'}}
"""

import os
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

import platformdirs
import yaml

from releasemirror.constants import (
    APP_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_DOWNLOAD_RETRIES,
    DOWNLOAD_TIMEOUT,
    GITHUB_API_URL,
)
from releasemirror.exceptions import ConfigFileError, ConfigValidationError
from releasemirror.mirror.filters import (
    AllowAll,
    AssetFilter,
    DateRange,
    DateWindow,
    FileRegex,
    FixedList,
    Regex,
    ReleaseFilter,
)
from releasemirror.mirror.github_source import GithubReleaseSource
from releasemirror.mirror.interfaces import RepositoryPolicy

REPOSITORY_PATH_RX = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
DURATION_PART_RX = re.compile(r"(\d+(?:\.\d+)?)\s*([smhdw])", re.IGNORECASE)
DURATION_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


@dataclass
class MirrorConfig:
    """Validated contents of a mirror config file."""

    storage: str
    repositories: List[RepositoryPolicy] = field(default_factory=list)
    github_token: Optional[str] = None
    allow_env_token: bool = True
    api_url: str = GITHUB_API_URL
    log_level: Optional[str] = None
    log_dir: Optional[str] = None
    syslog: bool = False
    download_retries: int = DEFAULT_DOWNLOAD_RETRIES
    download_timeout: int = DOWNLOAD_TIMEOUT

    def create_source(self) -> GithubReleaseSource:
        return GithubReleaseSource(
            api_url=self.api_url,
            github_token=self.github_token,
            allow_env_token=self.allow_env_token,
        )


def default_config_path() -> str:
    """Return the platform-specific default config file location."""
    return os.path.join(platformdirs.user_config_dir(APP_NAME), CONFIG_FILE_NAME)


def parse_duration(value: Any) -> timedelta:
    """
    Parse a duration such as `90s`, `30m`, `24h`, `7d`, `2w` or `1d12h`.

    Bare numbers are taken as seconds.

    Raises:
        ValueError: If the value isn't a recognizable non-negative duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"negative duration {value!r}")
        return timedelta(seconds=value)
    if not isinstance(value, str):
        raise ValueError(f"invalid duration {value!r}")

    text = value.strip()
    if not text:
        raise ValueError("empty duration")

    total = timedelta()
    position = 0
    for match in DURATION_PART_RX.finditer(text):
        if text[position : match.start()].strip():
            raise ValueError(f"invalid duration {value!r}")
        unit = DURATION_UNITS[match.group(2).lower()]
        total += timedelta(**{unit: float(match.group(1))})
        position = match.end()
    if position == 0 or text[position:].strip():
        raise ValueError(f"invalid duration {value!r}")
    return total


def parse_datetime(value: Any) -> datetime:
    """
    Parse a config timestamp into an aware datetime.

    Accepts ISO 8601 strings and the datetime/date objects YAML produces for
    unquoted timestamps. Values without an offset are taken as local time.

    Raises:
        ValueError: If the value isn't a timestamp.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time())
    elif isinstance(value, str) and value.strip():
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise ValueError(f"invalid timestamp {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def _compile_pattern(payload: Any, where: str) -> "re.Pattern[str]":
    pattern = payload.get("pattern") if isinstance(payload, dict) else payload
    if not isinstance(pattern, str):
        raise ConfigValidationError(f"{where}: a 'pattern' string is required")
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigValidationError(
            f"{where}: invalid regular expression {pattern!r}", details=str(e)
        ) from e


def _split_variant(raw: Any, where: str) -> tuple:
    if raw is None:
        return "AllowAll", None
    if isinstance(raw, str):
        return raw, None
    if isinstance(raw, dict) and len(raw) == 1:
        ((name, payload),) = raw.items()
        return str(name), payload
    raise ConfigValidationError(
        f"{where}: expected a variant name or a single-key mapping, got {raw!r}"
    )


def _bounds(payload: Any, keys: tuple, parser, where: str) -> Dict[str, Any]:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ConfigValidationError(f"{where}: expected a mapping, got {payload!r}")
    unknown = set(payload) - set(keys)
    if unknown:
        raise ConfigValidationError(f"{where}: unknown keys {sorted(unknown)}")
    parsed = {}
    for key in keys:
        value = payload.get(key)
        if value is None:
            parsed[key] = None
            continue
        try:
            parsed[key] = parser(value)
        except ValueError as e:
            raise ConfigValidationError(f"{where}.{key}: {e}") from e
    return parsed


def parse_release_filter(raw: Any, where: str = "release_filter") -> ReleaseFilter:
    """
    Build a release filter from its config representation.

    Raises:
        ConfigValidationError: For unknown variants or malformed payloads.
    """
    name, payload = _split_variant(raw, where)

    if name == "AllowAll":
        return AllowAll()
    if name == "DateRange":
        return DateRange(**_bounds(payload, ("min", "max"), parse_datetime, where))
    if name == "DateWindow":
        return DateWindow(
            **_bounds(payload, ("min_from_now", "max_from_now"), parse_duration, where)
        )
    if name == "FixedList":
        names = payload.get("tags") if isinstance(payload, dict) else payload
        if not isinstance(names, list):
            raise ConfigValidationError(f"{where}: FixedList expects a list of tags")
        return FixedList(names=frozenset(str(n) for n in names))
    if name == "Regex":
        return Regex(pattern=_compile_pattern(payload, where))

    raise ConfigValidationError(f"{where}: unknown release filter {name!r}")


def parse_asset_filter(raw: Any, where: str = "asset_filter") -> AssetFilter:
    """
    Build an asset filter from its config representation.

    Raises:
        ConfigValidationError: For unknown variants or malformed payloads.
    """
    name, payload = _split_variant(raw, where)

    if name == "AllowAll":
        return AllowAll()
    if name == "FileRegex":
        return FileRegex(pattern=_compile_pattern(payload, where))

    raise ConfigValidationError(f"{where}: unknown asset filter {name!r}")


def parse_repository(raw: Any, index: int) -> RepositoryPolicy:
    where = f"repositories[{index}]"
    if not isinstance(raw, dict):
        raise ConfigValidationError(f"{where}: expected a mapping")

    path = raw.get("path")
    if not isinstance(path, str) or not REPOSITORY_PATH_RX.match(path):
        raise ConfigValidationError(
            f"{where}.path: expected 'owner/name', got {path!r}"
        )
    if any(part in {".", ".."} for part in path.split("/")):
        raise ConfigValidationError(f"{where}.path: unsafe repository path {path!r}")

    include_tags = raw.get("include_tags", False)
    if not isinstance(include_tags, bool):
        raise ConfigValidationError(f"{where}.include_tags: expected true or false")

    return RepositoryPolicy(
        path=path,
        release_filter=parse_release_filter(
            raw.get("release_filter"), f"{where}.release_filter"
        ),
        asset_filter=parse_asset_filter(
            raw.get("asset_filter"), f"{where}.asset_filter"
        ),
        include_tags=include_tags,
    )


def _positive_int(data: Dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigValidationError(f"{key}: expected a non-negative integer")
    return value


def parse_config(data: Any) -> MirrorConfig:
    """
    Validate a parsed config document.

    Raises:
        ConfigValidationError: If required keys are missing or any value is invalid.
    """
    if not isinstance(data, dict):
        raise ConfigValidationError("Config document must be a mapping")

    storage = data.get("storage")
    if not isinstance(storage, str) or not storage.strip():
        raise ConfigValidationError("storage: a directory path is required")

    raw_repositories = data.get("repositories") or []
    if not isinstance(raw_repositories, list):
        raise ConfigValidationError("repositories: expected a list")

    repositories = [parse_repository(raw, i) for i, raw in enumerate(raw_repositories)]
    seen = set()
    for policy in repositories:
        if policy.path in seen:
            raise ConfigValidationError(f"Repository {policy.path!r} is listed twice")
        seen.add(policy.path)

    token = data.get("github_token")
    return MirrorConfig(
        storage=os.path.expanduser(storage),
        repositories=repositories,
        github_token=str(token) if token else None,
        allow_env_token=bool(data.get("allow_env_token", True)),
        api_url=str(data.get("api_url") or GITHUB_API_URL),
        log_level=data.get("log_level"),
        log_dir=data.get("log_dir"),
        syslog=bool(data.get("syslog", False)),
        download_retries=_positive_int(
            data, "download_retries", DEFAULT_DOWNLOAD_RETRIES
        ),
        download_timeout=_positive_int(data, "download_timeout", DOWNLOAD_TIMEOUT),
    )


def load_config(path: str) -> MirrorConfig:
    """
    Read and validate a mirror config file.

    Raises:
        ConfigFileError: If the file can't be read or isn't valid YAML.
        ConfigValidationError: If the document doesn't describe a valid config.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigFileError(
            f"Failed to load config file {path}", details=str(e)
        ) from e
    except yaml.YAMLError as e:
        raise ConfigFileError(
            f"Failed to parse config file {path}", details=str(e)
        ) from e

    return parse_config(data)
