"""
Constants and configuration values for releasemirror.

This module contains all hardcoded values, URLs, timeouts, and other constants
used throughout the application.
"""

# GitHub API
GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
RELEASES_ENDPOINT = "/repos/{path}/releases"
TAGS_ENDPOINT = "/repos/{path}/tags"

# Pagination
LISTING_PAGE_SIZE = 30  # GitHub's default per_page
LISTING_MAX_PAGES = 100  # Hard ceiling against unbounded pagination
PAGE_REQUEST_DELAY = 0.5  # Pause between page requests to respect API rate limits

# Network timeouts (in seconds)
GITHUB_API_TIMEOUT = 10
DOWNLOAD_TIMEOUT = 60

# Download configuration defaults
DEFAULT_DOWNLOAD_RETRIES = 0  # Opt-in transport retries within one download
DEFAULT_BACKOFF_FACTOR = 0.3
DEFAULT_CHUNK_SIZE = 8192
RETRY_STATUS_FORCELIST = (408, 429, 500, 502, 503, 504)
RATE_LIMIT_WARNING_THRESHOLD = 10

# Storage layout
TEMP_FILE_PREFIX = ".tmp"
MIRRORED_FILE_PERMISSIONS = 0o644

# Tags mirrored as releases
TAG_RECORD_PREFIX = "tag_"
TARBALL_SUFFIX = ".tar.gz"
ZIPBALL_SUFFIX = ".zip"

# Configuration
CONFIG_FILE_NAME = "releasemirror.yaml"
APP_NAME = "releasemirror"

# Logging configuration
LOGGER_NAME = "releasemirror"
LOG_FILE_NAME = "releasemirror.log"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
SYSLOG_FORMAT = "releasemirror[%(process)d]: %(levelname)s %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5
LOG_LEVEL_ENV_VAR = "RELEASEMIRROR_LOG_LEVEL"
DEFAULT_SYSLOG_ADDRESS = "/dev/log"

# Exit codes
EXIT_SUCCESS = 0
EXIT_FATAL = 1
