"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    USAGE_ERROR = 3
    REGISTRY_ERROR = 4
    RESOLUTION_ERROR = 5
    TRANSFORM_ERROR = 6
    INSTALL_ERROR = 7


class FileKinds(Enum):
    """Source file kinds accepted by the registry.

    Args:
        Enum (string): File kinds published with a component.
    """

    TYPESCRIPT = "typescript"
    JAVASCRIPT = "javascript"
    CSS = "css"
    SCSS = "scss"
    LESS = "less"
    JSON = "json"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL = "http://localhost:3000"
    ENV_REGISTRY_URL = "FETCHUI_REGISTRY_URL"
    ENV_LOG_LEVEL = "FETCHUI_LOG_LEVEL"
    ENV_LOG_FORMAT = "FETCHUI_LOG_FORMAT"
    REGISTRY_SCOPE = "@fetch-ui/"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    USER_AGENT = "fetch-ui/1.0"

    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_RETRY_MAX_DELAY_SEC = 30.0
    HTTP_RETRY_AFTER_MAX_SEC = 300.0
    HTTP_CACHE_TTL_SEC = 300
    REGISTRY_PAGE_SIZE = 10

    FETCH_CONCURRENCY = 8
    TRANSFORM_CONCURRENCY = 8

    PROJECT_CONFIG_FILES = ["fetchui.yaml", "fetchui.yml", "components.json"]
    PACKAGE_JSON_FILE = "package.json"
    DEFAULT_COMPONENTS_DIR = "components"
    DEFAULT_STYLES_DIR = "styles"
    DEFAULT_CLASS_HELPERS = ("cn", "clsx")

    TEMP_MARKER = ".fetchui-"
    TEMP_SUFFIX = ".tmp"
    BACKUP_SUFFIX = ".bak"

    SCRIPT_EXTENSIONS = {
        ".ts": FileKinds.TYPESCRIPT.value,
        ".tsx": FileKinds.TYPESCRIPT.value,
        ".mts": FileKinds.TYPESCRIPT.value,
        ".js": FileKinds.JAVASCRIPT.value,
        ".jsx": FileKinds.JAVASCRIPT.value,
        ".mjs": FileKinds.JAVASCRIPT.value,
        ".cjs": FileKinds.JAVASCRIPT.value,
    }
    STYLE_EXTENSIONS = {
        ".css": FileKinds.CSS.value,
        ".scss": FileKinds.SCSS.value,
        ".sass": FileKinds.SCSS.value,
        ".less": FileKinds.LESS.value,
    }
