"""
Domain Constants: engine-wide values.

Manifest layout, reserved variable names, boolean literals and the binary
extension denylist used across the engine.
"""

# =============================================================================
# Manifest
# =============================================================================
# template.toml
# ├── [template]       required metadata
# ├── [parameters.*]   optional typed parameters
# └── [files]          optional include/exclude globs

MANIFEST_FILENAME = "template.toml"
TRUSTED_HOST = "github.com"

TEMPLATE_SECTION = "template"
PARAMETERS_SECTION = "parameters"
FILES_SECTION = "files"

REQUIRED_TEMPLATE_FIELDS = ("name", "description", "version", "authors", "repository")
OPTIONAL_TEMPLATE_FIELDS = ("tags", "min_tool_version", "min_runtime_version")

NAME_MAX_LENGTH = 100
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 200
TAGS_MAX_COUNT = 10
TAG_MAX_LENGTH = 32

# =============================================================================
# Parameters
# =============================================================================

# Computed by the engine, never declared or supplied
COMPUTED_BUILTINS = ("date", "timestamp")
# Supplied by the caller context, may be refined by a string parameter
CONTEXT_BUILTINS = ("project_name", "author", "version")
RESERVED_NAMES = CONTEXT_BUILTINS + COMPUTED_BUILTINS

DEFAULT_PROJECT_VERSION = "0.1.0"

TRUTHY_LITERALS = frozenset(["true", "yes", "y", "1"])
FALSY_LITERALS = frozenset(["false", "no", "n", "0"])

# Wall-clock cap for one manifest `pattern` match
PATTERN_TIMEOUT_SECONDS = 0.25

ENUM_CHOICE_KEYS = ("choices", "options", "enum")

# =============================================================================
# File Filter
# =============================================================================

VCS_DIRECTORIES = frozenset([".git", ".hg", ".svn"])

BINARY_EXTENSIONS = frozenset([
    # images
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tif", ".tiff",
    # fonts
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
    # archives
    ".zip", ".tar", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".rar", ".jar",
    # compiled / binary blobs
    ".bin", ".exe", ".dll", ".so", ".dylib", ".o", ".a", ".class", ".pyc", ".wasm",
    # documents / media
    ".pdf", ".mp3", ".mp4", ".wav", ".ogg", ".mov", ".avi",
    ".sqlite", ".db",
])

SNIFF_BYTES = 8000

# =============================================================================
# Render Budgets
# =============================================================================

MAX_OUTPUT_BYTES = 5 * 1024 * 1024
MAX_LOOP_ITERATIONS = 10_000
MAX_NESTING_DEPTH = 32

# =============================================================================
# Run Logs
# =============================================================================

RUN_ID_PREFIX = "RUN-"
RUN_LOG_GLOB = "run_*.json"
