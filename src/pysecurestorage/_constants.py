"""Internal constants shared across the library."""

# ------------------------------------------------------------------
# Debug channel event kinds
# ------------------------------------------------------------------

SNAPSHOT_EVENT_KIND = "SecureStorage"
UPDATE_EVENT_KIND = "SecureStorageUpdate"
# Older producers registered the snapshot stream under the extension name.
SNAPSHOT_EVENT_ALIASES: frozenset[str] = frozenset({SNAPSHOT_EVENT_KIND, "ext.secure_storage.data"})

# ------------------------------------------------------------------
# Producer service extensions
# ------------------------------------------------------------------

COMMAND_EXTENSION = "ext.secure_storage.command"
REFRESH_EXTENSION = "ext.secure_storage.refresh"

# ------------------------------------------------------------------
# Consumer defaults
# ------------------------------------------------------------------

DEFAULT_WARMUP_DELAY = 0.5
SNAPSHOT_LOG_CAPACITY = 50
UPDATE_LOG_CAPACITY = 100
DEFAULT_POLL_INTERVAL = 2.0

# ------------------------------------------------------------------
# Parse placeholders
# ------------------------------------------------------------------

UNKNOWN_DEVICE_ID = "unknown"
UNKNOWN_DEVICE_NAME = "Unknown Device"
UNKNOWN_KEY = "unknown_key"
ERROR_DEVICE_ID = "error_parsing"
ERROR_DEVICE_NAME = "Error Parsing Device"

# ------------------------------------------------------------------
# Persisted settings (namespaced to avoid clashing with other tools)
# ------------------------------------------------------------------

SETTINGS_KEY_PREFIX = "com.secure_storage_devtool."
SHOW_NEWEST_ON_TOP_KEY = f"{SETTINGS_KEY_PREFIX}show_newest_on_top"
CLEAR_ON_RELOAD_KEY = f"{SETTINGS_KEY_PREFIX}clear_on_reload"
HIDE_NULL_VALUES_KEY = f"{SETTINGS_KEY_PREFIX}hide_null_values"
