import os

APP_TITLE = "Focus Synapse"
LOGGER_NAME = "FocusSynapse"

APPDATA_DIR = os.getenv("FOCUS_SYNAPSE_HOME") or os.path.join(
    os.getenv("APPDATA") or os.path.expanduser("~"), "FocusSynapse"
)

DATA_FILE = os.path.join(APPDATA_DIR, "synapse_metrics.json")
RULES_FILE = os.getenv("APPRULES_PATH") or os.path.join(APPDATA_DIR, "apprules.json")

LOG_DIR = os.path.join(APPDATA_DIR, "logs")
LOG_FILE = os.path.join(LOG_DIR, "focus_synapse.log")

POLL_INTERVAL_SEC = 1.0
SUMMARY_INTERVAL_SEC = 60.0
SUMMARY_TOP_APPS = 5

DEFAULT_SNOOZE_SEC = 300

# Remote sync
SUPABASE_URL_ENV = "SUPABASE_URL"
SUPABASE_API_KEY_ENV = "SUPABASE_API_KEY"
SESSIONS_TABLE = "focus_sessions"
USAGE_EVENTS_TABLE = "app_usage_events"

SYNC_WORKERS = 2
SYNC_QUEUE_SIZE = 256
SYNC_TIMEOUT_SEC = 10.0
SYNC_FLUSH_TIMEOUT_SEC = 5.0
