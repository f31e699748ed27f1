# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Provider API keys are NOT configured here: they are entered with /configure and kept in the
private credential file (<data_dir>/credentials.json, mode 0600).
"""

ENV_VARS = {
    # App / logging
    "CADENCE_APP_NAME": "App display name (default: cadence).",
    "CADENCE_LOG_LEVEL": "Console logging level (default: INFO).",
    # Paths (gitignored)
    "CADENCE_DATA_DIR": "Local data directory (default: .local/cadence).",
    "CADENCE_SETTINGS_PATH": "Settings JSON path (default: <data_dir>/settings.json).",
    "CADENCE_CREDENTIALS_PATH": "Credential JSON path (default: <data_dir>/credentials.json).",
    "CADENCE_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    # Providers
    "CADENCE_DEFAULT_PROVIDER": "Fallback provider id (default: on_device; must be usable or on_device is used).",
    "CADENCE_HTTP_CONNECT_TIMEOUT_SECONDS": "Connect timeout for networked providers (default: 5).",
    "CADENCE_HTTP_READ_TIMEOUT_SECONDS": "Read timeout for networked providers (default: 60, never below connect).",
    # Learning buffers
    "CADENCE_CORRECTION_CAPACITY": "Max stored corrections (default: 100).",
    "CADENCE_ACCURACY_CAPACITY": "Max stored duration-accuracy records (default: 100).",
    "CADENCE_IMPRESSION_CAPACITY": "Max stored impression timestamps (default: 200).",
    "CADENCE_LEARNING_EXPIRY_DAYS": "Records older than this are evicted (default: 90).",
    # Context
    "CADENCE_RECENT_TASKS_LIMIT": "Recent completed tasks fetched for context (default: 10).",
}
