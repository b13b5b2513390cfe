# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets (MongoDB URI with credentials, OpenRouter key). Keep them in .env (gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "FLOWBOARD_APP_NAME": "App display name (default: flowboard).",
    "FLOWBOARD_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    "FLOWBOARD_DATA_DIR": "Local data directory for logs (default: .local/flowboard).",
    # Session
    "FLOWBOARD_USER_ID": "Signed-in user id. Empty => signed out: read-only 'Getting Started' preview.",
    # Storage
    "FLOWBOARD_MONGODB_URI": "MongoDB connection string. Empty => in-memory storage (lost on exit).",
    "FLOWBOARD_MONGODB_DATABASE": "Database name (default: Flowivate).",
    "FLOWBOARD_MONGODB_COLLECTION": "Collection holding one document per task list (default: taskLists).",
    "FLOWBOARD_MONGODB_TIMEOUT_MS": "Server selection / connect timeout in ms (default: 5000).",
    # LLM / OpenRouter
    "FLOWBOARD_OPENROUTER_API_KEY": "OpenRouter API key. Empty => offline breakdown client.",
    "FLOWBOARD_OPENROUTER_BASE_URL": "OpenRouter base URL (default: https://openrouter.ai/api/v1).",
    "FLOWBOARD_LLM_MODELS": "Comma/space separated list of models to try in order.",
    "FLOWBOARD_LLM_MAX_TOKENS": "Max tokens for one breakdown answer (default: 1000).",
    "FLOWBOARD_HTTP_REFERER": "Optional OpenRouter metadata header.",
    "FLOWBOARD_APP_TITLE": "Optional OpenRouter metadata header title.",
    "FLOWBOARD_LLM_CONNECT_TIMEOUT_SECONDS": "HTTP connect timeout (default: 5).",
    "FLOWBOARD_LLM_READ_TIMEOUT_SECONDS": "HTTP read timeout (default: 30).",
    "FLOWBOARD_LLM_FIRST_TOKEN_TIMEOUT_SECONDS": "Try the next model if no token arrives in time (default: 20).",
    # Limits
    "FLOWBOARD_TASK_NAME_MAX_LEN": "Max task name length (default: 200).",
    "FLOWBOARD_LIST_NAME_MAX_LEN": "Max list name length (default: 100).",
    "FLOWBOARD_AI_DESCRIPTION_MAX_LEN": "Max /ai description length (default: task name limit).",
    # Sync
    "FLOWBOARD_REFETCH_AFTER_WRITE": "Re-fetch all lists after each confirmed write (true/false, default false).",
}
