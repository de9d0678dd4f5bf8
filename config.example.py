# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets; keep them in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "WORKSYNC_APP_NAME": "App display name (default: worksync).",
    "WORKSYNC_LOG_LEVEL": "Console logging level (default: INFO).",
    # Paths (gitignored)
    "WORKSYNC_DATA_DIR": "Local data directory for the database and logs (default: .local/worksync).",
    "WORKSYNC_DB_PATH": "SQLite store path (default: <data_dir>/worksync.sqlite3).",
    "WORKSYNC_SESSION_PATH": "Remembered login, restored on start and removed on /logout (default: <data_dir>/session.json).",
    # Sync engine timing
    "WORKSYNC_DEBOUNCE_SECONDS": "Quiet period after the last edit before a sync is written (default: 1.5).",
    "WORKSYNC_STATUS_DISPLAY_SECONDS": "How long 'synced'/'error' is shown before 'idle' (default: 3.0).",
    "WORKSYNC_GATEWAY_LATENCY_SECONDS": "Artificial latency per gateway call (default: 0.2).",
    "WORKSYNC_GATEWAY_FAILURE_RATE": "Probability (0..1) of a simulated transient gateway failure (default: 0).",
    "WORKSYNC_AUTH_LATENCY_SECONDS": "Artificial latency for register/login/verify (default: 0.8).",
    # Workspace policy
    "WORKSYNC_COMPLETION_POLICY": "rehome (log completion on the day it happened) or preserve (default: rehome).",
    "WORKSYNC_DEFAULT_TEAM": "Comma separated team for new accounts; 'Self' is always included.",
    "WORKSYNC_REQUIRE_VERIFICATION": "Require /verify before first login (true/false, default: false).",
    # LLM (OpenAI-compatible)
    "WORKSYNC_LLM_API_KEY": "API key for summaries (falls back to OPENAI_API_KEY; offline mode if unset).",
    "WORKSYNC_LLM_BASE_URL": "OpenAI-compatible base URL (default: https://openrouter.ai/api/v1).",
    "WORKSYNC_LLM_MODELS": "Comma separated list of models to try in order.",
    "WORKSYNC_HTTP_REFERER": "Optional OpenRouter metadata header.",
    "WORKSYNC_APP_TITLE": "Optional OpenRouter metadata header title.",
    "WORKSYNC_LLM_FIRST_TOKEN_TIMEOUT_SECONDS": "Give up on a model with no first token after this long (default: 20).",
    "WORKSYNC_LLM_READ_TIMEOUT_SECONDS": "HTTP read timeout (default: 30).",
    "WORKSYNC_LLM_CONNECT_TIMEOUT_SECONDS": "HTTP connect timeout (default: 5).",
}
