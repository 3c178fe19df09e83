"""Engine runtime settings: tunable parameters for workflow execution.

All values read from environment variables with defaults. Per-request
overrides arrive through EngineOptions; these are only the fallbacks.

Infrastructure config (store URI, API host, CORS) stays in flowengine/config.py.
"""

from __future__ import annotations

import os


def _int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _bool(key: str, default: bool) -> bool:
    return os.getenv(key, str(default)).lower() in ("true", "1", "yes")


# =====================================================================
# Graph Walker guards
# =====================================================================

# Maximum executed steps per run before the run is aborted
ENGINE_MAX_STEPS = _int("ENGINE_MAX_STEPS", 10000)

# Wall-clock budget per run (milliseconds)
ENGINE_TIME_BUDGET_MS = _int("ENGINE_TIME_BUDGET_MS", 30000)

# Whether documents may contain edges from a node to itself
ENGINE_ALLOW_SELF_LOOP_EDGES = _bool("ENGINE_ALLOW_SELF_LOOP_EDGES", False)


# =====================================================================
# Node defaults
# =====================================================================

# mongodb_find: default result limit and scope key
FIND_DEFAULT_LIMIT = _int("FIND_DEFAULT_LIMIT", 10)
FIND_DEFAULT_OUTPUT_KEY = os.getenv("FIND_DEFAULT_OUTPUT_KEY", "results")


# =====================================================================
# Document store
# =====================================================================

# Single connection attempt at startup: server selection timeout (milliseconds)
MONGO_SERVER_SELECTION_TIMEOUT_MS = _int("MONGO_SERVER_SELECTION_TIMEOUT_MS", 10000)


# =====================================================================
# Run events (SSE)
# =====================================================================

EVENT_BUFFER_MAX_EVENTS = _int("EVENT_BUFFER_MAX_EVENTS", 200)
EVENT_BUFFER_MAX_AGE_SECS = _int("EVENT_BUFFER_MAX_AGE_SECS", 600)
