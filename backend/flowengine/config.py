"""Engine configuration constants: single source of truth for infrastructure env vars."""

import os

# Document store: "mongodb" (default) or "memory" for local development
STORE_BACKEND = os.getenv("STORE_BACKEND", "mongodb").lower()
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")

# Server binding, used by run_server / uvicorn
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "3002"))

# Editor origins allowed by CORS (comma-separated)
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
