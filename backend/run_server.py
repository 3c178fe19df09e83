"""Start the workflow engine API with uvicorn.

Usage:
    cd backend && python run_server.py

Binding comes from API_HOST / API_PORT (flowengine/config.py).
"""

import uvicorn

from flowengine.config import API_HOST, API_PORT


def main():
    uvicorn.run("app.main:app", host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    main()
