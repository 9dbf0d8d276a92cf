#!/usr/bin/env python3
# backend/run.py
"""
Local API server.

Defaults to the development environment, where the SQLite schema is
created on startup and Stripe runs in mock mode unless a key is set.
"""
import os
from pathlib import Path
import sys

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "development")

import uvicorn

if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    print(f"Starting Rent It Forward API on http://localhost:{port} (docs at /docs)")
    uvicorn.run("rentitforward.main:app", host="0.0.0.0", port=port, reload=True, log_level="info")
