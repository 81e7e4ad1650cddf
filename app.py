#!/usr/bin/env python3
"""Thin wrapper for Gunicorn and local execution.
Keeps the public entrypoint as `app:app` while the implementation lives under src/.
"""
import os, sys

PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
SRC_DIR = os.path.join(PROJECT_ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

import config as cfg  # noqa: E402
from adminlogin_web.app_impl import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    # Prefer running via gunicorn.
    app.run(host=cfg.ADMIN_BIND, port=cfg.ADMIN_PORT, debug=False)
