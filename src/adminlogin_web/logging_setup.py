"""Logging helpers for adminlogin-web.

- log: stdlib logger writing web.log (+ stdout)
- app_log: one key=value line, tagged with ip/req when inside a request

Directory defaults to /var/log/adminlogin (override with ADMINLOGIN_LOG_DIR).
"""
import logging
from typing import Any

from flask import has_request_context

from adminlogin_common.logutil import get_logger, kv
from adminlogin_common.request_context import get_client_ip, get_or_set_req_id

log = get_logger("web")


def app_log(level: str, message: str, **fields: Any) -> None:
    if has_request_context():
        fields = {"ip": get_client_ip(), "req": get_or_set_req_id(), **fields}
    log.log(getattr(logging, level.upper(), logging.INFO), kv(message, **fields))
