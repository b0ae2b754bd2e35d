import json
import logging
import os
import threading
import time

from flask import has_request_context, request

# Probes hit these every few seconds; keep them out of the logs
QUIET_PATHS = ("/healthz", "/health")

# Extra attributes callers may pass via `logger.info(..., extra={...})`
EXTRA_FIELDS = ("target", "job_id", "task_id")


class JsonRequestFormatter(logging.Formatter):
    def format(self, record):
        if has_request_context() and request.path in QUIET_PATHS:
            return ""

        data = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # Scan workers and the oracle listener log from their own threads
        if record.threadName != threading.main_thread().name:
            data["thread"] = record.threadName

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                data[key] = getattr(record, key)

        if has_request_context():
            data.update({
                "method": request.method,
                "path": request.path,
                "remote_addr": request.headers.get("X-Forwarded-For", request.remote_addr),
                "request_id": request.headers.get("X-Request-ID"),
            })

        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(data, ensure_ascii=False, default=str)


def setup_logging(app=None):
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    # avoid duplicate handlers on reload
    for h in list(root.handlers):
        root.removeHandler(h)

    h = logging.StreamHandler()
    h.setFormatter(JsonRequestFormatter())
    root.addHandler(h)

    # web3/urllib3 are chatty at INFO
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("web3").setLevel(logging.WARNING)

    if app:
        app.logger.handlers = [h]
        app.logger.setLevel(level)
