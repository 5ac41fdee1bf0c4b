from __future__ import annotations

import json
import logging
import os
import re
import time
from typing import Any

from flask import Flask, g, request

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def init_request_context(app: Flask) -> None:
    logger = logging.getLogger("onboardflow.request")

    @app.before_request
    def _start():
        incoming = str(request.headers.get("X-Request-ID") or "").strip()
        g.request_id = incoming if _REQUEST_ID_RE.match(incoming) else os.urandom(8).hex()
        g.start_ts = time.monotonic()

    @app.after_request
    def _finish(resp):
        rid = getattr(g, "request_id", "")
        if rid:
            resp.headers["X-Request-ID"] = rid

        start = getattr(g, "start_ts", None)
        latency_ms = int((time.monotonic() - start) * 1000) if isinstance(start, (int, float)) else None

        data: dict[str, Any] = {
            "type": "request",
            "request_id": rid,
            "method": request.method,
            "path": request.path,
            "status": resp.status_code,
            "latency_ms": latency_ms,
        }
        view_args = request.view_args or {}
        if view_args.get("candidate_id"):
            data["candidateId"] = view_args["candidate_id"]
        if view_args.get("step_number") is not None:
            data["stepNumber"] = view_args["step_number"]

        logger.info(json.dumps(data, separators=(",", ":")))
        return resp
