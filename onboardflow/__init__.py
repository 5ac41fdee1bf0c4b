from __future__ import annotations

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from onboardflow.config import get_config
from onboardflow.db import init_mongo
from onboardflow.middlewares.error_handler import init_error_handlers
from onboardflow.middlewares.request_context import init_request_context
from onboardflow.routes.batch import batch_bp
from onboardflow.routes.core import core_bp
from onboardflow.routes.events import events_bp
from onboardflow.routes.jobs import jobs_bp
from onboardflow.routes.workflow import workflow_bp
from onboardflow.utils.logging import setup_logging

API_PREFIX = "/api/v1"


def create_app() -> Flask:
    load_dotenv()

    cfg = get_config()
    setup_logging(cfg.LOG_LEVEL)

    app = Flask(__name__)
    app.config["CFG"] = cfg

    CORS(
        app,
        origins=cfg.CORS_ORIGINS,
        supports_credentials=cfg.CORS_ALLOW_CREDENTIALS,
        allow_headers=["Content-Type", "X-Request-ID", "X-Internal-Token"],
        expose_headers=["X-Request-ID"],
        methods=["GET", "POST", "PATCH", "OPTIONS"],
        max_age=3600,
    )

    init_request_context(app)
    init_error_handlers(app)

    init_mongo(app)

    app.register_blueprint(core_bp)
    app.register_blueprint(core_bp, url_prefix=API_PREFIX, name="core_v1")
    for bp in (workflow_bp, events_bp, batch_bp, jobs_bp):
        app.register_blueprint(bp, url_prefix=API_PREFIX)

    return app
