import os


def _env_int(name: str, default: int) -> int:
    try:
        return int(str(os.getenv(name, "") or "").strip() or default)
    except ValueError:
        return default


wsgi_app = "onboardflow:create_app()"

bind = f"0.0.0.0:{_env_int('PORT', 8080)}"

# The sweep job and batch endpoint hold a request for the whole loop.
workers = max(1, _env_int("WEB_CONCURRENCY", 2))
threads = max(1, _env_int("PYTHON_THREADS", 4))
timeout = max(30, _env_int("GUNICORN_TIMEOUT", 180))
graceful_timeout = max(5, _env_int("GUNICORN_GRACEFUL_TIMEOUT", 30))

# Request lines come from the app logger; gunicorn's own access log would duplicate them.
accesslog = None
errorlog = "-"
loglevel = str(os.getenv("LOG_LEVEL", "info") or "info").lower()
