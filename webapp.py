"""
HTTP trigger for the notifier.

  POST /api/notify              run every active job
  POST /api/notify/<job_name>   run one job
  GET  /api/health              static service description

POST routes require "Authorization: Bearer <API_SECRET>".
"""

import hmac
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Callable

from flask import Flask, jsonify, request

import config
from runner import JobRunner

log = logging.getLogger(__name__)

ENDPOINTS = [
    "POST /api/notify - Run every active notification job",
    "POST /api/notify/<job_name> - Run one notification job",
    "GET /api/health - Health check",
]


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _authorized() -> bool:
    secret = config.API_SECRET
    if not secret:
        return False
    supplied = request.headers.get("Authorization", "")
    return hmac.compare_digest(supplied, f"Bearer {secret}")


def _default_runner_factory() -> JobRunner:
    from notify import build_runner

    runner, _ = build_runner()
    return runner


def create_app(runner_factory: Callable[[], JobRunner] | None = None) -> Flask:
    """Flask app factory.

    *runner_factory* is called on the first authorized POST and the runner it
    returns serves every later request, so the in-memory cooldown and the
    LINE/Notion HTTP clients live as long as the app. A failed build is not
    cached. Runs are serialized.
    """
    app = Flask(__name__)
    make_runner = runner_factory or _default_runner_factory
    shared: dict[str, JobRunner] = {}
    run_lock = threading.Lock()

    def get_runner() -> JobRunner:
        if "runner" not in shared:
            shared["runner"] = make_runner()
        return shared["runner"]

    @app.get("/api/health")
    def health():
        return jsonify({
            "success": True,
            "message": "Vehicle notifier API is running",
            "timestamp": _timestamp(),
            "endpoints": ENDPOINTS,
        })

    @app.post("/api/notify")
    @app.post("/api/notify/<job_name>")
    def notify(job_name: str | None = None):
        if not _authorized():
            return jsonify({"error": "Unauthorized"}), 401

        label = job_name or "all jobs"
        log.info("[API] notify %s from %s", label, request.remote_addr)
        try:
            with run_lock:
                reports = get_runner().run_all([job_name] if job_name else None)
        except Exception as e:
            log.exception("API job failed (%s)", label)
            return jsonify({
                "success": False,
                "error": "Internal server error",
                "message": str(e),
                "timestamp": _timestamp(),
            }), 500

        return jsonify({
            "success": True,
            "message": f"Notification job completed successfully ({label})",
            "timestamp": _timestamp(),
            "reports": [report.summary() for report in reports],
        })

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    return app


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    create_app().run(host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
