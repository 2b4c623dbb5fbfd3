"""notchdeck -- Web status server.

A small Flask app running on a background thread next to the panel.
It never touches the panel's working state: reads come from the
EventBus's latest published snapshots, and commands are handed to the
decision loop with PanelRuntime.dispatch().

Routes:
    GET  /health                  liveness
    GET  /api/state               latest value of every topic (JSON)
    GET  /api/state/stream        the same, live, as server-sent events
    GET  /api/artwork             current artwork thumbnail (PNG)
    GET  /api/preferences         current preferences
    POST /api/preferences         {"key": ..., "value": ...}
    POST /api/profile/<name>      apply a profile preset
    POST /api/focus/<action>      toggle | reset | skip | plus | minus
    POST /api/media/<action>      play_pause | next | previous | mute
"""

import concurrent.futures
import dataclasses
import json
import logging
import threading
import time
from enum import Enum
from typing import Any, Mapping

from flask import Flask, Response, jsonify, request

from core.errors import PanelError

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT = 5.0
FOCUS_ACTIONS = ("toggle", "reset", "skip", "plus", "minus")
MEDIA_ACTIONS = ("play_pause", "next", "previous", "mute")


def serialize(value: Any) -> Any:
    """Published payloads -> JSON-safe structures. Raw bytes are dropped."""
    if isinstance(value, Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: serialize(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if not isinstance(getattr(value, f.name), (bytes, bytearray))
        }
    if isinstance(value, Mapping):
        return {str(k): serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    if isinstance(value, (bytes, bytearray)):
        return None
    return value


def _run(runtime, func, *args):
    """Run a command on the decision loop and wait for its result."""
    return runtime.dispatch(func, *args).result(timeout=COMMAND_TIMEOUT)


def create_app(runtime) -> Flask:
    """Create the Flask application bound to a running PanelRuntime."""
    app = Flask(__name__)
    bus = runtime.bus
    started = time.time()

    @app.errorhandler(concurrent.futures.TimeoutError)
    def loop_stalled(exc):
        logger.warning("Command timed out waiting for the decision loop")
        return jsonify({"error": "panel is not responding"}), 503

    # ─── Routes: health and state ───

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "uptime": round(time.time() - started, 1)})

    @app.route("/api/state")
    def state():
        return jsonify(serialize(bus.get_latest()))

    @app.route("/api/state/stream")
    def state_stream():
        """SSE endpoint streaming every published update."""
        def generate():
            for topic, payload in bus.stream():
                if topic == "keepalive":
                    yield ": keepalive\n\n"
                    continue
                try:
                    yield f"event: {topic}\ndata: {json.dumps(serialize(payload))}\n\n"
                except (TypeError, ValueError) as exc:
                    logger.debug("SSE serialize error for %s: %s", topic, exc)

        return Response(
            generate(),
            mimetype="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
                "Connection": "keep-alive",
            },
        )

    @app.route("/api/artwork")
    def artwork():
        current = bus.get_latest("artwork")
        if current is None:
            return jsonify({"error": "no artwork"}), 404
        return Response(current.png, mimetype="image/png")

    # ─── Routes: preferences ───

    @app.route("/api/preferences", methods=["GET"])
    def get_preferences():
        return jsonify(serialize(bus.get_latest("preferences") or {}))

    @app.route("/api/preferences", methods=["POST"])
    def set_preference():
        body = request.get_json(silent=True) or {}
        if "key" not in body or "value" not in body:
            return jsonify({"error": "expected {\"key\": ..., \"value\": ...}"}), 400
        try:
            stored = _run(runtime, runtime.set_preference, body["key"], body["value"])
        except (KeyError, ValueError) as exc:
            return jsonify({"error": str(exc)}), 400
        return jsonify({"key": body["key"], "value": serialize(stored)})

    @app.route("/api/profile/<name>", methods=["POST"])
    def apply_profile(name):
        try:
            _run(runtime, runtime.apply_profile, name)
        except KeyError:
            return jsonify({"error": f"unknown profile '{name}'"}), 404
        return jsonify({"profile": name})

    # ─── Routes: commands ───

    @app.route("/api/focus/<action>", methods=["POST"])
    def focus(action):
        if action not in FOCUS_ACTIONS:
            return jsonify({"error": f"unknown focus action '{action}'"}), 404
        result = _run(runtime, runtime.focus_action, action)
        return jsonify(serialize(result))

    @app.route("/api/media/<action>", methods=["POST"])
    def media(action):
        if action not in MEDIA_ACTIONS:
            return jsonify({"error": f"unknown media action '{action}'"}), 404
        try:
            ok = _run(runtime, runtime.media_action, action)
        except PanelError as exc:
            return jsonify({"error": str(exc)}), 409
        return jsonify({"action": action, "ok": ok})

    return app


def serve_in_background(runtime, host: str = "127.0.0.1", port: int = 8765) -> threading.Thread:
    """Start the status server on a daemon thread."""
    app = create_app(runtime)
    thread = threading.Thread(
        target=app.run,
        kwargs={"host": host, "port": port, "threaded": True, "debug": False, "use_reloader": False},
        name="web-status",
        daemon=True,
    )
    thread.start()
    logger.info("Web status at http://%s:%d", host, port)
    return thread
