"""HTTP surface over the query layer."""

from flask import Flask, Response, jsonify, request

from aflogcat.config import Config
from aflogcat.extractor import get_parse_error_count
from aflogcat.tools import LogTools


def _text(payload: str) -> Response:
    return Response(payload, mimetype="text/plain")


def create_app(config: Config | None = None, tools: LogTools | None = None) -> Flask:
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = Config()
    if tools is None:
        tools = LogTools(config)

    # Store components on app for access in tests
    app.config["components"] = {"config": config, "tools": tools}

    def device_arg():
        return request.args.get("device") or None

    # --- Routes ---

    @app.route("/health")
    def health():
        session = tools.session
        return jsonify({
            "status": "healthy",
            "session": session.state.value if session else "stopped",
            "buffered_lines": len(session.window) if session else 0,
            "total_lines": session.window.total_count if session else 0,
            "parse_errors": get_parse_error_count(),
        })

    @app.route("/api/logs")
    def logs():
        return _text(tools.fetch_logs(device_arg()))

    @app.route("/api/conversion")
    def conversion():
        return _text(tools.conversion_logs(device_arg()))

    @app.route("/api/launch")
    def launch():
        return _text(tools.launch_logs(device_arg()))

    @app.route("/api/inapp")
    def inapp():
        return _text(tools.in_app_logs(device_arg()))

    @app.route("/api/deeplink")
    def deeplink():
        return _text(tools.deep_link_logs(device_arg()))

    @app.route("/api/errors")
    def errors():
        return _text(tools.errors(device_arg()))

    @app.route("/api/keyword")
    def keyword():
        word = request.args.get("keyword", "")
        if not word:
            return jsonify({"status": "invalid", "errors": ["keyword is required"]}), 400
        lines = request.args.get("lines", 50, type=int)
        return _text(tools.logs_by_keyword(word, lines, device_arg()))

    @app.route("/api/verify/deeplink")
    def verify_deeplink():
        return _text(tools.verify_deep_link(device_arg()))

    @app.route("/api/verify/event")
    def verify_event():
        return _text(tools.verify_in_app_event(request.args.get("name", ""), device_arg()))

    @app.route("/api/verify/sdk")
    def verify_sdk():
        return _text(tools.verify_sdk(device_arg()))

    @app.route("/api/session/start", methods=["POST"])
    def session_start():
        data = request.get_json(silent=True) or {}
        status = tools.start_session(data.get("device"))
        return jsonify({"status": status})

    @app.route("/api/session/stop", methods=["POST"])
    def session_stop():
        return jsonify({"status": tools.stop_session()})

    return app
