import threading

from flask import Blueprint, Flask
from werkzeug.serving import BaseWSGIServer, make_server

from compression_worker.logging.logger import Log

bp = Blueprint("health", __name__)


@bp.route("/health", methods=["GET"])
@bp.route("/", methods=["GET"])
def health_check() -> tuple[str, int, dict[str, str]]:
    """Liveness probe, independent of queue activity."""
    return "OK", 200, {"Content-Type": "text/plain"}


def create_health_app() -> Flask:
    app = Flask(__name__)
    app.register_blueprint(bp)
    return app


class HealthServer:
    """Serves the health app on a background thread."""

    def __init__(self, host: str, port: int, app: Flask | None = None) -> None:
        self._server: BaseWSGIServer = make_server(host, port, app or create_health_app())
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="health", daemon=True
        )

    @property
    def port(self) -> int:
        return self._server.server_port

    def start(self) -> None:
        self._thread.start()
        Log.info(f"Health check server listening on port {self.port}")

    def stop(self) -> None:
        self._server.shutdown()
        self._thread.join()
