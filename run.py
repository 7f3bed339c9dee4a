"""Launcher for the production report portal."""

from __future__ import annotations

from dotenv import load_dotenv
from werkzeug.serving import make_server

from app import create_app


def run_server() -> None:
    load_dotenv()

    app = create_app()
    settings = app.config["SETTINGS"]

    server = make_server(settings.host, settings.port, app, threaded=True)
    app.logger.info("Serving on http://%s:%s", settings.host, settings.port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        app.logger.info("Shutting down")
    finally:
        server.server_close()


if __name__ == "__main__":
    run_server()
