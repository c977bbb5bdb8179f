"""Local HTTP proxy that fetches page markup and favicons for the client."""

import logging
from typing import Optional

import requests
from flask import Flask, Response, request
from flask_cors import CORS

from .ogp import HEADERS, PLACEHOLDER_ICON, fetch_favicon

log = logging.getLogger(__name__)

DEFAULT_PORT = 3001


def create_app(session: Optional[requests.Session] = None, timeout: float = 5.0) -> Flask:
    app = Flask(__name__)
    CORS(app, origins="*", send_wildcard=True)
    http = session or requests.Session()

    @app.route("/api/proxy", methods=["GET"])
    def proxy():
        target = request.args.get("url")
        if not target:
            return Response("URL is required", status=400)
        try:
            resp = http.get(target, headers=HEADERS, timeout=timeout)
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            log.error("Error fetching %s: %s", target, e)
            return Response("Failed to fetch the URL", status=500)
        return Response(resp.text, status=200, content_type="text/html; charset=utf-8")

    @app.route("/api/favicon", methods=["GET"])
    def favicon():
        domain = request.args.get("domain", "")
        data = fetch_favicon(domain, session=http, timeout=timeout)
        mimetype = "image/gif" if data == PLACEHOLDER_ICON else "image/png"
        return Response(data, status=200, mimetype=mimetype)

    return app


def serve(host: str = "127.0.0.1", port: int = DEFAULT_PORT, timeout: float = 5.0) -> None:
    app = create_app(timeout=timeout)
    print(f"Proxy server running at http://{host}:{port}")
    app.run(host=host, port=port, debug=False)
