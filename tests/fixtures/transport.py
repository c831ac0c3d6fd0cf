# ABOUTME: An httpx transport that answers from a path -> payload table.
# ABOUTME: Lets integration tests drive the real HTTP client and providers without a network.

from typing import Any

import httpx


class RoutingTransport(httpx.BaseTransport):
    """Serves canned JSON by URL path.

    A route value may be a dict (served with 200), an int status code, or a
    list consumed one entry per request. Unknown paths answer 404.
    """

    def __init__(self, routes: dict[str, Any]) -> None:
        self._routes = routes
        self.requests: list[httpx.Request] = []

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        payload = self._routes.get(request.url.path)
        if isinstance(payload, list):
            payload = payload.pop(0)
        if payload is None:
            return httpx.Response(404, json={"error": "notfound"})
        if isinstance(payload, int):
            return httpx.Response(payload, json={"error": "status"})
        return httpx.Response(200, json=payload)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]
