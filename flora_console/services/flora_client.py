"""HTTP client for the Flora plugins on the WordPress host.

Synopsis:
Wraps a shared ``requests.Session`` and knows the three REST namespaces the
console talks to. Authentication is the WooCommerce convention: consumer key
and secret as query parameters (and, for the inventory plugin, repeated in the
JSON body because it reads ``$_REQUEST``).

Glossary:
- IM: ``flora-im/v1``, the inventory management plugin (stock, conversions).
- BLUEPRINTS: ``fd/v1``, the Flora Fields plugin (recipes, variance reasons).
- WC: ``wc/v3``, core WooCommerce (products and their categories).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

import requests
from flask import current_app

from ..errors import FloraApiError, FloraNetworkError

logger = logging.getLogger(__name__)

IM = "flora-im/v1"
BLUEPRINTS = "fd/v1"
WC = "wc/v3"

_EXTENSION_KEY = "flora_client"


def parse_wordpress_json(text: str) -> Any:
    """Parse a response body, skipping any PHP notice HTML printed before the JSON."""
    try:
        return json.loads(text)
    except ValueError:
        json_start = text.find('{"')
        if json_start > 0:
            try:
                return json.loads(text[json_start:])
            except ValueError:
                pass
    raise FloraApiError("Invalid response format from server", status_code=500)


def _error_message(response: requests.Response) -> tuple[str, Any]:
    text = response.text or ""
    try:
        payload = json.loads(text)
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("code") or payload.get("error")
        if message:
            return str(message), payload
    detail = text.strip() or response.reason or "no response body"
    return f"Flora API error: {detail}", payload


class FloraApiClient:
    def __init__(
        self,
        base_url: str,
        consumer_key: str | None,
        consumer_secret: str | None,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("Content-Type", "application/json")

    @classmethod
    def from_config(cls, config: Mapping[str, Any], session: requests.Session | None = None) -> "FloraApiClient":
        return cls(
            base_url=config["FLORA_API_URL"],
            consumer_key=config.get("FLORA_CONSUMER_KEY"),
            consumer_secret=config.get("FLORA_CONSUMER_SECRET"),
            timeout=float(config.get("FLORA_REQUEST_TIMEOUT", 10.0)),
            session=session,
        )

    def url(self, namespace: str, path: str = "") -> str:
        path = path.strip("/")
        base = f"{self.base_url}/wp-json/{namespace}"
        return f"{base}/{path}" if path else base

    def auth_params(self) -> dict[str, str]:
        params = {}
        if self.consumer_key:
            params["consumer_key"] = self.consumer_key
        if self.consumer_secret:
            params["consumer_secret"] = self.consumer_secret
        return params

    def request(
        self,
        method: str,
        namespace: str,
        path: str = "",
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
        auth_in_body: bool = False,
    ) -> Any:
        """Send one request and return the parsed JSON body.

        Raises ``FloraApiError`` for transport failures, non-2xx statuses and
        bodies that contain no JSON document.
        """
        query = {k: v for k, v in (params or {}).items() if v is not None}
        query.update(self.auth_params())
        if auth_in_body and isinstance(json_body, dict):
            json_body = {**json_body, **self.auth_params()}

        url = self.url(namespace, path)
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(
                method,
                url,
                params=query,
                json=json_body,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Flora API %s %s failed: %s", method, url, exc)
            raise FloraNetworkError(f"Network error: {exc}", status_code=502) from exc

        if not response.ok:
            message, payload = _error_message(response)
            raise FloraApiError(message, status_code=response.status_code, payload=payload)

        return parse_wordpress_json(response.text or "")

    def get(self, namespace: str, path: str = "", **kwargs) -> Any:
        return self.request("GET", namespace, path, **kwargs)

    def post(self, namespace: str, path: str = "", **kwargs) -> Any:
        return self.request("POST", namespace, path, **kwargs)

    def put(self, namespace: str, path: str = "", **kwargs) -> Any:
        return self.request("PUT", namespace, path, **kwargs)

    def ping(self) -> bool:
        """Check that the IM namespace answers with our credentials."""
        try:
            self.get(IM, "inventory", params={"per_page": 1})
        except FloraApiError as exc:
            logger.info("Flora API ping failed: %s", exc.message)
            return False
        return True


def get_flora_client() -> FloraApiClient:
    """Return the application's shared client, creating it on first use."""
    client = current_app.extensions.get(_EXTENSION_KEY)
    if client is None:
        client = FloraApiClient.from_config(current_app.config)
        current_app.extensions[_EXTENSION_KEY] = client
    return client


def init_flora_client(app, session: requests.Session | None = None) -> FloraApiClient:
    client = FloraApiClient.from_config(app.config, session=session)
    app.extensions[_EXTENSION_KEY] = client
    return client
