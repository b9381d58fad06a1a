"""HTTP helpers for the REST-based adapters.

Failures of any kind surface as ``TransportError``; there is no retry or
backoff here, one request is one attempt.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import requests

from askall.errors import TransportError


def _decode(provider: str, resp: requests.Response) -> Dict[str, Any]:
    if not 200 <= resp.status_code < 300:
        body = resp.text[:500]
        raise TransportError(provider, f"HTTP {resp.status_code}: {body}")
    try:
        data = resp.json()
    except ValueError as exc:
        raise TransportError(provider, f"response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise TransportError(provider, "response is not a JSON object")
    return data


def post_json(
    provider: str,
    url: str,
    payload: Mapping[str, Any],
    headers: Optional[Mapping[str, str]] = None,
    timeout: int = 30,
) -> Dict[str, Any]:
    try:
        resp = requests.post(url, json=dict(payload), headers=dict(headers or {}), timeout=timeout)
    except requests.RequestException as exc:
        raise TransportError(provider, f"request to {url} failed: {exc}") from exc
    return _decode(provider, resp)


def get_json(
    provider: str,
    url: str,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    timeout: int = 30,
) -> Dict[str, Any]:
    try:
        resp = requests.get(
            url, params=dict(params or {}), headers=dict(headers or {}), timeout=timeout
        )
    except requests.RequestException as exc:
        raise TransportError(provider, f"request to {url} failed: {exc}") from exc
    return _decode(provider, resp)


def check_connectivity(
    url: str = "http://clients3.google.com/generate_204", timeout: float = 0.5
) -> Optional[str]:
    """Probe a well-known endpoint; return None when online, else the reason."""
    try:
        resp = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        return f"failed to make HTTP request: {exc}"
    if resp.status_code == 204:
        return None
    # Anything else usually means a captive portal or proxy.
    return f"unexpected status code: {resp.status_code}"


__all__ = ["check_connectivity", "get_json", "post_json"]
