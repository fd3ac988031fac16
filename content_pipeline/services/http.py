"""
Authenticated request headers for destination APIs.
"""

import requests

from content_pipeline.core.models import AuthKind, Destination

# Authorization scheme per auth kind. OAuth2 credentials are sent as opaque
# bearer-style strings; no token exchange happens here.
AUTH_SCHEMES: dict[AuthKind, str] = {
    AuthKind.API_KEY: "Bearer",
    AuthKind.JWT: "JWT",
    AuthKind.OAUTH2: "OAuth",
}


def build_headers(destination: Destination, user_agent: str) -> dict[str, str]:
    """Headers for every request sent to a destination."""
    headers = {
        "Content-Type": "application/json",
        "User-Agent": user_agent,
    }
    try:
        scheme = AUTH_SCHEMES[AuthKind(destination.auth_kind)]
    except ValueError:
        return headers
    headers["Authorization"] = f"{scheme} {destination.credentials}"
    return headers


def alternate_auth_headers(headers: dict[str, str], credentials: str) -> list[tuple[str, dict[str, str]]]:
    """
    Header variants to try when a destination rejects the configured auth.

    Returns (variant name, headers) pairs in the order they should be tried:
    raw key in X-API-Key, then Bearer, then JWT.
    """
    base = {k: v for k, v in headers.items() if k not in ("Authorization", "X-API-Key")}
    return [
        ("x_api_key", {**base, "X-API-Key": credentials}),
        ("bearer", {**base, "Authorization": f"Bearer {credentials}"}),
        ("jwt", {**base, "Authorization": f"JWT {credentials}"}),
    ]


def is_success(response: requests.Response) -> bool:
    """True for 2xx responses."""
    return 200 <= response.status_code < 300
