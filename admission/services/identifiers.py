"""Client key extraction strategies.

An identifier is any callable ``Request -> str``. The decision engine only
sees the callable, so strategies can be swapped without touching admission
logic. Extractors raise ``IdentifierUnavailableError`` instead of guessing a
fallback key, since a shared fallback would pool unrelated callers into one
quota.
"""

from __future__ import annotations

import hashlib
from typing import Callable

from starlette.requests import Request

from admission.core.errors import IdentifierUnavailableError

Identifier = Callable[[Request], str]


def peer_address(request: Request) -> str:
    """Return the caller's network peer address without the port.

    Raises:
        IdentifierUnavailableError: If the transport exposes no peer.
    """

    client = request.client
    if client is None or not client.host:
        raise IdentifierUnavailableError(
            code="peer_address_unavailable",
            message="Cannot determine the client peer address",
        )
    return client.host


def forwarded_for(request: Request) -> str:
    """Return the originating address from ``X-Forwarded-For``.

    Only use behind a proxy that overwrites the header; clients can forge it.
    Falls back to the peer address when the header is absent.
    """

    header = request.headers.get("x-forwarded-for", "")
    first_hop = header.split(",")[0].strip()
    if first_hop:
        return first_hop
    return peer_address(request)


def api_key_header(header_name: str = "X-API-Key") -> Identifier:
    """Build an extractor keyed on an API key header.

    The key is hashed so raw credentials never become store keys.

    Args:
        header_name: Request header carrying the API key.

    Returns:
        Identifier returning ``api_key:<digest>``.
    """

    def _extract(request: Request) -> str:
        value = request.headers.get(header_name, "").strip()
        if not value:
            raise IdentifierUnavailableError(
                code="api_key_missing",
                message=f"Missing {header_name} header",
                details={"hint": f"Send the {header_name} header"},
            )
        digest = hashlib.sha256(value.encode()).hexdigest()[:32]
        return f"api_key:{digest}"

    return _extract


def resolve_identifier(name: str, *, api_key_header_name: str = "X-API-Key") -> Identifier:
    """Map a configured strategy name onto an extractor.

    Raises:
        ValueError: If the strategy name is unknown.
    """

    if name == "peer":
        return peer_address
    if name == "forwarded":
        return forwarded_for
    if name == "api_key":
        return api_key_header(api_key_header_name)
    raise ValueError(f"Unknown identifier strategy: {name!r}")
