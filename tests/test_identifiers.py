"""Tests for client key extraction strategies."""

import pytest
from starlette.requests import Request

from admission.core.errors import IdentifierUnavailableError
from admission.services.identifiers import (
    api_key_header,
    forwarded_for,
    peer_address,
    resolve_identifier,
)


def _request(client=("203.0.113.7", 40000), headers=None) -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
            "client": client,
        }
    )


def test_peer_address_strips_port() -> None:
    assert peer_address(_request()) == "203.0.113.7"


def test_peer_address_without_client_raises() -> None:
    with pytest.raises(IdentifierUnavailableError) as exc_info:
        peer_address(_request(client=None))

    assert exc_info.value.code == "peer_address_unavailable"


def test_forwarded_for_uses_first_hop() -> None:
    request = _request(headers={"X-Forwarded-For": "198.51.100.1, 10.0.0.2"})

    assert forwarded_for(request) == "198.51.100.1"


def test_forwarded_for_falls_back_to_peer() -> None:
    assert forwarded_for(_request()) == "203.0.113.7"


def test_api_key_header_hashes_value() -> None:
    extract = api_key_header("X-API-Key")

    key_a = extract(_request(headers={"X-API-Key": "secret-a"}))
    key_b = extract(_request(headers={"X-API-Key": "secret-b"}))

    assert key_a.startswith("api_key:")
    assert "secret-a" not in key_a
    assert key_a == extract(_request(client=("198.51.100.9", 1), headers={"X-API-Key": "secret-a"}))
    assert key_a != key_b


def test_api_key_header_missing_raises() -> None:
    with pytest.raises(IdentifierUnavailableError):
        api_key_header()(_request())


def test_resolve_identifier() -> None:
    assert resolve_identifier("peer") is peer_address
    assert resolve_identifier("forwarded") is forwarded_for

    extract = resolve_identifier("api_key", api_key_header_name="X-Token")
    assert extract(_request(headers={"X-Token": "t"})).startswith("api_key:")

    with pytest.raises(ValueError):
        resolve_identifier("cookie")
