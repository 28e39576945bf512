"""Tests for client address extraction behind (and without) proxies."""

import pytest
from starlette.requests import Request

from storegate.middleware.security import get_client_ip, is_trusted_proxy


def make_request(peer, **headers):
    raw = [(name.replace("_", "-").lower().encode(), value.encode()) for name, value in headers.items()]
    return Request({
        "type": "http",
        "method": "POST",
        "path": "/api/auth/unlock",
        "headers": raw,
        "client": (peer, 52000) if peer else None,
    })


class TestTrustedProxy:
    @pytest.mark.parametrize("host,entries", [
        ("10.0.0.5", ["10.0.0.5"]),
        ("10.0.0.5", ["10.0.0.0/8"]),
        ("2001:db8::1", ["2001:db8::/32"]),
        ("testclient", ["testclient"]),
        ("192.0.2.1", ["*"]),
    ])
    def test_matches(self, host, entries):
        assert is_trusted_proxy(host, entries)

    @pytest.mark.parametrize("host,entries", [
        ("10.0.0.5", []),
        ("11.0.0.5", ["10.0.0.0/8"]),
        ("testclient", ["10.0.0.0/8"]),
        ("10.0.0.5", ["not-a-network"]),
        (None, ["*"]),
    ])
    def test_rejects(self, host, entries):
        assert not is_trusted_proxy(host, entries)


class TestGetClientIP:
    def test_untrusted_peer_ignores_forwarding_headers(self):
        request = make_request(
            "198.51.100.9",
            x_forwarded_for="203.0.113.7",
            x_real_ip="203.0.113.8",
            client_ip="203.0.113.9",
        )
        assert get_client_ip(request) == "198.51.100.9"

    def test_rotating_header_from_untrusted_peer_keeps_identity(self):
        seen = {
            get_client_ip(make_request("198.51.100.9", x_forwarded_for=f"203.0.113.{n}"), ["10.0.0.0/8"])
            for n in range(1, 6)
        }
        assert seen == {"198.51.100.9"}

    def test_trusted_peer_uses_forwarded_for(self):
        request = make_request("10.0.0.5", x_forwarded_for="203.0.113.7")
        assert get_client_ip(request, ["10.0.0.0/8"]) == "203.0.113.7"

    def test_rightmost_untrusted_hop_wins(self):
        # The client can prepend anything; only hops our proxies appended count
        request = make_request("10.0.0.5", x_forwarded_for="1.1.1.1, 203.0.113.7, 10.0.0.4")
        assert get_client_ip(request, ["10.0.0.0/8"]) == "203.0.113.7"

    def test_all_hops_trusted_uses_leftmost(self):
        request = make_request("10.0.0.5", x_forwarded_for="10.0.0.3, 10.0.0.4")
        assert get_client_ip(request, ["10.0.0.0/8"]) == "10.0.0.3"

    def test_wildcard_trusts_every_hop(self):
        request = make_request("10.0.0.5", x_forwarded_for="203.0.113.7, 198.51.100.2")
        assert get_client_ip(request, ["*"]) == "203.0.113.7"

    def test_real_ip_then_client_ip(self):
        assert get_client_ip(make_request("10.0.0.5", x_real_ip="203.0.113.8"), ["10.0.0.5"]) == "203.0.113.8"
        assert get_client_ip(make_request("10.0.0.5", client_ip="203.0.113.9"), ["10.0.0.5"]) == "203.0.113.9"

    def test_trusted_peer_without_headers(self):
        assert get_client_ip(make_request("10.0.0.5"), ["10.0.0.5"]) == "10.0.0.5"

    def test_forwarded_ipv6_is_canonicalized(self):
        request = make_request("10.0.0.5", x_forwarded_for="2001:DB8:0::0001")
        assert get_client_ip(request, ["10.0.0.5"]) == "2001:db8::1"

    def test_missing_peer_is_unknown(self):
        assert get_client_ip(make_request(None, x_forwarded_for="203.0.113.7")) == "unknown"

    def test_garbage_forwarded_value_is_unknown(self):
        request = make_request("10.0.0.5", x_forwarded_for="not-an-ip")
        assert get_client_ip(request, ["10.0.0.5"]) == "unknown"
