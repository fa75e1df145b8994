"""Header construction for upstream requests and relayed responses."""

from collections.abc import Iterable, Mapping

import httpx

# Hop-by-hop headers describe a single connection and are never relayed (RFC 9110 7.6.1)
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)

# Recomputed by the outbound client
_CLIENT_MANAGED_HEADERS = frozenset({"host", "content-length", "user-agent"})


class HeaderBuilder:
    """Build outbound request headers and relayed response headers."""

    def build_upstream_headers(
        self,
        headers: Mapping[str, str],
        user_agent: str,
        *,
        forward: bool = False,
    ) -> list[tuple[str, str]]:
        """Return outbound headers: optional inbound headers plus the User-Agent override."""
        upstream: list[tuple[str, str]] = []
        if forward:
            for key, value in _pairs(headers):
                key_lower = key.lower()
                if key_lower in HOP_BY_HOP_HEADERS or key_lower in _CLIENT_MANAGED_HEADERS:
                    continue
                upstream.append((key, value))
        upstream.append(("User-Agent", user_agent))
        return upstream

    def relay_response_headers(self, headers: httpx.Headers) -> list[tuple[bytes, bytes]]:
        """Return every upstream (key, value) pair as raw ASGI headers, minus hop-by-hop ones.

        Hop-by-hop covers the fixed set plus any name listed in ``Connection``.
        Values stay as received bytes; names are lowercased as ASGI expects.
        Order is kept, so repeated keys keep their value order.
        """
        dropped = HOP_BY_HOP_HEADERS | _connection_options(headers)
        relayed = []
        for key, value in headers.raw:
            key_lower = key.lower()
            if key_lower.decode("latin-1") in dropped:
                continue
            relayed.append((key_lower, value))
        return relayed


def _pairs(headers: Mapping[str, str]) -> Iterable[tuple[str, str]]:
    # httpx.Headers.items() joins repeated keys; Starlette Headers.items() keeps them
    if hasattr(headers, "multi_items"):
        return headers.multi_items()
    return headers.items()


def _connection_options(headers: httpx.Headers) -> frozenset[str]:
    """Header names the upstream marked as connection-specific."""
    return frozenset(
        option.strip().lower()
        for value in headers.get_list("connection")
        for option in value.split(",")
        if option.strip()
    )
