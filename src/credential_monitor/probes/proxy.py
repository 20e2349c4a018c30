# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Outbound proxy resolution for probes.

Credential records may carry a proxy descriptor, either as a dict or as a
JSON string:
    {"type": "socks5", "host": "10.0.0.2", "port": 1080,
     "username": "u", "password": "p"}

A plain proxy URL string ("http://host:port") is accepted as well. SOCKS
proxies need the httpx[socks] extra.
"""

import logging
import urllib.parse
from typing import Any, Optional

import httpx

from ..core.types import parse_json_field

lib_logger = logging.getLogger("credential_monitor")

SUPPORTED_SCHEMES = ("http", "https", "socks5", "socks5h")


def proxy_url_from_descriptor(descriptor: Any) -> Optional[str]:
    """
    Build a proxy URL from a descriptor.

    Returns:
        Proxy URL, or None if there is no descriptor or it cannot be used
    """
    if not descriptor:
        return None

    if isinstance(descriptor, str) and "://" in descriptor:
        scheme = descriptor.split("://", 1)[0].lower()
        if scheme not in SUPPORTED_SCHEMES:
            lib_logger.warning(f"Unsupported proxy scheme '{scheme}', probing direct")
            return None
        return descriptor

    data = parse_json_field(descriptor)
    if data is None:
        lib_logger.warning("Failed to parse proxy configuration, probing direct")
        return None

    scheme = str(data.get("type") or data.get("protocol") or "http").lower()
    if scheme == "socks":
        scheme = "socks5"
    host = data.get("host")
    raw_port = data.get("port")
    if scheme not in SUPPORTED_SCHEMES or not host or not raw_port:
        lib_logger.warning(
            f"Incomplete proxy configuration (type={scheme}, host={host}), probing direct"
        )
        return None

    try:
        port = int(raw_port)
    except (TypeError, ValueError):
        port = 0
    if isinstance(raw_port, bool) or not 0 < port < 65536:
        lib_logger.warning(f"Invalid proxy port '{raw_port}', probing direct")
        return None

    auth = ""
    username = data.get("username")
    if username:
        auth = urllib.parse.quote(str(username), safe="")
        password = data.get("password")
        if password:
            auth += ":" + urllib.parse.quote(str(password), safe="")
        auth += "@"

    return f"{scheme}://{auth}{host}:{port}"


def build_transport(descriptor: Any) -> Optional[httpx.AsyncHTTPTransport]:
    """
    Build an httpx transport routed through the credential's proxy.

    Returns:
        AsyncHTTPTransport, or None to connect directly
    """
    url = proxy_url_from_descriptor(descriptor)
    if not url:
        return None
    try:
        return httpx.AsyncHTTPTransport(proxy=url)
    except ImportError as e:
        # SOCKS support is an optional extra
        lib_logger.warning(f"Proxy transport unavailable ({e}), probing direct")
        return None
    except (httpx.InvalidURL, ValueError) as e:
        lib_logger.warning(f"Invalid proxy URL ({e}), probing direct")
        return None
