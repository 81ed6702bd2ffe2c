"""
Public address discovery for ``[p2p] external_address``.

Asks a short list of "what is my IP" services in order and keeps the first
answer that parses as a public IPv4/IPv6 address. Private, loopback,
link-local and reserved ranges are discarded. Failures only ever produce an
empty string; a validator operator can always set the address by hand.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import List, Optional

import requests

from ..settings import get_settings

log = logging.getLogger(__name__)


def is_ipv6(ip: str) -> bool:
    return ":" in (ip or "")


def is_public_ip(ip: str) -> bool:
    try:
        addr = ipaddress.ip_address((ip or "").strip().split("%", 1)[0])
    except ValueError:
        return False
    return not (
        addr.is_private
        or addr.is_loopback
        or addr.is_link_local
        or addr.is_reserved
        or addr.is_multicast
        or addr.is_unspecified
    )


def format_external_address(ip: str, port: int = 26656) -> str:
    host = f"[{ip}]" if is_ipv6(ip) else ip
    return f"tcp://{host}:{port}"


class PublicIPDetector:
    def __init__(
        self,
        endpoints: Optional[List[str]] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        http = get_settings().http
        self.endpoints = list(endpoints if endpoints is not None else http.public_ip_endpoints)
        self.timeout = float(timeout if timeout is not None else http.public_ip_timeout_sec)
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", http.user_agent)

    def _ask(self, url: str) -> str:
        try:
            r = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            log.debug("public ip endpoint %s failed: %s", url, e)
            return ""
        if r.status_code != 200:
            log.debug("public ip endpoint %s returned HTTP %d", url, r.status_code)
            return ""
        return r.text.strip()

    def detect(self) -> str:
        for url in self.endpoints:
            ip = self._ask(url)
            if ip and is_public_ip(ip):
                return ip
            if ip:
                log.debug("public ip endpoint %s returned non-public %r", url, ip)
        log.warning("could not detect public IP from %d endpoints", len(self.endpoints))
        return ""

    __call__ = detect


def detect_public_ip() -> str:
    return PublicIPDetector().detect()
