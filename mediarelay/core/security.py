import asyncio
import ipaddress
import socket
from enum import Enum, auto
from urllib.parse import urlparse

from mediarelay.config.settings import config


class UrlValidationResult(Enum):
    """URL validation result without throwing exceptions"""
    OK = auto()
    BLOCKED = auto()
    INVALID = auto()


class SecurityValidator:
    """
    Validate source URLs before they reach yt-dlp.
    Returns a result enum; the caller decides which error to raise.
    """

    @staticmethod
    def check_syntax(url: str) -> UrlValidationResult:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            return UrlValidationResult.INVALID
        return UrlValidationResult.OK

    @staticmethod
    async def validate_url(url: str) -> UrlValidationResult:
        """
        Validate URL syntax, then reject hosts resolving to loopback,
        private, link-local or multicast addresses.
        """
        try:
            syntax = SecurityValidator.check_syntax(url)
        except ValueError:
            return UrlValidationResult.INVALID
        if syntax is not UrlValidationResult.OK:
            return syntax

        if not config.security.enable_ssrf_protection:
            return UrlValidationResult.OK

        hostname = urlparse(url).hostname

        try:
            addr_info = await asyncio.to_thread(socket.getaddrinfo, hostname, None)
        except socket.gaierror:
            # Unresolvable here; yt-dlp reports its own error
            return UrlValidationResult.OK

        for info in addr_info:
            try:
                ip = ipaddress.ip_address(info[4][0])
            except ValueError:
                continue

            if ip.is_loopback:
                if not config.security.allow_localhost:
                    return UrlValidationResult.BLOCKED
                continue

            if not config.security.allow_private_ips and ip.is_private:
                return UrlValidationResult.BLOCKED

            if ip.is_link_local or ip.is_multicast:
                return UrlValidationResult.BLOCKED

        return UrlValidationResult.OK
