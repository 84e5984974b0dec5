"""
Visitor fingerprinting helpers: client IP, device/browser and coarse location.
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import requests
from fastapi import Request

from .config import settings
from .user_agent import parse_user_agent

logger = logging.getLogger(__name__)

GEOLOCATION_TIMEOUT_SECONDS = 3


@dataclass
class VisitorInfo:
    ip_address: str
    user_agent: str
    country: Optional[str]
    city: Optional[str]
    device: str
    browser: str


class GeolocationService:
    """Service for determining geographic location from IP addresses."""

    def __init__(self, api_url: Optional[str] = None, enabled: Optional[bool] = None):
        self.api_url = api_url or settings.GEOLOCATION_API_URL
        self.enabled = settings.GEOLOCATION_ENABLED if enabled is None else enabled
        self.fallback_data = {"country": None, "city": None}

    @staticmethod
    def is_public_ip(ip_address: Optional[str]) -> bool:
        """False for loopback, private, link-local and unparseable addresses."""
        if not ip_address:
            return False
        try:
            parsed = ipaddress.ip_address(ip_address)
        except ValueError:
            return False
        return not (parsed.is_private or parsed.is_loopback or parsed.is_link_local
                    or parsed.is_reserved or parsed.is_unspecified)

    def get_location_from_ip(self, ip_address: Optional[str]) -> Dict[str, Optional[str]]:
        """Get country and city for an IP address; unknown on any failure."""
        if not self.enabled or not self.is_public_ip(ip_address):
            return self.fallback_data.copy()

        try:
            response = requests.get(
                self.api_url.format(ip=ip_address),
                params={"fields": "status,country,city,timezone"},
                timeout=GEOLOCATION_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Failed to get location for {ip_address}: {e}")
            return self.fallback_data.copy()

        if data.get("status") != "success":
            return self.fallback_data.copy()

        return {"country": data.get("country"), "city": data.get("city")}

    def get_client_ip(self, request: Request) -> str:
        """Extract the client's real IP address from the request."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

        return request.client.host if request.client else "unknown"

    def get_visitor_info(self, request: Request) -> VisitorInfo:
        """Everything the tracking endpoints record about the caller."""
        ip_address = self.get_client_ip(request)
        user_agent = request.headers.get("user-agent", "")
        parsed = parse_user_agent(user_agent)
        location = self.get_location_from_ip(ip_address)
        return VisitorInfo(
            ip_address=ip_address,
            user_agent=user_agent,
            country=location["country"],
            city=location["city"],
            device=parsed.device_type.value,
            browser=parsed.browser_label,
        )


geolocation_service = GeolocationService()


def get_client_ip(request: Request) -> str:
    return geolocation_service.get_client_ip(request)
