"""
User-Agent parsing for the device and browser columns of analytics rows.

Patterns are checked in order, so specific browsers (Edge, Opera, Samsung
Internet) come before the engines they embed (Chrome, Safari).
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DeviceType(str, Enum):
    """Device category."""
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"


@dataclass(frozen=True)
class UserAgentInfo:
    browser: str = "Unknown"
    browser_version: Optional[str] = None
    device_type: DeviceType = DeviceType.DESKTOP

    @property
    def browser_label(self) -> str:
        """Browser family and major version, e.g. ``Chrome 120``."""
        if self.browser_version:
            return f"{self.browser} {self.browser_version}"
        return self.browser


BROWSER_PATTERNS = [
    (r"Edg(?:e|A|iOS)?/(\d+)", "Edge"),
    (r"OPR/(\d+)", "Opera"),
    (r"Opera.*Version/(\d+)", "Opera"),
    (r"Vivaldi/(\d+)", "Vivaldi"),
    (r"SamsungBrowser/(\d+)", "Samsung Internet"),
    (r"YaBrowser/(\d+)", "Yandex"),
    (r"Firefox/(\d+)", "Firefox"),
    (r"FxiOS/(\d+)", "Firefox"),
    (r"CriOS/(\d+)", "Chrome"),
    (r"Chrome/(\d+)", "Chrome"),
    (r"Version/(\d+).*Safari", "Safari"),
    (r"MSIE (\d+)", "Internet Explorer"),
    (r"Trident.*rv:(\d+)", "Internet Explorer"),
]

_COMPILED_BROWSERS = [(re.compile(pattern), name) for pattern, name in BROWSER_PATTERNS]

TABLET_PATTERN = re.compile(r"iPad|Tablet|PlayBook|Silk|Kindle|(Android(?!.*Mobile))", re.IGNORECASE)
MOBILE_PATTERN = re.compile(r"Mobi|iPhone|iPod|Android.*Mobile|Windows Phone|BlackBerry|Opera Mini", re.IGNORECASE)


def detect_device(user_agent: str) -> DeviceType:
    if TABLET_PATTERN.search(user_agent):
        return DeviceType.TABLET
    if MOBILE_PATTERN.search(user_agent):
        return DeviceType.MOBILE
    return DeviceType.DESKTOP


def parse_user_agent(user_agent: Optional[str]) -> UserAgentInfo:
    """Parse a User-Agent header. Missing or unrecognised input yields ``Unknown`` on desktop."""
    if not user_agent:
        return UserAgentInfo()

    browser, version = "Unknown", None
    for pattern, name in _COMPILED_BROWSERS:
        match = pattern.search(user_agent)
        if match:
            browser = name
            version = match.group(1) if match.groups() else None
            break

    return UserAgentInfo(browser=browser, browser_version=version, device_type=detect_device(user_agent))
