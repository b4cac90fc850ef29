"""
User-agent heuristics for tracking hits.

Substring matching only; the goal is a coarse split between human devices
and automated fetchers (ATS scanners, mail link checkers, crawlers).
"""

from dataclasses import dataclass

from .domain.models import DeviceType

CLOUD_IDENTIFIERS = (
    "aws",
    "googlecloud",
    "azure",
    "cloudfront",
    "akamai",
    "fastly",
    "cloudflare",
    "bot",
    "crawler",
    "spider",
)


@dataclass(frozen=True, slots=True)
class UserAgentInfo:
    device_type: DeviceType
    is_cloud_service: bool


def is_cloud_service(user_agent: str | None) -> bool:
    ua = (user_agent or "").lower()
    return any(identifier in ua for identifier in CLOUD_IDENTIFIERS)


def determine_device_type(user_agent: str | None) -> DeviceType:
    ua = (user_agent or "").lower()
    if not ua or ua == "unknown":
        return DeviceType.UNKNOWN
    if "mobile" in ua:
        return DeviceType.MOBILE
    if "tablet" in ua:
        return DeviceType.TABLET
    # Cloud fetchers have no physical device
    if "cloud" in ua or is_cloud_service(ua):
        return DeviceType.UNKNOWN
    return DeviceType.DESKTOP


def classify_user_agent(user_agent: str | None) -> UserAgentInfo:
    return UserAgentInfo(
        device_type=determine_device_type(user_agent),
        is_cloud_service=is_cloud_service(user_agent),
    )
