import pytest

from resume_tracker.features.engagement.domain.models import DeviceType
from resume_tracker.features.engagement.user_agent import (
    classify_user_agent,
    determine_device_type,
    is_cloud_service,
)

DESKTOP_CHROME = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
IPHONE_SAFARI = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


@pytest.mark.parametrize(
    ("user_agent", "expected"),
    [
        (DESKTOP_CHROME, DeviceType.DESKTOP),
        (IPHONE_SAFARI, DeviceType.MOBILE),
        ("Mozilla/5.0 (Linux; Android 13; Tablet) AppleWebKit/537.36", DeviceType.TABLET),
        ("Amazon CloudFront", DeviceType.UNKNOWN),
        ("Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)", DeviceType.UNKNOWN),
        ("", DeviceType.UNKNOWN),
        (None, DeviceType.UNKNOWN),
        ("unknown", DeviceType.UNKNOWN),
    ],
)
def test_determine_device_type(user_agent, expected):
    assert determine_device_type(user_agent) == expected


@pytest.mark.parametrize(
    "user_agent",
    [
        "Amazon CloudFront",
        "Mozilla/5.0 (compatible; bingbot/2.0)",
        "Slack-ImgProxy (+https://api.slack.com/robots) crawler",
        "Azure Logic Apps",
    ],
)
def test_automated_fetchers_are_cloud_services(user_agent):
    assert is_cloud_service(user_agent) is True


def test_human_browsers_are_not_cloud_services():
    assert is_cloud_service(DESKTOP_CHROME) is False
    assert is_cloud_service(IPHONE_SAFARI) is False
    assert is_cloud_service(None) is False


def test_classify_user_agent_combines_both_signals():
    info = classify_user_agent("Mozilla/5.0 (compatible; Googlebot/2.1)")

    assert info.device_type == DeviceType.UNKNOWN
    assert info.is_cloud_service is True
