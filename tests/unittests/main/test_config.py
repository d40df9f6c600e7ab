import pytest

from pagewatch.main.config import Settings, normalize_base_url


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("https://Tracker.example.com/", "https://tracker.example.com"),
        ("http://localhost:8123", "http://localhost:8123"),
        ("https://example.com/tracker/", "https://example.com/tracker"),
        (None, None),
    ],
)
def test_normalize_base_url(raw, expected):
    assert normalize_base_url(raw) == expected


@pytest.mark.parametrize("raw", ["", "ftp://example.com", "https://", "https://example.com/?a=1"])
def test_normalize_base_url_rejects_invalid(raw):
    with pytest.raises(ValueError):
        normalize_base_url(raw)


def test_tracking_sources_from_json():
    settings = Settings(
        tracking_sources='[{"name": "牛经沧海", "url": "https://bbs.example.com/a"}]',
        testing=True,
    )

    assert [source.name for source in settings.tracking_sources] == ["牛经沧海"]


def test_notification_recipients_are_split_and_trimmed(test_settings):
    assert test_settings.notification_recipients == ["reader@example.com", "second@example.com"]
    assert Settings(notification_email=" , ", testing=True).notification_recipients == []


def test_resolved_base_url_falls_back_to_local_server():
    assert Settings(base_url=None, testing=True).resolved_base_url == "http://localhost:8123"


@pytest.mark.parametrize(
    "overrides",
    [
        {"discover_batch_size": 0},
        {"fetch_batch_size": 0},
        {"rate_limit_seconds": -1},
        {"job_timeout_seconds": 600, "job_ttl_seconds": 300},
        {"base_url": "not a url"},
    ],
)
def test_invalid_settings_exit(overrides):
    with pytest.raises(SystemExit):
        Settings(testing=True, **overrides)
