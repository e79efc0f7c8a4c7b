"""Tests for the signed webhook notifier."""

from unittest.mock import MagicMock

import pytest
import requests

from git_monitor import notifier
from git_monitor.notifier import (
    DeliveryFailure,
    NotificationPayload,
    TransportFailure,
    WebhookNotifier,
)

ENDPOINT = "https://hooks.example.com/robot/send?access_token=abc"

# Reference values computed independently with
# `printf '%s\n%s' TS SECRET | openssl dgst -sha256 -hmac SECRET -binary | base64`.
KNOWN_SIGNATURES = [
    ("SECtest", 1700000000000, "aZLLrriXgn05YbwaGR7knYsLeJADjr9NwLaNNKpxh4g="),
    ("SECtest", 1700000000001, "r4CWp/Dz+Ng0sbTjH1vB0Fr+uQ2fn831mssaN6/C05I="),
]


@pytest.mark.parametrize(("secret", "timestamp", "expected"), KNOWN_SIGNATURES)
def test_generate_signature_matches_reference(
    secret: str, timestamp: int, expected: str
) -> None:
    assert notifier.generate_signature(secret, timestamp) == expected
    assert notifier.generate_signature(secret, str(timestamp)) == expected


def test_build_payload_unsigned_without_secret() -> None:
    for secret in (None, ""):
        payload = notifier.build_payload("hello", secret)
        assert payload == NotificationPayload("hello")
        assert notifier.signed_url(ENDPOINT, payload) == ENDPOINT


def test_signed_url_escapes_reserved_characters() -> None:
    """Verifies '+', '/' and '=' in the base64 signature are percent-encoded."""
    payload = notifier.build_payload("hello", "SECtest", timestamp=1700000000001)

    assert payload.signed_timestamp == 1700000000001
    assert notifier.signed_url(ENDPOINT, payload) == (
        f"{ENDPOINT}&timestamp=1700000000001"
        "&sign=r4CWp%2FDz%2BNg0sbTjH1vB0Fr%2BuQ2fn831mssaN6%2FC05I%3D"
    )


def test_signed_url_starts_query_when_endpoint_has_none() -> None:
    payload = notifier.build_payload("hello", "SECtest", timestamp=1700000000000)

    url = notifier.signed_url("https://hooks.example.com/send", payload)

    assert url.startswith(
        "https://hooks.example.com/send?timestamp=1700000000000&sign="
    )


def test_send_unsigned_posts_json_body(mocker: MagicMock) -> None:
    mock_post = mocker.patch("requests.post")
    mock_post.return_value.status_code = 200

    notifier.send(ENDPOINT, "", "New files synced:\n- c.txt", timeout=5)

    mock_post.assert_called_once_with(
        ENDPOINT,
        json={"msgtype": "text", "text": {"content": "New files synced:\n- c.txt"}},
        timeout=5,
    )


def test_send_signed_appends_timestamp_and_sign(mocker: MagicMock) -> None:
    mocker.patch("git_monitor.notifier.current_millis", return_value=1700000000001)
    mock_post = mocker.patch("requests.post")
    mock_post.return_value.status_code = 200

    notifier.send(ENDPOINT, "SECtest", "hi")

    url = mock_post.call_args[0][0]
    assert "&timestamp=1700000000001&sign=r4CWp%2FDz%2B" in url


def test_send_non_200_raises_delivery_failure(mocker: MagicMock) -> None:
    mock_post = mocker.patch("requests.post")
    mock_post.return_value.status_code = 403
    mock_post.return_value.text = '{"errcode": 310000, "errmsg": "sign not match"}'

    with pytest.raises(DeliveryFailure) as exc_info:
        notifier.send(ENDPOINT, "SECtest", "hi")

    assert exc_info.value.status == 403
    assert "sign not match" in exc_info.value.body


def test_send_transport_error_raises_transport_failure(mocker: MagicMock) -> None:
    error = requests.ConnectionError("connection refused")
    mocker.patch("requests.post", side_effect=error)

    with pytest.raises(TransportFailure) as exc_info:
        notifier.send(ENDPOINT, None, "hi")

    assert exc_info.value.cause is error


def test_webhook_notifier_uses_its_session() -> None:
    session = MagicMock()
    session.post.return_value.status_code = 200
    hook = WebhookNotifier(ENDPOINT, secret=None, timeout=7, session=session)

    hook.send("hello")

    session.post.assert_called_once()
    assert session.post.call_args.kwargs["timeout"] == 7
    assert session.post.call_args.args[0] == ENDPOINT
