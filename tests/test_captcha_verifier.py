from unittest.mock import patch

import pytest
import requests

from evote.security.captcha_verifier import CaptchaVerifier

VERIFY_URL = "https://captcha.test/siteverify"


@pytest.fixture
def verifier():
    return CaptchaVerifier("secret", verify_url=VERIFY_URL, timeout=2.0)


@pytest.mark.parametrize("service_result", [True, False])
def test_verify_reports_service_result(verifier, service_result):
    with patch("evote.security.captcha_verifier.requests.post") as mock_post:
        mock_post.return_value.status_code = 200
        mock_post.return_value.json.return_value = {"success": service_result}
        assert verifier.verify("token", remote_ip="10.0.0.1") is service_result

    mock_post.assert_called_once_with(
        VERIFY_URL,
        params={"secret": "secret", "response": "token", "remoteip": "10.0.0.1"},
        timeout=2.0,
    )


def test_missing_token_never_calls_service(verifier):
    with patch("evote.security.captcha_verifier.requests.post") as mock_post:
        assert verifier.verify("") is False
        assert verifier.verify(None) is False
    mock_post.assert_not_called()


def test_network_failure_is_a_failed_challenge(verifier):
    with patch("evote.security.captcha_verifier.requests.post", side_effect=requests.ConnectionError("down")):
        assert verifier.verify("token") is False


def test_error_status_is_a_failed_challenge(verifier):
    with patch("evote.security.captcha_verifier.requests.post") as mock_post:
        mock_post.return_value.status_code = 503
        assert verifier.verify("token") is False


def test_non_json_body_is_a_failed_challenge(verifier):
    with patch("evote.security.captcha_verifier.requests.post") as mock_post:
        mock_post.return_value.status_code = 200
        mock_post.return_value.json.side_effect = ValueError("not json")
        assert verifier.verify("token") is False
