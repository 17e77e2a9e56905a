# evote/security/captcha_verifier.py

# Challenge verifier: a reCAPTCHA token must be confirmed by Google before a
# vote request is allowed to reach the voting engine.

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class CaptchaVerifier:
    def __init__(self, secret_key: str, verify_url: str = "https://www.google.com/recaptcha/api/siteverify",
                 timeout: float = 5.0):
        """
        Args:
            secret_key: reCAPTCHA server-side secret
            verify_url: siteverify endpoint
            timeout: seconds to wait for the verification service
        """
        self.secret_key = secret_key
        self.verify_url = verify_url
        self.timeout = timeout

    def verify(self, token: str, remote_ip: Optional[str] = None) -> bool:
        """
        Verify a CAPTCHA response token.

        Returns:
            bool: True only if the verification service confirmed the token.
            Network failures and malformed responses count as failures.
        """
        if not token or not isinstance(token, str):
            return False

        params = {"secret": self.secret_key, "response": token}
        if remote_ip:
            params["remoteip"] = remote_ip

        try:
            response = requests.post(self.verify_url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"CAPTCHA verification failed: {e}")
            return False

        if response.status_code != 200:
            logger.warning(f"CAPTCHA service returned status {response.status_code}")
            return False
        try:
            data = response.json()
        except ValueError:
            logger.warning("CAPTCHA service returned a non-JSON body")
            return False

        success = bool(data.get("success", False))
        if not success:
            logger.info(f"CAPTCHA rejected: {data.get('error-codes', [])}")
        return success
