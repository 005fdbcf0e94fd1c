"""
CAPTCHA Verification

``CaptchaVerifier`` is the capability the relay pipeline consults after the
rate-limit check. Two implementations:

    - AllowAllCaptchaVerifier: accepts every token (verification disabled)
    - RecaptchaVerifier: Google reCAPTCHA ``siteverify`` over httpx
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from ..config import RelaySettings
from ..logs import get_logger, log_event

LOGGER = get_logger(__name__)

RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


class CaptchaVerifier(ABC):

    @abstractmethod
    async def verify(self, token: str, remote_ip: Optional[str] = None) -> bool:
        """True when the token proves a human solved the challenge."""


class AllowAllCaptchaVerifier(CaptchaVerifier):
    """Accepts every token; used when reCAPTCHA is disabled."""

    async def verify(self, token: str, remote_ip: Optional[str] = None) -> bool:
        log_event(LOGGER, logging.DEBUG, "reCAPTCHA verification disabled, auto-approving token",
                  remoteIp=remote_ip)
        return True


class RecaptchaVerifier(CaptchaVerifier):
    """
    Verifies tokens against Google reCAPTCHA.

    Non-2xx responses, ``success: false`` and transport errors all count as
    a failed verification.
    """

    def __init__(
        self,
        secret: str,
        client: Optional[httpx.AsyncClient] = None,
        url: str = RECAPTCHA_VERIFY_URL,
        timeout: float = 10.0,
    ) -> None:
        if not secret:
            raise ValueError("reCAPTCHA secret is required")
        self._secret = secret
        self._client = client
        self.url = url
        self.timeout = timeout

    async def verify(self, token: str, remote_ip: Optional[str] = None) -> bool:
        data = {"secret": self._secret, "response": token}
        if remote_ip and remote_ip != "unknown":
            data["remoteip"] = remote_ip

        try:
            if self._client is not None:
                response = await self._client.post(self.url, data=data, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, data=data)
        except httpx.HTTPError as e:
            log_event(LOGGER, logging.ERROR, "Error verifying reCAPTCHA", error=str(e))
            return False

        if not response.is_success:
            log_event(LOGGER, logging.ERROR, "reCAPTCHA verification request failed",
                      status=response.status_code)
            return False

        try:
            body = response.json()
        except ValueError:
            log_event(LOGGER, logging.ERROR, "reCAPTCHA response is not JSON")
            return False

        if not body.get("success"):
            log_event(LOGGER, logging.WARNING, "reCAPTCHA verification failed",
                      errorCodes=body.get("error-codes"))
            return False
        return True


def captcha_from_settings(settings: RelaySettings) -> CaptchaVerifier:
    """reCAPTCHA when enabled with a secret, otherwise allow-all."""
    if settings.recaptcha_enabled:
        if not settings.recaptcha_secret:
            raise ValueError("RECAPTCHA_ENABLED is set but RECAPTCHA_SECRET is missing")
        return RecaptchaVerifier(settings.recaptcha_secret)
    return AllowAllCaptchaVerifier()
