from .apps import RelayServer, get_client_ip, build_fee_calculator
from .captcha import CaptchaVerifier, AllowAllCaptchaVerifier, RecaptchaVerifier, captcha_from_settings
from .flows import RelayPipeline, setup_event_bus, ADMISSION_STEPS

__all__ = [
    "RelayServer",
    "get_client_ip",
    "build_fee_calculator",
    "CaptchaVerifier",
    "AllowAllCaptchaVerifier",
    "RecaptchaVerifier",
    "captcha_from_settings",
    "RelayPipeline",
    "setup_event_bus",
    "ADMISSION_STEPS",
]
