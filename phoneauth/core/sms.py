import asyncio
import logging
import aiohttp
from .config import Settings

logger = logging.getLogger(__name__)


class SmsSender:
    """Sends text messages through an HTTP SMS gateway."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def is_dev_mode(self) -> bool:
        return not self.settings.SMS_API_KEY

    async def send_otp(self, phone: str, otp_code: str) -> bool:
        message = (
            f"{otp_code} is your verification code. "
            f"It expires in {self.settings.OTP_EXPIRE_MINUTES} minutes."
        )
        if self.is_dev_mode:
            logger.info(f"[DEV MODE] OTP for {phone}: {otp_code}")
            return True
        return await self.send(phone, message)

    async def send(self, phone: str, message: str) -> bool:
        """Deliver one message. Failures are logged and reported as False."""
        if self.is_dev_mode:
            logger.info(f"[DEV MODE] SMS to {phone}: {message}")
            return True

        headers = {
            "authkey": self.settings.SMS_API_KEY,
            "Content-Type": "application/json",
        }
        payload = {
            "sender": self.settings.SMS_SENDER_ID,
            "recipients": [{"mobiles": phone, "message": message}],
        }
        timeout = aiohttp.ClientTimeout(total=self.settings.SMS_TIMEOUT_SECONDS)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.settings.SMS_API_URL, json=payload, headers=headers) as response:
                    if 200 <= response.status < 300:
                        logger.info(f"[SMS SENT] message sent to {phone}")
                        return True
                    body = await response.text()
                    logger.error(f"[SMS ERROR] gateway returned {response.status} for {phone}: {body}")
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[SMS ERROR] Failed to send to {phone}: {e}")
            return False
