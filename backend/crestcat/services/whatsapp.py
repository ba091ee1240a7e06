"""
WhatsApp gateway client.

Admin alerts for new deposits and withdrawal requests. The gateway takes the
recipient and the message as ``phone`` and ``text`` query parameters.
"""

from typing import Optional

import httpx

from crestcat.core.logging import get_logger
from crestcat.core.settings import settings

# Initialize logger
logger = get_logger(__name__)


class WhatsAppClient:
    """Sends plain text messages through the configured gateway."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        admin_number: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.api_url = api_url if api_url is not None else settings.notify.WHATSAPP_API_URL
        self.admin_number = admin_number if admin_number is not None else settings.notify.WHATSAPP_ADMIN_NUMBER
        self.timeout = timeout if timeout is not None else settings.notify.WHATSAPP_TIMEOUT_SECONDS

    async def send(self, text: str, phone: Optional[str] = None) -> bool:
        """
        Send ``text`` to ``phone`` (defaults to the admin number).

        Returns:
            True if the gateway accepted the message, False when the channel
            is not configured

        Raises:
            httpx.HTTPError: Transport failure or non-2xx response
        """
        number = phone or self.admin_number
        if not number:
            logger.warning("WhatsApp number not configured")
            return False

        if not self.api_url:
            logger.info("WhatsApp gateway not configured, message logged only", extra={"text": text})
            return False

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(self.api_url, params={"phone": number, "text": text})
            response.raise_for_status()

        logger.info("WhatsApp message sent", extra={"status_code": response.status_code})
        return True
