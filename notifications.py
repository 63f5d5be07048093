"""SMS updates to customers when their order changes status (Twilio)."""

import logging
import os
from typing import Any, Dict, Optional

from pydantic import BaseModel
from twilio.rest import Client

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    "confirmed": "has been confirmed by the restaurant",
    "preparing": "is being prepared",
    "out_for_delivery": "is out for delivery",
    "delivered": "has been delivered. Enjoy your meal!",
    "cancelled": "has been cancelled",
}


class StatusNotification(BaseModel):
    sent: bool
    to: Optional[str] = None
    message_sid: Optional[str] = None
    preview: str


def format_status_sms(order: Dict[str, Any]) -> str:
    order_id = str(order.get("_id", order.get("id", "")))
    status = order.get("status", "")
    text = f"Order #{order_id[-6:]} {STATUS_MESSAGES.get(status, f'is now {status}')}."
    if status == "out_for_delivery":
        text += " Track it live in the app."
    # SMS length safety
    return (text[:157] + "…") if len(text) > 160 else text


def notify_status_change(order: Dict[str, Any]) -> StatusNotification:
    text = format_status_sms(order)
    target_phone = (order.get("delivery_address") or {}).get("phone")

    account_sid = os.getenv("TWILIO_ACCOUNT_SID")
    auth_token = os.getenv("TWILIO_AUTH_TOKEN")
    from_number = os.getenv("TWILIO_FROM_NUMBER")

    if not target_phone or not (account_sid and auth_token and from_number):
        # If creds or phone missing, log a preview without sending
        logger.info("SMS not sent (%s): %s", target_phone or "no phone", text)
        return StatusNotification(sent=False, to=target_phone, preview=text)

    try:
        client = Client(account_sid, auth_token)
        msg = client.messages.create(body=text, from_=from_number, to=target_phone)
    except Exception:
        # TwilioException for API errors, transport errors from the HTTP client otherwise
        logger.exception("SMS send failed for order %s", order.get("_id"))
        return StatusNotification(sent=False, to=target_phone, preview=text)
    return StatusNotification(sent=True, to=target_phone, message_sid=getattr(msg, "sid", None), preview=text)
