"""
Customer email notifications (Resend)
Sending never raises: callers get {"success": False, "error": ...} instead
"""

import html
import logging
from typing import Dict, List, Optional, Union

import resend

from wingside.core.settings import settings

logger = logging.getLogger(__name__)

BRAND_YELLOW = "#F7C400"
BRAND_BROWN = "#552627"


def send_email(to: Union[str, List[str]], subject: str, html_body: str, reply_to: Optional[str] = None) -> Dict:
    if not settings.RESEND_API_KEY:
        logger.warning("⚠️ Resend not configured (RESEND_API_KEY missing), email skipped")
        return {"success": False, "error": "Email service not configured"}

    resend.api_key = settings.RESEND_API_KEY
    payload = {
        "from": settings.FROM_EMAIL,
        "to": to if isinstance(to, list) else [to],
        "subject": subject,
        "html": html_body,
    }
    reply_to = reply_to or settings.ADMIN_EMAIL
    if reply_to:
        payload["reply_to"] = reply_to

    try:
        response = resend.Emails.send(payload)
    except Exception as e:
        logger.error(f"❌ Error sending email '{subject}': {e}")
        return {"success": False, "error": str(e)}

    email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
    if not email_id:
        logger.error(f"❌ Resend returned no id for '{subject}': {response}")
        return {"success": False, "error": str(response)}

    logger.info(f"📧 Email sent: {subject} ({email_id})")
    return {"success": True, "id": email_id}


def _layout(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
      <div style="background: {BRAND_YELLOW}; padding: 20px; text-align: center; border-radius: 8px 8px 0 0;">
        <h1 style="margin: 0; color: {BRAND_BROWN};">{html.escape(title)}</h1>
      </div>
      <div style="background: #f9f9f9; padding: 30px; border: 1px solid #ddd; border-top: none; border-radius: 0 0 8px 8px;">
        {body}
      </div>
      <p style="text-align: center; font-size: 12px; color: #666;">Wingside &middot; Where Flavor Takes Flight</p>
    </div>
  </body>
</html>"""


def _naira(amount) -> str:
    return f"₦{float(amount or 0):,.2f}"


def tracking_url(order: Dict) -> str:
    return f"{settings.APP_URL.rstrip('/')}/track/{order.get('tracking_token')}"


def send_order_confirmation(order: Dict, items: Optional[List[Dict]] = None) -> Dict:
    if not order.get("customer_email"):
        return {"success": False, "error": "Order has no customer email"}

    rows = "".join(
        f"<tr><td>{item.get('quantity')} × {html.escape(str(item.get('product_name')))}</td>"
        f"<td style='text-align:right'>{_naira(item.get('total_price'))}</td></tr>"
        for item in (items or [])
    )
    body = f"""
        <p>Hi {html.escape(order.get('customer_name') or 'there')},</p>
        <p>Your payment was received and order <strong>#{html.escape(str(order.get('order_number')))}</strong> is confirmed.</p>
        <table style="width:100%">{rows}
          <tr><td><strong>Total</strong></td><td style="text-align:right"><strong>{_naira(order.get('total'))}</strong></td></tr>
        </table>
        <p><a href="{tracking_url(order)}">Track your order</a></p>
    """
    return send_email(order["customer_email"], f"Order #{order.get('order_number')} confirmed", _layout("Your order is confirmed!", body))


def send_order_status_update(order: Dict, status_message: str) -> Dict:
    if not order.get("customer_email"):
        return {"success": False, "error": "Order has no customer email"}

    body = f"""
        <p>Hi {html.escape(order.get('customer_name') or 'there')},</p>
        <p>Order <strong>#{html.escape(str(order.get('order_number')))}</strong>: {html.escape(status_message)}</p>
        <p><a href="{tracking_url(order)}">Track your order</a></p>
    """
    return send_email(order["customer_email"], f"Order #{order.get('order_number')} update", _layout("Order update", body))


def send_gift_card(gift_card: Dict) -> Dict:
    body = f"""
        <p>Hi {html.escape(gift_card.get('recipient_name') or 'there')},</p>
        <p>You've received a Wingside gift card worth <strong>{_naira(gift_card.get('initial_balance'))}</strong>.</p>
        <p style="font-size: 24px; letter-spacing: 4px; text-align: center; color: {BRAND_BROWN};">
          <strong>{html.escape(str(gift_card.get('code')))}</strong>
        </p>
        <p>Use this code at checkout before {html.escape(str(gift_card.get('expires_at', ''))[:10])}.</p>
    """
    return send_email(gift_card["recipient_email"], "You've received a Wingside gift card 🎁", _layout("A gift for you!", body))
