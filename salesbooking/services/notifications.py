"""Viewing confirmation email (Mailgun, SendGrid fallback). Delivery is best effort: every
function here logs and returns False instead of raising."""
import logging
from datetime import datetime, timezone
from html import escape
from zoneinfo import ZoneInfo

from salesbooking.config import get_settings

logger = logging.getLogger("uvicorn.error")

MAILGUN_US_BASE = "https://api.mailgun.net"
MAILGUN_EU_BASE = "https://api.eu.mailgun.net"

CONFIRMATION_SUBJECT = "Viewing confirmed + one small request"


def send_email(to_email: str, subject: str, html_content: str, text_content: str | None = None) -> bool:
    """Send email via Mailgun (preferred) or SendGrid. Returns True only if a provider accepted it."""
    settings = get_settings()
    if not to_email:
        logger.warning("[Email] NOT SENT: no recipient (subject=%s)", subject)
        return False
    if settings.mailgun_api_key and settings.mailgun_domain:
        return _send_email_mailgun(to_email, subject, html_content, text_content=text_content, settings=settings)
    if settings.sendgrid_api_key:
        return _send_email_sendgrid(to_email, subject, html_content, text_content=text_content, settings=settings)
    logger.warning(
        "[Email] NOT SENT: subject=%s. Neither MAILGUN_API_KEY+MAILGUN_DOMAIN nor SENDGRID_API_KEY is set.",
        subject,
    )
    return False


def _send_email_mailgun(to_email: str, subject: str, html_content: str, text_content: str | None = None, settings=None) -> bool:
    if settings is None:
        settings = get_settings()
    try:
        import httpx

        base = (settings.mailgun_base_url or MAILGUN_US_BASE).strip().rstrip("/")
        domain = (settings.mailgun_domain or "").strip().lower()
        from_addr = (settings.mailgun_from_email or "").strip()
        from_domain = from_addr.split("@")[-1].lower() if "@" in from_addr else ""
        if domain and from_domain != domain:
            # Mailgun drops mail whose sender domain differs from the sending domain
            from_addr = f"noreply@{domain}"
        data = {
            "from": f"{settings.mailgun_from_name} <{from_addr}>",
            "to": to_email,
            "subject": subject,
            "text": text_content or "",
            "html": html_content or "",
        }
        with httpx.Client(timeout=10.0) as client:
            r = client.post(f"{base}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
            if 200 <= r.status_code < 300:
                logger.info("[Mailgun] sent subject=%s status=%s", subject, r.status_code)
                return True
            if r.status_code == 401 and base == MAILGUN_US_BASE:
                logger.info("[Mailgun] 401 with US endpoint, retrying EU endpoint")
                r2 = client.post(f"{MAILGUN_EU_BASE}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
                if 200 <= r2.status_code < 300:
                    logger.info("[Mailgun] sent via EU endpoint subject=%s", subject)
                    return True
                logger.warning("[Mailgun] EU request failed: status=%s body=%s", r2.status_code, r2.text[:500])
                return False
            logger.warning("[Mailgun] API failed: status=%s body=%s", r.status_code, r.text[:500])
            return False
    except Exception as e:
        logger.warning("[Mailgun] Exception: %s: %s", type(e).__name__, e)
        return False


def _send_email_sendgrid(to_email: str, subject: str, html_content: str, text_content: str | None = None, settings=None) -> bool:
    if settings is None:
        settings = get_settings()
    try:
        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Mail

        message = Mail(
            from_email=(settings.sendgrid_from_email, settings.sendgrid_from_name),
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
            plain_text_content=text_content or "",
        )
        SendGridAPIClient(settings.sendgrid_api_key).send(message)
        return True
    except Exception as e:
        logger.warning("[SendGrid] Exception: %s: %s", type(e).__name__, e)
        return False


def format_viewing_time(slot_start: datetime, tz_name: str | None = None) -> str:
    """DD/MM/YYYY HH:mm in the office timezone. Naive datetimes are treated as UTC."""
    tz = ZoneInfo(tz_name or get_settings().display_timezone)
    if slot_start.tzinfo is None:
        slot_start = slot_start.replace(tzinfo=timezone.utc)
    return slot_start.astimezone(tz).strftime("%d/%m/%Y %H:%M")


_BUTTON_STYLE = (
    "display:inline-block;background-color:#e60000;color:#ffffff;text-decoration:none;"
    "font-weight:bold;padding:14px 22px;border-radius:8px;font-family:Arial,Helvetica,sans-serif;"
    "font-size:16px;box-shadow:0 2px 6px rgba(0,0,0,0.2);"
)
_TEXT_STYLE = "color:#2e4057"


def compose_viewing_confirmation(listing: dict, viewing_time: str, finance_url: str | None) -> str:
    """Branded HTML confirmation. `listing` holds address, property_configuration and map_link."""
    settings = get_settings()
    address = escape(listing.get("address") or "")
    configuration = escape(listing.get("property_configuration") or "")
    map_link = listing.get("map_link") or ""
    if map_link:
        place = (
            f'<a href="{escape(map_link, quote=True)}" target="_blank" rel="noopener noreferrer" '
            f'style="color:#1f497d;text-decoration:underline;font-weight:bold">{address}</a>'
        )
    else:
        place = address
    what = f" ({configuration})" if configuration else ""

    finance_block = ""
    if finance_url:
        finance_block = f"""
      <p style="{_TEXT_STYLE}">
        Please fill in a short online questionnaire telling me, without any obligation, how you are
        thinking of financing the purchase.
      </p>
      <div style="margin:12px 0">
        <a href="{escape(finance_url, quote=True)}" target="_blank" rel="noopener noreferrer" style="{_BUTTON_STYLE}">
          Fill in the online form
        </a>
      </div>
      <p style="{_TEXT_STYLE}">
        It lets me plan the transaction around your situation and, if you want, put you in touch
        with a trusted financial advisor. If your financing is already arranged, that helps too.
      </p>"""

    signature = ""
    if settings.agent_name:
        photo = f"{settings.img_base}/agent.jpg" if settings.img_base else ""
        photo_cell = (
            f'<img src="{escape(photo, quote=True)}" alt="{escape(settings.agent_name)}" width="96" '
            'style="display:block;border:0;border-radius:6px;max-width:100%;height:auto" />'
            if photo else ""
        )
        contact = ""
        if settings.agent_phone:
            contact += f"M: {escape(settings.agent_phone)}<br/>"
        if settings.agent_email:
            contact += (
                f'E: <a href="mailto:{escape(settings.agent_email, quote=True)}" '
                f'style="color:#1f497d;text-decoration:none">{escape(settings.agent_email)}</a>'
            )
        signature = f"""
      <table role="presentation" cellpadding="0" cellspacing="0" border="0" style="width:100%;max-width:640px;margin-top:12px">
        <tr>
          <td style="width:96px;vertical-align:top;padding:6px 8px 6px 0">{photo_cell}</td>
          <td style="vertical-align:top;padding:6px 0;font-size:15px;line-height:1.6;{_TEXT_STYLE}">
            <strong style="color:#1f497d">{escape(settings.agent_name)}</strong><br/>
            Your real estate agent<br/>
            {contact}
          </td>
        </tr>
      </table>"""

    inner = f"""
    <div style="font-family:Arial,Helvetica,sans-serif;font-size:16px;line-height:1.7;{_TEXT_STYLE}">
      <p style="{_TEXT_STYLE}">Hello,</p>
      <p style="{_TEXT_STYLE}">
        thank you for your interest in viewing the property{what}. I look forward to meeting you on
        <strong>{escape(viewing_time)}</strong> at {place}.
      </p>
      {finance_block}
      <p style="{_TEXT_STYLE}">Thank you, and do not hesitate to contact me with any questions.</p>
      <p style="{_TEXT_STYLE}">See you soon!</p>
      {signature}
    </div>""".strip()

    return f"""
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0" border="0" bgcolor="#1f497d" style="background-color:#1f497d;width:100%">
    <tr>
      <td align="center" valign="top" style="padding:6px">
        <table role="presentation" width="600" cellpadding="0" cellspacing="0" border="0" bgcolor="#ffffff" style="width:100%;max-width:600px;background-color:#ffffff">
          <tr><td style="padding:20px">{inner}</td></tr>
        </table>
      </td>
    </tr>
  </table>""".strip()


def send_viewing_confirmation(to_email: str, listing: dict, slot_start: datetime, finance_url: str | None) -> bool:
    viewing_time = format_viewing_time(slot_start)
    html = compose_viewing_confirmation(listing, viewing_time, finance_url)
    text = f"Your viewing is confirmed for {viewing_time} at {listing.get('address') or 'the property'}."
    if finance_url:
        text += f" Financing questionnaire: {finance_url}"
    return send_email(to_email, CONFIRMATION_SUBJECT, html, text_content=text)
