"""Transactional email via the Resend HTTP API."""

import html
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from formbuilder.core.config import settings
from formbuilder.services.export import format_timestamp, format_value

logger = logging.getLogger(__name__)

RESEND_EMAILS_URL = "https://api.resend.com/emails"


class EmailError(Exception):
    """Raised when an email cannot be delivered to the provider."""


class EmailNotConfigured(EmailError):
    """Raised when RESEND_API_KEY is not set."""


@dataclass
class NotificationField:
    id: str
    label: str


async def send_email(to: str, subject: str, html_body: str, text_body: str) -> str:
    """Send one email. Returns the provider message id.

    Raises:
        EmailNotConfigured: If no API key is configured.
        EmailError: On transport errors or a non-2xx provider response.
    """
    api_key = settings.RESEND_API_KEY
    if not api_key:
        raise EmailNotConfigured("RESEND_API_KEY not configured")

    payload = {
        "from": settings.RESEND_FROM_EMAIL,
        "to": [to],
        "subject": subject,
        "html": html_body,
        "text": text_body,
    }
    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.post(
                RESEND_EMAILS_URL,
                json=payload,
                headers={"Authorization": f"Bearer {api_key}"},
            )
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        logger.error("Resend API returned %d: %s", exc.response.status_code, exc.response.text)
        raise EmailError(f"Resend API error: {exc.response.status_code}") from exc
    except httpx.RequestError as exc:
        logger.error("Resend API request failed: %s", exc)
        raise EmailError(f"Resend API request failed: {exc}") from exc

    return response.json().get("id", "")


# ---------------------------------------------------------------------------
# New response notification
# ---------------------------------------------------------------------------


def _notification_value(value: Any) -> str:
    if value is None:
        return "(não respondido)"
    if isinstance(value, list) and not value:
        return "(vazio)"
    return format_value(value)


def render_response_notification(
    form_name: str,
    fields: list[NotificationField],
    data: list[dict[str, Any]],
    submitted_at: datetime,
    ip: str | None,
) -> tuple[str, str]:
    """Return (html, text) bodies summarising one response."""
    values = {entry["fieldId"]: entry.get("value") for entry in data}
    when = format_timestamp(submitted_at)
    lines = [(field.label, _notification_value(values.get(field.id))) for field in fields]

    rows = "".join(
        "<tr>"
        f'<td style="padding:12px;border-bottom:1px solid #e5e7eb;font-weight:600;color:#374151;">{html.escape(label)}</td>'
        f'<td style="padding:12px;border-bottom:1px solid #e5e7eb;color:#6b7280;">{html.escape(value)}</td>'
        "</tr>"
        for label, value in lines
    )
    ip_line = f"<p style=\"margin:0;font-size:13px;color:#6b7280;\"><strong>IP:</strong> {html.escape(ip)}</p>" if ip else ""
    html_body = (
        '<!DOCTYPE html><html lang="pt-BR"><head><meta charset="UTF-8">'
        f"<title>Nova Resposta - {html.escape(form_name)}</title></head>"
        '<body style="margin:0;padding:20px;font-family:Arial,sans-serif;background-color:#f9fafb;">'
        f'<h1 style="color:#2563eb;font-size:22px;">Nova Resposta Recebida</h1>'
        f'<p style="color:#374151;">{html.escape(form_name)}</p>'
        f'<p style="margin:0 0 8px 0;font-size:13px;color:#6b7280;"><strong>Data/Hora:</strong> {when}</p>'
        f"{ip_line}"
        '<table style="width:100%;border-collapse:collapse;margin-top:20px;">'
        "<thead><tr><th style=\"text-align:left;padding:12px;\">Campo</th>"
        "<th style=\"text-align:left;padding:12px;\">Resposta</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
        '<p style="margin-top:30px;font-size:13px;color:#9ca3af;">'
        "Esta é uma notificação automática do seu formulário.</p>"
        "</body></html>"
    )

    text_lines = [
        "Nova Resposta Recebida",
        "",
        f"Formulário: {form_name}",
        f"Data/Hora: {when}",
    ]
    if ip:
        text_lines.append(f"IP: {ip}")
    text_lines += ["", "Respostas:"]
    text_lines += [f"{label}: {value}" for label, value in lines]
    text_lines += ["", "---", "Esta é uma notificação automática do seu formulário."]
    return html_body, "\n".join(text_lines)


async def send_response_notification(
    recipient: str,
    form_name: str,
    fields: list[NotificationField],
    data: list[dict[str, Any]],
    submitted_at: datetime,
    ip: str | None,
) -> bool:
    """Best-effort notification about a new response. Never raises."""
    html_body, text_body = render_response_notification(form_name, fields, data, submitted_at, ip)
    try:
        await send_email(recipient, f"Nova resposta: {form_name}", html_body, text_body)
    except EmailNotConfigured:
        logger.warning("Resend not configured - skipping response notification")
        return False
    except EmailError as exc:
        logger.error("Failed to send response notification for %r: %s", form_name, exc)
        return False
    logger.info("Response notification sent for form %r", form_name)
    return True


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


def reset_url_for(token: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}/reset-password/{token}"


async def send_password_reset_email(recipient: str, token: str) -> bool:
    """Best-effort reset link delivery. Never raises."""
    url = reset_url_for(token)
    minutes = settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES
    html_body = (
        '<!DOCTYPE html><html lang="pt-BR"><body style="font-family:Arial,sans-serif;">'
        "<h1>Recuperação de senha</h1>"
        f'<p>Para definir uma nova senha, acesse: <a href="{html.escape(url)}">{html.escape(url)}</a></p>'
        f"<p>O link expira em {minutes} minutos.</p>"
        "</body></html>"
    )
    text_body = f"Recuperação de senha\n\nPara definir uma nova senha, acesse: {url}\n\nO link expira em {minutes} minutos."
    try:
        await send_email(recipient, "Recuperação de senha", html_body, text_body)
    except EmailNotConfigured:
        logger.warning("Resend not configured - skipping password reset email")
        return False
    except EmailError as exc:
        logger.error("Failed to send password reset email: %s", exc)
        return False
    return True
