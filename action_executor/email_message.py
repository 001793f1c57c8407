"""Rendering and MIME packaging for outgoing email."""

from __future__ import annotations

import base64
import html
import re
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

EMAIL_ADDRESS = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
EMAIL_TOKEN = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")

_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\((https?://[^)\s]+)\)")
_PLAIN_URL = re.compile(r'(?<!href=")(?<!">)(https?://[^\s<"]+)')
_LINK_STYLE = "color: #0066cc; text-decoration: underline;"


def is_email_address(value: str) -> bool:
    return bool(EMAIL_ADDRESS.match(value.strip()))


def capitalize_first(text: str) -> str:
    if not text:
        return text
    return text[0].upper() + text[1:]


def convert_links_to_html(text: str) -> str:
    result = _MARKDOWN_LINK.sub(lambda m: f'<a href="{m.group(2)}" style="{_LINK_STYLE}">{m.group(1)}</a>', text)
    return _PLAIN_URL.sub(lambda m: f'<a href="{m.group(1)}" style="{_LINK_STYLE}">{m.group(1)}</a>', result)


def render_text(body: str, signature: Optional[str] = None) -> str:
    text = capitalize_first(body)
    if signature:
        text += "\n\n" + signature
    return text


def render_html(body: str, signature: Optional[str] = None) -> str:
    html_body = html.escape(capitalize_first(body)).replace("\n", "<br>")
    signature_row = ""
    if signature:
        html_signature = convert_links_to_html(html.escape(signature, quote=False).replace("\n", "<br>"))
        signature_row = (
            '<tr><td style="padding-top: 20px; color: #000000; font-size: 14px; line-height: 1.6;">'
            f"{html_signature}</td></tr>"
        )
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head><meta charset="UTF-8"></head>\n'
        '<body style="margin: 0; padding: 0; font-family: -apple-system, BlinkMacSystemFont, '
        "'Segoe UI', Roboto, Arial, sans-serif; background-color: #ffffff;\">\n"
        '<table role="presentation" style="max-width: 600px; width: 100%;">'
        '<tr><td style="padding: 0; color: #000000; font-size: 14px; line-height: 1.6;">'
        f"{html_body}</td></tr>{signature_row}</table>\n"
        "</body>\n</html>"
    )


def build_mime_message(
    *,
    to: str,
    subject: str,
    body: str,
    sender: Optional[str] = None,
    signature: Optional[str] = None,
) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["To"] = to
    if sender:
        message["From"] = sender
    message["Subject"] = subject
    message.attach(MIMEText(render_text(body, signature), "plain", "utf-8"))
    message.attach(MIMEText(render_html(body, signature), "html", "utf-8"))
    return message


def encode_raw_message(message: MIMEMultipart) -> str:
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")
