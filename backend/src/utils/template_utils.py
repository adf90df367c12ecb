"""
Placeholder replacement and HTML rendering for outgoing emails.

Templates use double-brace placeholders such as {{patientName}}. Unknown
placeholders are left in place so a missing value is visible in previews
instead of silently disappearing.
"""

import html
import re
from typing import Mapping, Optional

from core.config import CLINIC_NAME
from core.constants import DEFAULT_BUTTON_COLOR

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([\w.-]+)\s*\}\}")


def replace_placeholders(text: str, data: Mapping[str, str]) -> str:
    """
    Replace {{key}} placeholders with values from data.

    Args:
        text: Template text
        data: Placeholder values keyed by placeholder name

    Returns:
        Rendered text; placeholders without a value are kept unchanged
    """
    def _replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key in data:
            return str(data[key])
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, text or "")


def extract_placeholders(text: str) -> list[str]:
    """List placeholder names used in a template, in order of first use."""
    seen: list[str] = []
    for key in PLACEHOLDER_PATTERN.findall(text or ""):
        if key not in seen:
            seen.append(key)
    return seen


def create_button(label: str, url: str, button_color: Optional[str] = None) -> str:
    """Build the call-to-action link inserted through the {{button}} placeholder."""
    color = button_color or DEFAULT_BUTTON_COLOR
    return (
        f'<a href="{html.escape(url, quote=True)}" style="display:inline-block;margin-top:16px;'
        f'background:{color};color:#ffffff;text-decoration:none;padding:12px 22px;'
        f'border-radius:999px;font-weight:600;font-size:14px;">{html.escape(label)}</a>'
    )


def render_email_html(body: str, button_color: Optional[str] = None, clinic_name: Optional[str] = None) -> str:
    """
    Wrap a rendered body into the practice email layout.

    The body may already contain HTML (the button placeholder), so it is
    inserted as is with line breaks preserved by CSS.
    """
    footer_name = clinic_name or CLINIC_NAME
    return f"""<!doctype html>
<html>
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
  </head>
  <body style="margin:0;background:#f4f5f7;font-family:Arial,sans-serif;color:#111827;">
    <table role="presentation" cellspacing="0" cellpadding="0" width="100%" style="background:#f4f5f7;padding:32px 0;">
      <tr>
        <td align="center">
          <table role="presentation" cellspacing="0" cellpadding="0" width="600" style="width:600px;max-width:92%;background:#ffffff;border-radius:16px;overflow:hidden;border:1px solid #e5e7eb;">
            <tr>
              <td style="padding:32px;">
                <div style="font-size:14px;line-height:1.6;color:#374151;white-space:pre-line;">{body}</div>
              </td>
            </tr>
            <tr>
              <td style="padding:20px 32px;background:#f9fafb;border-top:1px solid #e5e7eb;font-size:12px;color:#6b7280;">
                Questo messaggio è stato inviato da {html.escape(footer_name)}.
              </td>
            </tr>
          </table>
        </td>
      </tr>
    </table>
  </body>
</html>"""
