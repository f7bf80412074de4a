"""
OTP Email Templates
===================
Renders the login code email.
"""

from dataclasses import dataclass
from html import escape
from typing import Dict

LOGIN_SUBJECT = "Login verification code"


@dataclass
class RenderedEmail:
    subject: str
    html: str
    text: str


def render_login_email(code: str, aux: Dict[str, str], ttl_seconds: int) -> RenderedEmail:
    """
    Render the login code email.

    ``aux["name"]`` personalizes the greeting and ``aux["mobile_number"]``
    is echoed back so the recipient can recognise the request.
    """
    minutes = max(1, ttl_seconds // 60)
    name = aux.get("name") or "there"
    mobile = aux.get("mobile_number")

    lines = [
        f"Hello {name},",
        "",
        f"Your login verification code is {code}.",
        f"It is valid for {minutes} minutes and can only be used once.",
    ]
    if mobile:
        lines.append(f"Mobile number on file: {mobile}")
    lines += ["", "If you did not request this login, contact support immediately."]

    mobile_html = (
        f"<p><strong>Mobile number:</strong> {escape(mobile)}</p>" if mobile else ""
    )
    html = f"""
    <div style="font-family:Arial,sans-serif">
      <h2>Login Verification</h2>
      <p>Hello <strong>{escape(name)}</strong>,</p>
      <p>Use the following one-time code to complete your login:</p>
      <div style="font-size:28px;font-weight:700;letter-spacing:4px">{escape(code)}</div>
      <p>Valid for <strong>{minutes} minutes</strong>. Never share this code.</p>
      {mobile_html}
    </div>
    """
    return RenderedEmail(subject=LOGIN_SUBJECT, html=html, text="\n".join(lines))
