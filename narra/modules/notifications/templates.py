from html import escape
from typing import Callable, Dict, Tuple

_WRAPPER = """
<div style="font-family:'Fira Sans',Arial,sans-serif;line-height:1.5;max-width:560px;margin:0 auto;color:#111">
  {body}
  <p style="color:#666;font-size:12px;margin-top:32px">
    This email was sent to {email} regarding your Narra account.
    If you need assistance, contact us at support@usenarra.com
  </p>
</div>
"""

_BUTTON = (
    '<p><a href="{href}" style="background:#111;color:#fff;padding:12px 16px;'
    'border-radius:10px;text-decoration:none">{label}</a></p>'
)


def _details(rows) -> str:
    cells = "".join(
        f'<tr><td style="color:#666;padding:4px 16px 4px 0">{escape(label)}</td>'
        f'<td style="font-weight:600">{escape(str(value))}</td></tr>'
        for label, value in rows
    )
    return f'<table style="margin:16px 0">{cells}</table>'


def _billing_label(billing_period: str) -> str:
    return "Yearly" if billing_period == "yearly" else "Monthly"


def render_welcome(user_email: str, base_url: str, **_) -> Tuple[str, str]:
    body = f"""
  <h2>Welcome to Narra!</h2>
  <p>We're excited to have you on board. Narra helps you discover, organize, and save
  amazing social media content from TikTok and Instagram.</p>
  <h3>How it works</h3>
  <ul>
    <li><strong>Discover</strong> creators and their best performing posts.</li>
    <li><strong>Organize</strong> saved posts into folders and boards.</li>
    <li><strong>Share</strong> boards with your team through a public link.</li>
  </ul>
  {_BUTTON.format(href=f"{base_url}/dashboard", label="Go to your dashboard")}
"""
    return "Welcome to Narra - Start discovering amazing content!", _WRAPPER.format(body=body, email=escape(user_email))


def render_payment_success(
    user_email: str,
    base_url: str,
    plan_name: str = "Narra",
    amount: str = "",
    billing_period: str = "monthly",
    **_
) -> Tuple[str, str]:
    body = f"""
  <h2>Payment Confirmed!</h2>
  <p>Thank you, your <strong>{escape(plan_name)}</strong> subscription is active.</p>
  {_details([("Plan:", plan_name), ("Amount:", amount), ("Billing:", _billing_label(billing_period))])}
  {_BUTTON.format(href=f"{base_url}/dashboard", label="Start discovering")}
"""
    return f"Payment confirmed - {plan_name}", _WRAPPER.format(body=body, email=escape(user_email))


def render_payment_failed(
    user_email: str,
    base_url: str,
    plan_name: str = "Narra",
    amount: str = "",
    **_
) -> Tuple[str, str]:
    body = f"""
  <h2>Payment Failed</h2>
  <p>We were unable to process your payment for your <strong>{escape(plan_name)}</strong> subscription.
  Your account is currently past due.</p>
  {_details([("Plan:", plan_name), ("Amount:", amount), ("Status:", "Past Due")])}
  {_BUTTON.format(href=f"{base_url}/settings", label="Update payment method")}
  <p>Having trouble? <a href="{base_url}/support">Contact support</a>.</p>
"""
    return f"Action required: payment failed for {plan_name}", _WRAPPER.format(body=body, email=escape(user_email))


TEMPLATES: Dict[str, Callable[..., Tuple[str, str]]] = {
    "welcome": render_welcome,
    "payment_success": render_payment_success,
    "payment_failed": render_payment_failed,
}
