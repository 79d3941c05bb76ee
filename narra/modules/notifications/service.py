import logging
import resend
from narra.config.settings import settings
from narra.modules.notifications.templates import TEMPLATES
from typing import Optional

logger = logging.getLogger(__name__)


class EmailService:
    """Transactional email through Resend. Sending never raises; failures are logged."""

    def __init__(self, api_key: Optional[str] = None, mail_from: Optional[str] = None, base_url: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.resend_api_key
        self.mail_from = mail_from or settings.mail_from
        self.base_url = (base_url or settings.app_url).rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.mail_from)

    def send(self, to: str, subject: str, html: str) -> bool:
        if not self.is_configured:
            logger.warning(f"Email not configured, skipping '{subject}' to {to}")
            return False
        try:
            resend.api_key = self.api_key
            response = resend.Emails.send({
                "from": self.mail_from,
                "to": [to],
                "subject": subject,
                "html": html,
            })
            logger.info(f"Email '{subject}' sent to {to}: {response.get('id') if isinstance(response, dict) else response}")
            return True
        except Exception as e:
            logger.error(f"Email sending failed for {to}: {e}")
            return False

    def send_template(self, template: str, to: str, **context) -> bool:
        """Render one of the named templates (welcome, payment_success, payment_failed) and send it"""
        renderer = TEMPLATES.get(template)
        if renderer is None:
            raise ValueError(f"Unknown email template: {template}")
        subject, html = renderer(user_email=to, base_url=self.base_url, **context)
        return self.send(to, subject, html)


def get_email_service() -> EmailService:
    return EmailService()
