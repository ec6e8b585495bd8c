"""Outbound email transports configured from a recipient's SmtpConfig."""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

import requests

from services.reminder_errors import TransportError

logger = logging.getLogger(__name__)

EMAILJS_SEND_URL = 'https://api.emailjs.com/api/v1.0/email/send'


def from_address(config):
    return formataddr((config.from_name, config.from_email)) if config.from_name else config.from_email


class SmtpTransport:
    def __init__(self, config):
        self.config = config

    def _connect(self):
        if self.config.port == 465:
            return smtplib.SMTP_SSL(self.config.host, self.config.port, timeout=self.config.timeout)
        return smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout)

    def send(self, from_addr, to_addr, subject, html_body, text_body=None):
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = from_addr
        msg['To'] = to_addr
        if text_body:
            msg.attach(MIMEText(text_body, 'plain', 'utf-8'))
        msg.attach(MIMEText(html_body, 'html', 'utf-8'))

        try:
            with self._connect() as server:
                if self.config.use_tls and self.config.port != 465:
                    server.starttls()
                if self.config.username and self.config.password:
                    server.login(self.config.username, self.config.password)
                server.sendmail(self.config.from_email, [to_addr], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP send to %s failed: %s", to_addr, exc)
            raise TransportError('Failed to send email', details=str(exc)) from exc
        logger.info("SMTP email sent to %s subject=%r", to_addr, subject)


class EmailJsTransport:
    """Hosted email API; the template on the provider side renders `message_html`."""

    def __init__(self, config, http=None):
        self.config = config
        self.http = http or requests.Session()

    def send(self, from_addr, to_addr, subject, html_body, text_body=None):
        payload = {
            'service_id': self.config.service_id,
            'template_id': self.config.template_id,
            'user_id': self.config.username,
            'template_params': {
                'to_email': to_addr,
                'from_email': self.config.from_email,
                'from_name': self.config.from_name,
                'subject': subject,
                'message_html': html_body,
                'message_text': text_body or '',
            },
        }
        if self.config.password:
            payload['accessToken'] = self.config.password
        try:
            response = self.http.post(EMAILJS_SEND_URL, json=payload, timeout=self.config.timeout)
        except requests.RequestException as exc:
            logger.error("EmailJS request to %s failed: %s", to_addr, exc)
            raise TransportError('Failed to send email', details=str(exc)) from exc
        if not response.ok:
            logger.error("EmailJS rejected email to %s: %s %s", to_addr, response.status_code, response.text)
            raise TransportError('Failed to send email', details=response.text or f"HTTP {response.status_code}")
        logger.info("EmailJS email sent to %s subject=%r", to_addr, subject)


def build_transport(config):
    if config.provider == 'emailjs':
        return EmailJsTransport(config)
    return SmtpTransport(config)
