# evote/notifications/mailer.py

import logging
from flask_mail import Message

from evote.errors import DeliveryError

logger = logging.getLogger(__name__)


class NotificationSender:
    """Outbound email through Flask-Mail.

    ``send`` raises DeliveryError; callers decide whether that matters, and for
    every current caller it does not (see ``send_quietly``).
    """

    def __init__(self, mail):
        self.mail = mail

    def send(self, recipient, subject, body, html=None):
        try:
            msg = Message(subject, recipients=[recipient])
            msg.body = body
            if html:
                msg.html = html
            self.mail.send(msg)
        except Exception as e:
            raise DeliveryError(f"Failed to send email to {recipient}: {e}")

    def send_quietly(self, recipient, subject, body, html=None):
        try:
            self.send(recipient, subject, body, html=html)
            return True
        except DeliveryError as e:
            logger.error(str(e))
            return False

    def send_verification_email(self, voter, link):
        body = (
            f"Hello {voter.name},\n\n"
            f"Open the link below to verify your email address:\n{link}\n\n"
            "If you didn't request this, you can ignore this email."
        )
        html = (
            f"<p>Hello {voter.name},</p>"
            f"<p>Click the link below to verify your email:</p>"
            f"<a href=\"{link}\">Verify Email</a>"
            f"<p>If you didn't request this, you can ignore this email.</p>"
        )
        return self.send_quietly(voter.email, "Verify Your Email", body, html=html)
