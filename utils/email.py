import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from fastapi import Depends

from config import Settings, get_settings

logger = logging.getLogger(__name__)

SENDER_NAME = "Optical Eyewear"

EMAIL_STYLE = """
    body {
        font-family: Arial, sans-serif;
        line-height: 1.6;
        color: #1a1a1a;
        margin: 0;
        padding: 0;
    }
    .container {
        max-width: 600px;
        margin: 0 auto;
        padding: 20px;
    }
    .button {
        background-color: #3b82f6;
        color: #ffffff;
        padding: 12px 24px;
        text-decoration: none;
        border-radius: 5px;
        display: inline-block;
    }
    .muted {
        color: #666666;
    }
"""


class EmailDeliveryError(RuntimeError):
    """No fue posible enviar un correo electrónico."""


class EmailSender:
    """
    Envía los correos de verificación y de restablecimiento de contraseña
    a través del servidor SMTP configurado.

    Args:
        settings (Settings): Configuración con los datos del servidor SMTP y la URL pública.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def build_link(self, path: str, token: str) -> str:
        return f"{self.settings.app_url}{path}?token={token}"

    def render(self, token: str, email_type: str):
        """
        Construye el asunto y el cuerpo HTML del correo.

        Args:
            token (str): Token a incluir en el enlace.
            email_type (str): Tipo de correo ('verification' o 'reset').

        Returns:
            tuple: (asunto, cuerpo_html)
        """
        if email_type == "verification":
            link = self.build_link("/auth/verify-email", token)
            subject = "Verify your email address"
            content = f"""
                <h1>Welcome to {SENDER_NAME}!</h1>
                <p>Thank you for registering. Please verify your email address by clicking the button below:</p>
                <p style="text-align: center; margin: 30px 0;"><a class="button" href="{link}">Verify Email Address</a></p>
                <p class="muted">Or copy and paste this link in your browser:</p>
                <p class="muted">{link}</p>
                <p class="muted">If you didn't create an account, you can safely ignore this email.</p>
            """
        elif email_type == "reset":
            link = self.build_link("/auth/reset-password", token)
            subject = "Reset your password"
            content = f"""
                <h1>Password Reset Request</h1>
                <p>Click the link below to reset your password:</p>
                <p><a href="{link}">{link}</a></p>
                <p class="muted">If you didn't request a password reset, you can safely ignore this email.</p>
                <p class="muted">This link will expire in 1 hour.</p>
            """
        else:
            raise EmailDeliveryError(f"Unknown email type: {email_type}")

        body_html = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>{EMAIL_STYLE}</style>
        </head>
        <body>
            <div class="container">{content}</div>
        </body>
        </html>
        """
        return subject, body_html

    def send_email(self, email: str, token: str, email_type: str):
        """
        Envía un correo electrónico basado en el tipo especificado.

        :param email: Dirección de correo electrónico del destinatario.
        :param token: Token a incluir en el enlace del correo.
        :param email_type: Tipo de correo a enviar ('verification' o 'reset').
        :raises EmailDeliveryError: Si falta configuración SMTP o el envío falla.
        """
        settings = self.settings
        if not settings.smtp_host or not settings.smtp_user:
            raise EmailDeliveryError("SMTP credentials are not configured")

        subject, body_html = self.render(token, email_type)
        sender = settings.smtp_from or settings.smtp_user

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f'"{SENDER_NAME}" <{sender}>'
        msg["To"] = email
        msg.attach(MIMEText(body_html, "html"))

        try:
            if settings.smtp_secure:
                server = smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port)
            else:
                server = smtplib.SMTP(settings.smtp_host, settings.smtp_port)
            with server:
                if not settings.smtp_secure:
                    server.ehlo()
                    if server.has_extn("starttls"):
                        server.starttls()
                        server.ehlo()
                if settings.smtp_password:
                    server.login(settings.smtp_user, settings.smtp_password)
                server.sendmail(sender, email, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error al enviar correo de {email_type} a {email}: {e}")
            raise EmailDeliveryError(f"Failed to send {email_type} email") from e

        logger.info(f"Correo de {email_type} enviado a {email}")

    def send_verification_email(self, email: str, token: str):
        self.send_email(email, token, "verification")

    def send_password_reset_email(self, email: str, token: str):
        self.send_email(email, token, "reset")


def get_email_sender(settings: Settings = Depends(get_settings)) -> EmailSender:
    return EmailSender(settings)
