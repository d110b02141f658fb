"""
Mail dispatcher.

Sends transactional email (signup codes, password-reset links, invites)
over SMTP. Messages are rendered from the Jinja2 templates in
``backend/templates/email``.

Callers decide whether a delivery failure is fatal: the initial signup code
is a hard dependency, every other message is best-effort.
"""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import parseaddr
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core import config
from core.constants import SIGNUP_CODE_TTL_MINUTES
from core.exceptions import EmailDeliveryFailed

logger = logging.getLogger(__name__)

# backend/templates
_template_dir = Path(__file__).parent.parent.parent / "templates"
_env = Environment(
    loader=FileSystemLoader(str(_template_dir)),
    autoescape=select_autoescape(['html', 'xml'])
)


def app_url() -> str:
    return config.APP_BASE_URL.rstrip("/")


def render_email(
    heading: str,
    intro: str,
    cta_text: str,
    cta_url: str,
    cta_note: str = "",
    code: Optional[str] = None,
    title: Optional[str] = None,
) -> str:
    """Render the shared HTML layout."""
    template = _env.get_template("email/base.html")
    return template.render(
        title=title or heading,
        heading=heading,
        intro=intro,
        cta_text=cta_text,
        cta_url=cta_url,
        cta_note=cta_note,
        code=code,
        app_url=app_url(),
    )


def send_email(to: str, subject: str, html: str, text: str) -> None:
    """
    Send one message over SMTP.

    Uses implicit TLS when SMTP_SECURE is true, otherwise upgrades with
    STARTTLS when the server offers it.

    Raises:
        EmailDeliveryFailed: SMTP is not configured or the send failed
    """
    if not config.SMTP_HOST:
        logger.error("SMTP_HOST not configured; cannot send email")
        raise EmailDeliveryFailed("Servidor de correo no configurado")

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = config.EMAIL_FROM
    msg["To"] = to
    msg.attach(MIMEText(text, "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))

    sender = parseaddr(config.EMAIL_FROM)[1] or config.EMAIL_FROM
    context = ssl.create_default_context()
    try:
        if config.SMTP_SECURE:
            server = smtplib.SMTP_SSL(config.SMTP_HOST, config.SMTP_PORT, context=context, timeout=config.SMTP_TIMEOUT_SECONDS)
        else:
            server = smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=config.SMTP_TIMEOUT_SECONDS)
        with server:
            if not config.SMTP_SECURE:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls(context=context)
                    server.ehlo()
            if config.SMTP_USER:
                server.login(config.SMTP_USER, config.SMTP_PASS)
            server.sendmail(sender, [to], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"SMTP send to {to} failed: {e}")
        raise EmailDeliveryFailed(f"No se pudo enviar el correo: {e}") from e

    logger.info(f"Email '{subject}' sent to {to}")


def send_signup_code(to: str, code: str) -> None:
    """Send the 6-digit signup verification code."""
    html = render_email(
        heading="Código de verificación",
        intro="Usa este código para confirmar tu correo y crear tu cuenta:",
        code=code,
        cta_text="Usar código",
        cta_url=app_url(),
        cta_note=f"Este código expira en {SIGNUP_CODE_TTL_MINUTES} minutos.",
    )
    send_email(to, "Código de verificación SmileSys", html, f"Código: {code}")


def send_password_reset(to: str, link: str) -> None:
    html = render_email(
        title="Restablece tu contraseña | SmileSys",
        heading="Restablece tu contraseña",
        intro=(
            "Haz clic en el botón de abajo para crear una nueva contraseña. "
            "Por motivos de seguridad el enlace expirará."
        ),
        cta_text="Crear nueva contraseña",
        cta_url=link,
    )
    send_email(to, "Restablece tu contraseña | SmileSys", html, f"Visita {link} para crear una nueva contraseña.")


def send_invite(to: str, link: str, clinic_name: Optional[str] = None) -> None:
    intro = "Para activar tu cuenta y crear tu contraseña, haz clic en el botón de abajo."
    if clinic_name:
        intro = f"Te han invitado a unirte a {clinic_name}. {intro}"
    html = render_email(
        heading="Te hemos invitado a SmileSys",
        intro=intro,
        cta_text="Confirma tu cuenta",
        cta_url=link,
        cta_note="El enlace expirará por seguridad, así que actívalo cuanto antes.",
    )
    send_email(to, "Invitación a SmileSys", html, f"Visita {link} para aceptar la invitación")
