import logging
import smtplib
from email.message import EmailMessage
from urllib.parse import urlencode

from app.core.config import get_settings, get_smtp_ctx

logger = logging.getLogger(__name__)

settings = get_settings()


def build_link(path: str, **params: str) -> str:
    base = settings.domain_client.rstrip("/")
    query = urlencode(params)
    return f"{base}{path}?{query}" if query else f"{base}{path}"


def _deliver(to_email: str, subject: str, text: str, html: str, link: str) -> None:
    """
    Send one message over SMTP with STARTTLS.

    Delivery is best-effort: failures are logged and never raised to the caller.
    """
    if not settings.email_configured:
        logger.warning("Email is not configured; link for %s: %s", to_email, link)
        return

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.mail_from
    msg["To"] = to_email
    msg.set_content(text)
    msg.add_alternative(html, subtype="html")

    try:
        ctx = get_smtp_ctx()
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=20) as smtp:
            smtp.ehlo()
            smtp.starttls(context=ctx)
            smtp.ehlo()
            smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send '%s' email to %s", subject, to_email)
        return

    logger.info("Sent '%s' email to %s", subject, to_email)


def send_admin_invitation(
    to_email: str, raw_token: str, *, path: str = "/admin-invite"
) -> None:
    title = settings.app_title
    link = build_link(path, token=raw_token, email=to_email)
    _deliver(
        to_email,
        f"Invitation to join {title} as an administrator",
        f"Hi,\n\nYou have been invited to join {title} as an administrator. "
        f"Accept your invitation here: {link}\n",
        f"""<p>Hi,</p>
            <p>You have been invited to join <b>{title}</b> as an administrator.</p>
            <p>Follow this link to continue: <a href=\"{link}\">{link}</a></p>
            <p>If you did not expect this email, you can safely ignore it.</p>""",
        link,
    )


def send_org_invitation(
    to_email: str,
    raw_token: str,
    org_name: str,
    *,
    as_trainer: bool = False,
) -> None:
    title = settings.app_title
    role = "trainer" if as_trainer else "administrator"
    path = "/trainer-invite" if as_trainer else "/org-admin-invite"
    link = build_link(path, token=raw_token, email=to_email, orgName=org_name)
    _deliver(
        to_email,
        f"Invitation to join {org_name} on {title}",
        f"Hi,\n\nYou have been invited to {org_name} on {title} as a {role}. "
        f"Accept your invitation here: {link}\n",
        f"""<p>Hi,</p>
            <p>You have been invited to <b>{org_name}</b> on <b>{title}</b> as a {role}.</p>
            <p>Follow this link to continue: <a href=\"{link}\">{link}</a></p>
            <p>If you did not expect this email, you can safely ignore it.</p>""",
        link,
    )


def send_role_granted(to_email: str, role_label: str, scope: str | None = None) -> None:
    """Tell an existing user they gained a role; no token is involved."""
    title = settings.app_title
    where = f" of {scope}" if scope else ""
    link = build_link("/login")
    _deliver(
        to_email,
        f"You are now {role_label}{where} on {title}",
        f"Hi,\n\nYou have been made {role_label}{where} on {title}. "
        f"Sign in here: {link}\n",
        f"""<p>Hi,</p>
            <p>You have been made {role_label}{where} on <b>{title}</b>.</p>
            <p>Sign in here: <a href=\"{link}\">{link}</a></p>""",
        link,
    )
