"""Outbound email over SMTP."""

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText


def send_email(to_email, subject, text_body, html_body=None, *, host, port, username, password, sender, logger):
    """Send a plain/HTML email. Returns True on success, False when unconfigured or failed."""
    to_email = str(to_email or '').strip()
    if not host:
        if logger is not None:
            logger.info(f"SMTP not configured; email '{subject}' not sent")
        return False
    if not to_email:
        return False

    msg = MIMEMultipart('alternative')
    msg['Subject'] = subject
    msg['From'] = sender
    msg['To'] = to_email
    msg.attach(MIMEText(text_body, 'plain'))
    if html_body:
        msg.attach(MIMEText(html_body, 'html'))

    try:
        with smtplib.SMTP(host, port, timeout=10) as server:
            server.ehlo()
            if port != 25:
                server.starttls()
            if username:
                server.login(username, password)
            server.sendmail(sender, [to_email], msg.as_string())
        return True
    except (smtplib.SMTPException, OSError) as e:
        if logger is not None:
            logger.error(f"SMTP send failed for '{subject}': {e}")
        return False
