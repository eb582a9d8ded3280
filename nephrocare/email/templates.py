"""
Email templates. Each template returns ``(subject, html_body, text_body)``.
"""

from datetime import datetime
from html import escape
from typing import Optional

_STYLE = """
        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
        .container { max-width: 600px; margin: 0 auto; padding: 20px; }
        .header { background-color: #0f766e; color: white; padding: 20px; text-align: center; }
        .content { background-color: #f8f9fa; padding: 20px; }
        .button { display: inline-block; padding: 10px 20px; background-color: #0f766e; color: white; text-decoration: none; }
        .footer { text-align: center; padding: 20px; font-size: 12px; color: #666; }
"""


def _layout(heading: str, body: str, app_name: str, support_email: Optional[str]) -> str:
    support = (
        f'<p>Besoin d\'aide ? <a href="mailto:{escape(support_email)}">{escape(support_email)}</a></p>'
        if support_email
        else ""
    )
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <style>{_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h1>{escape(heading)}</h1>
            </div>
            <div class="content">
                {body}
            </div>
            <div class="footer">
                {support}
                <p>{escape(app_name)} - {datetime.now().year}</p>
            </div>
        </div>
    </body>
    </html>
    """


def _greeting(user_name: Optional[str]) -> str:
    return f"Bonjour {user_name}," if user_name else "Bonjour,"


def email_verification_template(
    url: str,
    user_name: Optional[str] = None,
    app_name: str = "NephroCare",
    support_email: Optional[str] = None,
    **kwargs,
) -> tuple[str, str, str]:
    subject = f"Vérifiez votre adresse email - {app_name}"
    body = (
        f"<p>{escape(_greeting(user_name))}</p>"
        "<p>Merci de confirmer votre adresse email pour activer votre compte.</p>"
        f'<p><a class="button" href="{escape(url)}">Vérifier mon email</a></p>'
        "<p>Si vous n'êtes pas à l'origine de cette demande, ignorez ce message.</p>"
    )
    html_body = _layout("Vérification de l'email", body, app_name, support_email)
    text_body = (
        f"{_greeting(user_name)}\n\n"
        "Merci de confirmer votre adresse email pour activer votre compte :\n"
        f"{url}\n"
    )
    return subject, html_body, text_body


def password_reset_template(
    url: str,
    user_name: Optional[str] = None,
    app_name: str = "NephroCare",
    support_email: Optional[str] = None,
    **kwargs,
) -> tuple[str, str, str]:
    subject = f"Réinitialisation de votre mot de passe - {app_name}"
    body = (
        f"<p>{escape(_greeting(user_name))}</p>"
        "<p>Une réinitialisation de mot de passe a été demandée pour votre compte.</p>"
        f'<p><a class="button" href="{escape(url)}">Réinitialiser mon mot de passe</a></p>'
        "<p>Ce lien expire rapidement. Si vous n'avez rien demandé, ignorez ce message.</p>"
    )
    html_body = _layout("Réinitialisation du mot de passe", body, app_name, support_email)
    text_body = (
        f"{_greeting(user_name)}\n\n"
        "Pour réinitialiser votre mot de passe, ouvrez ce lien :\n"
        f"{url}\n"
    )
    return subject, html_body, text_body


def notification_template(
    title: str,
    message: str,
    user_name: Optional[str] = None,
    action_url: Optional[str] = None,
    action_text: str = "Voir le détail",
    app_name: str = "NephroCare",
    support_email: Optional[str] = None,
    **kwargs,
) -> tuple[str, str, str]:
    """Template mirroring an in-app notification."""
    subject = f"{title} - {app_name}"
    action = (
        f'<p><a class="button" href="{escape(action_url)}">{escape(action_text)}</a></p>'
        if action_url
        else ""
    )
    body = (
        f"<p>{escape(_greeting(user_name))}</p>"
        f"<h2>{escape(title)}</h2>"
        f"<p>{escape(message)}</p>"
        f"{action}"
    )
    html_body = _layout("Nouvelle notification", body, app_name, support_email)
    text_body = f"{_greeting(user_name)}\n\n{title}\n\n{message}\n"
    if action_url:
        text_body += f"\n{action_text} : {action_url}\n"
    return subject, html_body, text_body


def default_template(app_name: str = "NephroCare", **kwargs) -> tuple[str, str, str]:
    subject = f"Notification - {app_name}"
    html_body = "<html><body><h1>Notification</h1><p>Vous avez une nouvelle notification.</p></body></html>"
    text_body = "Notification : vous avez une nouvelle notification."
    return subject, html_body, text_body


def get_email_template(template_type: str):
    """Get email template function by type."""
    templates = {
        "email_verification": email_verification_template,
        "password_reset": password_reset_template,
        "notification": notification_template,
    }
    return templates.get(template_type, default_template)
