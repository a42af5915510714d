"""
Outbound email through an HTTP JSON provider.

Configure ``EMAIL_PROVIDER_URL`` / ``EMAIL_API_KEY`` / ``EMAIL_FROM``.  With
no provider configured every send returns a failed ``EmailResult`` and logs a
warning; sending never raises.
"""
from collections import namedtuple

import requests
from flask import current_app

EmailResult = namedtuple('EmailResult', ['success', 'message_id', 'error'])


class EmailService:

    @staticmethod
    def is_configured():
        return bool(current_app.config.get('EMAIL_PROVIDER_URL'))

    @staticmethod
    def send_email(to, subject, html=None, text=None):
        if not EmailService.is_configured():
            current_app.logger.warning(f'Email provider not configured; not sending "{subject}" to {to}')
            return EmailResult(False, None, 'Email provider not configured')

        payload = {
            'from': current_app.config.get('EMAIL_FROM'),
            'to': [to] if isinstance(to, str) else list(to),
            'subject': subject,
            'html': html,
            'text': text,
        }
        headers = {'Authorization': f'Bearer {current_app.config.get("EMAIL_API_KEY", "")}'}
        try:
            response = requests.post(
                current_app.config['EMAIL_PROVIDER_URL'],
                json=payload,
                headers=headers,
                timeout=current_app.config.get('EMAIL_TIMEOUT_SECONDS', 10),
            )
        except requests.RequestException as exc:
            current_app.logger.warning(f'Email to {to} failed: {exc}')
            return EmailResult(False, None, str(exc))

        if response.status_code >= 400:
            current_app.logger.warning(f'Email to {to} rejected by provider: HTTP {response.status_code}')
            return EmailResult(False, None, f'Provider returned HTTP {response.status_code}')

        try:
            message_id = response.json().get('id')
        except ValueError:
            message_id = None
        return EmailResult(True, message_id, None)

    @staticmethod
    def send_password_reset(user, token):
        link = f'{current_app.config["APP_BASE_URL"]}/reset-password?token={token}'
        return EmailService.send_email(
            user.email,
            'إعادة تعيين كلمة المرور - Password Reset',
            html=f'<p>لإعادة تعيين كلمة المرور اضغط <a href="{link}">هنا</a></p>',
            text=f'Reset your password: {link}',
        )

    @staticmethod
    def send_invite(invite):
        link = f'{current_app.config["APP_BASE_URL"]}/invite?code={invite.code}'
        return EmailService.send_email(
            invite.email,
            'دعوة للانضمام إلى شجرة عائلة آل شايع - Invitation',
            html=f'<p>تمت دعوتك للانضمام. <a href="{link}">قبول الدعوة</a></p>',
            text=f'You have been invited to join the family tree: {link}',
        )
