"""Liquid templates for transactional mails, keyed by template name."""

from enum import StrEnum


class MailTemplate(StrEnum):
    WELCOME = "welcome"
    OTP = "otp"
    ACCOUNT_DELETED = "account-deleted"


TEMPLATES: dict[MailTemplate, str] = {
    MailTemplate.WELCOME: (
        "<p>Welcome to {{ app_name }}, <b>{{ nickname | escape }}</b>!</p>"
        "<p>Sign in any time with a one-time password sent to this address.</p>"
    ),
    MailTemplate.OTP: (
        "<p>Your {{ app_name }} sign-in code is:</p>"
        "<p style=\"font-size:24px;letter-spacing:4px\"><b>{{ otp }}</b></p>"
        "<p>The code expires in {{ ttl_minutes }} minutes.</p>"
    ),
    MailTemplate.ACCOUNT_DELETED: (
        "<p>The {{ app_name }} account <b>{{ nickname | escape }}</b> has been deleted.</p>"
        "<p>If you did not request this, please contact support.</p>"
    ),
}
