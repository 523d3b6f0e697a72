"""
Log sanitization to prevent sensitive data leakage.

Redacts bearer tokens, JWTs, passwords, secrets and database credentials
from log output, and strips the same fields from audit payloads before
they are persisted.
"""
import re
import logging


class SanitizingFormatter(logging.Formatter):
    """
    Custom log formatter that sanitizes sensitive data.
    """

    PATTERNS = [
        # Bearer tokens
        (re.compile(r'Bearer\s+([a-zA-Z0-9_\-\.]{20,})', re.IGNORECASE), r'Bearer [REDACTED]'),

        # JWT tokens (header.payload.signature format)
        (re.compile(r'eyJ[a-zA-Z0-9_\-]+\.eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+'), r'[REDACTED_JWT]'),

        # API keys and generic tokens
        (re.compile(r'api[_-]?key["\s:=]+([a-zA-Z0-9_\-]{20,})', re.IGNORECASE), r'api_key=[REDACTED]'),
        (re.compile(r'token["\s:=]+([a-zA-Z0-9_\-\.]{32,})', re.IGNORECASE), r'token=[REDACTED]'),

        # Passwords
        (re.compile(r'password["\s:=]+([^\s,\]}"\']+)', re.IGNORECASE), r'password=[REDACTED]'),

        # Secrets
        (re.compile(r'secret["\s:=]+([a-zA-Z0-9_\-]{20,})', re.IGNORECASE), r'secret=[REDACTED]'),

        # Database and broker URLs with passwords
        (re.compile(r'://([^:/\s]+):([^@\s]+)@'), r'://\1:[REDACTED]@'),

        # Authorization headers
        (re.compile(r'Authorization["\s:]+([^\s,\]}"\']+)', re.IGNORECASE), r'Authorization: [REDACTED]'),
    ]

    @classmethod
    def sanitize(cls, text):
        for pattern, replacement in cls.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def format(self, record):
        return self.sanitize(super().format(record))


class SanitizingFilter(logging.Filter):
    """
    Logging filter that sanitizes the message and string args before formatting.
    """

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = SanitizingFormatter.sanitize(record.msg)

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                SanitizingFormatter.sanitize(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        return True


REDACTED_FIELDS = {
    'password', 'passwd', 'pwd',
    'secret', 'client_secret',
    'token', 'access_token', 'refresh_token', 'authorization',
    'api_key', 'apikey',
    'private_key', 'card', 'cvv', 'pin',
}


def redact_sensitive(data):
    """
    Return a copy of ``data`` with sensitive fields replaced by '[REDACTED]'.

    Nested dicts and lists are walked; other values are returned as-is.

        >>> redact_sensitive({'name': 'x', 'password': 'p'})
        {'name': 'x', 'password': '[REDACTED]'}
    """
    if isinstance(data, list):
        return [redact_sensitive(item) for item in data]
    if not isinstance(data, dict):
        return data

    sanitized = {}
    for key, value in data.items():
        if str(key).lower() in REDACTED_FIELDS:
            sanitized[key] = '[REDACTED]'
        else:
            sanitized[key] = redact_sensitive(value)
    return sanitized
