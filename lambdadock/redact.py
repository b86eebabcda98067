"""Secret redaction for log output."""

import logging
import os
import re

MASK = "***"

# Env vars whose values must never reach the terminal
SECRET_ENV_VARS = (
    "API_KEY",
    "RAPIDAPI_PROXY_SECRET",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
)

_MIN_SECRET_LENGTH = 8  # shorter values would mask ordinary words

_secret_re: re.Pattern | None = None
_loaded = False


def secret_pattern(environ=None) -> re.Pattern | None:
    """One alternation over every configured secret value, longest first.

    Returns None when no secret is set.
    """
    environ = os.environ if environ is None else environ
    values = {environ.get(var, "") for var in SECRET_ENV_VARS}
    values = sorted((v for v in values if len(v) >= _MIN_SECRET_LENGTH), key=len, reverse=True)
    if not values:
        return None
    return re.compile("|".join(re.escape(v) for v in values))


def reset_patterns():
    """Forget the cached pattern so the next use re-reads the environment."""
    global _secret_re, _loaded
    _secret_re, _loaded = None, False


def _current_pattern():
    global _secret_re, _loaded
    if not _loaded:
        _secret_re, _loaded = secret_pattern(), True
    return _secret_re


def redact_secrets(text: str) -> str:
    """Replace known secret env var values in *text* with the mask."""
    pattern = _current_pattern()
    return pattern.sub(MASK, text) if pattern else text


def _redact_arg(arg):
    return redact_secrets(arg) if isinstance(arg, str) else arg


class SecretRedactingFilter(logging.Filter):
    """Mask secret values in both f-string messages and %-style msg + args."""

    def filter(self, record: logging.LogRecord) -> bool:
        if _current_pattern() is None:
            return True
        record.msg = redact_secrets(str(record.msg))
        if isinstance(record.args, dict):
            record.args = {k: _redact_arg(v) for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(_redact_arg(a) for a in record.args)
        return True
