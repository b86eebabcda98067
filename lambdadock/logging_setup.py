"""CLI logging setup: plain %(message)s output with secrets redacted."""

import logging
import sys

from lambdadock.redact import SecretRedactingFilter

# Third-party loggers that narrate every HTTP request at INFO/DEBUG
_NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "httpcore")


def setup_cli_logging(verbose=False):
    """Configure the root logger so log output reads like print().

    The redacting filter sits on the handler, so records propagated from
    library loggers are masked too.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
