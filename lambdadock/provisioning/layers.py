"""Layer fallback: attach the first candidate layer the provider accepts."""

import logging

from botocore.exceptions import ClientError

from lambdadock.provisioning.aws import WaitTimeout, call, error_code
from lambdadock.provisioning.function import wait_for_function
from lambdadock.provisioning.types import LayerResult

logger = logging.getLogger(__name__)

# Community-maintained headless Chrome layers for eu-central-1, newest first.
CHROME_LAYER_CANDIDATES = (
    "arn:aws:lambda:eu-central-1:764866452798:layer:chrome-aws-lambda:31",
    "arn:aws:lambda:eu-central-1:764866452798:layer:chrome-aws-lambda:30",
)


def attach_best_layer(clients, target, candidates, waits, dry_run=False) -> LayerResult:
    """Try each candidate in order; stop at the first successful attach.

    Attempts are strictly sequential. A failed attempt is logged and the
    next candidate is tried. Running out of candidates is not an error:
    the function keeps running without a layer.
    """
    failed = []
    for arn in candidates:
        logger.info(f"Trying layer: {arn}")
        try:
            call(
                clients.lambda_,
                "update_function_configuration",
                dry_run=dry_run,
                FunctionName=target.name,
                Layers=[arn],
            )
        except ClientError as e:
            code = error_code(e) or "ClientError"
            logger.warning(f"Failed to add layer {arn}: {code}")
            failed.append((arn, code))
            continue

        try:
            wait_for_function(clients, target.name, "function_updated_v2", waits, dry_run=dry_run)
        except WaitTimeout as e:
            logger.warning(f"Layer {arn} did not settle: {e}")
            failed.append((arn, "WaitTimeout"))
            continue
        logger.info(f"Added layer: {arn}")
        return LayerResult(attached=arn, failed=tuple(failed))

    if candidates:
        logger.warning("No layer attached. The endpoint is still published but features that need the layer may not work.")
    return LayerResult(attached=None, failed=tuple(failed))
