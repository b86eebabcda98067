"""Endpoint configurator: public Function URL with CORS and public-invoke permission."""

import logging

from botocore.exceptions import ClientError

from lambdadock.provisioning.aws import (
    DeployError,
    Outcome,
    call,
    call_tolerating,
    error_code,
)
from lambdadock.provisioning.types import EndpointResult

logger = logging.getLogger(__name__)

PUBLIC_ACCESS_STATEMENT_ID = "FunctionURLAllowPublicAccess"


def dry_run_url(target) -> str:
    return f"https://{target.name}.lambda-url.{target.region}.on.aws/"


def _get_url_config(clients, target, dry_run=False):
    """Read the Function URL config. Returns the URL, or None when not configured."""
    try:
        result = call_tolerating(
            clients.lambda_,
            "get_function_url_config",
            tolerate={Outcome.NOT_FOUND},
            dry_run=dry_run,
            FunctionName=target.name,
        )
    except ClientError as e:
        raise DeployError(f"Failed to read Function URL config of '{target.name}': {e}") from e
    if dry_run or result.outcome is Outcome.NOT_FOUND:
        return None
    return result.response["FunctionUrl"]


def grant_public_invoke(clients, target, auth_type="NONE", dry_run=False) -> Outcome | None:
    """Allow anyone to invoke the Function URL.

    Returns:
        Outcome.OK or Outcome.ALREADY_EXISTS; None if the grant failed
        for another reason (logged, not raised).
    """
    logger.info("Adding public access permission...")
    try:
        result = call_tolerating(
            clients.lambda_,
            "add_permission",
            tolerate={Outcome.ALREADY_EXISTS},
            dry_run=dry_run,
            FunctionName=target.name,
            StatementId=PUBLIC_ACCESS_STATEMENT_ID,
            Action="lambda:InvokeFunctionUrl",
            Principal="*",
            FunctionUrlAuthType=auth_type,
        )
    except ClientError as e:
        logger.warning(f"Could not grant public access ({error_code(e)}): {e}")
        return None
    if result.outcome is Outcome.ALREADY_EXISTS:
        logger.info("Public access permission already present.")
    return result.outcome


def ensure_endpoint(clients, target, config, dry_run=False) -> EndpointResult:
    """Create the Function URL unless one exists, then return its URL.

    An existing URL config is never diffed against *config*: changing CORS
    on an existing endpoint needs a teardown of the URL first.
    """
    url = _get_url_config(clients, target, dry_run=dry_run)
    if url is not None:
        logger.info("Function URL already exists. Skipping creation.")
        return EndpointResult(url=url, created=False)

    logger.info("Function URL not found. Creating a new one...")
    try:
        call(
            clients.lambda_,
            "create_function_url_config",
            dry_run=dry_run,
            FunctionName=target.name,
            AuthType=config.auth_type,
            Cors=config.cors(),
        )
    except ClientError as e:
        raise DeployError(f"Failed to create Function URL for '{target.name}': {e}") from e

    permission = None
    if config.auth_type == "NONE":
        permission = grant_public_invoke(clients, target, auth_type=config.auth_type, dry_run=dry_run)

    url = _get_url_config(clients, target, dry_run=dry_run)
    if url is None:
        if not dry_run:
            raise DeployError(f"Function URL for '{target.name}' not readable after creation")
        url = dry_run_url(target)
    return EndpointResult(url=url, created=True, permission=permission)


def delete_endpoint(clients, target, dry_run=False) -> Outcome:
    """Remove the Function URL config and its public permission. Missing pieces are tolerated."""
    logger.info(f"Deleting Function URL of '{target.name}'...")
    try:
        outcome = call_tolerating(
            clients.lambda_,
            "delete_function_url_config",
            tolerate={Outcome.NOT_FOUND},
            dry_run=dry_run,
            FunctionName=target.name,
        ).outcome
        call_tolerating(
            clients.lambda_,
            "remove_permission",
            tolerate={Outcome.NOT_FOUND},
            dry_run=dry_run,
            FunctionName=target.name,
            StatementId=PUBLIC_ACCESS_STATEMENT_ID,
        )
    except ClientError as e:
        raise DeployError(f"Failed to delete Function URL of '{target.name}': {e}") from e
    if outcome is Outcome.NOT_FOUND:
        logger.info("No Function URL configured.")
    return outcome
