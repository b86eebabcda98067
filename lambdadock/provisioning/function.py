"""Function lifecycle: environment assembly, execution role, create-or-update, replace."""

import json
import logging
import time
from collections.abc import Iterable, Mapping

from botocore.exceptions import ClientError

from lambdadock.provisioning.aws import (
    DeployError,
    Outcome,
    call,
    call_tolerating,
    error_code,
    poll_until,
    wait_for,
)
from lambdadock.provisioning.state import exists
from lambdadock.provisioning.types import FunctionResult

logger = logging.getLogger(__name__)

BASIC_EXECUTION_POLICY_ARN = "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"

LAMBDA_TRUST_POLICY = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": "lambda.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    ],
}


def assemble_environment(sources: Mapping[str, str | None], names: Iterable[str]) -> dict[str, str]:
    """Pick the named values out of *sources*, dropping missing and empty ones.

    A name whose value is unset or empty is absent from the result, never
    present with an empty value.
    """
    return {name: sources[name] for name in names if sources.get(name)}


def _exists(clients, kind, identifier, dry_run=False) -> bool:
    try:
        return exists(clients, kind, identifier, dry_run=dry_run)
    except ClientError as e:
        raise DeployError(f"Failed to look up {kind} '{identifier}': {e}") from e


def role_arn_for(account_id, role_name) -> str:
    return f"arn:aws:iam::{account_id}:role/{role_name}"


def ensure_role(clients, account_id, role_name, waits, dry_run=False, sleep=time.sleep) -> str:
    """Return the ARN of the execution role, creating it if it does not exist.

    A freshly created role is polled until IAM reports it readable.
    """
    try:
        result = call_tolerating(clients.iam, "get_role", tolerate={Outcome.NOT_FOUND}, dry_run=dry_run, RoleName=role_name)
    except ClientError as e:
        raise DeployError(f"Failed to look up IAM role '{role_name}': {e}") from e
    if result.outcome is Outcome.OK:
        arn = result.response.get("Role", {}).get("Arn") or role_arn_for(account_id, role_name)
        logger.info(f"Using IAM role: {arn}")
        return arn

    logger.info(f"Creating IAM role '{role_name}'...")
    try:
        resp = clients.iam.create_role(
            RoleName=role_name,
            AssumeRolePolicyDocument=json.dumps(LAMBDA_TRUST_POLICY),
            Description="Execution role for the screenshot function",
        )
        clients.iam.attach_role_policy(RoleName=role_name, PolicyArn=BASIC_EXECUTION_POLICY_ARN)
    except ClientError as e:
        raise DeployError(f"Failed to create IAM role '{role_name}': {e}") from e

    logger.info("Waiting for IAM role propagation...")
    poll_until(
        lambda: _exists(clients, "role", role_name),
        f"IAM role '{role_name}'",
        interval=waits.delay,
        max_attempts=waits.max_attempts,
        sleep=sleep,
    )
    return resp["Role"]["Arn"]


def _configuration_kwargs(config) -> dict:
    """Role/memory/timeout always; Environment only when at least one value is set."""
    kwargs = {
        "Role": config.role_arn,
        "MemorySize": config.memory_size,
        "Timeout": config.timeout,
    }
    if config.environment:
        kwargs["Environment"] = {"Variables": dict(config.environment)}
    return kwargs


def wait_for_function(clients, function_name, waiter_name, waits, dry_run=False):
    wait_for(
        clients.lambda_,
        waiter_name,
        waits.delay,
        waits.max_attempts,
        dry_run=dry_run,
        FunctionName=function_name,
    )


def _role_not_assumable(exc: ClientError) -> bool:
    """Lambda's answer while a freshly created role has not propagated yet."""
    message = exc.response.get("Error", {}).get("Message", "")
    return error_code(exc) == "InvalidParameterValueException" and "role" in message.lower()


def create_function(clients, target, image, config, waits, dry_run=False, sleep=time.sleep) -> FunctionResult:
    """Create the function, then block until it is Active.

    A rejection because the execution role cannot be assumed yet is
    retried every ``waits.delay`` seconds; any other failure is fatal.
    """
    logger.info(f"Creating function '{target.name}' from {image.uri}...")
    created = []

    def attempt():
        try:
            created.append(
                call(
                    clients.lambda_,
                    "create_function",
                    dry_run=dry_run,
                    FunctionName=target.name,
                    PackageType="Image",
                    Code={"ImageUri": image.uri},
                    Architectures=[config.architecture],
                    **_configuration_kwargs(config),
                )
            )
        except ClientError as e:
            if _role_not_assumable(e):
                logger.info("Execution role not assumable yet, retrying...")
                return False
            raise DeployError(f"Failed to create function '{target.name}': {e}") from e
        return True

    poll_until(
        attempt,
        f"execution role of '{target.name}' to become assumable",
        interval=waits.delay,
        max_attempts=waits.max_attempts,
        sleep=sleep,
    )

    logger.info("Waiting for function to become active...")
    wait_for_function(clients, target.name, "function_active_v2", waits, dry_run=dry_run)
    logger.info("Function created.")
    return FunctionResult(action="created", function_arn=created[-1].get("FunctionArn"))


def update_function(clients, target, image, config, waits, dry_run=False) -> FunctionResult:
    """Update code, settle, update configuration, settle.

    Lambda rejects a configuration update while a code update is in
    progress, so the two calls are serialized by the waits.
    """
    logger.info(f"Updating function code of '{target.name}' to {image.uri}...")
    try:
        call(
            clients.lambda_,
            "update_function_code",
            dry_run=dry_run,
            FunctionName=target.name,
            ImageUri=image.uri,
            Architectures=[config.architecture],
        )
    except ClientError as e:
        raise DeployError(f"Failed to update code of '{target.name}': {e}") from e

    logger.info("Waiting for function code to update...")
    wait_for_function(clients, target.name, "function_updated_v2", waits, dry_run=dry_run)

    logger.info(f"Updating function configuration (memory={config.memory_size}MB, timeout={config.timeout}s)...")
    try:
        resp = call(
            clients.lambda_,
            "update_function_configuration",
            dry_run=dry_run,
            FunctionName=target.name,
            **_configuration_kwargs(config),
        )
    except ClientError as e:
        raise DeployError(f"Failed to update configuration of '{target.name}': {e}") from e

    logger.info("Waiting for function configuration to update...")
    wait_for_function(clients, target.name, "function_updated_v2", waits, dry_run=dry_run)
    logger.info("Function updated.")
    return FunctionResult(action="updated", function_arn=resp.get("FunctionArn"))


def ensure_function(
    clients, target, image, config, waits, function_exists=None, dry_run=False, sleep=time.sleep
) -> FunctionResult:
    """Create the function if absent, otherwise update its code and configuration.

    Args:
        function_exists: existence from an earlier state probe; probed here when None.
    """
    if function_exists is None:
        function_exists = _exists(clients, "function", target.name, dry_run=dry_run)
    if function_exists:
        return update_function(clients, target, image, config, waits, dry_run=dry_run)
    return create_function(clients, target, image, config, waits, dry_run=dry_run, sleep=sleep)


def delete_function(clients, function_name, dry_run=False) -> Outcome:
    """Delete the function; a missing function is a tolerated outcome."""
    logger.info(f"Deleting function '{function_name}'...")
    try:
        result = call_tolerating(
            clients.lambda_,
            "delete_function",
            tolerate={Outcome.NOT_FOUND},
            dry_run=dry_run,
            FunctionName=function_name,
        )
    except ClientError as e:
        raise DeployError(f"Failed to delete function '{function_name}': {e}") from e
    if result.outcome is Outcome.NOT_FOUND:
        logger.info(f"Function '{function_name}' not found, nothing to delete.")
    return result.outcome


def replace_function(clients, target, image, config, waits, dry_run=False, sleep=time.sleep) -> FunctionResult:
    """Delete-then-recreate.

    Discards everything attached to the old function: environment
    variables, Function URL and resource policy.
    """
    logger.warning(
        f"Replacing function '{target.name}': its environment, Function URL and "
        "permissions will be discarded and recreated."
    )
    outcome = delete_function(clients, target.name, dry_run=dry_run)
    if outcome is Outcome.OK and not dry_run:
        poll_until(
            lambda: not _exists(clients, "function", target.name),
            f"deletion of function '{target.name}'",
            interval=waits.delay,
            max_attempts=waits.max_attempts,
            sleep=sleep,
        )
    result = create_function(clients, target, image, config, waits, dry_run=dry_run, sleep=sleep)
    return FunctionResult(action="replaced", function_arn=result.function_arn)
