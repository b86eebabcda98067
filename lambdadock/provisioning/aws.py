"""AWS client helpers: clients, error classification, tolerated outcomes, polling."""

import enum
import json
import logging
import time
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError, WaiterError

logger = logging.getLogger(__name__)

DRY_RUN_ACCOUNT_ID = "123456789012"

# Error codes that mean "the thing you asked about does not exist".
NOT_FOUND_CODES = {
    "ResourceNotFoundException",
    "RepositoryNotFoundException",
    "NoSuchEntity",
    "NoSuchEntityException",
    "404",
}

# Error codes that mean "the thing you tried to create is already there".
ALREADY_EXISTS_CODES = {
    "ResourceConflictException",
    "RepositoryAlreadyExistsException",
    "EntityAlreadyExists",
}


class DeployError(RuntimeError):
    """Fatal deployment failure. Aborts the pipeline."""


class WaitTimeout(DeployError):
    """A terminal-state wait or bounded poll ran out of attempts."""


class Outcome(enum.Enum):
    """Result variant of a remote call that has tolerated failure modes."""

    OK = "ok"
    NOT_FOUND = "not-found"
    ALREADY_EXISTS = "already-exists"


@dataclass(frozen=True)
class CallResult:
    outcome: Outcome
    response: dict


@dataclass
class AwsClients:
    """The boto3 clients one deployment run talks to, all bound to one region."""

    lambda_: Any
    ecr: Any
    iam: Any
    sts: Any
    region: str


def make_clients(region):
    """Create the lambda/ecr/iam/sts clients for *region* from one session."""
    session = boto3.session.Session(region_name=region)
    return AwsClients(
        lambda_=session.client("lambda"),
        ecr=session.client("ecr"),
        iam=session.client("iam"),
        sts=session.client("sts"),
        region=region,
    )


def error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def classify_error(exc: ClientError) -> Outcome | None:
    """Map a ClientError onto a tolerated Outcome, or None if it is a real failure."""
    code = error_code(exc)
    if code in NOT_FOUND_CODES:
        return Outcome.NOT_FOUND
    if code in ALREADY_EXISTS_CODES:
        return Outcome.ALREADY_EXISTS
    return None


def _service_name(client) -> str:
    try:
        return client.meta.service_model.service_name
    except AttributeError:
        return "aws"


def _describe_kwargs(kwargs: dict) -> str:
    """Render call kwargs for logs with environment values masked."""
    shown = dict(kwargs)
    env = shown.get("Environment")
    if isinstance(env, dict) and "Variables" in env:
        shown["Environment"] = {"Variables": {k: "***" for k in env["Variables"]}}
    return json.dumps(shown, default=str, sort_keys=True)


def call(client, operation: str, dry_run=False, **kwargs) -> dict:
    """Invoke *operation* on a boto3 client.

    In dry-run mode the call is logged and an empty response is returned.
    ClientError propagates to the caller.
    """
    if dry_run:
        logger.info(f"[dry-run] {_service_name(client)} {operation} {_describe_kwargs(kwargs)}")
        return {}
    return getattr(client, operation)(**kwargs)


def call_tolerating(client, operation: str, tolerate, dry_run=False, **kwargs) -> CallResult:
    """Invoke *operation*, turning the listed error outcomes into a CallResult.

    Args:
        tolerate: collection of Outcome values that are expected results
            at this call site. Any other ClientError propagates.
    """
    try:
        return CallResult(Outcome.OK, call(client, operation, dry_run=dry_run, **kwargs))
    except ClientError as e:
        outcome = classify_error(e)
        if outcome is not None and outcome in tolerate:
            logger.debug(f"{operation}: tolerated {outcome.value} ({error_code(e)})")
            return CallResult(outcome, {})
        raise


def resolve_account_id(clients: AwsClients, dry_run=False) -> str:
    """Return the caller's AWS account id; missing credentials are fatal."""
    if dry_run:
        logger.info(f"[dry-run] sts get_caller_identity -> {DRY_RUN_ACCOUNT_ID}")
        return DRY_RUN_ACCOUNT_ID
    try:
        return clients.sts.get_caller_identity()["Account"]
    except (ClientError, BotoCoreError) as e:
        raise DeployError(f"AWS credentials not configured or not usable: {e}") from e


def wait_for(client, waiter_name, delay, max_attempts, dry_run=False, **kwargs):
    """Block on a boto3 waiter with an explicit delay/attempt budget.

    Raises:
        WaitTimeout: the waiter gave up or hit a failure state.
    """
    if dry_run:
        logger.info(f"[dry-run] wait {waiter_name} every {delay}s (up to {max_attempts} attempts) {_describe_kwargs(kwargs)}")
        return
    waiter = client.get_waiter(waiter_name)
    try:
        waiter.wait(WaiterConfig={"Delay": delay, "MaxAttempts": max_attempts}, **kwargs)
    except WaiterError as e:
        raise WaitTimeout(f"Waiter '{waiter_name}' did not succeed: {e}") from e


def poll_until(check, what, interval=5, max_attempts=12, sleep=time.sleep) -> int:
    """Call *check* until it returns truthy, sleeping *interval* between attempts.

    Returns:
        The 1-based attempt number that succeeded.

    Raises:
        WaitTimeout: after *max_attempts* falsy results.
    """
    for attempt in range(1, max_attempts + 1):
        if check():
            return attempt
        if attempt < max_attempts:
            sleep(interval)
    raise WaitTimeout(f"Timed out after {max_attempts} attempts ({interval}s apart) waiting for {what}")
