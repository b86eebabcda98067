"""State prober: existence checks for the function, its URL config, repository and role."""

import logging

from botocore.exceptions import ClientError

from lambdadock.provisioning.aws import DeployError, Outcome, call, classify_error
from lambdadock.provisioning.types import StateSnapshot

logger = logging.getLogger(__name__)

# kind -> (client attribute, describe operation, kwargs builder)
_DESCRIBE = {
    "function": ("lambda_", "get_function", lambda ident: {"FunctionName": ident}),
    "function-url": ("lambda_", "get_function_url_config", lambda ident: {"FunctionName": ident}),
    "repository": ("ecr", "describe_repositories", lambda ident: {"repositoryNames": [ident]}),
    "role": ("iam", "get_role", lambda ident: {"RoleName": ident}),
}

RESOURCE_KINDS = tuple(_DESCRIBE)


def _describe(clients, kind, identifier, dry_run=False):
    """Run the descriptive read for *kind*.

    Returns:
        The response dict, or None when the provider says not found.
        In dry-run mode everything is reported as not found.
    """
    if kind not in _DESCRIBE:
        raise ValueError(f"Unknown resource kind '{kind}'. Available kinds: {', '.join(RESOURCE_KINDS)}")
    attr, operation, build_kwargs = _DESCRIBE[kind]
    if dry_run:
        call(getattr(clients, attr), operation, dry_run=True, **build_kwargs(identifier))
        return None
    try:
        return call(getattr(clients, attr), operation, **build_kwargs(identifier))
    except ClientError as e:
        if classify_error(e) is Outcome.NOT_FOUND:
            return None
        raise


def exists(clients, kind, identifier, dry_run=False) -> bool:
    """True if the resource exists, False on not-found; anything else propagates."""
    return _describe(clients, kind, identifier, dry_run=dry_run) is not None


def probe_state(clients, target, dry_run=False) -> StateSnapshot:
    """Snapshot the function and its Function URL before the pipeline mutates them.

    Raises:
        DeployError: a read failed for a reason other than not-found.
    """
    try:
        fn = _describe(clients, "function", target.name, dry_run=dry_run)
        endpoint_exists = fn is not None and exists(clients, "function-url", target.name, dry_run=dry_run)
    except ClientError as e:
        raise DeployError(f"Failed to read current state of '{target.name}': {e}") from e

    if fn is None:
        logger.info(f"Function '{target.name}' does not exist in {target.region}.")
        return StateSnapshot(function_exists=False)

    conf = fn.get("Configuration", {})
    layers = tuple(layer["Arn"] for layer in conf.get("Layers", []))

    snapshot = StateSnapshot(
        function_exists=True,
        function_state=conf.get("State"),
        last_update_status=conf.get("LastUpdateStatus"),
        layers=layers,
        endpoint_exists=endpoint_exists,
    )
    logger.info(
        f"Function '{target.name}' exists (state={snapshot.function_state}, "
        f"last update={snapshot.last_update_status}, layers={len(layers)}, "
        f"url={'yes' if endpoint_exists else 'no'})."
    )
    return snapshot
