"""Deployment context: everything one run needs, resolved once at startup."""

import os
from dataclasses import dataclass, field

from lambdadock.config import DeployConfig, EndpointConfig, ImageSettings, VerifyConfig, WaitConfig
from lambdadock.provisioning.function import assemble_environment, role_arn_for
from lambdadock.provisioning.types import DeploymentTarget, FunctionConfig, ImageCoordinate


@dataclass(frozen=True)
class DeploymentContext:
    """Immutable inputs of a deployment run, passed by reference to every stage."""

    target: DeploymentTarget
    image: ImageCoordinate
    function: FunctionConfig
    build: ImageSettings = field(default_factory=ImageSettings)
    endpoint: EndpointConfig = field(default_factory=EndpointConfig)
    verify: VerifyConfig = field(default_factory=VerifyConfig)
    wait: WaitConfig = field(default_factory=WaitConfig)
    layer_candidates: tuple[str, ...] = ()
    role_name: str | None = None  # set when the execution role should be looked up / created
    api_key: str | None = None  # sent by the smoke test when the function enforces a key
    skip_build: bool = False
    replace: bool = False
    run_verify: bool = True
    strict: bool = False
    dry_run: bool = False


def build_context(
    config: DeployConfig,
    account_id,
    region,
    environ=None,
    extra_layers=(),
    skip_build=False,
    replace=False,
    run_verify=True,
    strict=False,
    dry_run=False,
) -> DeploymentContext:
    """Resolve a DeployConfig plus process environment into a DeploymentContext.

    Secrets named in ``function.secrets`` are read from *environ* and only
    the non-empty ones end up in the function environment.
    """
    environ = os.environ if environ is None else environ
    fn = config.function

    if fn.role_arn:
        role_arn, role_name = fn.role_arn, None
    else:
        role_arn, role_name = role_arn_for(account_id, fn.role_name), fn.role_name

    # Keep first occurrence order, drop duplicates
    layers = tuple(dict.fromkeys([*config.layers, *extra_layers]))

    return DeploymentContext(
        target=DeploymentTarget(name=fn.name, region=region, account_id=account_id),
        image=ImageCoordinate.for_account(account_id, region, config.image.repository, config.image.tag),
        function=FunctionConfig(
            memory_size=fn.memory_size,
            timeout=fn.timeout,
            role_arn=role_arn,
            architecture=fn.architecture,
            environment=assemble_environment(environ, fn.secrets),
        ),
        build=config.image,
        endpoint=config.endpoint,
        verify=config.verify,
        wait=config.wait,
        layer_candidates=layers,
        role_name=role_name,
        api_key=environ.get("API_KEY") or None,
        skip_build=skip_build,
        replace=replace,
        run_verify=run_verify,
        strict=strict,
        dry_run=dry_run,
    )
