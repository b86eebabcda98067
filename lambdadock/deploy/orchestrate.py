"""Deploy orchestration: run_deploy, run_teardown."""

import dataclasses
import logging
from dataclasses import dataclass

from lambdadock.deploy.params import DeploymentContext
from lambdadock.deploy.verify import SmokeTestOutcome, verify
from lambdadock.provisioning.aws import Outcome
from lambdadock.provisioning.endpoint import delete_endpoint, ensure_endpoint
from lambdadock.provisioning.function import delete_function, ensure_function, ensure_role, replace_function
from lambdadock.provisioning.layers import attach_best_layer
from lambdadock.provisioning.publish import publish_image
from lambdadock.provisioning.state import probe_state
from lambdadock.provisioning.types import (
    EndpointResult,
    FunctionResult,
    LayerResult,
    StateSnapshot,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeployReport:
    """Fragments returned by each stage of one run."""

    snapshot: StateSnapshot
    function: FunctionResult
    layer: LayerResult | None
    endpoint: EndpointResult
    smoke: SmokeTestOutcome | None

    def advisory_failures(self, layer_candidates) -> list[str]:
        """Non-fatal problems of this run, for strict mode."""
        problems = []
        if layer_candidates and (self.layer is None or self.layer.attached is None):
            problems.append("no layer could be attached")
        if self.smoke is not None and not self.smoke.ok:
            problems.append(f"smoke test {self.smoke.classification.value}: {self.smoke.detail}")
        return problems


def run_deploy(clients, ctx: DeploymentContext) -> DeployReport:
    """Run the deployment pipeline against one target.

    Every stage blocks until done. A DeployError from any stage aborts the
    run; layer and smoke-test problems are only logged.
    """
    target = ctx.target
    logger.info(f"Function: {target.name}")
    logger.info(f"Memory:   {ctx.function.memory_size}MB")
    logger.info(f"Timeout:  {ctx.function.timeout}s")
    logger.info(f"Region:   {target.region}")
    logger.info(f"Image:    {ctx.image.uri}")
    if ctx.function.environment:
        logger.info(f"Env:      {', '.join(sorted(ctx.function.environment))}")
    logger.info("")

    # Step 1: Resolve current state
    logger.info("Step 1: Checking current state...")
    snapshot = probe_state(clients, target, dry_run=ctx.dry_run)

    # Step 2: Build and push image
    if ctx.skip_build:
        logger.info(f"Step 2: Skipping image build, using {ctx.image.uri}")
    else:
        logger.info("Step 2: Building and publishing image...")
        publish_image(clients, ctx.image, ctx.build, dry_run=ctx.dry_run)

    # Step 3: Create or update the function
    logger.info("Step 3: Deploying function...")
    function_config = ctx.function
    if ctx.role_name:
        role_arn = ensure_role(clients, target.account_id, ctx.role_name, ctx.wait, dry_run=ctx.dry_run)
        function_config = dataclasses.replace(function_config, role_arn=role_arn)
    if ctx.replace:
        function = replace_function(clients, target, ctx.image, function_config, ctx.wait, dry_run=ctx.dry_run)
    else:
        function = ensure_function(
            clients,
            target,
            ctx.image,
            function_config,
            ctx.wait,
            function_exists=snapshot.function_exists,
            dry_run=ctx.dry_run,
        )

    # Step 4: Optional layer
    layer = None
    if ctx.layer_candidates:
        logger.info("Step 4: Attaching layer...")
        layer = attach_best_layer(clients, target, ctx.layer_candidates, ctx.wait, dry_run=ctx.dry_run)
    else:
        logger.info("Step 4: No layer candidates configured, skipping.")

    # Step 5: Function URL
    logger.info("Step 5: Setting up Function URL...")
    endpoint = ensure_endpoint(clients, target, ctx.endpoint, dry_run=ctx.dry_run)
    logger.info(f"Function URL is ready: {endpoint.url}")

    # Step 6: Smoke test
    smoke = None
    if ctx.dry_run:
        logger.info("Step 6: [dry-run] Skipping smoke test.")
    elif not ctx.run_verify:
        logger.info("Step 6: Smoke test disabled.")
    else:
        logger.info("Step 6: Testing deployment...")
        smoke = verify(
            endpoint.url,
            probe_target=ctx.verify.probe_target,
            variant=ctx.verify.variant,
            warmup=ctx.verify.warmup,
            attempts=ctx.verify.attempts,
            interval=ctx.verify.interval,
            timeout=ctx.verify.timeout,
            api_key=ctx.api_key,
        )
        if not smoke.ok:
            logger.info("Check the function logs:")
            logger.info(f"  aws logs tail /aws/lambda/{target.name} --follow --region {target.region}")

    report = DeployReport(snapshot=snapshot, function=function, layer=layer, endpoint=endpoint, smoke=smoke)
    _log_summary(ctx, report)
    _log_examples(endpoint.url, with_key=bool(ctx.api_key))
    return report


def _log_summary(ctx, report):
    status = "dry-run (not deployed)" if ctx.dry_run else report.function.action
    logger.info("")
    logger.info("Deployment summary:")
    logger.info(f"  Function:     {ctx.target.name} ({status})")
    logger.info(f"  Image:        {ctx.image.uri}")
    if ctx.layer_candidates:
        attached = report.layer.attached if report.layer else None
        logger.info(f"  Layer:        {attached or 'not added'}")
    if report.smoke is not None:
        logger.info(f"  Smoke test:   {report.smoke.classification.value}")
    logger.info(f"  Function URL: {report.endpoint.url}")
    logger.info(f"  Console:      {ctx.target.console_url}")


def _log_examples(url, with_key=False):
    key = " -H 'x-api-key: $API_KEY'" if with_key else ""
    logger.info("")
    logger.info("Usage examples:")
    logger.info("  Basic screenshot (default 1920x1080):")
    logger.info(f'    curl{key} "{url}?url=https://example.com"')
    logger.info("  Custom viewport size:")
    logger.info(f'    curl{key} "{url}?url=https://example.com&width=800&height=600"')
    logger.info("  Mobile viewport:")
    logger.info(f'    curl{key} "{url}?url=https://example.com&width=375&height=667"')
    logger.info("  With custom wait time:")
    logger.info(f'    curl{key} "{url}?url=https://example.com&wait=2000"')
    logger.info("  Viewport size limits: 320-3840 pixels; wait is in milliseconds.")
    logger.info("  Response: JSON with a base64-encoded PNG in 'data'.")


def run_teardown(clients, target, dry_run=False) -> bool:
    """Delete the Function URL, its permission and the function.

    Returns:
        True if the function existed and was deleted.
    """
    logger.info(f"Tearing down '{target.name}' in {target.region}...")
    delete_endpoint(clients, target, dry_run=dry_run)
    outcome = delete_function(clients, target.name, dry_run=dry_run)
    logger.info("Teardown complete.")
    return outcome is Outcome.OK
