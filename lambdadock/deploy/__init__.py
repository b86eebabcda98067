"""Deploy library: run context, orchestration and the post-deploy smoke test."""

from lambdadock.deploy.orchestrate import DeployReport, run_deploy, run_teardown
from lambdadock.deploy.params import DeploymentContext, build_context
from lambdadock.deploy.verify import (
    Classification,
    SmokeTestOutcome,
    classify,
    probe,
    verify,
)

__all__ = [
    "DeploymentContext",
    "build_context",
    "DeployReport",
    "run_deploy",
    "run_teardown",
    "Classification",
    "SmokeTestOutcome",
    "classify",
    "probe",
    "verify",
]
