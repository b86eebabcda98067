"""Shared pytest fixtures for all test modules."""

import os
import subprocess
import sys
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from lambdadock.config import WaitConfig
from lambdadock.provisioning.aws import AwsClients
from lambdadock.provisioning.types import DeploymentTarget, FunctionConfig, ImageCoordinate


PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))

# Env vars that would make CLI runs depend on the developer's machine
_HOST_AWS_VARS = ("AWS_DEFAULT_REGION", "AWS_REGION", "AWS_PROFILE", "API_KEY", "RAPIDAPI_PROXY_SECRET")


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def run_cli(project_root):
    """Return a callable that invokes the lambdadock CLI as a subprocess."""

    def _run(*args, env=None):
        full_env = {k: v for k, v in os.environ.items() if k not in _HOST_AWS_VARS}
        full_env.update(env or {})
        result = subprocess.run(
            [sys.executable, "-m", "lambdadock.lambdadock", *args],
            capture_output=True,
            text=True,
            cwd=project_root,
            env=full_env,
        )
        return result.returncode, result.stdout, result.stderr

    return _run


# ── Unit-test fixtures ──────────────────────────────────────────────


@pytest.fixture
def client_error():
    """Return a factory for botocore ClientError with the given error code."""

    def _make(code, operation="Operation", message="test error"):
        return ClientError({"Error": {"Code": code, "Message": message}}, operation)

    return _make


@pytest.fixture
def clients():
    """AwsClients whose lambda/ecr/iam/sts clients are all MagicMocks."""
    return AwsClients(
        lambda_=MagicMock(),
        ecr=MagicMock(),
        iam=MagicMock(),
        sts=MagicMock(),
        region="us-east-1",
    )


@pytest.fixture
def waits():
    return WaitConfig(delay=0, max_attempts=3)


@pytest.fixture
def target():
    return DeploymentTarget(name="screenshotapi", region="us-east-1", account_id="111122223333")


@pytest.fixture
def image(target):
    return ImageCoordinate.for_account(target.account_id, target.region, "screenshot-api")


@pytest.fixture
def function_config():
    return FunctionConfig(
        memory_size=2048,
        timeout=90,
        role_arn="arn:aws:iam::111122223333:role/screenshot-api-lambda-role",
    )
