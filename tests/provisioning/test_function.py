"""Unit tests for provisioning.function: environment assembly, role bootstrap, create vs update."""

import json
from unittest.mock import call as mock_call

import pytest

from lambdadock.provisioning.aws import DeployError, Outcome, WaitTimeout
from lambdadock.provisioning.function import (
    BASIC_EXECUTION_POLICY_ARN,
    assemble_environment,
    delete_function,
    ensure_function,
    ensure_role,
    replace_function,
    role_arn_for,
)
from lambdadock.provisioning.types import FunctionConfig

SECRETS = ("API_KEY", "RAPIDAPI_PROXY_SECRET")


# ── assemble_environment ────────────────────────────────────────


def test_assemble_environment_both_set():
    env = assemble_environment({"API_KEY": "abc", "RAPIDAPI_PROXY_SECRET": "xyz", "HOME": "/root"}, SECRETS)
    assert env == {"API_KEY": "abc", "RAPIDAPI_PROXY_SECRET": "xyz"}


def test_assemble_environment_drops_empty_and_missing():
    assert assemble_environment({"API_KEY": "abc", "RAPIDAPI_PROXY_SECRET": ""}, SECRETS) == {"API_KEY": "abc"}
    assert assemble_environment({}, SECRETS) == {}


def test_role_arn_for():
    assert role_arn_for("111122223333", "my-role") == "arn:aws:iam::111122223333:role/my-role"


# ── ensure_function ─────────────────────────────────────────────


def test_create_when_absent(clients, target, image, function_config, waits):
    clients.lambda_.create_function.return_value = {"FunctionArn": "arn:aws:lambda:us-east-1:111122223333:function:screenshotapi"}

    result = ensure_function(clients, target, image, function_config, waits, function_exists=False)

    assert result.action == "created"
    assert result.function_arn.endswith(":function:screenshotapi")
    clients.lambda_.create_function.assert_called_once()
    kwargs = clients.lambda_.create_function.call_args.kwargs
    assert kwargs["PackageType"] == "Image"
    assert kwargs["Code"] == {"ImageUri": image.uri}
    assert kwargs["MemorySize"] == 2048
    assert kwargs["Timeout"] == 90
    assert kwargs["Role"] == function_config.role_arn
    assert kwargs["Architectures"] == ["x86_64"]
    assert "Environment" not in kwargs
    clients.lambda_.update_function_code.assert_not_called()
    clients.lambda_.update_function_configuration.assert_not_called()
    clients.lambda_.get_waiter.assert_called_once_with("function_active_v2")


def test_create_with_environment(clients, target, image, waits):
    config = FunctionConfig(memory_size=1024, timeout=30, role_arn="arn:role", environment={"API_KEY": "abc"})
    ensure_function(clients, target, image, config, waits, function_exists=False)
    kwargs = clients.lambda_.create_function.call_args.kwargs
    assert kwargs["Environment"] == {"Variables": {"API_KEY": "abc"}}


def test_update_when_present(clients, target, image, function_config, waits):
    result = ensure_function(clients, target, image, function_config, waits, function_exists=True)

    assert result.action == "updated"
    clients.lambda_.create_function.assert_not_called()
    clients.lambda_.update_function_code.assert_called_once_with(
        FunctionName="screenshotapi",
        ImageUri=image.uri,
        Architectures=["x86_64"],
    )
    clients.lambda_.update_function_configuration.assert_called_once_with(
        FunctionName="screenshotapi",
        Role=function_config.role_arn,
        MemorySize=2048,
        Timeout=90,
    )
    # Code update settles before the configuration update is issued
    names = [c.args[0] for c in clients.lambda_.get_waiter.call_args_list]
    assert names == ["function_updated_v2", "function_updated_v2"]
    method_names = [c[0] for c in clients.lambda_.method_calls if not c[0].startswith("get_waiter")]
    assert method_names.index("update_function_code") < method_names.index("update_function_configuration")


def test_ensure_function_probes_when_existence_unknown(clients, client_error, target, image, function_config, waits):
    clients.lambda_.get_function.side_effect = client_error("ResourceNotFoundException")
    result = ensure_function(clients, target, image, function_config, waits)
    assert result.action == "created"
    clients.lambda_.get_function.assert_called_once_with(FunctionName="screenshotapi")


def test_create_failure_is_fatal(clients, client_error, target, image, function_config, waits):
    clients.lambda_.create_function.side_effect = client_error("InvalidParameterValueException")
    with pytest.raises(DeployError, match="Failed to create function"):
        ensure_function(clients, target, image, function_config, waits, function_exists=False)
    clients.lambda_.get_waiter.assert_not_called()


ROLE_NOT_READY = "The role defined for the function cannot be assumed by Lambda."


def test_create_retries_until_role_assumable(clients, client_error, target, image, function_config, waits):
    clients.lambda_.create_function.side_effect = [
        client_error("InvalidParameterValueException", "CreateFunction", ROLE_NOT_READY),
        {"FunctionArn": "arn:aws:lambda:us-east-1:111122223333:function:screenshotapi"},
    ]
    sleeps = []

    result = ensure_function(clients, target, image, function_config, waits, function_exists=False, sleep=sleeps.append)

    assert result.action == "created"
    assert result.function_arn.endswith(":function:screenshotapi")
    assert clients.lambda_.create_function.call_count == 2
    assert sleeps == [waits.delay]
    clients.lambda_.get_waiter.assert_called_once_with("function_active_v2")


def test_create_gives_up_when_role_never_assumable(clients, client_error, target, image, function_config, waits):
    clients.lambda_.create_function.side_effect = client_error("InvalidParameterValueException", "CreateFunction", ROLE_NOT_READY)

    with pytest.raises(WaitTimeout):
        ensure_function(clients, target, image, function_config, waits, function_exists=False, sleep=lambda _: None)

    assert clients.lambda_.create_function.call_count == waits.max_attempts
    clients.lambda_.get_waiter.assert_not_called()


def test_dry_run_issues_no_calls(clients, target, image, function_config, waits):
    result = ensure_function(clients, target, image, function_config, waits, dry_run=True)
    assert result.action == "created"
    clients.lambda_.get_function.assert_not_called()
    clients.lambda_.create_function.assert_not_called()
    clients.lambda_.get_waiter.assert_not_called()


# ── ensure_role ─────────────────────────────────────────────────


def test_ensure_role_existing(clients, waits):
    clients.iam.get_role.return_value = {"Role": {"Arn": "arn:aws:iam::1:role/existing"}}
    assert ensure_role(clients, "1", "existing", waits) == "arn:aws:iam::1:role/existing"
    clients.iam.create_role.assert_not_called()


def test_ensure_role_creates_and_polls(clients, client_error, waits):
    clients.iam.get_role.side_effect = [
        client_error("NoSuchEntity"),  # initial lookup
        client_error("NoSuchEntity"),  # first propagation poll
        {"Role": {"Arn": "arn:aws:iam::1:role/new"}},
    ]
    clients.iam.create_role.return_value = {"Role": {"Arn": "arn:aws:iam::1:role/new"}}
    sleeps = []

    arn = ensure_role(clients, "1", "new", waits, sleep=sleeps.append)

    assert arn == "arn:aws:iam::1:role/new"
    trust = json.loads(clients.iam.create_role.call_args.kwargs["AssumeRolePolicyDocument"])
    assert trust["Statement"][0]["Principal"] == {"Service": "lambda.amazonaws.com"}
    clients.iam.attach_role_policy.assert_called_once_with(RoleName="new", PolicyArn=BASIC_EXECUTION_POLICY_ARN)
    assert sleeps == [waits.delay]


def test_ensure_role_lookup_failure(clients, client_error, waits):
    clients.iam.get_role.side_effect = client_error("AccessDenied")
    with pytest.raises(DeployError, match="IAM role"):
        ensure_role(clients, "1", "r", waits)


# ── delete / replace ────────────────────────────────────────────


def test_delete_function_tolerates_missing(clients, client_error):
    clients.lambda_.delete_function.side_effect = client_error("ResourceNotFoundException")
    assert delete_function(clients, "fn") is Outcome.NOT_FOUND


def test_delete_function_other_error(clients, client_error):
    clients.lambda_.delete_function.side_effect = client_error("TooManyRequestsException")
    with pytest.raises(DeployError):
        delete_function(clients, "fn")


def test_replace_function(clients, client_error, target, image, function_config, waits):
    clients.lambda_.get_function.side_effect = client_error("ResourceNotFoundException")
    clients.lambda_.create_function.return_value = {"FunctionArn": "arn:new"}

    result = replace_function(clients, target, image, function_config, waits, sleep=lambda s: None)

    assert result.action == "replaced"
    assert result.function_arn == "arn:new"
    assert clients.lambda_.method_calls[0] == mock_call.delete_function(FunctionName="screenshotapi")
    clients.lambda_.create_function.assert_called_once()
