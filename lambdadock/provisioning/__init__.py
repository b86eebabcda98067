"""AWS provisioning: state probing, image publishing, function, layer and endpoint stages."""

from lambdadock.provisioning.aws import (
    AwsClients,
    DeployError,
    Outcome,
    WaitTimeout,
    make_clients,
    resolve_account_id,
)
from lambdadock.provisioning.endpoint import delete_endpoint, ensure_endpoint
from lambdadock.provisioning.function import (
    assemble_environment,
    delete_function,
    ensure_function,
    ensure_role,
    replace_function,
)
from lambdadock.provisioning.layers import CHROME_LAYER_CANDIDATES, attach_best_layer
from lambdadock.provisioning.publish import publish_image
from lambdadock.provisioning.shell import run_shell_cmd
from lambdadock.provisioning.state import exists, probe_state
from lambdadock.provisioning.types import (
    DeploymentTarget,
    EndpointResult,
    FunctionConfig,
    FunctionResult,
    ImageCoordinate,
    LayerResult,
    StateSnapshot,
)

__all__ = [
    "AwsClients",
    "DeployError",
    "Outcome",
    "WaitTimeout",
    "make_clients",
    "resolve_account_id",
    "exists",
    "probe_state",
    "publish_image",
    "run_shell_cmd",
    "assemble_environment",
    "ensure_role",
    "ensure_function",
    "replace_function",
    "delete_function",
    "CHROME_LAYER_CANDIDATES",
    "attach_best_layer",
    "ensure_endpoint",
    "delete_endpoint",
    "DeploymentTarget",
    "ImageCoordinate",
    "FunctionConfig",
    "StateSnapshot",
    "FunctionResult",
    "LayerResult",
    "EndpointResult",
]
