"""Shared data types for provisioning stages."""

from dataclasses import dataclass, field

from lambdadock.provisioning.aws import Outcome


@dataclass(frozen=True)
class DeploymentTarget:
    """Which function we deploy. ``name`` is the idempotency key for every lookup."""

    name: str
    region: str
    account_id: str

    @property
    def console_url(self) -> str:
        return f"https://console.aws.amazon.com/lambda/home?region={self.region}#/functions/{self.name}"


@dataclass(frozen=True)
class ImageCoordinate:
    """Registry location of the function image."""

    registry: str
    repository: str
    tag: str = "latest"

    @classmethod
    def for_account(cls, account_id, region, repository, tag="latest") -> "ImageCoordinate":
        return cls(registry=f"{account_id}.dkr.ecr.{region}.amazonaws.com", repository=repository, tag=tag)

    @property
    def local_tag(self) -> str:
        """Tag used for the locally built image before it is retagged for the registry."""
        return f"{self.repository}:{self.tag}"

    @property
    def uri(self) -> str:
        return f"{self.registry}/{self.repository}:{self.tag}"


@dataclass(frozen=True)
class FunctionConfig:
    """Resolved function configuration, applied wholesale on create and update."""

    memory_size: int
    timeout: int
    role_arn: str
    architecture: str = "x86_64"
    environment: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class StateSnapshot:
    """What the provider reports about the target before we change anything."""

    function_exists: bool
    function_state: str | None = None
    last_update_status: str | None = None
    layers: tuple[str, ...] = ()
    endpoint_exists: bool = False


@dataclass(frozen=True)
class FunctionResult:
    action: str  # "created", "updated" or "replaced"
    function_arn: str | None = None


@dataclass(frozen=True)
class LayerResult:
    attached: str | None
    failed: tuple[tuple[str, str], ...] = ()  # (layer arn, error code) per failed attempt


@dataclass(frozen=True)
class EndpointResult:
    url: str
    created: bool
    permission: Outcome | None = None  # None when creation was skipped or the grant failed
