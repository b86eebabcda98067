"""Deploy configuration: built-in defaults, YAML loading and dataclass types."""

import os
from dataclasses import dataclass, field, fields

import yaml

DEFAULT_FUNCTION_NAME = "screenshotapi"
DEFAULT_MEMORY = 2048
DEFAULT_TIMEOUT = 90
DEFAULT_REGION = "us-east-1"
DEFAULT_REPOSITORY = "screenshot-api"
DEFAULT_ROLE_NAME = "screenshot-api-lambda-role"
DEFAULT_SECRETS = ("API_KEY", "RAPIDAPI_PROXY_SECRET")

# Lambda service limits.
MEMORY_RANGE = (128, 10240)
TIMEOUT_RANGE = (1, 900)

VERIFY_VARIANTS = ("json", "status")

# Region env vars in lookup order.
REGION_ENV_VARS = ("AWS_DEFAULT_REGION", "AWS_REGION")

DEFAULTS = {
    "region": None,
    "function": {
        "name": DEFAULT_FUNCTION_NAME,
        "memory_size": DEFAULT_MEMORY,
        "timeout": DEFAULT_TIMEOUT,
        "role_name": DEFAULT_ROLE_NAME,
        "role_arn": None,
        "architecture": "x86_64",
        "secrets": list(DEFAULT_SECRETS),
    },
    "image": {
        "repository": DEFAULT_REPOSITORY,
        "tag": "latest",
        "dockerfile": "Dockerfile",
        "context": ".",
        "platform": "linux/amd64",
    },
    "layers": [],
    "endpoint": {
        "auth_type": "NONE",
        "allow_methods": ["GET", "POST"],
        "allow_origins": ["*"],
        "allow_headers": ["*"],
        "max_age": 86400,
        "allow_credentials": False,
    },
    "verify": {
        "probe_target": "https://example.com",
        "variant": "json",
        "warmup": 5,
        "attempts": 1,
        "interval": 5,
        "timeout": 60,
    },
    "wait": {
        "delay": 5,
        "max_attempts": 60,
    },
}


@dataclass(frozen=True)
class FunctionSettings:
    """Function identity and sizing as configured (before secrets are resolved)."""

    name: str = DEFAULT_FUNCTION_NAME
    memory_size: int = DEFAULT_MEMORY
    timeout: int = DEFAULT_TIMEOUT
    role_name: str = DEFAULT_ROLE_NAME
    role_arn: str | None = None
    architecture: str = "x86_64"
    secrets: tuple[str, ...] = DEFAULT_SECRETS


@dataclass(frozen=True)
class ImageSettings:
    """Where the image is built from and which repository/tag it lands in."""

    repository: str = DEFAULT_REPOSITORY
    tag: str = "latest"
    dockerfile: str = "Dockerfile"
    context: str = "."
    platform: str = "linux/amd64"


@dataclass(frozen=True)
class EndpointConfig:
    """Public Function URL settings. Applied on creation only."""

    auth_type: str = "NONE"
    allow_methods: tuple[str, ...] = ("GET", "POST")
    allow_origins: tuple[str, ...] = ("*",)
    allow_headers: tuple[str, ...] = ("*",)
    max_age: int = 86400
    allow_credentials: bool = False

    def cors(self) -> dict:
        """CORS block in the shape create_function_url_config expects."""
        cors = {
            "AllowCredentials": self.allow_credentials,
            "AllowMethods": list(self.allow_methods),
            "AllowOrigins": list(self.allow_origins),
            "MaxAge": self.max_age,
        }
        if self.allow_headers:
            cors["AllowHeaders"] = list(self.allow_headers)
        return cors


@dataclass(frozen=True)
class VerifyConfig:
    """Smoke test settings."""

    probe_target: str = "https://example.com"
    variant: str = "json"
    warmup: float = 5
    attempts: int = 1
    interval: float = 5
    timeout: float = 60


@dataclass(frozen=True)
class WaitConfig:
    """Delay/attempt budget for terminal-state waits and bounded polls."""

    delay: int = 5
    max_attempts: int = 60


@dataclass(frozen=True)
class DeployConfig:
    """Complete deploy configuration."""

    function: FunctionSettings = field(default_factory=FunctionSettings)
    image: ImageSettings = field(default_factory=ImageSettings)
    layers: tuple[str, ...] = ()
    endpoint: EndpointConfig = field(default_factory=EndpointConfig)
    verify: VerifyConfig = field(default_factory=VerifyConfig)
    wait: WaitConfig = field(default_factory=WaitConfig)
    region: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> "DeployConfig":
        """Build a DeployConfig from a merged config dict."""
        fn = _mapping(d, "function")
        fn["secrets"] = tuple(fn.get("secrets") or DEFAULT_SECRETS)

        ep = _mapping(d, "endpoint")
        for key in ("allow_methods", "allow_origins", "allow_headers"):
            if key in ep:
                ep[key] = tuple(ep[key] or ())

        layers = d.get("layers") or ()
        if isinstance(layers, str):
            layers = (layers,)

        return cls(
            function=_section(FunctionSettings, "function", fn),
            image=_section(ImageSettings, "image", _mapping(d, "image")),
            layers=tuple(layers),
            endpoint=_section(EndpointConfig, "endpoint", ep),
            verify=_section(VerifyConfig, "verify", _mapping(d, "verify")),
            wait=_section(WaitConfig, "wait", _mapping(d, "wait")),
            region=d.get("region"),
        )


def _mapping(d, name) -> dict:
    """Copy of section *name*; an empty section (``verify:``) means defaults."""
    data = d.get(name)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config section '{name}' must be a mapping, got {type(data).__name__}")
    return dict(data)


def _section(cls, name, data):
    unknown = sorted(set(data) - {f.name for f in fields(cls)})
    if unknown:
        raise ValueError(f"Unknown keys in '{name}' section: {', '.join(unknown)}")
    return cls(**data)


def deep_merge(base, override):
    """Recursive dict merge. Override wins for scalars."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def validate_config(config: DeployConfig):
    """Raise ValueError if sizing or smoke-test settings are out of range."""
    lo, hi = MEMORY_RANGE
    if not lo <= config.function.memory_size <= hi:
        raise ValueError(f"Memory must be between {lo} and {hi} MB (got {config.function.memory_size})")
    lo, hi = TIMEOUT_RANGE
    if not lo <= config.function.timeout <= hi:
        raise ValueError(f"Timeout must be between {lo} and {hi} seconds (got {config.function.timeout})")
    if config.verify.variant not in VERIFY_VARIANTS:
        raise ValueError(f"Unknown verify variant '{config.verify.variant}'. Available variants: {', '.join(VERIFY_VARIANTS)}")
    if config.verify.attempts < 1:
        raise ValueError("verify.attempts must be at least 1")


def load_config(path=None) -> DeployConfig:
    """Load an optional YAML config file deep-merged over DEFAULTS."""
    merged = DEFAULTS
    if path is not None:
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Config file not found: {path}")
        try:
            with open(path) as f:
                overrides = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing YAML config {path}: {e}") from e
        if not isinstance(overrides, dict):
            raise ValueError(f"Config file {path} must contain a mapping at the top level")
        unknown = sorted(set(overrides) - set(DEFAULTS))
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        merged = deep_merge(DEFAULTS, overrides)

    config = DeployConfig.from_dict(merged)
    validate_config(config)
    return config


def resolve_region(cli_region=None, config_region=None, environ=None) -> str:
    """CLI argument > config file > AWS_DEFAULT_REGION/AWS_REGION > built-in default."""
    if cli_region:
        return cli_region
    if config_region:
        return config_region
    environ = os.environ if environ is None else environ
    for var in REGION_ENV_VARS:
        if environ.get(var):
            return environ[var]
    return DEFAULT_REGION
