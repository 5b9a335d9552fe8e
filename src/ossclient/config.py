"""Configuration loading and Pydantic models for the OSS client."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

DEFAULT_REGION = "cn-hangzhou"

# Values of boolean environment variables that mean "on".
_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})

# Environment variable prefixes, in lookup order.
_ENV_PREFIXES = ("OSS_", "ALIYUN_OSS_")


class CredentialsConfig(BaseModel):
    """Access key pair used to sign requests."""

    access_key_id: str = ""
    access_key_secret: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.access_key_id and self.access_key_secret)


class EndpointConfig(BaseModel):
    """Service region, host, and transport settings."""

    region: str = DEFAULT_REGION
    endpoint: str = ""
    scheme: str = "https"
    timeout: float = 30.0

    @property
    def host(self) -> str:
        """The configured endpoint, or the public endpoint of the region."""
        return self.endpoint or f"oss-{self.region}.aliyuncs.com"


class BucketConfig(BaseModel):
    """Bucket, key prefix, and public URL settings."""

    name: str = ""
    prefix: str = ""
    public_domain: str | None = None
    cname_enabled: bool = False
    internal: bool = False


class LoggingConfig(BaseModel):
    """Log level and format."""

    level: str = "INFO"
    format: str = "text"


class MetricsConfig(BaseModel):
    """Prometheus metrics configuration."""

    enabled: bool = False


class OssClientConfig(BaseModel):
    """Top-level OSS client configuration."""

    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)
    endpoint: EndpointConfig = Field(default_factory=EndpointConfig)
    bucket: BucketConfig = Field(default_factory=BucketConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


def _parse_credentials(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the credentials section from YAML data."""
    if data is None:
        return {}
    return {
        "access_key_id": data.get("access_key_id", ""),
        "access_key_secret": data.get("access_key_secret", ""),
    }


def _parse_endpoint(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the endpoint section from YAML data."""
    if data is None:
        return {}
    return {
        "region": data.get("region", DEFAULT_REGION),
        "endpoint": data.get("endpoint", ""),
        "scheme": data.get("scheme", "https"),
        "timeout": data.get("timeout", 30.0),
    }


def _parse_bucket(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the bucket section from YAML data.

    Handles nested structure: bucket.public_url.domain -> public_domain, etc.
    """
    if data is None:
        return {}
    result: dict[str, Any] = {
        "name": data.get("name", ""),
        "prefix": data.get("prefix", ""),
        "internal": data.get("internal", False),
    }
    public_url = data.get("public_url")
    if isinstance(public_url, dict):
        result["public_domain"] = public_url.get("domain")
        result["cname_enabled"] = public_url.get("cname_enabled", False)
    return result


def _parse_logging(data: dict[str, Any] | None) -> dict[str, Any]:
    if data is None:
        return {}
    return {
        "level": data.get("level", "INFO"),
        "format": data.get("format", "text"),
    }


def _parse_metrics(data: dict[str, Any] | None) -> dict[str, Any]:
    if data is None:
        return {}
    return {"enabled": data.get("enabled", False)}


def load_config(path: Path) -> OssClientConfig:
    """Load an OssClientConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated OssClientConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return OssClientConfig(
        credentials=CredentialsConfig(**_parse_credentials(raw.get("credentials"))),
        endpoint=EndpointConfig(**_parse_endpoint(raw.get("endpoint"))),
        bucket=BucketConfig(**_parse_bucket(raw.get("bucket"))),
        logging=LoggingConfig(**_parse_logging(raw.get("logging"))),
        metrics=MetricsConfig(**_parse_metrics(raw.get("metrics"))),
    )


def _env(environ: Mapping[str, str], name: str, default: str = "") -> str:
    """Read OSS_<name>, falling back to ALIYUN_OSS_<name>."""
    for prefix in _ENV_PREFIXES:
        value = environ.get(prefix + name)
        if value is not None:
            return value
    return default


def _env_flag(environ: Mapping[str, str], name: str) -> bool:
    return _env(environ, name).strip().lower() in _TRUE_VALUES


def load_config_from_env(environ: Mapping[str, str]) -> OssClientConfig:
    """Build an OssClientConfig from OSS_* environment variables.

    Each variable may also be given with an ALIYUN_ prefix
    (ALIYUN_OSS_ACCESS_KEY_ID and so on); the OSS_* name wins when both
    are set. Missing variables fall back to the model defaults; the
    endpoint defaults to the public endpoint of the region.

    Args:
        environ: The environment mapping, usually os.environ.

    Returns:
        The OssClientConfig.
    """
    return OssClientConfig(
        credentials=CredentialsConfig(
            access_key_id=_env(environ, "ACCESS_KEY_ID"),
            access_key_secret=_env(environ, "ACCESS_KEY_SECRET"),
        ),
        endpoint=EndpointConfig(
            region=_env(environ, "REGION", DEFAULT_REGION),
            endpoint=_env(environ, "ENDPOINT"),
        ),
        bucket=BucketConfig(
            name=_env(environ, "BUCKET"),
            prefix=_env(environ, "PREFIX"),
            public_domain=_env(environ, "PUBLIC_DOMAIN") or None,
            cname_enabled=_env_flag(environ, "CNAME_ENABLED"),
            internal=_env_flag(environ, "INTERNAL"),
        ),
        logging=LoggingConfig(
            level=_env(environ, "LOG_LEVEL", "INFO"),
            format=_env(environ, "LOG_FORMAT", "text"),
        ),
        metrics=MetricsConfig(enabled=_env_flag(environ, "METRICS_ENABLED")),
    )
