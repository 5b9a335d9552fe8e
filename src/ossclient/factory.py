"""Wiring: build clients, adapters and URL generators from configuration."""

import logging

from ossclient.adapter import OssFilesystemAdapter
from ossclient.client import OssClient
from ossclient.config import OssClientConfig
from ossclient.observer import CompositeObserver, LoggingObserver, MetricsObserver, Observer
from ossclient.signing import OssSigner
from ossclient.transport import HttpxTransport, Transport
from ossclient.urls import PublicUrlGenerator

logger = logging.getLogger(__name__)


def create_observer(config: OssClientConfig) -> Observer:
    """Logging observer, plus Prometheus metrics when enabled."""
    if config.metrics.enabled:
        return CompositeObserver(LoggingObserver(), MetricsObserver())
    return LoggingObserver()


def create_client(
    config: OssClientConfig, transport: Transport | None = None
) -> OssClient | None:
    """Build an OssClient, or return None if credentials are missing.

    Args:
        config: The loaded configuration.
        transport: Transport override; defaults to an HttpxTransport.

    Returns:
        The client, or None.
    """
    if not config.credentials.complete:
        logger.warning("OSS credentials not configured; client not created")
        return None

    signer = OssSigner(
        config.credentials.access_key_id, config.credentials.access_key_secret
    )
    return OssClient(
        transport or HttpxTransport(timeout=config.endpoint.timeout),
        signer,
        config.endpoint.host,
        scheme=config.endpoint.scheme,
        observer=create_observer(config),
    )


def create_adapter(
    config: OssClientConfig, transport: Transport | None = None
) -> OssFilesystemAdapter | None:
    """Build an adapter for the configured bucket, or None if unconfigured."""
    if not config.bucket.name:
        logger.warning("OSS bucket not configured; adapter not created")
        return None
    client = create_client(config, transport)
    if client is None:
        return None
    return OssFilesystemAdapter(client, config.bucket.name, config.bucket.prefix)


def create_url_generator(config: OssClientConfig) -> PublicUrlGenerator | None:
    """Build a public URL generator; needs a bucket but no credentials."""
    if not config.bucket.name:
        return None
    return PublicUrlGenerator(
        config.endpoint.host,
        config.bucket.name,
        prefix=config.bucket.prefix,
        public_domain=config.bucket.public_domain,
        cname_enabled=config.bucket.cname_enabled,
        internal=config.bucket.internal,
    )
