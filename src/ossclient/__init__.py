"""Signed-request client for OSS-compatible object storage."""

from ossclient.adapter import OssFilesystemAdapter, PathPrefixer
from ossclient.client import ListingPaginator, OssClient
from ossclient.errors import (
    ErrorKind,
    NotFoundError,
    OssError,
    ParseError,
    PartialMoveError,
    ServiceError,
    SigningError,
    TransportError,
)
from ossclient.models import (
    CompletedPart,
    ListingPage,
    MultipartUploadSession,
    ObjectMetadata,
    ObjectSummary,
    PostPolicy,
)
from ossclient.signing import OssSigner
from ossclient.transport import HttpxTransport, Transport
from ossclient.urls import PublicUrlGenerator

__all__ = [
    "CompletedPart",
    "ErrorKind",
    "HttpxTransport",
    "ListingPage",
    "ListingPaginator",
    "MultipartUploadSession",
    "NotFoundError",
    "ObjectMetadata",
    "ObjectSummary",
    "OssClient",
    "OssError",
    "OssFilesystemAdapter",
    "OssSigner",
    "ParseError",
    "PartialMoveError",
    "PathPrefixer",
    "PostPolicy",
    "PublicUrlGenerator",
    "ServiceError",
    "SigningError",
    "Transport",
    "TransportError",
]
