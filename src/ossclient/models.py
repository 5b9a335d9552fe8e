"""Data model types for the OSS client.

These dataclasses represent what the client hands back to callers
(object metadata, listing pages, multipart parts, signed POST policies),
the raw transport response, and the entries produced by the filesystem
adapter's listings.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class TransportResponse:
    """A raw HTTP response as returned by a Transport.

    Attributes:
        status_code: The HTTP status code.
        headers: Lower-cased header name -> list of values.
        body: The raw response body.
    """

    status_code: int
    headers: dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str, default: str = "") -> str:
        """Return the first value of a header, case-insensitively."""
        values = self.headers.get(name.lower())
        if not values:
            return default
        return values[0]

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class ObjectMetadata:
    """Snapshot of an object's metadata from a HEAD request.

    Attributes:
        size: Size in bytes.
        etag: ETag with surrounding quotes stripped.
        last_modified: HTTP-date string (RFC 7231).
        content_type: MIME type.
        user_metadata: x-oss-meta-* headers, prefix removed, keys lower-cased.
    """

    size: int = 0
    etag: str = ""
    last_modified: str = ""
    content_type: str = ""
    user_metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ObjectSummary:
    """One Contents entry of a ListObjectsV2 page.

    Attributes:
        key: The object key.
        last_modified: ISO 8601 timestamp.
        etag: ETag with surrounding quotes stripped.
        size: Size in bytes.
        storage_class: Storage class (e.g. Standard, IA).
    """

    key: str
    last_modified: str = ""
    etag: str = ""
    size: int = 0
    storage_class: str = ""


@dataclass(frozen=True)
class ListingPage:
    """One page of a ListObjectsV2 response.

    next_continuation_token is set iff is_truncated is True.
    """

    objects: list[ObjectSummary] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)
    is_truncated: bool = False
    next_continuation_token: str | None = None


@dataclass(frozen=True)
class CompletedPart:
    """A part to submit to CompleteMultipartUpload."""

    part_number: int
    etag: str


@dataclass(frozen=True)
class PartInfo:
    """A part as reported by ListParts."""

    part_number: int
    etag: str
    size: int = 0
    last_modified: str = ""


@dataclass
class MultipartUploadSession:
    """Client-side record of an in-progress multipart upload.

    Created by initiate_multipart_upload. The caller records each part's
    ETag as upload_part returns it; completed_parts() yields them in the
    order CompleteMultipartUpload requires.

    Attributes:
        bucket: The bucket name.
        key: The object key.
        upload_id: Server-issued upload identifier.
        parts: Part number -> ETag of the last successful upload.
        etag: Final object ETag, set once the upload is completed.
    """

    bucket: str
    key: str
    upload_id: str
    parts: dict[int, str] = field(default_factory=dict)
    etag: str | None = None

    def record_part(self, part_number: int, etag: str) -> None:
        # Re-uploading a part number replaces it server-side, so replace here too.
        self.parts[part_number] = etag

    def completed_parts(self) -> list[CompletedPart]:
        return [CompletedPart(number, self.parts[number]) for number in sorted(self.parts)]


@dataclass(frozen=True)
class PostPolicy:
    """Signed form fields for a browser-based POST upload.

    Attributes:
        policy: Base64-encoded JSON policy document.
        signature: Base64 HMAC-SHA1 of the policy.
        access_key_id: The access key that signed the policy.
        expires: Expiry as a unix timestamp.
        host: Upload URL (filled in by the client, empty from the signer).
    """

    policy: str
    signature: str
    access_key_id: str
    expires: int
    host: str = ""


@dataclass(frozen=True)
class FileAttributes:
    """A file entry produced by the filesystem adapter."""

    path: str
    file_size: int | None = None
    visibility: str | None = None
    last_modified: int | None = None
    mime_type: str | None = None

    @property
    def is_file(self) -> bool:
        return True


@dataclass(frozen=True)
class DirectoryAttributes:
    """A directory entry produced by the filesystem adapter."""

    path: str

    @property
    def is_file(self) -> bool:
        return False
