"""Error definitions for the OSS client and filesystem adapter."""

from enum import Enum


class ErrorKind(str, Enum):
    """Structured failure category, for branching without status matching."""

    SIGNING = "signing"
    PARSE = "parse"
    SERVICE = "service"
    NOT_FOUND = "not_found"
    TRANSPORT = "transport"
    INVALID_ARGUMENT = "invalid_argument"
    PARTIAL_MOVE = "partial_move"


class OssError(Exception):
    """An OSS client error with kind, message, and request context.

    Attributes:
        kind: The ErrorKind of this failure.
        message: Human-readable error description.
        http_status: The HTTP status returned by the service (0 if none).
        response_body: The raw response body, kept for diagnostics.
        operation: The client operation that failed (e.g. "put_object").
        bucket: The bucket the operation targeted.
        key: The object key the operation targeted.
        code: The service's error code (e.g. "NoSuchKey"), if it sent one.
    """

    kind = ErrorKind.SERVICE

    def __init__(
        self,
        message: str,
        http_status: int = 0,
        response_body: str = "",
        operation: str = "",
        bucket: str = "",
        key: str = "",
        code: str = "",
    ) -> None:
        """Initialize the OSS error.

        Args:
            message: Error description.
            http_status: HTTP status code (default 0, no response).
            response_body: Raw response body text.
            operation: Name of the failing client operation.
            bucket: Target bucket name.
            key: Target object key.
            code: Service error code from the error body.
        """
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.response_body = response_body
        self.operation = operation
        self.bucket = bucket
        self.key = key
        self.code = code


class SigningError(OssError):
    """Malformed signing input (empty method/bucket, bad expiry, bad policy)."""

    kind = ErrorKind.SIGNING


class ParseError(OssError):
    """The service returned a body that could not be parsed."""

    kind = ErrorKind.PARSE

    def __init__(self, message: str = "XML parsing failed", response_body: str = "") -> None:
        super().__init__(message, response_body=response_body)


class ServiceError(OssError):
    """The service answered with an unexpected HTTP status."""

    kind = ErrorKind.SERVICE


class NotFoundError(ServiceError):
    """The object (or upload) does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        message: str = "Object not found",
        response_body: str = "",
        operation: str = "",
        bucket: str = "",
        key: str = "",
        code: str = "",
    ) -> None:
        super().__init__(
            message,
            http_status=404,
            response_body=response_body,
            operation=operation,
            bucket=bucket,
            key=key,
            code=code,
        )


class TransportError(OssError):
    """The request never produced an HTTP response (DNS, connect, timeout)."""

    kind = ErrorKind.TRANSPORT


class InvalidPartError(OssError):
    """The part list given to complete_multipart_upload is not usable."""

    kind = ErrorKind.INVALID_ARGUMENT


class PartialMoveError(OssError):
    """The copy half of a move succeeded but deleting the source failed.

    Both objects exist afterwards. Nothing is rolled back.

    Attributes:
        source: The source key, still present.
        destination: The destination key, already written.
        etag: ETag of the copied destination object.
    """

    kind = ErrorKind.PARTIAL_MOVE

    def __init__(self, bucket: str, source: str, destination: str, etag: str) -> None:
        super().__init__(
            f"Copied {source} to {destination} but failed to delete the source",
            operation="move_object",
            bucket=bucket,
            key=source,
        )
        self.source = source
        self.destination = destination
        self.etag = etag


# -- Filesystem adapter errors -------------------------------------------------


class FilesystemError(Exception):
    """A filesystem-level failure raised by OssFilesystemAdapter.

    Attributes:
        location: The adapter path the operation targeted.
        reason: Short description of what went wrong.
    """

    action = "access"

    def __init__(self, location: str, reason: str = "") -> None:
        message = f"Unable to {self.action} {location}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.location = location
        self.reason = reason


class UnableToCheckExistence(FilesystemError):
    action = "check existence of"


class UnableToReadFile(FilesystemError):
    action = "read file"


class UnableToWriteFile(FilesystemError):
    action = "write file"


class UnableToDeleteFile(FilesystemError):
    action = "delete file"


class UnableToDeleteDirectory(FilesystemError):
    action = "delete directory"


class UnableToCreateDirectory(FilesystemError):
    action = "create directory"


class UnableToRetrieveMetadata(FilesystemError):
    action = "retrieve metadata for"


class UnableToProvideChecksum(FilesystemError):
    action = "provide checksum for"


class UnableToListContents(FilesystemError):
    action = "list contents of"


class UnableToSetVisibility(FilesystemError):
    action = "set visibility for"


class UnableToCopyFile(FilesystemError):
    """Copy failed; location is the source path."""

    action = "copy file"

    def __init__(self, source: str, destination: str, reason: str = "") -> None:
        super().__init__(f"{source} to {destination}", reason)
        self.location = source
        self.destination = destination


class UnableToMoveFile(UnableToCopyFile):
    action = "move file"
