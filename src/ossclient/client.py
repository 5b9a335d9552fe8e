"""OSS storage client: one logical operation per method.

Each operation builds its headers and query, stamps a Date header, signs
the request, hands it to the transport, and classifies the response:

    - the expected status (200, or 204 for delete/abort) is success;
    - 404 on reads, heads, deletes and copies raises NotFoundError;
    - anything else raises ServiceError with the status and raw body.

The client never retries. Latency and outcome of every operation are
reported to the injected observer.
"""

import email.utils
import logging
import time
import urllib.parse
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable

from ossclient.errors import (
    InvalidPartError,
    NotFoundError,
    OssError,
    PartialMoveError,
    ServiceError,
)
from ossclient.models import (
    CompletedPart,
    ListingPage,
    MultipartUploadSession,
    ObjectMetadata,
    ObjectSummary,
    PartInfo,
    PostPolicy,
    TransportResponse,
)
from ossclient.observer import LoggingObserver, Observer
from ossclient.signing import META_PREFIX, OssSigner, QueryValue, normalize_headers
from ossclient.transport import Transport
from ossclient.xml_utils import (
    parse_complete_multipart_upload,
    parse_copy_object,
    parse_error_code,
    parse_initiate_multipart_upload,
    parse_list_objects,
    parse_list_parts,
    render_complete_multipart_upload,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_KEYS = 1000
DEFAULT_CONTENT_TYPE = "application/octet-stream"
REQUEST_ID_HEADER = "x-oss-request-id"
COPY_SOURCE_HEADER = "x-oss-copy-source"


class OssClient:
    """Synchronous client for an OSS-compatible object storage service.

    Holds only immutable configuration; safe to share between threads as
    long as the transport is.

    Attributes:
        transport: Sends signed requests.
        signer: Signs requests with the account credentials.
        endpoint: Service host, e.g. ``oss-cn-hangzhou.aliyuncs.com``.
        scheme: URL scheme, ``https`` unless configured otherwise.
        observer: Receives latency and outcome of every operation.
    """

    def __init__(
        self,
        transport: Transport,
        signer: OssSigner,
        endpoint: str,
        scheme: str = "https",
        observer: Observer | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the client.

        Args:
            transport: The HTTP transport.
            signer: The request signer.
            endpoint: Service host (bucket is prepended as a subdomain).
            scheme: URL scheme.
            observer: Outcome observer; defaults to a LoggingObserver.
            clock: Returns the current unix time; used for Date headers.
        """
        self.transport = transport
        self.signer = signer
        self.endpoint = endpoint
        self.scheme = scheme
        self.observer = observer or LoggingObserver()
        self._clock = clock

    # -- Objects ---------------------------------------------------------------

    def put_object(
        self,
        bucket: str,
        key: str,
        content: bytes,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        """Upload an object in a single request.

        Args:
            bucket: Bucket name.
            key: Object key.
            content: Object bytes.
            headers: Extra headers (content-type, x-oss-meta-*, ...).

        Returns:
            The object's ETag, quotes stripped.
        """
        request_headers = normalize_headers(headers)
        request_headers.setdefault("content-type", DEFAULT_CONTENT_TYPE)
        request_headers["content-length"] = str(len(content))

        with self._observe("put_object", bucket=bucket, key=key, size=len(content)) as attrs:
            response = self._send(
                "put_object", "PUT", bucket, key, request_headers, body=content
            )
            etag = response.header("etag").strip('"')
            attrs["request_id"] = response.header(REQUEST_ID_HEADER)
            attrs["etag"] = etag
            return etag

    def get_object(self, bucket: str, key: str) -> bytes:
        """Download an object.

        Raises:
            NotFoundError: If the object does not exist.
        """
        with self._observe("get_object", bucket=bucket, key=key) as attrs:
            response = self._send("get_object", "GET", bucket, key, not_found=True)
            attrs["request_id"] = response.header(REQUEST_ID_HEADER)
            attrs["size"] = len(response.body)
            return response.body

    def head_object(self, bucket: str, key: str) -> ObjectMetadata:
        """Fetch an object's metadata without its body.

        Raises:
            NotFoundError: If the object does not exist.
        """
        with self._observe("head_object", bucket=bucket, key=key) as attrs:
            response = self._send("head_object", "HEAD", bucket, key, not_found=True)
            metadata = _metadata_from_headers(response)
            attrs["request_id"] = response.header(REQUEST_ID_HEADER)
            attrs["size"] = metadata.size
            return metadata

    def object_exists(self, bucket: str, key: str) -> bool:
        """Return whether an object exists. A 404 is an answer, not a failure."""
        with self._observe("object_exists", bucket=bucket, key=key) as attrs:
            try:
                response = self._send("object_exists", "HEAD", bucket, key, not_found=True)
            except NotFoundError:
                attrs["exists"] = False
                return False
            attrs["request_id"] = response.header(REQUEST_ID_HEADER)
            attrs["exists"] = True
            return True

    def delete_object(self, bucket: str, key: str) -> None:
        """Delete an object.

        Raises:
            NotFoundError: If the object does not exist.
        """
        with self._observe("delete_object", bucket=bucket, key=key) as attrs:
            response = self._send(
                "delete_object", "DELETE", bucket, key, expected=(204,), not_found=True
            )
            attrs["request_id"] = response.header(REQUEST_ID_HEADER)

    def copy_object(
        self,
        bucket: str,
        dest_key: str,
        src_bucket: str,
        src_key: str,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        """Server-side copy of src_bucket/src_key to bucket/dest_key.

        Returns:
            The ETag of the new object.

        Raises:
            NotFoundError: If the source object does not exist.
        """
        request_headers = normalize_headers(headers)
        request_headers[COPY_SOURCE_HEADER] = (
            f"/{src_bucket}/{urllib.parse.quote(src_key, safe='/')}"
        )

        with self._observe(
            "copy_object",
            bucket=bucket,
            key=dest_key,
            src_bucket=src_bucket,
            src_key=src_key,
        ) as attrs:
            response = self._send(
                "copy_object", "PUT", bucket, dest_key, request_headers, not_found=True
            )
            etag = parse_copy_object(response.body)
            attrs["request_id"] = response.header(REQUEST_ID_HEADER)
            attrs["etag"] = etag
            return etag

    def move_object(self, bucket: str, source: str, destination: str) -> str:
        """Copy source to destination, then delete source.

        Not atomic. If the delete fails after the copy succeeded, both
        objects exist and PartialMoveError is raised; nothing is rolled back.

        Returns:
            The ETag of the destination object.

        Raises:
            PartialMoveError: If the copy succeeded but the delete failed.
        """
        with self._observe("move_object", bucket=bucket, key=source, destination=destination):
            etag = self.copy_object(bucket, destination, bucket, source)
            try:
                self.delete_object(bucket, source)
            except OssError as exc:
                raise PartialMoveError(bucket, source, destination, etag) from exc
            return etag

    # -- Listing ---------------------------------------------------------------

    def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "",
        max_keys: int = DEFAULT_MAX_KEYS,
        continuation_token: str = "",
    ) -> ListingPage:
        """Fetch one ListObjectsV2 page.

        An empty delimiter lists recursively. A non-empty delimiter groups
        keys below it into common_prefixes. Use paginate() to walk all pages.

        Args:
            bucket: Bucket name.
            prefix: Only keys starting with this prefix.
            delimiter: Grouping delimiter, usually "/" or "".
            max_keys: Page size (server caps it at 1000).
            continuation_token: Token from the previous page, "" for the first.

        Returns:
            The ListingPage.
        """
        query: dict[str, QueryValue] = {"list-type": "2", "max-keys": str(max_keys)}
        if prefix:
            query["prefix"] = prefix
        if delimiter:
            query["delimiter"] = delimiter
        if continuation_token:
            query["continuation-token"] = continuation_token

        with self._observe("list_objects", bucket=bucket, prefix=prefix) as attrs:
            response = self._send("list_objects", "GET", bucket, "", query=query)
            page = parse_list_objects(response.body)
            attrs["request_id"] = response.header(REQUEST_ID_HEADER)
            attrs["count"] = len(page.objects)
            return page

    def paginate(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "",
        page_size: int = DEFAULT_MAX_KEYS,
    ) -> "ListingPaginator":
        """Return a lazy, restartable iterable over all listing pages."""
        return ListingPaginator(self, bucket, prefix, delimiter, page_size)

    def iter_objects(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "",
        page_size: int = DEFAULT_MAX_KEYS,
    ) -> Iterator[ObjectSummary]:
        """Yield every object under prefix, fetching pages as needed."""
        return self.paginate(bucket, prefix, delimiter, page_size).objects()

    # -- Multipart upload ------------------------------------------------------

    def initiate_multipart_upload(
        self,
        bucket: str,
        key: str,
        headers: Mapping[str, str] | None = None,
    ) -> MultipartUploadSession:
        """Start a multipart upload.

        The returned session must end in exactly one of
        complete_multipart_upload or abort_multipart_upload.
        """
        with self._observe("initiate_multipart_upload", bucket=bucket, key=key) as attrs:
            response = self._send(
                "initiate_multipart_upload",
                "POST",
                bucket,
                key,
                headers,
                query={"uploads": ""},
            )
            upload_id = parse_initiate_multipart_upload(response.body)
            attrs["request_id"] = response.header(REQUEST_ID_HEADER)
            attrs["upload_id"] = upload_id
            return MultipartUploadSession(bucket=bucket, key=key, upload_id=upload_id)

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        content: bytes,
    ) -> str:
        """Upload one part. Re-uploading a part number replaces it.

        Returns:
            The part's ETag; keep it for complete_multipart_upload.

        Raises:
            InvalidPartError: If part_number is below 1.
        """
        if part_number < 1:
            raise InvalidPartError(
                f"Part number must be >= 1, got {part_number}",
                operation="upload_part",
                bucket=bucket,
                key=key,
            )

        headers = {"content-length": str(len(content))}
        query: dict[str, QueryValue] = {"partNumber": part_number, "uploadId": upload_id}

        with self._observe(
            "upload_part",
            bucket=bucket,
            key=key,
            upload_id=upload_id,
            part_number=part_number,
            size=len(content),
        ) as attrs:
            response = self._send(
                "upload_part", "PUT", bucket, key, headers, query=query, body=content
            )
            etag = response.header("etag").strip('"')
            attrs["request_id"] = response.header(REQUEST_ID_HEADER)
            attrs["etag"] = etag
            return etag

    def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> str:
        """Assemble the uploaded parts into the final object.

        Parts are submitted in ascending part-number order regardless of
        the order given, so the result does not depend on upload order.

        Returns:
            The final object's ETag.

        Raises:
            InvalidPartError: If parts is empty, has duplicates, or a
                part number below 1.
        """
        ordered = _ordered_parts(parts, bucket, key)
        body = render_complete_multipart_upload(ordered).encode("utf-8")
        headers = {
            "content-type": "application/xml",
            "content-length": str(len(body)),
        }

        with self._observe(
            "complete_multipart_upload",
            bucket=bucket,
            key=key,
            upload_id=upload_id,
            count=len(ordered),
        ) as attrs:
            response = self._send(
                "complete_multipart_upload",
                "POST",
                bucket,
                key,
                headers,
                query={"uploadId": upload_id},
                body=body,
            )
            etag = parse_complete_multipart_upload(response.body)
            attrs["request_id"] = response.header(REQUEST_ID_HEADER)
            attrs["etag"] = etag
            return etag

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """Abort an upload and discard its parts. Fine with zero parts."""
        with self._observe(
            "abort_multipart_upload", bucket=bucket, key=key, upload_id=upload_id
        ) as attrs:
            response = self._send(
                "abort_multipart_upload",
                "DELETE",
                bucket,
                key,
                query={"uploadId": upload_id},
                expected=(204,),
            )
            attrs["request_id"] = response.header(REQUEST_ID_HEADER)

    def list_parts(self, bucket: str, key: str, upload_id: str) -> list[PartInfo]:
        """List the parts uploaded so far for an upload."""
        with self._observe("list_parts", bucket=bucket, key=key, upload_id=upload_id) as attrs:
            response = self._send(
                "list_parts", "GET", bucket, key, query={"uploadId": upload_id}
            )
            parts = parse_list_parts(response.body)
            attrs["request_id"] = response.header(REQUEST_ID_HEADER)
            attrs["count"] = len(parts)
            return parts

    @contextmanager
    def multipart_upload(
        self,
        bucket: str,
        key: str,
        headers: Mapping[str, str] | None = None,
    ) -> Iterator[MultipartUploadSession]:
        """Run a multipart upload that always ends in complete or abort.

        Record each part on the yielded session. On a clean exit the
        recorded parts are completed and session.etag is set; if the block
        raises, or completion fails, the upload is aborted and the original
        exception propagates.

        Example:
            with client.multipart_upload("bucket", "big.bin") as session:
                etag = client.upload_part("bucket", "big.bin", session.upload_id, 1, data)
                session.record_part(1, etag)
        """
        session = self.initiate_multipart_upload(bucket, key, headers)
        try:
            yield session
            session.etag = self.complete_multipart_upload(
                bucket, key, session.upload_id, session.completed_parts()
            )
        except BaseException:
            self._abort_after_failure(session)
            raise

    def upload_multipart(
        self,
        bucket: str,
        key: str,
        chunks: Iterable[bytes],
        headers: Mapping[str, str] | None = None,
    ) -> str:
        """Upload chunks as parts 1..N of one object.

        Returns:
            The final object's ETag.
        """
        with self.multipart_upload(bucket, key, headers) as session:
            for part_number, chunk in enumerate(chunks, start=1):
                etag = self.upload_part(bucket, key, session.upload_id, part_number, chunk)
                session.record_part(part_number, etag)
        return session.etag

    def _abort_after_failure(self, session: MultipartUploadSession) -> None:
        try:
            self.abort_multipart_upload(session.bucket, session.key, session.upload_id)
        except OssError:
            logger.warning(
                "Failed to abort multipart upload %s for %s/%s",
                session.upload_id,
                session.bucket,
                session.key,
            )

    # -- Signed artifacts ------------------------------------------------------

    def generate_presigned_url(
        self,
        method: str,
        bucket: str,
        key: str,
        expires: int,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, QueryValue] | None = None,
    ) -> str:
        """Return a URL that authorizes one request until ``expires``."""
        key = key.lstrip("/")
        query_string = self.signer.generate_presigned_url(
            method, bucket, key, expires, headers, query
        )
        return f"{self.build_url(bucket, key)}?{query_string}"

    def generate_post_policy(
        self,
        bucket: str,
        key_prefix: str,
        expires: int,
        conditions: list[Any] | None = None,
    ) -> PostPolicy:
        """Return signed POST form fields plus the upload host URL."""
        policy = self.signer.generate_post_policy(bucket, key_prefix, expires, conditions)
        return replace(policy, host=self.build_url(bucket, ""))

    # -- Request plumbing ------------------------------------------------------

    def build_url(
        self, bucket: str, key: str, query: Mapping[str, QueryValue] | None = None
    ) -> str:
        """Build the virtual-hosted-style URL for bucket/key."""
        path = urllib.parse.quote(key.lstrip("/"), safe="/")
        url = f"{self.scheme}://{bucket}.{self.endpoint}/{path}"
        if query:
            url += "?" + _encode_query(query)
        return url

    def _date_header(self) -> str:
        return email.utils.formatdate(self._clock(), usegmt=True)

    def _send(
        self,
        operation: str,
        method: str,
        bucket: str,
        key: str,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, QueryValue] | None = None,
        body: bytes | None = None,
        expected: tuple[int, ...] = (200,),
        not_found: bool = False,
    ) -> TransportResponse:
        """Sign and send one request, then classify the status code.

        Raises:
            NotFoundError: On 404 when not_found is set.
            ServiceError: On any other unexpected status.
            TransportError: If the transport got no response.
        """
        key = key.lstrip("/")
        request_headers = normalize_headers(headers)
        request_headers["date"] = self._date_header()
        request_headers["authorization"] = self.signer.authorization(
            method, bucket, key, request_headers, query
        )

        response = self.transport.send(
            method, self.build_url(bucket, key, query), request_headers, body
        )
        if response.status_code in expected:
            return response

        text = response.text
        code = parse_error_code(response.body)
        if not_found and response.status_code == 404:
            raise NotFoundError(
                response_body=text, operation=operation, bucket=bucket, key=key, code=code
            )
        raise ServiceError(
            f"Failed to {operation.replace('_', ' ')}",
            http_status=response.status_code,
            response_body=text,
            operation=operation,
            bucket=bucket,
            key=key,
            code=code,
        )

    @contextmanager
    def _observe(self, operation: str, **attributes: Any) -> Iterator[dict[str, Any]]:
        """Time an operation and report its outcome to the observer.

        Yields the attribute dict so the operation can add request_id,
        etag, counts and so on before it is reported.
        """
        start = time.perf_counter()
        try:
            yield attributes
        except Exception as exc:
            attributes["latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
            self.observer.on_failure(operation, attributes, exc)
            raise
        attributes["latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        self.observer.on_success(operation, attributes)


class ListingPaginator:
    """Lazy, restartable iteration over ListObjectsV2 pages.

    Each iter() starts again from the first page. Pages are fetched one
    at a time: page N+1 needs page N's continuation token, so there is no
    prefetching.
    """

    def __init__(
        self,
        client: OssClient,
        bucket: str,
        prefix: str = "",
        delimiter: str = "",
        page_size: int = DEFAULT_MAX_KEYS,
    ) -> None:
        self.client = client
        self.bucket = bucket
        self.prefix = prefix
        self.delimiter = delimiter
        self.page_size = page_size

    def __iter__(self) -> Iterator[ListingPage]:
        token = ""
        while True:
            page = self.client.list_objects(
                self.bucket, self.prefix, self.delimiter, self.page_size, token
            )
            yield page
            if not page.is_truncated:
                return
            token = page.next_continuation_token

    def objects(self) -> Iterator[ObjectSummary]:
        for page in self:
            yield from page.objects

    def common_prefixes(self) -> Iterator[str]:
        for page in self:
            yield from page.common_prefixes


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def _uri_encode(value: str) -> str:
    """Percent-encode everything except A-Z a-z 0-9 - _ . ~"""
    return urllib.parse.quote(value, safe="-_.~")


def _encode_query(query: Mapping[str, QueryValue]) -> str:
    """Render query parameters; empty values become bare names (``?uploads``)."""
    rendered = []
    for name, value in query.items():
        if value is None or value == "":
            rendered.append(_uri_encode(name))
        else:
            rendered.append(f"{_uri_encode(name)}={_uri_encode(str(value))}")
    return "&".join(rendered)


def _metadata_from_headers(response: TransportResponse) -> ObjectMetadata:
    user_metadata = {
        name[len(META_PREFIX):]: values[0]
        for name, values in response.headers.items()
        if name.startswith(META_PREFIX) and values
    }
    try:
        size = int(response.header("content-length", "0") or 0)
    except ValueError:
        size = 0
    return ObjectMetadata(
        size=size,
        etag=response.header("etag").strip('"'),
        last_modified=response.header("last-modified"),
        content_type=response.header("content-type"),
        user_metadata=user_metadata,
    )


def _ordered_parts(
    parts: Sequence[CompletedPart], bucket: str, key: str
) -> list[CompletedPart]:
    if not parts:
        raise InvalidPartError(
            "No parts to complete", operation="complete_multipart_upload", bucket=bucket, key=key
        )
    ordered = sorted(parts, key=lambda part: part.part_number)
    seen: set[int] = set()
    for part in ordered:
        if part.part_number < 1 or part.part_number in seen:
            raise InvalidPartError(
                f"Invalid or duplicate part number: {part.part_number}",
                operation="complete_multipart_upload",
                bucket=bucket,
                key=key,
            )
        seen.add(part.part_number)
    return ordered
