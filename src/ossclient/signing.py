"""OSS HMAC-SHA1 request signing.

Implements the header-signature scheme (Authorization header), query-string
signatures for presigned URLs, and signed POST policies.

String to sign (always five lines, missing fields are empty strings):

    VERB
    Content-MD5
    Content-Type
    Date (or Expires for presigned URLs)
    CanonicalizedOSSHeaders + CanonicalizedResource

References:
    - https://www.alibabacloud.com/help/en/oss/developer-reference/include-signatures-in-the-authorization-header
"""

import base64
import hashlib
import hmac
import json
import logging
import urllib.parse
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from ossclient.errors import SigningError
from ossclient.models import PostPolicy

logger = logging.getLogger(__name__)

# Constants
AUTH_SCHEME = "OSS"
HEADER_PREFIX = "x-oss-"
META_PREFIX = "x-oss-meta-"
PRESIGN_ACCESS_KEY_PARAM = "OSSAccessKeyId"
POLICY_EXPIRATION_FORMAT = "%Y-%m-%dT%H:%M:%S.000Z"

# Sub-resources and overrides that are part of the canonicalized resource.
# Stored lower-cased; query names are compared case-insensitively.
SIGNED_SUBRESOURCES = frozenset(
    name.lower()
    for name in (
        "acl", "uploads", "location", "cors", "logging", "website", "referer",
        "lifecycle", "delete", "append", "tagging", "objectMeta",
        "uploadId", "partNumber", "security-token", "position",
        "img", "style", "styleName", "replication", "replicationProgress",
        "replicationLocation", "cname", "bucketInfo", "comp", "qos",
        "live", "status", "vod", "startTime", "endTime", "symlink",
        "x-oss-process", "response-content-type", "response-content-language",
        "response-expires", "response-cache-control", "response-content-disposition",
        "response-content-encoding",
    )
)

QueryValue = str | int | None


class OssSigner:
    """Computes OSS signatures for one set of credentials.

    The signer is pure: no I/O, no clock. Identical inputs always produce
    an identical signature.

    Attributes:
        access_key_id: The public access key identifier.
    """

    def __init__(self, access_key_id: str, access_key_secret: str) -> None:
        """Initialize the signer.

        Args:
            access_key_id: Access key identifier placed in Authorization.
            access_key_secret: Secret used as the HMAC key.
        """
        self.access_key_id = access_key_id
        self._secret = access_key_secret

    def sign_request(
        self,
        method: str,
        bucket: str,
        key: str,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, QueryValue] | None = None,
    ) -> str:
        """Compute the base64 signature for a header-signed request.

        Args:
            method: HTTP method (any case).
            bucket: Bucket name.
            key: Object key ("" for bucket-level requests).
            headers: Request headers; names may be mixed case.
            query: Query parameters; only signed sub-resources are used.

        Returns:
            The base64-encoded HMAC-SHA1 signature.

        Raises:
            SigningError: If method or bucket is empty.
        """
        _require(method, bucket)
        lower_headers = normalize_headers(headers)
        string_to_sign = build_string_to_sign(
            method,
            lower_headers,
            lower_headers.get("date", ""),
            canonicalize_headers(lower_headers),
            canonicalize_resource(bucket, key, query),
        )
        return compute_signature(self._secret, string_to_sign)

    def authorization(
        self,
        method: str,
        bucket: str,
        key: str,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, QueryValue] | None = None,
    ) -> str:
        """Build the Authorization header value: ``OSS <id>:<signature>``."""
        signature = self.sign_request(method, bucket, key, headers, query)
        return f"{AUTH_SCHEME} {self.access_key_id}:{signature}"

    def generate_presigned_url(
        self,
        method: str,
        bucket: str,
        key: str,
        expires: int,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, QueryValue] | None = None,
    ) -> str:
        """Build the query string of a presigned URL.

        The expiry timestamp takes the place of the Date line, so the
        signature is bound to an absolute expiry rather than request time.

        Args:
            method: HTTP method the URL authorizes.
            bucket: Bucket name.
            key: Object key.
            expires: Absolute expiry as a unix timestamp.
            headers: Headers the bearer must send (content-type, x-oss-*).
            query: Extra query parameters to carry through.

        Returns:
            The urlencoded query string, ending with the Signature parameter.

        Raises:
            SigningError: If inputs are empty or expires is not positive.
        """
        _require(method, bucket)
        if expires <= 0:
            raise SigningError(f"Invalid presign expiry: {expires}")

        params: dict[str, QueryValue] = dict(query or {})
        params[PRESIGN_ACCESS_KEY_PARAM] = self.access_key_id
        params["Expires"] = expires

        lower_headers = normalize_headers(headers)
        string_to_sign = build_string_to_sign(
            method,
            lower_headers,
            str(expires),
            canonicalize_headers(lower_headers),
            canonicalize_resource(bucket, key, params),
        )
        params["Signature"] = compute_signature(self._secret, string_to_sign)

        return urllib.parse.urlencode(
            [(name, "" if value is None else str(value)) for name, value in params.items()]
        )

    def generate_post_policy(
        self,
        bucket: str,
        key_prefix: str,
        expires: int,
        conditions: list[Any] | None = None,
    ) -> PostPolicy:
        """Build and sign a POST upload policy.

        The base64 form of the JSON document is what gets signed.

        Args:
            bucket: Bucket the upload is restricted to.
            key_prefix: Required prefix for the uploaded key.
            expires: Policy expiry as a unix timestamp.
            conditions: Extra policy conditions, appended verbatim.

        Returns:
            A PostPolicy with the encoded policy and its signature.

        Raises:
            SigningError: If the bucket is empty, expires is out of range,
                or a condition cannot be encoded as JSON.
        """
        if not bucket:
            raise SigningError("Bucket must not be empty")
        if expires <= 0:
            raise SigningError(f"Invalid policy expiry: {expires}")

        try:
            expiration = datetime.fromtimestamp(expires, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise SigningError(f"Invalid policy expiry: {expires}") from exc

        policy_conditions: list[Any] = [
            {"bucket": bucket},
            ["starts-with", "$key", key_prefix],
        ]
        policy_conditions.extend(conditions or [])

        try:
            policy_json = json.dumps(
                {
                    "expiration": expiration.strftime(POLICY_EXPIRATION_FORMAT),
                    "conditions": policy_conditions,
                },
                separators=(",", ":"),
                allow_nan=False,
            )
        except (TypeError, ValueError) as exc:
            raise SigningError(f"Failed to encode policy as JSON: {exc}") from exc

        policy_b64 = base64.b64encode(policy_json.encode("utf-8")).decode("ascii")
        return PostPolicy(
            policy=policy_b64,
            signature=compute_signature(self._secret, policy_b64),
            access_key_id=self.access_key_id,
            expires=expires,
        )


# ---------------------------------------------------------------------------
# Module-level utility functions
# ---------------------------------------------------------------------------


def normalize_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    """Lower-case header names. Later duplicates (by case) win."""
    if not headers:
        return {}
    return {name.lower(): value for name, value in headers.items()}


def canonicalize_resource(
    bucket: str, key: str, query: Mapping[str, QueryValue] | None = None
) -> str:
    """Build the CanonicalizedResource element.

    Only signed sub-resources from the query take part, sorted by name.
    A parameter with an empty or missing value is rendered bare.

    Args:
        bucket: Bucket name.
        key: Object key ("" for bucket-level requests).
        query: Request query parameters.

    Returns:
        ``/bucket/key`` optionally followed by ``?name[=value]&...``.
    """
    resource = f"/{bucket}/{key}"
    if not query:
        return resource

    params: list[tuple[str, str]] = []
    for name, value in query.items():
        if name.lower() not in SIGNED_SUBRESOURCES:
            continue
        params.append((name, "" if value is None else str(value)))

    if not params:
        return resource

    params.sort(key=lambda item: item[0])
    rendered = [name if value == "" else f"{name}={value}" for name, value in params]
    return resource + "?" + "&".join(rendered)


def canonicalize_headers(headers: Mapping[str, str] | None) -> str:
    """Build the CanonicalizedOSSHeaders element.

    Selects x-oss-* headers, lower-cases names, trims values, sorts by name.

    Args:
        headers: Request headers; names may be mixed case.

    Returns:
        ``name:value\\n`` lines, or "" if there are no x-oss-* headers.
    """
    selected = {
        name: value.strip()
        for name, value in normalize_headers(headers).items()
        if name.startswith(HEADER_PREFIX)
    }
    return "".join(f"{name}:{selected[name]}\n" for name in sorted(selected))


def build_string_to_sign(
    method: str,
    headers: Mapping[str, str],
    date_line: str,
    canonical_headers: str,
    canonical_resource: str,
) -> str:
    """Assemble the five-line string to sign.

    Args:
        method: HTTP method (upper-cased here).
        headers: Lower-cased request headers.
        date_line: The Date header value, or the Expires timestamp.
        canonical_headers: Output of canonicalize_headers().
        canonical_resource: Output of canonicalize_resource().

    Returns:
        The string to sign.
    """
    return "\n".join(
        [
            method.upper(),
            headers.get("content-md5", ""),
            headers.get("content-type", ""),
            date_line,
            canonical_headers + canonical_resource,
        ]
    )


def compute_signature(secret: str, string_to_sign: str) -> str:
    """Return base64(HMAC-SHA1(secret, string_to_sign))."""
    digest = hmac.new(
        secret.encode("utf-8"), string_to_sign.encode("utf-8"), hashlib.sha1
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def _require(method: str, bucket: str) -> None:
    if not method:
        raise SigningError("HTTP method must not be empty")
    if not bucket:
        raise SigningError("Bucket must not be empty")
