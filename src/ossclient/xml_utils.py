"""OSS XML response parsing and request rendering helpers.

Response bodies may carry the S3 namespace or none at all; every lookup
uses the namespace of the document root.
"""

import xml.etree.ElementTree as ET
from collections.abc import Sequence
from xml.sax.saxutils import escape as _sax_escape

from ossclient.errors import ParseError
from ossclient.models import CompletedPart, ListingPage, ObjectSummary, PartInfo

# Top-level scalars parse_scalar() may extract.
SCALAR_PROPERTIES = frozenset({"ETag", "UploadId", "NextContinuationToken", "IsTruncated"})


def _escape_xml(value: str) -> str:
    """Escape special XML characters in a string value."""
    return _sax_escape(str(value))


def _parse_document(body: bytes | str) -> tuple[ET.Element, str]:
    """Parse a response body and return (root, namespace prefix).

    Raises:
        ParseError: If the body is not well-formed XML.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as exc:
        text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
        raise ParseError(f"XML parsing failed: {exc}", response_body=text) from exc

    ns = ""
    if root.tag.startswith("{"):
        ns = root.tag[: root.tag.index("}") + 1]
    return root, ns


def _text(parent: ET.Element, ns: str, name: str, default: str = "") -> str:
    elem = parent.find(f"{ns}{name}")
    if elem is None or elem.text is None:
        return default
    return elem.text


def _int(parent: ET.Element, ns: str, name: str) -> int:
    value = _text(parent, ns, name, "0").strip()
    try:
        return int(value)
    except ValueError as exc:
        raise ParseError(f"Invalid integer in <{name}>: {value!r}") from exc


def _strip_etag(value: str) -> str:
    return value.strip().strip('"')


def parse_scalar(body: bytes | str, name: str) -> str:
    """Extract a single top-level element's text.

    Args:
        body: The raw XML response body.
        name: One of ETag, UploadId, NextContinuationToken, IsTruncated.

    Returns:
        The element text, or "" if the element is absent.

    Raises:
        ValueError: If name is not a supported property.
        ParseError: If the body is not well-formed XML.
    """
    if name not in SCALAR_PROPERTIES:
        raise ValueError(f"Unsupported XML property: {name}")
    root, ns = _parse_document(body)
    return _text(root, ns, name)


def parse_list_objects(body: bytes | str) -> ListingPage:
    """Parse a ListBucketResult (ListObjectsV2) body.

    Args:
        body: The raw XML response body.

    Returns:
        A ListingPage. is_truncated is True only for the literal "true".

    Raises:
        ParseError: If the body is malformed, or truncated without a token.
    """
    root, ns = _parse_document(body)

    objects = [
        ObjectSummary(
            key=_text(elem, ns, "Key"),
            last_modified=_text(elem, ns, "LastModified"),
            etag=_strip_etag(_text(elem, ns, "ETag")),
            size=_int(elem, ns, "Size"),
            storage_class=_text(elem, ns, "StorageClass"),
        )
        for elem in root.findall(f"{ns}Contents")
    ]
    common_prefixes = [
        _text(elem, ns, "Prefix") for elem in root.findall(f"{ns}CommonPrefixes")
    ]

    is_truncated = _text(root, ns, "IsTruncated") == "true"
    token = _text(root, ns, "NextContinuationToken") or None
    if is_truncated and token is None:
        raise ParseError(
            "Truncated listing without NextContinuationToken",
            response_body=body.decode("utf-8", errors="replace")
            if isinstance(body, bytes)
            else body,
        )

    return ListingPage(
        objects=objects,
        common_prefixes=common_prefixes,
        is_truncated=is_truncated,
        next_continuation_token=token if is_truncated else None,
    )


def _required_scalar(body: bytes | str, name: str, shape: str) -> str:
    value = parse_scalar(body, name)
    if not value:
        raise ParseError(f"Missing <{name}> in {shape} response")
    return value


def parse_copy_object(body: bytes | str) -> str:
    """Return the unquoted ETag from a CopyObjectResult body."""
    return _strip_etag(_required_scalar(body, "ETag", "CopyObjectResult"))


def parse_initiate_multipart_upload(body: bytes | str) -> str:
    """Return the UploadId from an InitiateMultipartUploadResult body."""
    return _required_scalar(body, "UploadId", "InitiateMultipartUploadResult").strip()


def parse_complete_multipart_upload(body: bytes | str) -> str:
    """Return the unquoted ETag from a CompleteMultipartUploadResult body."""
    return _strip_etag(_required_scalar(body, "ETag", "CompleteMultipartUploadResult"))


def parse_list_parts(body: bytes | str) -> list[PartInfo]:
    """Parse a ListPartsResult body into PartInfo records."""
    root, ns = _parse_document(body)
    return [
        PartInfo(
            part_number=_int(elem, ns, "PartNumber"),
            etag=_strip_etag(_text(elem, ns, "ETag")),
            size=_int(elem, ns, "Size"),
            last_modified=_text(elem, ns, "LastModified"),
        )
        for elem in root.findall(f"{ns}Part")
    ]


def parse_error_code(body: bytes | str) -> str:
    """Return the <Code> of a service error body, or "" if there is none.

    Error bodies are diagnostics only, so a body that does not parse
    simply yields no code.
    """
    if not body:
        return ""
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return ""
    ns = root.tag[: root.tag.index("}") + 1] if root.tag.startswith("{") else ""
    return _text(root, ns, "Code")


def render_complete_multipart_upload(parts: Sequence[CompletedPart]) -> str:
    """Render a CompleteMultipartUpload request body.

    Parts are written in the order given; ETags are re-quoted.

    Args:
        parts: The parts to submit.

    Returns:
        The XML body, with no declaration and no whitespace between elements.
    """
    xml_parts = ["<CompleteMultipartUpload>"]
    for part in parts:
        xml_parts.append(
            f"<Part><PartNumber>{part.part_number}</PartNumber>"
            f'<ETag>"{_escape_xml(part.etag)}"</ETag></Part>'
        )
    xml_parts.append("</CompleteMultipartUpload>")
    return "".join(xml_parts)
