"""Filesystem-style adapter over OssClient.

Exposes files and directories inside one bucket (optionally under a key
prefix) and translates OssError into the FilesystemError vocabulary.
Directories are virtual: a directory exists when any key lives under it.
"""

import email.utils
import io
import logging
from collections.abc import Iterator
from datetime import datetime, timezone
from typing import BinaryIO

from ossclient.client import OssClient
from ossclient.errors import (
    NotFoundError,
    OssError,
    UnableToCheckExistence,
    UnableToCopyFile,
    UnableToCreateDirectory,
    UnableToDeleteDirectory,
    UnableToDeleteFile,
    UnableToListContents,
    UnableToMoveFile,
    UnableToProvideChecksum,
    UnableToReadFile,
    UnableToRetrieveMetadata,
    UnableToSetVisibility,
    UnableToWriteFile,
)
from ossclient.models import DirectoryAttributes, FileAttributes, ObjectMetadata

logger = logging.getLogger(__name__)

DIRECTORY_CONTENT_TYPE = "application/x-directory"
VISIBILITY_PUBLIC = "public"
LIST_PAGE_SIZE = 1000


class PathPrefixer:
    """Maps adapter paths to object keys under a fixed prefix."""

    def __init__(self, prefix: str = "", separator: str = "/") -> None:
        self.separator = separator
        prefix = prefix.rstrip("\\/")
        self.prefix = prefix + separator if prefix else ""

    def prefix_path(self, path: str) -> str:
        return self.prefix + path.lstrip("\\/")

    def strip_prefix(self, key: str) -> str:
        if self.prefix and key.startswith(self.prefix):
            return key[len(self.prefix):]
        return key

    def prefix_directory_path(self, path: str) -> str:
        prefixed = self.prefix_path(path.rstrip("\\/"))
        if not prefixed or prefixed.endswith(self.separator):
            return prefixed
        return prefixed + self.separator

    def strip_directory_prefix(self, key: str) -> str:
        return self.strip_prefix(key).rstrip("\\/")


class OssFilesystemAdapter:
    """Files and directories of one bucket, backed by an OssClient.

    Attributes:
        client: The storage client.
        bucket: The bucket holding the files.
        prefixer: Maps adapter paths to object keys.
    """

    def __init__(self, client: OssClient, bucket: str, prefix: str = "") -> None:
        self.client = client
        self.bucket = bucket
        self.prefixer = PathPrefixer(prefix)

    # -- Existence -------------------------------------------------------------

    def file_exists(self, path: str) -> bool:
        try:
            return self.client.object_exists(self.bucket, self.prefixer.prefix_path(path))
        except OssError as exc:
            raise UnableToCheckExistence(path, exc.message) from exc

    def directory_exists(self, path: str) -> bool:
        prefix = self.prefixer.prefix_directory_path(path)
        try:
            page = self.client.list_objects(self.bucket, prefix, "", 1)
        except OssError as exc:
            raise UnableToCheckExistence(path, exc.message) from exc
        return bool(page.objects or page.common_prefixes)

    # -- Reading and writing ---------------------------------------------------

    def write(self, path: str, contents: bytes | str, content_type: str | None = None) -> None:
        """Write a file, replacing any existing one.

        Args:
            path: Adapter path.
            contents: File contents; str is encoded as UTF-8.
            content_type: Optional MIME type.
        """
        if isinstance(contents, str):
            contents = contents.encode("utf-8")
        headers = {"content-type": content_type} if content_type else None
        try:
            self.client.put_object(
                self.bucket, self.prefixer.prefix_path(path), contents, headers
            )
        except OssError as exc:
            raise UnableToWriteFile(path, exc.message) from exc

    def write_stream(
        self, path: str, stream: BinaryIO, content_type: str | None = None
    ) -> None:
        self.write(path, stream.read(), content_type)

    def read(self, path: str) -> bytes:
        try:
            return self.client.get_object(self.bucket, self.prefixer.prefix_path(path))
        except NotFoundError as exc:
            raise UnableToReadFile(path, "file not found") from exc
        except OssError as exc:
            raise UnableToReadFile(path, exc.message) from exc

    def read_stream(self, path: str) -> BinaryIO:
        return io.BytesIO(self.read(path))

    # -- Deleting --------------------------------------------------------------

    def delete(self, path: str) -> None:
        """Delete a file. Deleting a missing file is not an error."""
        try:
            self.client.delete_object(self.bucket, self.prefixer.prefix_path(path))
        except NotFoundError:
            logger.debug("Delete of missing file %s ignored", path)
        except OssError as exc:
            raise UnableToDeleteFile(path, exc.message) from exc

    def delete_directory(self, path: str) -> None:
        """Delete every object under a directory, page by page."""
        prefix = self.prefixer.prefix_directory_path(path)
        try:
            for summary in self.client.iter_objects(self.bucket, prefix, "", LIST_PAGE_SIZE):
                try:
                    self.client.delete_object(self.bucket, summary.key)
                except NotFoundError:
                    logger.debug("Object %s vanished during directory delete", summary.key)
        except OssError as exc:
            raise UnableToDeleteDirectory(path, exc.message) from exc

    def create_directory(self, path: str) -> None:
        key = self.prefixer.prefix_directory_path(path)
        if not key.endswith("/"):
            key += "/"
        try:
            self.client.put_object(
                self.bucket, key, b"", {"content-type": DIRECTORY_CONTENT_TYPE}
            )
        except OssError as exc:
            raise UnableToCreateDirectory(path, exc.message) from exc

    # -- Metadata --------------------------------------------------------------

    def set_visibility(self, path: str, visibility: str) -> None:
        raise UnableToSetVisibility(path, "OSS does not support visibility")

    def visibility(self, path: str) -> FileAttributes:
        return FileAttributes(path, visibility=VISIBILITY_PUBLIC)

    def mime_type(self, path: str) -> FileAttributes:
        metadata = self._metadata(path)
        return FileAttributes(path, mime_type=metadata.content_type)

    def last_modified(self, path: str) -> FileAttributes:
        metadata = self._metadata(path)
        return FileAttributes(path, last_modified=parse_timestamp(metadata.last_modified))

    def file_size(self, path: str) -> FileAttributes:
        metadata = self._metadata(path)
        return FileAttributes(path, file_size=metadata.size)

    def checksum(self, path: str) -> str:
        """Return the object's ETag."""
        try:
            return self.client.head_object(self.bucket, self.prefixer.prefix_path(path)).etag
        except NotFoundError as exc:
            raise UnableToProvideChecksum(path, "file not found") from exc
        except OssError as exc:
            raise UnableToProvideChecksum(path, exc.message) from exc

    def _metadata(self, path: str) -> ObjectMetadata:
        try:
            return self.client.head_object(self.bucket, self.prefixer.prefix_path(path))
        except NotFoundError as exc:
            raise UnableToRetrieveMetadata(path, "file not found") from exc
        except OssError as exc:
            raise UnableToRetrieveMetadata(path, exc.message) from exc

    # -- Listing ---------------------------------------------------------------

    def list_contents(
        self, path: str, deep: bool = False
    ) -> Iterator[FileAttributes | DirectoryAttributes]:
        """Lazily list the entries under a directory.

        A shallow listing yields the files directly under path followed by
        its subdirectories, one page at a time. A deep listing yields every
        file below path and no directory entries.

        Raises:
            UnableToListContents: If any page fails to load.
        """
        prefix = self.prefixer.prefix_directory_path(path)
        directory = path.strip("/")
        delimiter = "" if deep else "/"
        paginator = self.client.paginate(self.bucket, prefix, delimiter, LIST_PAGE_SIZE)
        try:
            for page in paginator:
                for summary in page.objects:
                    entry_path = self.prefixer.strip_prefix(summary.key)
                    if entry_path.rstrip("/") not in ("", directory):
                        yield FileAttributes(
                            entry_path,
                            file_size=summary.size,
                            last_modified=parse_timestamp(summary.last_modified),
                        )
                if deep:
                    continue
                for common_prefix in page.common_prefixes:
                    dir_path = self.prefixer.strip_directory_prefix(common_prefix)
                    if dir_path not in ("", directory):
                        yield DirectoryAttributes(dir_path)
        except OssError as exc:
            raise UnableToListContents(path, exc.message) from exc

    # -- Copy and move ---------------------------------------------------------

    def copy(self, source: str, destination: str) -> None:
        try:
            self.client.copy_object(
                self.bucket,
                self.prefixer.prefix_path(destination),
                self.bucket,
                self.prefixer.prefix_path(source),
            )
        except OssError as exc:
            raise UnableToCopyFile(source, destination, exc.message) from exc

    def move(self, source: str, destination: str) -> None:
        """Copy then delete the source. Not atomic; see OssClient.move_object."""
        try:
            self.client.move_object(
                self.bucket,
                self.prefixer.prefix_path(source),
                self.prefixer.prefix_path(destination),
            )
        except OssError as exc:
            raise UnableToMoveFile(source, destination, exc.message) from exc

    def temporary_url(self, path: str, expires_at: datetime) -> str:
        """Return a presigned GET URL valid until expires_at."""
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return self.client.generate_presigned_url(
            "GET",
            self.bucket,
            self.prefixer.prefix_path(path),
            int(expires_at.timestamp()),
        )


def parse_timestamp(value: str) -> int | None:
    """Parse an HTTP-date or ISO 8601 timestamp into unix seconds.

    HEAD responses carry RFC 7231 dates, listings carry ISO 8601. Returns
    None for an empty or unrecognised value.
    """
    if not value:
        return None
    try:
        return int(email.utils.parsedate_to_datetime(value).timestamp())
    except (TypeError, ValueError):
        pass
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unrecognised timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())
