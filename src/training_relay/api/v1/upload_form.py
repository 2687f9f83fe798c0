"""Streaming reader for the multipart body of a training upload.

The body is pushed through python-multipart's parser as it arrives. File
bytes past ``max_file_bytes + 1`` are never kept, and reading stops as soon
as the cap is crossed, so an oversize upload is detected without spooling it.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

METADATA_FIELD = "metadata"
FILE_FIELD = "training_file"
MAX_FIELD_BYTES = 64 * 1024
MAX_PARTS = 8

_FILE_PART = "file"
_METADATA_PART = "metadata"


@dataclass(frozen=True)
class UploadForm:
    """Parts taken from an upload body; None marks a missing or unusable part."""

    metadata: str | None = None
    payload: bytes | None = None


class MalformedUploadForm(Exception):
    """Raised when the body does not have the expected multipart layout."""


class _PartCollector:
    """Parser callbacks keeping the metadata field and at most `limit` file bytes."""

    def __init__(self, max_file_bytes: int) -> None:
        self._file_limit = max_file_bytes + 1
        self._header_name = b""
        self._header_value = b""
        self._disposition = b""
        self._part: str | None = None
        self._buffer = bytearray()
        self._parts = 0
        self.metadata: str | None = None
        self.payload: bytes | None = None
        self.file_truncated = False

    def callbacks(self) -> dict[str, Callable[..., None]]:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
        }

    def on_part_begin(self) -> None:
        self._parts += 1
        if self._parts > MAX_PARTS:
            raise MalformedUploadForm("too many parts")
        self._disposition = b""
        self._part = None
        self._buffer = bytearray()

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_name += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        if self._header_name.lower() == b"content-disposition":
            self._disposition = self._header_value
        self._header_name = b""
        self._header_value = b""

    def on_headers_finished(self) -> None:
        _, options = parse_options_header(self._disposition)
        name = options.get(b"name")
        if name is None:
            raise MalformedUploadForm("part without a name")

        has_filename = b"filename" in options
        if name == FILE_FIELD.encode() and has_filename:
            if self.payload is not None:
                raise MalformedUploadForm("more than one training file")
            self._part = _FILE_PART
        elif name == METADATA_FIELD.encode() and not has_filename:
            if self.metadata is not None:
                raise MalformedUploadForm("duplicate metadata field")
            self._part = _METADATA_PART

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._part is None or self.file_truncated:
            return

        chunk = data[start:end]
        if self._part == _FILE_PART:
            self._buffer += chunk[: self._file_limit - len(self._buffer)]
            if len(self._buffer) >= self._file_limit:
                self.payload = bytes(self._buffer)
                self.file_truncated = True
            return

        if len(self._buffer) + len(chunk) > MAX_FIELD_BYTES:
            raise MalformedUploadForm("metadata field too large")
        self._buffer += chunk

    def on_part_end(self) -> None:
        if self._part == _FILE_PART and not self.file_truncated:
            self.payload = bytes(self._buffer)
        elif self._part == _METADATA_PART:
            try:
                self.metadata = self._buffer.decode("utf-8")
            except UnicodeDecodeError as err:
                raise MalformedUploadForm("metadata is not UTF-8") from err
        self._part = None
        self._buffer = bytearray()


async def read_upload_form(
    content_type: str,
    stream: AsyncIterator[bytes],
    max_file_bytes: int,
) -> UploadForm:
    """Extract the metadata field and capped file bytes from a multipart stream.

    Args:
        content_type: Request Content-Type header
        stream: Request body chunks
        max_file_bytes: Largest acceptable file; one extra byte is kept so
            oversize files are recognisable

    Returns:
        The parts found. A body that is not well-formed multipart comes back
        with both parts unset.
    """
    media_type, params = parse_options_header(content_type)
    boundary = params.get(b"boundary")
    if media_type != b"multipart/form-data" or not boundary:
        return UploadForm()

    collector = _PartCollector(max_file_bytes)
    parser = MultipartParser(boundary, collector.callbacks())
    try:
        async for chunk in stream:
            parser.write(chunk)
            if collector.file_truncated:
                break
        else:
            parser.finalize()
    except (MultipartParseError, MalformedUploadForm):
        return UploadForm()

    return UploadForm(metadata=collector.metadata, payload=collector.payload)
