"""Serializes text fields and binary parts into a multipart/form-data body"""
import binascii
import logging
import os
import typing

from .exceptions import BodyEncodingError, RequestCancelled
from .models import Part
from .utils import MAX_BUFFER_SIZE, BytesChunker, is_blank

log = logging.getLogger(__name__)

CRLF = b"\r\n"
DEFAULT_ENCODING = "UTF-8"
BOUNDARY_PREFIX = "ImagicBoundary-"

CancelledType = typing.Optional[typing.Callable[[], bool]]


def generate_boundary() -> str:
    return BOUNDARY_PREFIX + binascii.hexlify(os.urandom(16)).decode()


class MultipartEncoder:
    """Implements multipart/form-data for a set of text fields and binary parts.

    All text fields are rendered before all parts and both keep the order
    of the mappings they come from. The mappings aren't copied so that
    the owner can keep adding fields until the body is produced.
    The boundary is generated once per encoder and is not checked
    against the contents of the parts.
    """

    def __init__(
        self,
        params: typing.Optional[typing.Mapping[str, str]] = None,
        parts: typing.Optional[typing.Mapping[str, Part]] = None,
        *,
        encoding: typing.Optional[str] = None,
        boundary: typing.Optional[str] = None,
        chunk_size: int = MAX_BUFFER_SIZE,
    ):
        self.params = params if params is not None else {}
        self.parts = parts if parts is not None else {}
        self.encoding = encoding
        self.boundary = boundary or generate_boundary()
        self.chunk_size = chunk_size

    @property
    def charset(self) -> str:
        """Charset of the text fields, 'UTF-8' when unset or blank"""
        return DEFAULT_ENCODING if is_blank(self.encoding) else self.encoding

    @property
    def content_type(self) -> str:
        return f"multipart/form-data;boundary={self.boundary}"

    def encode(self, cancelled: CancelledType = None) -> bytes:
        """Renders the entire body. Raises 'BodyEncodingError' rather
        than ever returning a partial body.
        """
        log.debug(
            "encoding multipart body with %d text fields and %d parts",
            len(self.params),
            len(self.parts),
        )
        return b"".join(self.iter_chunks(cancelled))

    def iter_chunks(self, cancelled: CancelledType = None) -> typing.Iterator[bytes]:
        """Same as 'encode()' but yields the body piece by piece. Binary data
        is never yielded in pieces larger than 'chunk_size'.
        """
        boundary = self.boundary.encode("ascii")
        try:
            for name, value in self.params.items():
                _check_cancelled(cancelled)
                yield self.render_text_headers(name)
                yield value.encode(self.charset) + CRLF

            chunker = BytesChunker(self.chunk_size)
            for name, part in self.parts.items():
                _check_cancelled(cancelled)
                yield self.render_part_headers(name, part)
                for chunk in chunker.feed(part.data):
                    _check_cancelled(cancelled)
                    yield chunk
                yield CRLF

            yield b"--%b--%b" % (boundary, CRLF)
        except (UnicodeError, LookupError, TypeError, ValueError, OSError) as e:
            raise BodyEncodingError(
                f"failed to encode multipart body: {e}", error=e
            ) from e

    def content_length(self) -> int:
        """Length of the body in bytes, computed without rendering part data"""
        try:
            length = sum(
                len(self.render_text_headers(name))
                + len(value.encode(self.charset))
                + len(CRLF)
                for name, value in self.params.items()
            )
            length += sum(
                len(self.render_part_headers(name, part))
                + len(memoryview(part.data))
                + len(CRLF)
                for name, part in self.parts.items()
            )
        except (UnicodeError, LookupError, TypeError, ValueError) as e:
            raise BodyEncodingError(
                f"failed to encode multipart body: {e}", error=e
            ) from e
        return length + len(self.boundary) + 6

    def render_text_headers(self, name: str) -> bytes:
        """Renders the delimiter and headers of a text field up to the blank line"""
        lines = [
            b"--%b" % self.boundary.encode("ascii"),
            b'Content-Disposition: form-data; name="%b"' % name.encode("utf-8"),
            b"Content-Type: text/plain; charset=%b" % self.charset.encode("ascii"),
            b"",
            b"",
        ]
        return CRLF.join(lines)

    def render_part_headers(self, name: str, part: Part) -> bytes:
        """Renders the delimiter and headers of a binary part up to the blank line.
        'Content-Type' is left out when the part has no mime type.
        """
        lines = [
            b"--%b" % self.boundary.encode("ascii"),
            b'Content-Disposition: form-data; name="%b"; filename="%b"'
            % (name.encode("utf-8"), part.filename.encode("utf-8")),
        ]
        if part.has_mime_type:
            lines.append(b"Content-Type: %b" % part.mime_type.encode("utf-8"))
        lines.extend((b"", b""))
        return CRLF.join(lines)

    def __repr__(self) -> str:
        return f"<MultipartEncoder boundary={self.boundary!r}>"


def _check_cancelled(cancelled: CancelledType) -> None:
    if cancelled is not None and cancelled():
        raise RequestCancelled("request was cancelled while encoding its body")
