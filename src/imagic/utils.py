import codecs
import typing
import functools
import platform
import chardet

# Largest slice of a part's data copied into the body at once: 1 MiB.
MAX_BUFFER_SIZE = 1024 * 1024


def _int_to_urlenc() -> typing.Dict[int, bytes]:
    """Creates a mapping of ordinals to bytes encoded via url-encoding"""
    values = {}
    special = {0x2A, 0x2D, 0x2E, 0x5F}
    for byte in range(256):
        if (
            (0x61 <= byte <= 0x7A)
            or (0x41 <= byte <= 0x5A)
            or (0x30 <= byte <= 0x39)
            or (byte in special)
        ):  # Keep the ASCII
            values[byte] = bytes((byte,))
        elif byte == 0x020:  # Space -> '+'
            values[byte] = b"+"
        else:  # Percent-encoded
            values[byte] = b"%" + hex(byte)[2:].upper().zfill(2).encode()
    return values


INT_TO_URLENC = _int_to_urlenc()


def url_encode(value: str, encoding: str = "utf-8") -> str:
    """Encodes a string with 'application/x-www-form-urlencoded' rules."""
    return b"".join([INT_TO_URLENC[byte] for byte in value.encode(encoding)]).decode(
        "ascii"
    )


def is_blank(value: typing.Optional[str]) -> bool:
    return value is None or not value.strip()


class MimeType(typing.NamedTuple):
    type: str
    subtype: str
    suffix: str
    parameters: typing.Dict[str, typing.Optional[str]]

    def __str__(self) -> str:
        """Renders the mime type without parameters"""
        if not self.type:
            return ""
        return (
            f"{self.type}"
            f"{'/' + self.subtype if self.subtype else ''}"
            f"{'+' + self.suffix if self.suffix else ''}"
        )


def parse_mimetype(mimetype: str) -> MimeType:
    if not mimetype:
        return MimeType(type="", subtype="", suffix="", parameters={})

    parts = mimetype.split(";")
    params = {}
    for item in parts[1:]:
        if not item:
            continue
        key, value = typing.cast(
            typing.Tuple[str, typing.Optional[str]],
            item.split("=", 1) if "=" in item else (item, None),
        )
        params[key.lower().strip()] = value.strip(' "') if value else value

    mimetype_no_params = parts[0].strip().lower()
    if mimetype_no_params == "*":
        mimetype_no_params = "*/*"

    type, subtype = typing.cast(
        typing.Tuple[str, str],
        mimetype_no_params.split("/", 1)
        if "/" in mimetype_no_params
        else (mimetype_no_params, ""),
    )
    subtype, suffix = typing.cast(
        typing.Tuple[str, str],
        subtype.split("+", 1) if "+" in subtype else (subtype, ""),
    )
    return MimeType(type=type, subtype=subtype, suffix=suffix, parameters=params)


@functools.lru_cache(128)
def is_known_encoding(encoding: str) -> typing.Optional[str]:
    """Given an encoding type, return either it's normalized name
    if we understand the codec otherwise return 'None'.
    """
    try:
        return codecs.lookup(encoding).name
    except LookupError:
        return None


def detect_encoding(data: bytes) -> typing.Optional[str]:
    """Feeds data to chardet until it's confident about an encoding."""
    detector = chardet.UniversalDetector()
    detector.feed(data)
    detector.close()
    encoding = detector.result["encoding"]
    return is_known_encoding(encoding) if encoding else None


class BytesChunker:
    """Divides a buffer of bytes into chunks no larger than 'chunk_size'.
    Slices are views into the original buffer so no intermediate copy
    larger than one chunk is ever made.
    """

    def __init__(self, chunk_size: typing.Optional[int] = MAX_BUFFER_SIZE):
        if chunk_size is not None and chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
        self.chunk_size = chunk_size

    def feed(self, data: bytes) -> typing.Iterable[bytes]:
        view = memoryview(data)
        try:
            if self.chunk_size is None:
                if len(view):
                    yield bytes(view)
                return
            for offset in range(0, len(view), self.chunk_size):
                yield bytes(view[offset : offset + self.chunk_size])
        finally:
            view.release()


@functools.lru_cache(1)
def user_agent() -> str:
    from . import __version__

    return (
        f"python-imagic/{__version__} "
        f"{platform.python_implementation()}/{platform.python_version()}"
    )
