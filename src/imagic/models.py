import datetime
import email.utils
import json
import mimetypes
import os
import pathlib
import typing

import filetype

from .exceptions import ConfigurationError
from .utils import (
    detect_encoding,
    is_blank,
    is_known_encoding,
    parse_mimetype,
    url_encode,
)

PathType = typing.Union[str, pathlib.Path]
HeadersType = typing.Union[
    typing.Mapping[str, typing.Optional[str]],
    typing.Mapping[bytes, typing.Optional[bytes]],
    typing.Iterable[typing.Tuple[str, typing.Optional[str]]],
    typing.Iterable[typing.Tuple[bytes, typing.Optional[bytes]]],
    "Headers",
]

KT = typing.TypeVar("KT")
VT = typing.TypeVar("VT")
NormKT = typing.TypeVar("NormKT")
NormVT = typing.TypeVar("NormVT")
MultiMappingType = typing.Union[
    typing.Mapping[KT, VT], typing.Sequence[typing.Tuple[KT, VT]]
]


class MultiMapping(typing.Generic[KT, VT, NormKT, NormVT]):
    """Mapping of one key to many values. Keys are kept in the order
    they were first added and values in the order they were added.
    """

    def __init__(self, values: MultiMappingType = ()):
        self._internal: typing.Dict[
            NormKT, typing.List[typing.Tuple[NormKT, NormVT]]
        ] = {}
        if values:
            self.extend(values)

    def get_one(
        self, key: KT, default: typing.Optional[NormVT] = None
    ) -> typing.Optional[NormVT]:
        try:
            return self._internal[self._normalize_key(key)][0][1]
        except (KeyError, IndexError):
            return default

    get = get_one

    def get_all(self, key: KT) -> typing.List[NormVT]:
        try:
            return [x[1] for x in self._internal[self._normalize_key(key)]]
        except KeyError:
            return []

    def add(self, key: KT, value: VT) -> None:
        key = self._normalize_key(key)
        self._internal.setdefault(key, []).append((key, self._normalize_value(value)))

    def extend(self, items: MultiMappingType) -> None:
        for k, v in items.items() if hasattr(items, "items") else items:
            self.add(k, v)

    def keys(self) -> typing.Iterable[NormKT]:
        for items in self._internal.values():
            if items:
                yield items[0][0]

    def values(self) -> typing.Iterable[NormVT]:
        for items in self._internal.values():
            for _, value in items:
                yield value

    def items(self) -> typing.Iterable[typing.Tuple[NormKT, NormVT]]:
        for items in self._internal.values():
            for k, v in items:
                yield k, v

    def __contains__(self, item: KT) -> bool:
        return bool(self._internal.get(self._normalize_key(item), None))

    def __getitem__(self, item: KT) -> NormVT:
        try:
            return self._internal[self._normalize_key(item)][0][1]
        except (KeyError, IndexError):
            raise KeyError(item) from None

    def __setitem__(self, key: KT, value: VT) -> None:
        key = self._normalize_key(key)
        self._internal[key] = [(key, self._normalize_value(value))]

    def __delitem__(self, key: KT) -> None:
        self._internal.pop(self._normalize_key(key), None)

    def __iter__(self) -> typing.Iterator[NormKT]:
        return iter(list(self.keys()))

    def __len__(self) -> int:
        return sum(len(x) for x in self._internal.values())

    def _normalize_key(self, key: KT) -> NormKT:
        return key

    def _normalize_value(self, value: VT) -> NormVT:
        return value


class Headers(
    MultiMapping[
        typing.Union[str, bytes],
        typing.Optional[typing.Union[str, bytes]],
        str,
        typing.Optional[str],
    ]
):
    def _normalize_key(self, key: KT) -> NormKT:
        if isinstance(key, bytes):
            key = key.decode("latin-1")
        return key.lower()

    def _normalize_value(self, value: VT) -> NormVT:
        if isinstance(value, bytes):
            value = value.decode("latin-1")
        return value

    def get_folded(self, key: str) -> str:
        return ", ".join([x for x in self.get_all(key) if x is not None])

    def __repr__(self) -> str:
        # Smart repr that switches to list-of-tuple mode when
        # multiple values for one key are detected. Most of the
        # time it's easier to read the dictionary.
        if any(len(x) > 1 for x in self._internal.values()):
            internal_repr = repr([(k, v) for k, v in self.items()])
        else:
            # Note the unpacking within (k, v),
            internal_repr = repr({k: v for (k, v), in self._internal.values()})
        return f"<Headers {internal_repr}>"

    __str__ = __repr__


class Params(MultiMapping[str, str, str, str]):
    """Query parameters that have already been url-encoded.
    All values for one name are rendered together and names are
    rendered in the order they were first added.
    """

    def __str__(self) -> str:
        return "&".join([f"{k}={v}" for k, v in self.items()])

    def __repr__(self) -> str:
        return f"<Params {[(k, v) for k, v in self.items()]!r}>"


class URLBuilder:
    """Assembles an endpoint URL from its parts. The scheme is used
    verbatim so it should include its separator, e.g. 'https://'.
    """

    def __init__(
        self,
        scheme: typing.Optional[str] = None,
        host: typing.Optional[str] = None,
        path: str = "",
    ):
        self.scheme = scheme
        self.host = host
        self.path = path
        self.params = Params()

    def add_param(self, name: str, value: str) -> "URLBuilder":
        """Adds a query parameter. Both the name and the value are url-encoded
        here and only here, so values stored in 'params' are never encoded twice.
        """
        self.params.add(url_encode(name), url_encode(value))
        return self

    def build(self) -> str:
        """Renders the URL. Scheme and host must be set. Doesn't modify
        the builder so it's safe to call more than once.
        """
        if self.scheme is None:
            raise ConfigurationError("scheme must be set")
        if self.host is None:
            raise ConfigurationError("host must be set")

        url = f"{self.scheme}{self.host}{self.path or ''}"
        if self.params:
            url += f"?{self.params}"
        return url

    def __repr__(self) -> str:
        return (
            f"<URLBuilder scheme={self.scheme!r} host={self.host!r} "
            f"path={self.path!r}>"
        )


class Part:
    """One named unit of binary data within a multipart body"""

    def __init__(
        self, filename: str, data: bytes, mime_type: typing.Optional[str] = None
    ):
        self.filename = filename
        self.data = data
        self.mime_type = mime_type

    @classmethod
    def from_bytes(
        cls, filename: str, data: bytes, mime_type: typing.Optional[str] = None
    ) -> "Part":
        """Creates a Part guessing the mime type when one isn't given.
        Contents are sniffed first and the filename is the last-ditch effort.
        """
        if mime_type is None:
            mime_type = guess_mime_type(data, filename)
        return cls(filename=filename, data=data, mime_type=mime_type)

    @classmethod
    def from_file(
        cls, path: PathType, mime_type: typing.Optional[str] = None
    ) -> "Part":
        with open(path, "rb") as f:
            data = f.read()
        return cls.from_bytes(os.path.basename(str(path)), data, mime_type=mime_type)

    @property
    def has_mime_type(self) -> bool:
        return not is_blank(self.mime_type)

    def __repr__(self) -> str:
        return (
            f"<Part filename={self.filename!r} mime_type={self.mime_type!r} "
            f"size={len(self.data)}>"
        )


def guess_mime_type(
    data: bytes, filename: typing.Optional[str]
) -> typing.Optional[str]:
    content_type = filetype.guess_mime(data) if data else None
    if content_type is None and filename:
        content_type, _ = mimetypes.guess_type(filename, strict=False)
    return content_type


class RetryPolicy(typing.NamedTuple):
    """How the queue re-issues a request on a transient failure.
    The first attempt waits 'timeout_ms' and every retry grows the
    previous timeout by 'backoff_multiplier' times itself.
    """

    timeout_ms: int = 2500
    max_retries: int = 1
    backoff_multiplier: float = 1.0

    @property
    def max_attempts(self) -> int:
        return 1 + max(self.max_retries, 0)

    def timeout_for_attempt(self, attempt: int) -> float:
        """Returns the timeout in seconds for the 0-based attempt"""
        timeout_ms = float(self.timeout_ms)
        for _ in range(attempt):
            timeout_ms += timeout_ms * self.backoff_multiplier
        return timeout_ms / 1000.0


DEFAULT_RETRY_POLICY = RetryPolicy()


class RawResponse(typing.NamedTuple):
    """What the transport hands back before any parsing"""

    status_code: int
    headers: typing.List[typing.Tuple[str, str]]
    data: bytes
    http_version: str = "HTTP/1.1"

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class CacheEntry(typing.NamedTuple):
    etag: typing.Optional[str]
    server_date: typing.Optional[datetime.datetime]
    ttl: typing.Optional[int]

    @classmethod
    def from_headers(cls, headers: Headers) -> "CacheEntry":
        """Parses the caching headers of a response. Malformed dates and
        'max-age' values are skipped rather than failing the response.
        """
        server_date = _parse_http_date(headers.get("date"))

        ttl: typing.Optional[int] = None
        no_cache = False
        for directive in headers.get_folded("cache-control").split(","):
            directive = directive.strip().lower()
            if directive in ("no-cache", "no-store"):
                no_cache = True
            elif directive.startswith("max-age="):
                try:
                    ttl = int(directive[len("max-age=") :].strip('"'))
                except ValueError:
                    continue

        if no_cache:
            ttl = 0
        elif ttl is None and "expires" in headers and server_date is not None:
            # 'Expires: 0' and other junk means already expired.
            expires = _parse_http_date(headers.get("expires")) or server_date
            ttl = max(0, int((expires - server_date).total_seconds()))

        return cls(etag=headers.get("etag"), server_date=server_date, ttl=ttl)


def _parse_http_date(value: typing.Optional[str]) -> typing.Optional[datetime.datetime]:
    """Returns an aware datetime or 'None' if the date can't be parsed"""
    if value is None:
        return None
    try:
        parsed = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed is None:
        return None
    # '-0000' parses as naive but still means UTC.
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


class Response:
    def __init__(
        self,
        status_code: int,
        headers: HeadersType,
        data: bytes = b"",
        http_version: str = "HTTP/1.1",
    ):
        self.status_code = status_code
        self.headers = headers
        self.data = data
        self.http_version = http_version

        self._encoding: typing.Optional[str] = None
        self.cache_entry = CacheEntry.from_headers(self.headers)

    @classmethod
    def from_raw(cls, raw: RawResponse) -> "Response":
        response = cls(
            status_code=raw.status_code,
            headers=raw.headers,
            data=raw.data,
            http_version=raw.http_version,
        )
        content_length = response.content_length
        if content_length is not None and content_length != len(raw.data):
            raise ValueError(
                f"'Content-Length: {content_length}' doesn't match "
                f"the {len(raw.data)} bytes received"
            )
        return response

    @property
    def headers(self) -> Headers:
        return self._headers

    @headers.setter
    def headers(self, value: HeadersType) -> None:
        if not isinstance(value, Headers):
            value = Headers(value)
        self._headers = value

    @property
    def content_type(self) -> str:
        """Gets the effective 'Content-Type' of the response either from headers
        or returns 'application/octet-stream' if no such header if found.
        """
        if "content-type" not in self.headers:
            return "application/octet-stream"
        return str(parse_mimetype(self.headers.get_folded("content-type")))

    @property
    def content_length(self) -> typing.Optional[int]:
        if "content-length" in self.headers:
            values = self.headers.get_all("content-length")
            if len(set(values)) == 1 and values[0].isdigit():
                return int(values[0])
            raise ValueError(f"invalid 'Content-Length' {values!r}")
        return None

    @property
    def encoding(self) -> str:
        """Returns the 'encoding' of the response body.
        - If encoding has been set manually, always use that value.
        - If there is a 'charset=X' within the 'Content-Type' header
          and its an encoding that Python understands.
        - If the body is empty, 'ascii'.
        - Otherwise whatever chardet detects, falling back to 'utf-8'.
        """
        if self._encoding:
            return self._encoding
        if "content-type" in self.headers:
            mimetype = parse_mimetype(self.headers.get_folded("content-type"))
            charset = mimetype.parameters.get("charset")
            if charset:
                self._encoding = is_known_encoding(charset)
        if not self._encoding:
            if not self.data:
                self._encoding = "ascii"
            else:
                self._encoding = detect_encoding(self.data) or "utf-8"
        return self._encoding

    @encoding.setter
    def encoding(self, value: str) -> None:
        self._encoding = value

    def text(self) -> str:
        return self.data.decode(self.encoding)

    def json(self) -> typing.Any:
        return json.loads(self.text())

    def __repr__(self) -> str:
        return "<Response [%d]>" % self.status_code
