__version__ = "0.1.0"

from .exceptions import (  # noqa: E402
    ImagicError,
    ConfigurationError,
    BodyEncodingError,
    InvalidStateError,
    ParseError,
    TransportError,
    TimeoutError,
    NoConnectionError,
    ServerError,
    UnknownError,
    RequestCancelled,
    Timeout,
    NoConnection,
    Unknown,
    classify_error,
)
from .models import (  # noqa: E402
    URLBuilder,
    Params,
    Headers,
    Part,
    RetryPolicy,
    RawResponse,
    Response,
    CacheEntry,
)
from .multipart import MultipartEncoder  # noqa: E402
from .request import AsyncUploadRequest, RequestState  # noqa: E402
from .transport import Transport, HTTP11Transport  # noqa: E402
from .queue import RequestQueue  # noqa: E402
from .config import EndpointConfig  # noqa: E402
from .api import composite, composite_url  # noqa: E402

__all__ = [
    "URLBuilder",
    "Params",
    "Headers",
    "Part",
    "RetryPolicy",
    "RawResponse",
    "Response",
    "CacheEntry",
    "MultipartEncoder",
    "AsyncUploadRequest",
    "RequestState",
    "Transport",
    "HTTP11Transport",
    "RequestQueue",
    "EndpointConfig",
    "composite",
    "composite_url",
    "ImagicError",
    "ConfigurationError",
    "BodyEncodingError",
    "InvalidStateError",
    "ParseError",
    "TransportError",
    "TimeoutError",
    "NoConnectionError",
    "ServerError",
    "UnknownError",
    "RequestCancelled",
    "Timeout",
    "NoConnection",
    "Unknown",
    "classify_error",
]
