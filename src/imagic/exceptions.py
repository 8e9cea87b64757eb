import builtins
import socket
import typing

import h11
import trio

if typing.TYPE_CHECKING:
    from .models import RawResponse
    from .request import AsyncUploadRequest


class ImagicError(Exception):
    """Base error type for 'imagic' which may carry the request
    that initiated the upload, the raw response received at the end
    of the exchange, and the encapsulated error if this error wraps
    a different exception.
    """

    def __init__(
        self,
        message: str,
        request: typing.Optional["AsyncUploadRequest"] = None,
        response: typing.Optional["RawResponse"] = None,
        error: typing.Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.request = request
        self.response = response
        self.error = error


class ConfigurationError(ImagicError):
    """Error raised when an endpoint is missing a required component"""


class BodyEncodingError(ImagicError):
    """Error raised when a multipart body can't be serialized"""


class InvalidStateError(ImagicError):
    """Error raised when a request is used outside of its lifecycle,
    for example enqueued twice or delivered a second result.
    """


class ParseError(ImagicError):
    """Error raised when a successful exchange can't be parsed into a Response"""


class TransportError(ImagicError):
    """Generic error relating to the exchange with the remote endpoint.
    These are only ever delivered through a request's error listener.
    """


class TimeoutError(TransportError):
    """No response was received within the configured timeout"""


class NoConnectionError(TransportError):
    """The remote endpoint could not be reached"""


class UnknownError(TransportError):
    """The exchange failed without a response for an unrecognized reason"""


class RequestCancelled(TransportError):
    """The request was cancelled before a result could be delivered"""


class ServerError(TransportError):
    """The endpoint answered with an error. The raw body is kept
    so that callers can log or display what the server said.
    """

    def __init__(
        self,
        message: str,
        raw_body: bytes,
        status_code: typing.Optional[int] = None,
        headers: typing.Optional[typing.Sequence[typing.Tuple[str, str]]] = None,
        request: typing.Optional["AsyncUploadRequest"] = None,
        response: typing.Optional["RawResponse"] = None,
        error: typing.Optional[BaseException] = None,
    ):
        super().__init__(message, request=request, response=response, error=error)

        self.raw_body = raw_body
        self.status_code = status_code
        self.headers = list(headers or ())


# Short names used when talking about the classification itself.
Timeout = TimeoutError
NoConnection = NoConnectionError
Unknown = UnknownError


_TIMEOUT_ERRORS = (trio.TooSlowError, socket.timeout, builtins.TimeoutError)
_NO_CONNECTION_ERRORS = (trio.BrokenResourceError, trio.ClosedResourceError, OSError)


def classify_error(
    error: typing.Optional[BaseException],
    raw_response: typing.Optional["RawResponse"] = None,
    request: typing.Optional["AsyncUploadRequest"] = None,
) -> TransportError:
    """Maps a failure from the transport onto one of the fixed categories.
    If a raw response was received it wins over the failure type and
    its body is carried on a 'ServerError'.
    """
    if isinstance(error, TransportError):
        if error.request is None:
            error.request = request
        return error

    if raw_response is not None:
        return ServerError(
            f"server responded with status {raw_response.status_code}",
            raw_body=raw_response.data,
            status_code=raw_response.status_code,
            headers=raw_response.headers,
            request=request,
            response=raw_response,
            error=error,
        )

    # Timeouts are a subclass of 'OSError' so they're checked first.
    if isinstance(error, _TIMEOUT_ERRORS):
        return TimeoutError("timed out waiting for a response", request, error=error)
    if isinstance(error, _NO_CONNECTION_ERRORS):
        return NoConnectionError(
            f"could not reach the remote endpoint: {error}", request, error=error
        )
    if isinstance(error, h11.ProtocolError):
        return UnknownError(f"http protocol error: {error}", request, error=error)
    if error is None:
        return UnknownError("upload failed without a response", request)
    return UnknownError(f"upload failed: {error!r}", request, error=error)
