import enum
import logging
import typing

from .exceptions import ImagicError, InvalidStateError, ParseError
from .models import (
    DEFAULT_RETRY_POLICY,
    Part,
    RawResponse,
    Response,
    RetryPolicy,
)
from .multipart import MultipartEncoder
from .utils import user_agent

log = logging.getLogger(__name__)

ResponseListener = typing.Callable[[Response], typing.Any]
ErrorListener = typing.Callable[[ImagicError], typing.Any]


class RequestState(enum.Enum):
    CREATED = "CREATED"
    ENQUEUED = "ENQUEUED"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestState.SUCCEEDED, RequestState.FAILED)


def default_headers() -> typing.Dict[str, str]:
    return {"User-Agent": user_agent(), "Accept": "*/*"}


class AsyncUploadRequest:
    """One multipart upload handed to a queue. The queue reads the headers
    and the body off of the request, runs the exchange in the background
    and then calls back with either 'deliver_response()' or 'deliver_error()'.
    Exactly one of the two listeners is called, exactly once.

    The boundary is picked when the request is created so that the
    'Content-Type' header and every body produced for a retry agree.
    """

    def __init__(
        self,
        url: str,
        on_response: ResponseListener,
        on_error: ErrorListener,
        *,
        method: str = "POST",
        headers: typing.Optional[typing.Mapping[str, str]] = None,
        params: typing.Optional[typing.Mapping[str, str]] = None,
        parts: typing.Optional[typing.Mapping[str, Part]] = None,
        retry_policy: typing.Optional[RetryPolicy] = None,
        params_encoding: typing.Optional[str] = None,
        tag: typing.Optional[typing.Hashable] = None,
    ):
        self.method = method
        self.url = url
        self.tag = tag
        self.on_response = on_response
        self.on_error = on_error

        self._headers = dict(headers) if headers is not None else None
        self._retry_policy = retry_policy or DEFAULT_RETRY_POLICY
        self._state = RequestState.CREATED
        self._cancelled = False
        self._body: typing.Optional[bytes] = None
        self._encoder = MultipartEncoder(
            dict(params or {}), dict(parts or {}), encoding=params_encoding
        )

    @property
    def state(self) -> RequestState:
        return self._state

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @property
    def boundary(self) -> str:
        return self._encoder.boundary

    @property
    def params(self) -> typing.Mapping[str, str]:
        return self._encoder.params

    @property
    def parts(self) -> typing.Mapping[str, Part]:
        return self._encoder.parts

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def put_part(self, name: str, part: Part) -> None:
        self._ensure_mutable()
        self._encoder.parts[name] = part
        self._body = None

    def put_param(self, name: str, value: str) -> None:
        self._ensure_mutable()
        self._encoder.params[name] = value
        self._body = None

    def get_headers(self) -> typing.Dict[str, str]:
        """Headers given by the caller, otherwise the defaults"""
        if self._headers is not None:
            return dict(self._headers)
        return default_headers()

    def get_body_content_type(self) -> str:
        return self._encoder.content_type

    def get_body(self) -> bytes:
        """Produces the multipart body. The body is rendered once and reused
        until a field is changed, retries send the exact same bytes.
        Encoding failures are raised as 'BodyEncodingError'.
        """
        if self._body is None:
            self._body = self._encoder.encode(cancelled=self._is_cancelled)
        return self._body

    def on_response_parsed(
        self, raw: RawResponse
    ) -> typing.Union[Response, ParseError]:
        """Wraps a successful exchange into a Response. Any problem parsing
        it is handed back as a 'ParseError' instead of being raised.
        """
        try:
            return Response.from_raw(raw)
        except Exception as e:
            return ParseError(
                f"failed to parse response: {e}", request=self, response=raw, error=e
            )

    def mark_enqueued(self) -> None:
        if self._state is not RequestState.CREATED:
            raise InvalidStateError(
                f"request can only be enqueued once, state is {self._state.value}",
                request=self,
            )
        self._state = RequestState.ENQUEUED
        log.debug("enqueued %r", self)

    def cancel(self) -> None:
        """Marks the request cancelled. Body encoding stops at the next
        chunk and the queue delivers 'RequestCancelled' if nothing was
        delivered yet.
        """
        if not self._state.is_terminal:
            self._cancelled = True

    def deliver_response(self, response: Response) -> None:
        self._finish(RequestState.SUCCEEDED)
        self.on_response(response)

    def deliver_error(self, error: ImagicError) -> None:
        self._finish(RequestState.FAILED)
        if error.request is None:
            error.request = self
        self.on_error(error)

    def _finish(self, state: RequestState) -> None:
        if self._state.is_terminal:
            raise InvalidStateError(
                f"request already finished as {self._state.value}", request=self
            )
        self._state = state
        log.debug("%r finished", self)

    def _ensure_mutable(self) -> None:
        if self._state is not RequestState.CREATED:
            raise InvalidStateError(
                "fields can't be changed after the request is enqueued", request=self
            )

    def _is_cancelled(self) -> bool:
        return self._cancelled

    def __repr__(self) -> str:
        return f"<AsyncUploadRequest [{self.method}] {self._state.value}>"
