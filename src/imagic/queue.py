import logging
import typing

import sniffio
import trio

from .exceptions import (
    ConfigurationError,
    ImagicError,
    InvalidStateError,
    NoConnectionError,
    RequestCancelled,
    TimeoutError,
    classify_error,
)
from .models import Response
from .request import AsyncUploadRequest
from .transport import HTTP11Transport, Transport

log = logging.getLogger(__name__)

DeliveryType = typing.Callable[..., typing.Any]
ResultType = typing.Union[Response, ImagicError]

# Failures where sending the same request again might go differently.
RETRYABLE_ERRORS = (TimeoutError, NoConnectionError)


def deliver_now(callback: typing.Callable[..., typing.Any], *args: typing.Any) -> None:
    callback(*args)


class RequestQueue:
    """
    Runs AsyncUploadRequests in the background and hands their results
    back through the requests' listeners. Must be used as an async context
    manager which owns a trio nursery; leaving the block waits for every
    request that was added.

    Results are handed to 'delivery' as 'delivery(listener, result)'. It's
    called synchronously from the queue's trio task and defaults to calling
    the listener right away. It must not block. An exception raised from a
    listener is logged and doesn't affect any other request.

    If the queue itself is cancelled every request still in flight is
    delivered 'RequestCancelled' before the cancellation propagates.
    """

    def __init__(
        self,
        transport: typing.Optional[Transport] = None,
        *,
        delivery: typing.Optional[DeliveryType] = None,
    ):
        self.transport = transport or HTTP11Transport()
        self.delivery = delivery or deliver_now

        self._nursery_manager: typing.Optional[
            typing.AsyncContextManager[trio.Nursery]
        ] = None
        self._nursery: typing.Optional[trio.Nursery] = None
        self._pending: typing.Dict[AsyncUploadRequest, trio.CancelScope] = {}

    async def __aenter__(self) -> "RequestQueue":
        try:
            async_lib = sniffio.current_async_library()
        except sniffio.AsyncLibraryNotFoundError:
            raise ConfigurationError("RequestQueue must run inside trio") from None
        if async_lib != "trio":
            raise ConfigurationError(
                f"RequestQueue only supports trio, not '{async_lib}'"
            )

        self._nursery_manager = trio.open_nursery()
        self._nursery = await self._nursery_manager.__aenter__()
        return self

    async def __aexit__(self, *exc_info: typing.Any) -> typing.Optional[bool]:
        try:
            return await self._nursery_manager.__aexit__(*exc_info)
        finally:
            self._nursery = None
            self._nursery_manager = None

    @property
    def pending(self) -> typing.List[AsyncUploadRequest]:
        return list(self._pending)

    def add(self, request: AsyncUploadRequest) -> AsyncUploadRequest:
        """Enqueues a request. Problems with the request itself, an unusable
        URL or a body that can't be encoded, are raised from here and
        nothing is delivered. Everything after this point ends in exactly
        one call to one of the request's listeners.
        """
        if self._nursery is None:
            raise InvalidStateError(
                "queue isn't running, use 'async with RequestQueue()'", request=request
            )

        self.transport.validate_url(request.url)
        if not request.is_cancelled:
            request.get_body()
        request.mark_enqueued()

        cancel_scope = trio.CancelScope()
        self._pending[request] = cancel_scope
        self._nursery.start_soon(self._process, request, cancel_scope)
        return request

    def cancel_all(
        self,
        tag: typing.Union[
            typing.Hashable, typing.Callable[[AsyncUploadRequest], bool]
        ],
    ) -> int:
        """Cancels every pending request with the given tag, or every
        pending request a callable filter returns 'True' for.
        """
        if callable(tag):
            matches = tag
        else:

            def matches(request: AsyncUploadRequest) -> bool:
                return request.tag == tag

        cancelled = 0
        for request, cancel_scope in list(self._pending.items()):
            if matches(request):
                request.cancel()
                cancel_scope.cancel()
                cancelled += 1
        return cancelled

    async def _process(
        self, request: AsyncUploadRequest, cancel_scope: trio.CancelScope
    ) -> None:
        result: typing.Optional[ResultType] = None
        try:
            with cancel_scope:
                result = await self._perform(request)
        except trio.Cancelled:
            self._deliver(
                request, RequestCancelled("request queue was closed", request=request)
            )
            raise
        finally:
            self._pending.pop(request, None)

        if request.is_cancelled or result is None:
            result = RequestCancelled("request was cancelled", request=request)
        self._deliver(request, result)

    def _deliver(self, request: AsyncUploadRequest, result: ResultType) -> None:
        try:
            if isinstance(result, Response):
                self.delivery(request.deliver_response, result)
            else:
                log.debug("%r failed: %s", request, result.message)
                self.delivery(request.deliver_error, result)
        except Exception:
            log.exception("listener of %r raised", request)

    async def _perform(self, request: AsyncUploadRequest) -> ResultType:
        """Sends the request until it succeeds, fails in a way that isn't
        worth retrying, or runs out of attempts under its retry policy.
        """
        policy = request.retry_policy
        # The boundary-bearing value replaces any 'Content-Type' given.
        headers = {
            k: v
            for k, v in request.get_headers().items()
            if k.lower() != "content-type"
        }
        headers["Content-Type"] = request.get_body_content_type()

        error: typing.Optional[ImagicError] = None
        for attempt in range(policy.max_attempts):
            if request.is_cancelled:
                break

            timeout = policy.timeout_for_attempt(attempt)
            try:
                with trio.fail_after(timeout):
                    raw = await self.transport.send(
                        request.method, request.url, headers, request.get_body()
                    )
            except Exception as e:
                error = classify_error(e, request=request)
            else:
                if raw.is_success:
                    return request.on_response_parsed(raw)
                error = classify_error(None, raw_response=raw, request=request)

            if not isinstance(error, RETRYABLE_ERRORS):
                break
            if attempt + 1 < policy.max_attempts:
                log.warning(
                    "retrying %r after %s (attempt %d of %d)",
                    request,
                    type(error).__name__,
                    attempt + 2,
                    policy.max_attempts,
                )

        return error
