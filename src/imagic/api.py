import typing

import trio

from .config import EndpointConfig
from .exceptions import ImagicError
from .models import Part, PathType, Response, RetryPolicy
from .queue import RequestQueue
from .request import AsyncUploadRequest
from .transport import Transport

ImageType = typing.Union[Part, bytes, PathType]


def as_part(image: ImageType, filename: str) -> Part:
    """Wraps raw image bytes or a path on disk into a Part"""
    if isinstance(image, Part):
        return image
    if isinstance(image, (bytes, bytearray, memoryview)):
        return Part.from_bytes(filename, bytes(image))
    return Part.from_file(image)


def composite_url(
    depth_url: str,
    background_url: str,
    config: typing.Optional[EndpointConfig] = None,
) -> str:
    """URL asking the endpoint to composite two images it fetches itself"""
    config = config or EndpointConfig.from_env()
    builder = config.url_builder()
    builder.add_param(config.depth_param, depth_url)
    builder.add_param(config.background_param, background_url)
    return builder.build()


async def composite(
    depth: ImageType,
    background: ImageType,
    *,
    config: typing.Optional[EndpointConfig] = None,
    params: typing.Optional[typing.Mapping[str, str]] = None,
    headers: typing.Optional[typing.Mapping[str, str]] = None,
    retry_policy: typing.Optional[RetryPolicy] = None,
    transport: typing.Optional[Transport] = None,
) -> Response:
    """Uploads a depth map and a background and returns the composited image.
    Errors delivered to the request are raised from here.
    """
    config = config or EndpointConfig.from_env()
    outcome: typing.Dict[str, typing.Any] = {}
    done = trio.Event()

    def on_response(response: Response) -> None:
        outcome["response"] = response
        done.set()

    def on_error(error: ImagicError) -> None:
        outcome["error"] = error
        done.set()

    request = AsyncUploadRequest(
        config.url_builder().build(),
        on_response,
        on_error,
        headers=headers,
        params=params,
        retry_policy=retry_policy,
    )
    request.put_part(config.depth_param, as_part(depth, "depth.png"))
    request.put_part(config.background_param, as_part(background, "background.png"))

    async with RequestQueue(transport) as queue:
        queue.add(request)
        await done.wait()

    if "error" in outcome:
        raise outcome["error"]
    return outcome["response"]
