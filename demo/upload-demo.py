import sys

import imagic
import trio


async def main(depth_path, background_path):
    # IMAGIC_SCHEME and IMAGIC_HOST must point at a compositing endpoint.
    resp = await imagic.composite(depth_path, background_path)
    print(resp.status_code, resp.headers, resp.content_type)
    if not resp.content_type.startswith("image/"):
        # Some deployments answer with a JSON status instead of the image.
        print(resp.json() if resp.content_type == "application/json" else resp.text())
        return
    with open("composited.png", "wb") as f:
        f.write(resp.data)


async def many(depth_path, background_path):
    results = []
    depth = imagic.Part.from_file(depth_path)
    background = imagic.Part.from_file(background_path)
    config = imagic.EndpointConfig.from_env()

    async with imagic.RequestQueue() as queue:
        for i in range(10):
            request = imagic.AsyncUploadRequest(
                config.url_builder().build(),
                results.append,
                results.append,
                retry_policy=imagic.RetryPolicy(timeout_ms=5000, max_retries=2),
                tag=i,
            )
            request.put_part(config.depth_param, depth)
            request.put_part(config.background_param, background)
            queue.add(request)

        await trio.sleep(1)
        queue.cancel_all(lambda r: r.tag >= 5)

    print(results)


trio.run(main, *sys.argv[1:3])
trio.run(many, *sys.argv[1:3])
