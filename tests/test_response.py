import datetime
import pytest
import imagic


def test_empty_response():
    resp = imagic.Response(status_code=200, headers={"content-length": "0"}, data=b"")

    assert resp.data == b""
    assert resp.text() == ""
    assert resp.encoding == "ascii"
    assert resp.content_type == "application/octet-stream"


@pytest.mark.parametrize("charset", ["ascii", "utf-8", "UTF-8", '"utf-8"', '"UTF-8"'])
def test_response_content_type_charset(charset):
    resp = imagic.Response(
        status_code=200,
        headers={"content-type": f"text/plain; charset={charset}"},
        data=b"ok",
    )

    assert resp.text() == "ok"
    assert resp.content_type == "text/plain"
    assert resp.encoding == ("ascii" if charset == "ascii" else "utf-8")


def test_json():
    resp = imagic.Response(
        status_code=200,
        headers=[("Content-Type", "application/json")],
        data=b'{"status": "composited"}',
    )
    assert resp.json() == {"status": "composited"}


def test_headers_are_case_insensitive():
    resp = imagic.Response(200, [("Content-Type", "image/png"), ("X-A", "1")])

    assert resp.headers["content-type"] == "image/png"
    assert resp.headers["CONTENT-TYPE"] == "image/png"
    assert "x-a" in resp.headers


def test_cache_entry():
    resp = imagic.Response(
        200,
        {
            "etag": '"abc"',
            "cache-control": "public, max-age=60",
            "date": "Wed, 21 Oct 2015 07:28:00 GMT",
        },
    )

    assert resp.cache_entry.etag == '"abc"'
    assert resp.cache_entry.ttl == 60
    assert resp.cache_entry.server_date == datetime.datetime(
        2015, 10, 21, 7, 28, tzinfo=datetime.timezone.utc
    )


def test_cache_entry_expires():
    resp = imagic.Response(
        200,
        {
            "date": "Wed, 21 Oct 2015 07:28:00 GMT",
            "expires": "Wed, 21 Oct 2015 08:28:00 GMT",
        },
    )
    assert resp.cache_entry.ttl == 3600


@pytest.mark.parametrize("cache_control", ["no-cache", "no-store, max-age=60"])
def test_cache_entry_no_cache(cache_control):
    resp = imagic.Response(200, {"cache-control": cache_control})
    assert resp.cache_entry.ttl == 0


def test_cache_entry_without_headers():
    resp = imagic.Response(200, {})
    assert resp.cache_entry == imagic.CacheEntry(etag=None, server_date=None, ttl=None)


def test_cache_entry_mixed_utc_forms():
    resp = imagic.Response(
        200,
        {
            "date": "Wed, 21 Oct 2015 07:28:00 -0000",
            "expires": "Wed, 21 Oct 2015 08:28:00 +0000",
        },
    )

    assert resp.cache_entry.ttl == 3600
    assert resp.cache_entry.server_date.tzinfo is not None


@pytest.mark.parametrize("expires", ["0", "-1", "yesterday"])
def test_cache_entry_junk_expires_is_expired(expires):
    resp = imagic.Response(
        200, {"date": "Wed, 21 Oct 2015 07:28:00 GMT", "expires": expires}
    )
    assert resp.cache_entry.ttl == 0


def test_cache_entry_skips_bad_max_age():
    resp = imagic.Response(200, {"cache-control": "max-age=soon, max-age=30"})
    assert resp.cache_entry.ttl == 30


def test_detected_encoding():
    text = "Ünïcödé tëxt wïth plëntÿ öf äccënts, sö thé détéctör cän bé sürë. " * 4
    resp = imagic.Response(200, {"content-type": "text/plain"}, text.encode("utf-8"))

    assert resp.encoding == "utf-8"
    assert resp.text() == text
