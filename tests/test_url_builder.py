import urllib.parse
import pytest
import imagic
from imagic.utils import url_encode


def make_builder():
    return imagic.URLBuilder(scheme="https://", host="example.com", path="/imagic")


def test_build_without_params():
    assert make_builder().build() == "https://example.com/imagic"


def test_path_defaults_to_empty():
    builder = imagic.URLBuilder(scheme="http://", host="localhost:8080")
    assert builder.build() == "http://localhost:8080"


@pytest.mark.parametrize("missing", ["scheme", "host"])
def test_missing_component(missing):
    kwargs = {"scheme": "https://", "host": "example.com"}
    kwargs[missing] = None

    builder = imagic.URLBuilder(**kwargs)
    builder.add_param("depth", "a")
    with pytest.raises(imagic.ConfigurationError) as e:
        builder.build()

    assert missing in e.value.message


def test_params_keep_insertion_order():
    builder = make_builder()
    builder.add_param("depth", "a")
    builder.add_param("background", "b")
    builder.add_param("cross_eyed", "1")

    assert (
        builder.build()
        == "https://example.com/imagic?depth=a&background=b&cross_eyed=1"
    )


def test_repeated_param_keeps_every_value():
    builder = make_builder()
    builder.add_param("x", "1")
    builder.add_param("y", "2")
    builder.add_param("x", "3")

    assert builder.build() == "https://example.com/imagic?x=1&x=3&y=2"
    assert builder.params.get_all("x") == ["1", "3"]


def test_build_is_repeatable():
    builder = make_builder()
    builder.add_param("depth", "a")

    assert builder.build() == builder.build() == "https://example.com/imagic?depth=a"

    builder.add_param("background", "b")
    assert builder.build() == "https://example.com/imagic?depth=a&background=b"


def test_values_are_encoded_once():
    builder = make_builder()
    builder.add_param("q", "100%")

    builder.build()
    assert builder.build().endswith("?q=100%25")


@pytest.mark.parametrize(
    "value",
    [
        "a&b=c",
        "hello world",
        "café ☃",
        "100%",
        "http://example.com/depth.png?size=large&x=1",
        "+plus+",
    ],
)
def test_reserved_characters_round_trip(value):
    builder = make_builder()
    builder.add_param(value, value)
    url = builder.build()

    assert url.count("?") == 1
    query = url.split("?", 1)[1]
    assert urllib.parse.parse_qsl(query, keep_blank_values=True) == [(value, value)]


@pytest.mark.parametrize(
    ["value", "expected"],
    [
        ("abcXYZ019", "abcXYZ019"),
        ("*-._", "*-._"),
        ("a b", "a+b"),
        ("~", "%7E"),
        ("=&?/:", "%3D%26%3F%2F%3A"),
        ("☃", "%E2%98%83"),
        ("\n", "%0A"),
    ],
)
def test_url_encode(value, expected):
    assert url_encode(value) == expected
