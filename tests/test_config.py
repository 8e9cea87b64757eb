import pytest
import imagic

ENVIRON = {"IMAGIC_SCHEME": "https://", "IMAGIC_HOST": "imagic.example.com"}


def test_from_env():
    config = imagic.EndpointConfig.from_env(ENVIRON)

    assert config == imagic.EndpointConfig("https://", "imagic.example.com")
    assert config.depth_param == "depth"
    assert config.background_param == "background"
    assert config.url_builder().build() == "https://imagic.example.com"


def test_from_env_overrides():
    environ = dict(
        ENVIRON,
        IMAGIC_PATH="/v2/composite",
        IMAGIC_DEPTH_PARAM="d",
        IMAGIC_BACKGROUND_PARAM="bg",
    )
    config = imagic.EndpointConfig.from_env(environ)

    assert config.path == "/v2/composite"
    assert config.depth_param == "d"
    assert config.background_param == "bg"
    assert config.url_builder().build() == "https://imagic.example.com/v2/composite"


def test_from_os_environ(monkeypatch):
    monkeypatch.setenv("IMAGIC_SCHEME", "http://")
    monkeypatch.setenv("IMAGIC_HOST", "localhost:8080")
    monkeypatch.delenv("IMAGIC_PATH", raising=False)

    config = imagic.EndpointConfig.from_env()
    assert config.url_builder().build() == "http://localhost:8080"


@pytest.mark.parametrize("missing", ["IMAGIC_SCHEME", "IMAGIC_HOST"])
@pytest.mark.parametrize("blank", [True, False])
def test_from_env_missing(missing, blank):
    environ = dict(ENVIRON)
    if blank:
        environ[missing] = ""
    else:
        del environ[missing]

    with pytest.raises(imagic.ConfigurationError) as e:
        imagic.EndpointConfig.from_env(environ)
    assert missing in e.value.message


def test_url_builder_is_fresh():
    config = imagic.EndpointConfig.from_env(ENVIRON)
    config.url_builder().add_param("depth", "x")
    assert config.url_builder().build() == "https://imagic.example.com"
