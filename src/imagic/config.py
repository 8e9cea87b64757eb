import os
import typing

from .exceptions import ConfigurationError
from .models import URLBuilder

ENV_PREFIX = "IMAGIC_"


class EndpointConfig(typing.NamedTuple):
    """Where the compositing endpoint lives and what it calls its fields.
    'scheme' includes its separator, e.g. 'https://'.
    """

    scheme: str
    host: str
    path: str = ""
    depth_param: str = "depth"
    background_param: str = "background"

    @classmethod
    def from_env(
        cls, environ: typing.Optional[typing.Mapping[str, str]] = None
    ) -> "EndpointConfig":
        """Reads 'IMAGIC_SCHEME', 'IMAGIC_HOST', 'IMAGIC_PATH',
        'IMAGIC_DEPTH_PARAM' and 'IMAGIC_BACKGROUND_PARAM'.
        """
        if environ is None:
            environ = os.environ

        def get(name: str) -> typing.Optional[str]:
            return environ.get(ENV_PREFIX + name.upper()) or None

        scheme, host = get("scheme"), get("host")
        if scheme is None:
            raise ConfigurationError(f"{ENV_PREFIX}SCHEME must be set")
        if host is None:
            raise ConfigurationError(f"{ENV_PREFIX}HOST must be set")

        overrides = {
            name: value
            for name, value in (
                (name, get(name))
                for name in ("path", "depth_param", "background_param")
            )
            if value is not None
        }
        return cls(scheme=scheme, host=host, **overrides)

    def url_builder(self) -> URLBuilder:
        return URLBuilder(scheme=self.scheme, host=self.host, path=self.path)
