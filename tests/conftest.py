import pytest

from sama_resolver.config import Settings
from sama_resolver.providers.errors import NotFound, UpstreamUnavailable

BASE = "https://anime-sama.fr"


class FakeFetcher:
    """In-memory stand-in for the aiohttp fetcher.

    pages maps URL -> body text (or an exception instance to raise). Unknown
    URLs return `default` when set, else raise NotFound.
    """

    def __init__(self, pages=None, default=None, down=False):
        self.pages = dict(pages or {})
        self.default = default
        self.down = down
        self.calls = []

    async def get(self, url, **kwargs):
        self.calls.append(url)
        if self.down:
            raise UpstreamUnavailable(f"{url}: connection refused")
        if url in self.pages:
            value = self.pages[url]
            if isinstance(value, Exception):
                raise value
            return value
        if self.default is not None:
            return self.default
        raise NotFound(f"{url} returned 404")

    async def close(self):
        pass


def eps_array(name, urls):
    body = ",\n".join(f"'{u}'" for u in urls)
    return f"var {name} = [\n{body}\n];\n"


@pytest.fixture
def settings():
    return Settings(base_url=BASE, fetch_delay_min=0, fetch_delay_max=0)
