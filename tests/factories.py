"""Synthetic element records and fakes shared by the test modules."""
from overhead.tle_parser import ElementRecord, format_catalog

ISS_LINE1 = "1 25544U 98067A   24001.50000000  .00016717  00000-0  10270-3 0  9003"
ISS_LINE2 = "2 25544  51.6400 208.5000 0007417  68.0000 292.1000 15.49560000400000"

HUBBLE_LINE1 = "1 20580U 90037B   24001.50000000  .00000764  00000-0  34340-4 0  9998"
HUBBLE_LINE2 = "2 20580  28.4700 100.2000 0002500 300.0000  60.0000 15.09000000400000"


def make_record(
    name: str = "TEST-SAT",
    norad_id: int = 55001,
    mean_motion: float = 15.05,
) -> ElementRecord:
    """Build a record from the ISS lines with a new catalog number and mean motion."""
    line1 = ISS_LINE1[:2] + f"{norad_id:05d}" + ISS_LINE1[7:]
    line2 = ISS_LINE2[:2] + f"{norad_id:05d}" + ISS_LINE2[7:52] + f"{mean_motion:11.8f}" + ISS_LINE2[63:]
    return ElementRecord(name=name, line1=line1, line2=line2)


def make_catalog_text(n: int = 12, first_id: int = 60000, prefix: str = "SAT") -> str:
    return format_catalog(make_record(f"{prefix}-{i}", first_id + i) for i in range(n))


class FakeResponse:
    """Streams a UTF-8 body. Like requests, a text/* reply without a charset
    reports ISO-8859-1 as its encoding."""

    def __init__(
        self,
        body: str = "",
        status_code: int = 200,
        chunk_size: int = 256,
        content_type: str = "text/plain",
    ):
        self.body = body.encode("utf-8")
        self.status_code = status_code
        self.headers = {"Content-Type": content_type}
        _, _, charset = content_type.partition("charset=")
        self.encoding = charset.strip() or "ISO-8859-1"
        self.chunk_size = chunk_size
        self.closed = False

    def iter_content(self, chunk_size=None):
        for i in range(0, len(self.body), self.chunk_size):
            yield self.body[i:i + self.chunk_size]

    def close(self):
        self.closed = True


class FakeSession:
    """Serves canned bodies per URL; anything else is a 404.

    An entry may also be an exception instance, which ``get`` raises.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.responses = []

    def get(self, url, headers=None, timeout=None, stream=False):
        self.calls.append(url)
        route = self.routes.get(url)
        if isinstance(route, Exception):
            raise route
        if isinstance(route, FakeResponse):
            resp = route
        elif route is None:
            resp = FakeResponse(status_code=404)
        else:
            resp = FakeResponse(route)
        self.responses.append(resp)
        return resp


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
