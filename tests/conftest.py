"""
Global pytest configuration and fixtures
"""
import json
import pytest
from typing import Any, Dict, List, Optional

from zn_api import Settings, ZnClient

API_ROOT = "https://api.test/v1"
TOKEN = "t" * 1200


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(body) if body is not None else ""
        self.text = text
        self.content = text.encode()

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """Stands in for requests.Session. Routes are keyed by (METHOD, path below the API root)."""

    def __init__(self):
        self.headers: Dict[str, str] = {}
        self.routes: Dict[tuple, List[Any]] = {}
        self.calls: List[Dict[str, Any]] = []

    def fork(self) -> "FakeSession":
        """A session with its own headers sharing this one's routes and call log."""
        other = FakeSession()
        other.routes = self.routes
        other.calls = self.calls
        return other

    def add(self, method: str, path: str, *responses):
        self.routes.setdefault((method, path), []).extend(responses)
        return self

    def ok(self, method: str, path: str, *bodies):
        return self.add(method, path, *[FakeResponse(200, b) for b in bodies])

    def request(self, method, url, params=None, headers=None, data=None, files=None, timeout=None):
        path = url[len(API_ROOT):] if url.startswith(API_ROOT) else url
        if files:
            files = {k: (v[0], v[1].read()) for k, v in files.items()}
        self.calls.append({"method": method, "path": path, "params": params, "headers": headers,
                           "body": json.loads(data) if data else None, "files": files,
                           "auth": self.headers.get("Authorization")})
        queue = self.routes.get((method, path))
        if not queue:
            return FakeResponse(404, {"statusCode": 404, "message": f"no route {method} {path}"})
        resp = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(resp, Exception):
            raise resp
        return resp

    def called(self, method: str, path: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["method"] == method and c["path"] == path]


def listing(*records, count: Optional[int] = None):
    return [list(records), {"count": len(records) if count is None else count}]


def rec(rid: str, name: str, **data):
    return {"id": rid, "data": dict(data, name=name)}


@pytest.fixture
def settings() -> Settings:
    return Settings(api_root=API_ROOT, min_token_len=1000, poll_interval=0.0, http_timeout=5)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def client(settings, session) -> ZnClient:
    return ZnClient(settings, TOKEN, session=session)
