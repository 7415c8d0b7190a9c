# zn_api.py
#
# ZeroNorth REST plumbing shared by the runner
#   - Settings: env (.env via python-dotenv) + CLI overrides
#   - Credential: API_KEY value, or path to a key file holding only the token
#   - ZnClient: requests.Session with Accept/Authorization headers
#   - Error taxonomy + list envelope parsing ([records, {count}])
#
# pip install: requests python-dotenv

import os, json, logging
from dataclasses import dataclass, replace
from typing import Dict, Any, Optional, List, Tuple
from urllib.parse import urljoin
import requests
from dotenv import load_dotenv

log = logging.getLogger("zn.api")

DEFAULT_API_ROOT = "https://api.zeronorth.io/v1"
DOC_FORMAT = "application/json"


# ===== Errors
class ZnError(RuntimeError):
    pass

class CredentialError(ZnError):
    pass

class NotFound(ZnError):
    pass

class AmbiguousMatch(ZnError):
    def __init__(self, name: str, candidates: List[Any], message: Optional[str] = None):
        self.name = name; self.candidates = list(candidates)
        listing = ", ".join(f"{c.id} '{c.name}'" for c in self.candidates)
        super().__init__(message or f"Found {len(self.candidates)} matches for the name '{name}': {listing}")

class TransportError(ZnError):
    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        self.status = status; self.body = body
        super().__init__(message if status is None else f"{message} (HTTP {status}): {(body or '')[:400]}")

class CreateFailed(TransportError):
    pass

class ProtocolError(ZnError):
    pass

class PollTimeout(ZnError):
    pass


# ===== Config / Flags
@dataclass(frozen=True)
class Settings:
    api_root: str = DEFAULT_API_ROOT
    min_token_len: int = 1000
    poll_interval: float = 10.0
    poll_timeout: Optional[float] = None
    http_timeout: float = 120.0
    debug: bool = False

    def override(self, **kw) -> "Settings":
        kw = {k: v for k, v in kw.items() if v is not None}
        if "api_root" in kw: kw["api_root"] = kw["api_root"].rstrip("/")
        return replace(self, **kw)

def _env_num(env: Dict[str, str], key: str, default: str, cast=float):
    raw = env.get(key) or default
    try:
        return cast(raw)
    except ValueError as e:
        raise ZnError(f"{key} must be a number, got '{raw}'.") from e

def load_settings(env: Optional[Dict[str, str]] = None) -> Settings:
    if env is None:
        load_dotenv(); env = dict(os.environ)
    return Settings(
        api_root=(env.get("ZN_API_ROOT") or DEFAULT_API_ROOT).rstrip("/"),
        min_token_len=_env_num(env, "ZN_MIN_TOKEN_LEN", "1000", int),
        poll_interval=_env_num(env, "ZN_POLL_INTERVAL", "10"),
        poll_timeout=_env_num(env, "ZN_POLL_TIMEOUT", "") if env.get("ZN_POLL_TIMEOUT") else None,
        http_timeout=_env_num(env, "ZN_HTTP_TIMEOUT", "120"),
        debug=env.get("ZN_DEBUG", "0").lower() in ("1","true","yes"),
    )


# ===== Credential
def read_token(value: Optional[str], key_file: Optional[str] = None, min_len: int = 1000) -> str:
    """Token from --key-file, else API_KEY (a token, or a readable path to one)."""
    if key_file:
        try:
            with open(key_file, "r", encoding="utf-8") as f: token = f.read()
        except OSError as e:
            raise CredentialError(f"Can't read key file '{key_file}': {e}") from e
    elif value:
        token = value
        if os.path.isfile(value) and os.access(value, os.R_OK):
            with open(value, "r", encoding="utf-8") as f: token = f.read()
    else:
        raise CredentialError("No API key provided! Set API_KEY or pass --key-file.")
    token = token.strip()
    if len(token) < min_len:
        raise CredentialError(f"The API token seems too short at {len(token)} bytes.")
    log.info("API_KEY read in. %d bytes.", len(token))
    return token


# ===== Envelope helpers
def record_name(rec: Dict[str, Any]) -> Optional[str]:
    data = rec.get("data") if isinstance(rec.get("data"), dict) else {}
    return data.get("name") or rec.get("name")

def parse_list(obj: Any) -> Tuple[List[Dict[str, Any]], int]:
    """[records, {"count": n}] -> (records, count). Anything else is a ProtocolError."""
    if not isinstance(obj, list) or len(obj) != 2 or not isinstance(obj[0], list) or not isinstance(obj[1], dict):
        raise ProtocolError(f"Unexpected list response shape: {json.dumps(obj)[:400]}")
    records = [r for r in obj[0] if isinstance(r, dict)]
    count = obj[1].get("count", obj[1].get("totalCount"))
    # count only feeds log lines; a missing or odd one falls back to the page size
    if isinstance(count, bool) or not isinstance(count, int): count = len(records)
    return records, count

def _error_status(obj: Any) -> Optional[int]:
    if not isinstance(obj, dict): return None
    for k in ("statusCode", "status"):
        v = obj.get(k)
        if isinstance(v, int) and v > 299: return v
    return None


# ===== HTTP
class ZnClient:
    """One account's view of the API. The token is only ever held here."""

    def __init__(self, settings: Settings, token: str, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": DOC_FORMAT, "Authorization": token})

    def url(self, path: str) -> str:
        return path if path.startswith(("http://","https://")) else urljoin(self.settings.api_root + "/", path.lstrip("/"))

    def request(self, method: str, path: str, params=None, body=None, files=None) -> Any:
        url = self.url(path)
        headers = {"Content-Type": DOC_FORMAT} if body is not None else None
        log.debug("%s %s params=%s", method, url, params)
        try:
            r = self.session.request(method, url, params=params, headers=headers,
                                     data=json.dumps(body) if body is not None else None,
                                     files=files, timeout=self.settings.http_timeout)
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        if r.status_code < 200 or r.status_code > 299:
            raise TransportError(f"{method} {url} failed", r.status_code, r.text)
        if not r.content: return None
        try:
            obj = r.json()
        except ValueError as e:
            raise ProtocolError(f"{method} {url} returned non-JSON body: {r.text[:400]}") from e
        err = _error_status(obj)
        if err:
            raise TransportError(f"{method} {url} returned an error response", err, r.text)
        return obj

    def get(self, path: str, params=None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, body=None, files=None) -> Any:
        return self.request("POST", path, body=body, files=files)

    def put(self, path: str, body: Dict[str, Any]) -> Any:
        return self.request("PUT", path, body=body)

    def me(self) -> Dict[str, Any]:
        obj = self.get("/accounts/me")
        if not isinstance(obj, dict) or not ((obj.get("customer") or {}).get("data") or {}).get("name"):
            raise ProtocolError("Unable to retrieve customer name from /accounts/me.")
        return obj
