"""
DSM session adapter — login, request signing, and response unwrapping via httpx.

Adapter layer — implements the SessionAuthenticator port and provides the
request plumbing used by the catalog and uploader adapters.

Every DSM web API call is addressed by query parameters:

    {base}/{path}?api=SYNO.X&version=N&method=m&<params>&_sid=<token>

and answers with the same envelope:

    {"success": true,  "data": {...}}
    {"success": false, "error": {"code": 105, "errors": ...}}

Each call is a single attempt. All HTTP errors are captured into Result
failures — no exceptions leak to the business logic layer.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any

import httpx
import structlog
from railway import ErrorCode, FailureDescription
from railway.result import Result

log = structlog.get_logger()

DEFAULT_API_ROOT = "/webapi"


class RemoteApiError(Exception):
    """
    The DSM answered success=false.

    `code` is the vendor error number; `errors` is whatever detail the DSM
    attached, kept untyped.
    """

    def __init__(self, code: int | None, errors: Any = None) -> None:
        super().__init__(f"DSM API error code {code}: {errors!r}")
        self.code = code
        self.errors = errors


class ReadWriteLock:
    """
    Many concurrent readers or one writer.

    Writers wait for in-flight readers to drain and block new readers while
    waiting, so a login is never starved by request builders.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writing or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


@dataclass(frozen=True, slots=True)
class ApiRequest:
    """
    One DSM API call, before signing.

    `api`, `version`, `path` and `method` are always sent; `params` holds
    the optional parameters in insertion order. Values are validated as
    non-empty when the request is built, since the DSM treats an empty
    parameter like a missing one.
    """

    api: str
    version: int
    path: str
    method: str
    params: tuple[tuple[str, str], ...] = ()

    def with_param(self, key: str, value: str) -> ApiRequest:
        """Return a copy with `key` set to `value` (replacing any earlier value)."""
        kept = tuple((k, v) for k, v in self.params if k != key)
        return replace(self, params=(*kept, (key, value)))


def api_request(api: str, version: int, path: str, method: str, **params: str) -> ApiRequest:
    request = ApiRequest(api=api, version=version, path=path, method=method)
    for key, value in params.items():
        request = request.with_param(key, value)
    return request


def _normalize_base_url(base_url: str) -> str:
    url = httpx.URL(base_url)
    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"bad base url {base_url!r}: expected http(s)://host[:port][/path]")
    if url.path in ("", "/"):
        url = url.copy_with(path=DEFAULT_API_ROOT)
    return str(url).rstrip("/")


class DsmSession:
    """
    Authenticated session against one DSM.

    Owns the base URL and the session token (`sid`). The token is read by
    every request builder and written only by login; a ReadWriteLock keeps
    those accesses consistent if several threads share the session.

    TLS verification is off by default: appliances commonly serve a
    self-signed certificate until the first sync has happened.
    """

    def __init__(self, base_url: str, timeout: float = 60, verify_tls: bool = False) -> None:
        self._base_url = _normalize_base_url(base_url)
        self._timeout = timeout
        self._verify_tls = verify_tls
        self._sid: str | None = None
        self._sid_lock = ReadWriteLock()

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def sid(self) -> str | None:
        with self._sid_lock.read():
            return self._sid

    def login(self, account: str, password: str) -> Result[str]:
        """
        Authenticate and store the returned session token.

        Calls GET auth.cgi?api=SYNO.API.Auth&version=3&method=login
        with account, passwd and format=sid. Any failure is reported as
        AUTHENTICATION_ERROR (the original cause is kept as the exception)
        and leaves the previously stored token untouched.
        """
        request = api_request(
            "SYNO.API.Auth", 3, "auth.cgi", "login",
            account=account, passwd=password, format="sid",
        )
        return (
            self.build_request(request)
            .flat_map(self.execute)
            .flat_map(_extract_sid)
            .map_failure(
                lambda err: FailureDescription(
                    ErrorCode.AUTHENTICATION_ERROR,
                    f"failed to login as {account!r}. {err.message}",
                    err.exception,
                )
            )
            .peek(self._store_sid)
            .peek(lambda _: log.info("session.login_succeeded", account=account))
        )

    def _store_sid(self, sid: str) -> None:
        with self._sid_lock.write():
            self._sid = sid

    def build_request(
        self,
        request: ApiRequest,
        http_method: str = "GET",
        data: dict[str, str] | None = None,
        files: dict[str, tuple[str, bytes, str]] | None = None,
    ) -> Result[httpx.Request]:
        """
        Sign an ApiRequest into an httpx.Request.

        Merges api/version/method, the caller's params and the current
        session token into the query string. Fails with VALIDATION_ERROR if
        the path is missing or any parameter value is empty.
        """
        if not request.path:
            return Result.failure(ErrorCode.VALIDATION_ERROR, "must supply request path")

        params: dict[str, str] = {
            "api": request.api,
            "version": str(request.version),
            "method": request.method,
        }
        params.update(request.params)

        sid = self.sid
        if sid:
            params["_sid"] = sid
        else:
            log.debug("session.unauthenticated_request", api=request.api, method=request.method)

        for key, value in params.items():
            if not value:
                return Result.failure(
                    ErrorCode.VALIDATION_ERROR, f"cannot have empty param {key!r}"
                )

        url = f"{self._base_url}/{request.path}"
        return Result.from_computation(
            lambda: httpx.Request(http_method, url, params=params, data=data, files=files),
            ErrorCode.VALIDATION_ERROR,
            f"failed to build {request.api}.{request.method} request",
        )

    def execute(self, request: httpx.Request, expect_data: bool = True) -> Result[Any]:
        """
        Send a signed request and unwrap the DSM response envelope.

        Returns the envelope's `data` on success. success=false becomes
        REMOTE_API_ERROR wrapping a RemoteApiError; a body that is not an
        envelope, or a missing `data` when one was expected, becomes
        PROTOCOL_ERROR; a failed HTTP exchange becomes TRANSPORT_ERROR.
        """
        return (
            Result.from_computation(
                lambda: self._send(request),
                ErrorCode.TRANSPORT_ERROR,
                f"{request.method} {request.url.path} failed",
            )
            .flat_map(_parse_envelope)
            .flat_map(lambda envelope: _unwrap_envelope(envelope, expect_data))
        )

    def _send(self, request: httpx.Request) -> httpx.Response:
        # The query string may carry the password, so the URL stays out of errors.
        with httpx.Client(timeout=self._timeout, verify=self._verify_tls) as client:
            response = client.send(request)
            if response.is_error:
                raise httpx.HTTPStatusError(
                    f"HTTP {response.status_code} from {request.url.path}",
                    request=request,
                    response=response,
                )
            log.debug(
                "session.response",
                path=request.url.path,
                status=response.status_code,
                size_bytes=len(response.content),
            )
            return response


def _parse_envelope(response: httpx.Response) -> Result[dict[str, Any]]:
    return (
        Result.from_computation(
            response.json,
            ErrorCode.PROTOCOL_ERROR,
            "response body is not valid JSON",
        )
        .ensure(
            lambda body: isinstance(body, dict) and isinstance(body.get("success"), bool),
            ErrorCode.PROTOCOL_ERROR,
            "response is not a DSM envelope",
        )
    )


def _unwrap_envelope(envelope: dict[str, Any], expect_data: bool) -> Result[Any]:
    if not envelope["success"]:
        error = envelope.get("error")
        if not isinstance(error, dict):
            error = {}
        code = error.get("code")
        return Result.failure(
            ErrorCode.REMOTE_API_ERROR,
            f"did not get success. error code {code}",
            RemoteApiError(code, error.get("errors")),
        )

    data = envelope.get("data")
    if data is not None:
        return Result.success(data)
    if expect_data:
        return Result.failure(ErrorCode.PROTOCOL_ERROR, "got no data but expected some")
    return Result.success({})


def _extract_sid(data: Any) -> Result[str]:
    sid = data.get("sid") if isinstance(data, dict) else None
    if not isinstance(sid, str) or not sid:
        return Result.failure(ErrorCode.PROTOCOL_ERROR, "login response has no sid")
    return Result.success(sid)
