"""
Shared-secret retrieval, keyed by parameter path
(e.g. /forms/council-a/test/ThirdPartySharedSecret).

Two backends:
- EnvSecretStore: path -> env var (FORMS_COUNCIL_A_TEST_THIRDPARTYSHAREDSECRET)
- HttpSecretStore: GET {SECRET_HTTP_URL}?name=<path> -> {"value": "..."}
"""
import os
import re
from typing import Mapping, Optional

import httpx

from directdebit.core.errors import DependencyError
from directdebit.observability.logging import log, log_error
from directdebit.settings import settings

_ENV_SANITIZE_RE = re.compile(r"[^A-Z0-9]+")


def env_var_for_path(path: str) -> str:
    return _ENV_SANITIZE_RE.sub("_", path.upper()).strip("_")


class SecretStore:
    def get_secret(self, path: str) -> str:
        raise NotImplementedError


class EnvSecretStore(SecretStore):
    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = environ if environ is not None else os.environ

    def get_secret(self, path: str) -> str:
        name = env_var_for_path(path)
        value = self._environ.get(name, "")
        if not value:
            log(event="secret_missing", path=path, envVar=name)
            raise DependencyError("shared secret unavailable")
        return value


class HttpSecretStore(SecretStore):
    def __init__(
        self,
        url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        self._url = url or settings.SECRET_HTTP_URL
        self._token = token if token is not None else settings.SECRET_HTTP_TOKEN
        self._timeout = float(timeout or settings.SECRET_TIMEOUT_SEC)
        self._client = client

    def _fetch(self, client: httpx.Client, path: str) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        return client.get(self._url, params={"name": path, "withDecryption": "true"}, headers=headers)

    def get_secret(self, path: str) -> str:
        if not self._url:
            raise DependencyError("secret store is not configured")
        try:
            if self._client is not None:
                resp = self._fetch(self._client, path)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    resp = self._fetch(client, path)
        except httpx.HTTPError as e:
            log_error("secret_fetch_exception", e, path=path)
            raise DependencyError("secret store unavailable") from e

        if resp.status_code != 200:
            log(event="secret_fetch_failed", path=path, statusCode=int(resp.status_code))
            raise DependencyError("secret store unavailable")

        try:
            value = (resp.json() or {}).get("value") or ""
        except ValueError as e:
            raise DependencyError("secret store returned an invalid response") from e
        if not value:
            log(event="secret_missing", path=path)
            raise DependencyError("shared secret unavailable")
        return str(value)


def build_secret_store() -> SecretStore:
    if settings.SECRET_BACKEND == "http":
        return HttpSecretStore()
    return EnvSecretStore()
