from __future__ import annotations

import json

from urllib.parse import urlencode
from typing import Literal, Any, overload
from enum import Enum

from ansible.module_utils.urls import fetch_url
from ansible.module_utils.basic import AnsibleModule

from .portainer_fields import PortainerFields as PF


class PortainerApiError(Exception):
    def __init__(
        self,
        message,
        status: int | None = None,
        body: Any | None = None,
        url: str | None = None,
        method: str | None = None,
        data: dict | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.body = body
        self.url = url
        self.method = method
        self.data = data

    def describe(self) -> str:
        """Structured API error body when there is one, the raw error otherwise."""
        if self.body:
            return self.body if isinstance(self.body, str) else json.dumps(self.body)
        return str(self)


class RequestMethod(Enum):
    GET = "GET"
    PUT = "PUT"
    POST = "POST"
    DELETE = "DELETE"


def _decode_body(raw: Any) -> Any:
    """Portainer error bodies are JSON ({"message": ..., "details": ...}) most of the time."""
    if not raw:
        return raw
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(raw)
    except ValueError:
        return raw


class PortainerClient:

    class exc:
        PortainerApiError = PortainerApiError

    ARGSPEC = dict(
        portainer_url=dict(type="str", required=True),
        portainer_username=dict(type="str"),
        portainer_password=dict(type="str", no_log=True),
        portainer_token=dict(type="str", no_log=True),
        validate_certs=dict(type="bool", default=True),
        timeout=dict(type="int", default=30),
    )

    def __init__(self, module: AnsibleModule):
        self.module = module

        self.portainer_url = module.params["portainer_url"].rstrip("/")
        self.portainer_token = module.params.get("portainer_token")
        self.timeout = module.params["timeout"]

        self.headers = {
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
        }

        if self.portainer_token:
            self.headers["X-API-Key"] = self.portainer_token

    @property
    def authenticated(self) -> bool:
        return "Authorization" in self.headers or "X-API-Key" in self.headers

    def authenticate(self, username: str, password: str) -> None:
        """
        Log in with username/password and attach the returned JWT to every later request.

        The token is kept for the lifetime of the client; Portainer tokens are not refreshed.
        """
        response = self.post(
            "/auth",
            data={PF.AUTH_USERNAME: username, PF.AUTH_PASSWORD: password},
        )

        token = response.get(PF.AUTH_JWT) if isinstance(response, dict) else None
        if not token:
            raise PortainerApiError(
                "Authentication response did not contain a token",
                body=response,
                url=f"{self.portainer_url}/api/auth",
                method=RequestMethod.POST.value,
            )

        self.headers["Authorization"] = f"Bearer {token}"

    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        return self._make_request(RequestMethod.GET, endpoint, params=params)

    def post(
        self,
        endpoint: str,
        data: dict[str, Any] | None = None,
        params: dict | None = None,
    ) -> Any:
        return self._make_request(RequestMethod.POST, endpoint=endpoint, data=data, params=params)

    def put(
        self,
        endpoint: str,
        data: dict[str, Any] | None = None,
        params: dict | None = None,
    ) -> Any:
        return self._make_request(RequestMethod.PUT, endpoint=endpoint, data=data, params=params)

    def delete(self, endpoint: str, params: dict | None = None):
        return self._make_request(RequestMethod.DELETE, endpoint=endpoint, params=params)

    @overload
    def _make_request(
        self,
        method: RequestMethod,
        endpoint: str,
        return_info: Literal[False] = False,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> Any: ...

    @overload
    def _make_request(
        self,
        method: RequestMethod,
        endpoint: str,
        return_info: Literal[True],
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]: ...

    def _make_request(
        self,
        method: RequestMethod,
        endpoint: str,
        return_info: bool = False,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> Any:
        """Make HTTP request to Portainer API"""
        url = f"{self.portainer_url}/api{endpoint}"

        if params:
            # Convert booleans to lowercase strings
            params_converted = {
                k: str(v).lower() if isinstance(v, bool) else v for k, v in params.items()
            }
            url = f"{url}?{urlencode(params_converted)}"

        _data = json.dumps(data) if data is not None else None

        resp, info = fetch_url(
            self.module,
            url,
            method=method.value,
            headers=self.headers,
            data=_data,
            force=True,
            timeout=self.timeout,
        )

        if return_info:
            return info

        if info["status"] not in [200, 201, 204]:
            raise PortainerApiError(
                f"{info['msg']}",
                status=info["status"],
                body=_decode_body(info.get("body", "")),
                url=url,
                method=method.value,
                data=data,
            )

        if resp:
            body = resp.read()

            if body:
                return json.loads(body)
        return None

    def ping(self):
        info = self._make_request(RequestMethod.GET, "/system/status", return_info=True)

        if info["status"] not in [200]:
            self.module.warn("Cannot reach portainer - check IP and port.")
            self.module.fail_json(
                msg=f"Portainer server not reachable: {info['msg']}",
                status=info["status"],
                body=info.get("body", ""),
            )
