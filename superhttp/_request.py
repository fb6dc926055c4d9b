from __future__ import annotations

import ssl
from dataclasses import dataclass, field
from typing import Any

import httpx

_MIME_TYPES = {
    "html": "text/html",
    "text": "text/plain",
    "json": "application/json",
    "xml": "application/xml",
    "form": "application/x-www-form-urlencoded",
    "urlencoded": "application/x-www-form-urlencoded",
}


def mime_type(value: str) -> str:
    return _MIME_TYPES.get(value, value)


@dataclass
class Request:
    """Everything needed to send one request with httpx.

    None of this is interpreted here beyond choosing which httpx argument
    carries the body.
    """

    method: str
    url: str
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    params: list[tuple[str, str]] = field(default_factory=list)
    body: Any = None
    content: str | bytes | None = None
    fields: dict[str, Any] = field(default_factory=dict)
    files: list[tuple[str, Any]] = field(default_factory=list)
    auth: httpx.Auth | tuple[str, str] | None = None
    timeout: httpx.Timeout = field(default_factory=lambda: httpx.Timeout(5.0))
    max_redirects: int = 0
    retries: int = 0
    verify: bool = True
    ssl_context: ssl.SSLContext | None = None

    def tls(self) -> ssl.SSLContext:
        if self.ssl_context is None:
            self.ssl_context = ssl.create_default_context()
        return self.ssl_context

    @property
    def is_form(self) -> bool:
        content_type = self.headers.get("content-type", "")
        return content_type.split(";")[0].strip() == _MIME_TYPES["form"]

    def client(self) -> httpx.AsyncClient:
        verify: ssl.SSLContext | bool = (
            (self.ssl_context or True) if self.verify else False
        )
        return httpx.AsyncClient(
            transport=httpx.AsyncHTTPTransport(verify=verify, retries=self.retries),
            auth=self.auth,
            timeout=self.timeout,
            follow_redirects=self.max_redirects > 0,
            max_redirects=self.max_redirects,
        )

    def build(self, client: httpx.AsyncClient) -> httpx.Request:
        kwargs: dict[str, Any] = {}
        if self.files or self.fields:
            kwargs["data"] = self.fields
            if self.files:
                kwargs["files"] = self.files
        elif isinstance(self.body, dict) and self.is_form:
            kwargs["data"] = self.body
        elif self.body is not None:
            kwargs["json"] = self.body
        elif self.content is not None:
            kwargs["content"] = self.content

        return client.build_request(
            self.method,
            self.url,
            params=self.params or None,
            headers=self.headers,
            **kwargs,
        )
