"""Load test configuration models."""

from __future__ import annotations

from enum import Enum
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from common.utils import detect_content_type, parse_headers


class ConfigValidationError(ValueError):
    """Raised when a test configuration cannot be run."""


class HttpMethod(str, Enum):
    """HTTP methods supported by the load tester."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class CustomHeader(BaseModel):
    """A single request header."""
    model_config = ConfigDict(frozen=True)

    key: str
    value: str = ""


class FormField(BaseModel):
    """Field of a multipart/form-data payload."""
    model_config = ConfigDict(frozen=True)

    name: str
    value: str = ""
    # Set for file fields: absolute path and original filename
    file_path: Optional[str] = None
    file_name: Optional[str] = None


class TestConfig(BaseModel):
    """Configuration for a single load test run.

    Read-only once built; sent verbatim to the engine with
    ``model_dump(mode="json")``.
    """
    __test__ = False  # not a pytest test class

    model_config = ConfigDict(frozen=True)

    url: str = Field(default="", description="Target URL")
    method: HttpMethod = Field(default=HttpMethod.GET)
    num_requests: int = Field(default=100, ge=1, le=100000)
    concurrency: int = Field(default=50, ge=1, le=1000)
    use_http2: bool = Field(default=False, description="HTTP/2 instead of HTTP/1.1")
    headers: tuple[CustomHeader, ...] = Field(default_factory=tuple)

    # Payload: raw body or multipart fields (fields win when both are set)
    body: Optional[str] = None
    payload_content_type: Optional[str] = None
    form_fields: Optional[tuple[FormField, ...]] = None

    follow_redirects: bool = True
    timeout_secs: float = Field(default=20.0, ge=0, description="0 means infinite")
    rate_limit: float = Field(default=0.0, ge=0, description="QPS per worker, 0 means no limit")
    randomize_user_agent: bool = False
    randomize_headers: bool = False
    add_cache_buster: bool = False
    disable_keep_alive: bool = False
    worker_threads: int = Field(default=0, ge=0, description="0 means all CPU cores")
    proxy_url: str = ""

    @field_validator("headers")
    @classmethod
    def drop_blank_headers(cls, v):
        """Headers without a name are never sent."""
        return tuple(h for h in v if h.key.strip() != "")

    @model_validator(mode="before")
    @classmethod
    def fill_content_type(cls, data):
        """Detect the payload content type from the body when not given."""
        if isinstance(data, dict):
            body = data.get("body")
            if isinstance(body, str) and body.strip() and not data.get("payload_content_type"):
                data = {**data, "payload_content_type": detect_content_type(body)}
        return data

    @classmethod
    def from_header_text(cls, headers_text: str, **kwargs) -> "TestConfig":
        """Build a config with headers given in ``Name: value`` text form."""
        headers = [CustomHeader(key=k, value=v) for k, v in parse_headers(headers_text)]
        return cls(headers=tuple(headers), **kwargs)

    def validate_target(self) -> None:
        """Raise ConfigValidationError if the target URL cannot be run."""
        validate_target_url(self.url)

    def to_engine_payload(self) -> dict:
        return self.model_dump(mode="json")


def validate_target_url(url: str) -> None:
    """Check that a URL is a non-empty http(s) URL with a host."""
    if not url or not url.strip():
        raise ConfigValidationError("Please enter a URL")

    try:
        parsed = urlparse(url.strip())
    except ValueError as e:
        raise ConfigValidationError(f"Invalid URL '{url}': {e}")

    if parsed.scheme not in ("http", "https"):
        raise ConfigValidationError(
            f"URL must use http or https scheme, got: {parsed.scheme or 'none'}"
        )
    if not parsed.hostname:
        raise ConfigValidationError(f"Invalid URL '{url}': missing host")
