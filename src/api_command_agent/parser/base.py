"""Data models for parsed HTTP requests.

The cURL parser and the endpoint tool both produce these models; the
collection tree stores them as leaf records.
"""

import uuid
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class BodyEncoding(str, Enum):
    """Inferred content type of a request body."""

    NONE = "none"
    JSON = "json"
    FORM_URLENCODED = "form-urlencoded"
    MULTIPART_FORM = "form-data"
    PLAIN_TEXT = "plain-text"


class AuthType(str, Enum):
    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"


class KeyValue(BaseModel):
    """A single header or query parameter."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str
    enabled: bool = True


class RequestAuth(BaseModel):
    """Authentication detected in a command."""

    model_config = ConfigDict(frozen=True)

    type: AuthType = AuthType.NONE
    username: str = ""
    password: str = ""
    token: str = ""


class ParsedRequest(BaseModel):
    """An HTTP request description, immutable once parsed."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    method: str = "GET"
    url: str
    headers: tuple[KeyValue, ...] = ()
    query_params: tuple[KeyValue, ...] = ()
    body: str = ""
    body_encoding: BodyEncoding = BodyEncoding.NONE
    auth: RequestAuth = RequestAuth()

    def header(self, name: str) -> str | None:
        """Return the first header value matching ``name``, ignoring case."""
        wanted = name.lower()
        for h in self.headers:
            if h.name.lower() == wanted:
                return h.value
        return None
