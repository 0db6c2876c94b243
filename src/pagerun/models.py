"""Request and response models for the proxy route."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .request_options import RequestOptions


class PagerunModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)


class ProxyOptions(PagerunModel):
    """Options forwarded to the connection, in the browser's camelCase shape."""

    query_params: dict[str, Any] | None = Field(default=None, alias="queryParams")
    headers: dict[str, str] | None = None
    body: Any = None

    def to_request_options(self) -> RequestOptions:
        return RequestOptions(query_params=self.query_params, headers=self.headers, body=self.body)


class ErrorResponse(PagerunModel):
    error: str
