"""Minimal PagerDuty REST API connection with a demo proxy and UI."""

from .client import AsyncPagerDutyConnection, PagerDutyConnection
from .exceptions import PagerDutyConnectionError
from .request_options import ConnectionOptions, RequestOptions

__all__ = [
    "AsyncPagerDutyConnection",
    "ConnectionOptions",
    "PagerDutyConnection",
    "PagerDutyConnectionError",
    "RequestOptions",
]

__version__ = "0.1.0"
