"""LGTM API client module."""

from lgtm_reporter.client.client import LgtmClient
from lgtm_reporter.client.errors import LgtmApiError

__all__ = ["LgtmApiError", "LgtmClient"]
