"""Network access: HTTP client and retry policy."""

from .http import FormField, HttpClient, HttpReply
from .resilient import RetryPolicy, call_with_retry

__all__ = [
    "FormField",
    "HttpClient",
    "HttpReply",
    "RetryPolicy",
    "call_with_retry",
]
