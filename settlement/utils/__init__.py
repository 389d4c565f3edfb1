from settlement.utils.retry_decorator import is_retryable_http_error, retry_http

__all__ = ["is_retryable_http_error", "retry_http"]
