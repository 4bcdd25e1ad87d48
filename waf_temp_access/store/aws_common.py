"""Shared plumbing for the boto3-backed stores."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, Type

from botocore.exceptions import BotoCoreError, ClientError

from .errors import AuthError, StoreError, TemporaryError

AUTH_ERROR_CODES = (
    "AccessDenied",
    "AccessDeniedException",
    "UnauthorizedOperation",
    "AuthFailure",
    "ExpiredToken",
    "InvalidClientTokenId",
    "UnrecognizedClientException",
)
THROTTLE_ERROR_CODES = (
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "WAFUnavailableEntityException",
    "WAFInternalErrorException",
    "InternalError",
    "ServiceUnavailable",
)


def error_code(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Code", ""))


def error_message(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Message", "")) or str(err)


class AwsStoreMixin:
    """Times each call into Prometheus (if metrics set) and maps botocore errors to StoreError."""

    name: str
    metrics: Any = None
    service_name: str = "unknown"

    def _call(
        self,
        operation: str,
        fn: Callable[..., Dict[str, Any]],
        *,
        special: Optional[Dict[str, Type[StoreError]]] = None,
        **params: Any,
    ) -> Dict[str, Any]:
        start = time.time()
        status_label = "ok"
        try:
            return fn(**params)
        except ClientError as e:
            code = error_code(e)
            status_label = code or "error"
            raise self._map_client_error(e, code, special) from e
        except BotoCoreError as e:
            status_label = "transport"
            raise TemporaryError(str(e)) from e
        finally:
            elapsed = time.time() - start
            if self.metrics:
                self.metrics.store_requests_total.labels(self.service_name, self.name, operation, status_label).inc()
                self.metrics.store_latency_seconds.labels(self.service_name, self.name, operation).observe(elapsed)

    @staticmethod
    def _map_client_error(
        err: ClientError, code: str, special: Optional[Dict[str, Type[StoreError]]]
    ) -> StoreError:
        msg = error_message(err)
        if special and code in special:
            return special[code](msg, code=code)
        if code in AUTH_ERROR_CODES:
            return AuthError(msg, code=code)
        if code in THROTTLE_ERROR_CODES:
            return TemporaryError(msg, code=code)
        return StoreError(msg, code=code)
