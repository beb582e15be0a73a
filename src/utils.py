"""Utility functions for the CloudStack cluster operator."""

import datetime
import hashlib
import re
from typing import Any

from kubernetes.client import ApiException

from models import (
    AmbiguousMatchError,
    ErrorKind,
    NetworkResolutionError,
    ResourceNotFoundError,
)

# Lower-cased substrings of remote error text, checked in order
_ERROR_TEXT_RULES: tuple[tuple[str, ErrorKind], ...] = (
    ("already exists", ErrorKind.ALREADY_EXISTS),
    ("there is already", ErrorKind.ALREADY_EXISTS),
    ("no match found", ErrorKind.NOT_FOUND),
    ("no load balancer rule found", ErrorKind.NOT_FOUND),
)


def classify_error(error: BaseException) -> ErrorKind:
    """Map a failed call to the outcome the reconcile logic branches on.

    Typed operator exceptions are classified by type, Kubernetes API errors
    by HTTP status, and everything else by matching the error text against
    a fixed set of substrings. Unmatched errors are FATAL.

    An aggregated NetworkResolutionError is NOT_FOUND only if every one of
    its parts is; otherwise it is FATAL.
    """
    if isinstance(error, NetworkResolutionError):
        kinds = {classify_error(e) for e in error.errors}
        if kinds == {ErrorKind.NOT_FOUND}:
            return ErrorKind.NOT_FOUND
        return ErrorKind.FATAL
    if isinstance(error, AmbiguousMatchError):
        return ErrorKind.AMBIGUOUS
    if isinstance(error, ResourceNotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(error, ApiException):
        if error.status == 409:
            return ErrorKind.ALREADY_EXISTS
        if error.status == 404:
            return ErrorKind.NOT_FOUND

    text = str(error).lower()
    for needle, kind in _ERROR_TEXT_RULES:
        if needle in text:
            return kind
    return ErrorKind.FATAL


def sanitize_name(name: str) -> str:
    """Convert a name to a DNS-1123 safe label.

    Replaces dots and underscores with hyphens, converts to lowercase,
    and removes any characters that aren't alphanumeric or hyphens.

    Example: 'My_Cluster.Example.COM' -> 'my-cluster-example-com'
    """
    sanitized = name.replace(".", "-").replace("_", "-").lower()
    sanitized = re.sub(r"[^a-z0-9-]", "", sanitized)
    sanitized = re.sub(r"-+", "-", sanitized)  # collapse multiple hyphens
    return sanitized.strip("-")


def failure_domain_hashed_name(fd_name: str, cluster_name: str) -> str:
    """Generate the object name of a failure domain.

    The name is stable for a (failure domain, cluster) pair so the same
    object is found again on every reconcile.

    Example: ('zone-a', 'my-cluster') -> 'my-cluster-<10 hex chars>'
    """
    digest = hashlib.sha256(f"{fd_name}/{cluster_name}".encode()).hexdigest()
    prefix = sanitize_name(cluster_name)[:52].strip("-")
    return f"{prefix}-{digest[:10]}" if prefix else digest[:10]


def scoping_params(account: str, domain_id: str) -> dict[str, str]:
    """Build account/domain parameters, leaving out empty values."""
    params: dict[str, str] = {}
    if account:
        params["account"] = account
    if domain_id:
        params["domainid"] = domain_id
    return params


def now_iso() -> str:
    """Return current UTC time in ISO format."""
    return datetime.datetime.now(datetime.UTC).isoformat()


def set_condition(
    status: dict[str, Any],
    condition_type: str,
    condition_status: str,
    reason: str = "",
    message: str = "",
) -> None:
    """Set or update a condition in the status conditions list."""
    conditions: list[dict[str, str]] = status.setdefault("conditions", [])

    for condition in conditions:
        if condition["type"] == condition_type:
            if condition["status"] != condition_status:
                condition["status"] = condition_status
                condition["lastTransitionTime"] = now_iso()
            condition["reason"] = reason
            condition["message"] = message
            return

    conditions.append(
        {
            "type": condition_type,
            "status": condition_status,
            "reason": reason,
            "message": message,
            "lastTransitionTime": now_iso(),
        }
    )
