import json
import asyncio
import aiohttp
import kopf
import kubernetes_asyncio

_ALREADY_EXISTS = "alreadyexists"
_NOT_FOUND = "notfound"
_CONFLICT = "conflict"

# Statuses worth retrying: request timeout, throttling and server side failures.
_TRANSIENT_STATUSES = (408, 429, 500, 502, 503, 504)


class OperatorError(Exception):
    """Base class of all errors raised by the reconciliation engine."""


class NotFoundError(OperatorError):
    """Remote object does not exist."""


class AlreadyExistsError(OperatorError):
    """Remote object exists already (create raced with another writer)."""


class ConflictError(OperatorError):
    """Update carried a stale resource version."""


class ConfigParseError(OperatorError):
    """Operator configuration holds a value that cannot be parsed."""


class RemoteUnavailableError(OperatorError):
    """Transport failure or transient API server error."""


class OwnershipError(OperatorError):
    """Owner reference cannot be set on the target object."""


class UnsupportedVersionError(OperatorError):
    """Cluster version has no matching set of CSI sidecar images."""


def _reason(ex: kubernetes_asyncio.client.ApiException) -> str:
    try:
        err = json.loads(ex.body)
    except (TypeError, ValueError):
        return ""
    if not isinstance(err, dict):
        return ""
    return str(err.get("reason", "")).lower()


def already_exists_error(ex: kubernetes_asyncio.client.ApiException) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    else:
        return _reason(ex) == _ALREADY_EXISTS


def not_found_error(ex: kubernetes_asyncio.client.ApiException) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    else:
        return ex.status == 404 or _reason(ex) == _NOT_FOUND


def translate_api_exception(ex: Exception) -> Exception:
    """Map a client-level exception onto the engine's error taxonomy.

    Exceptions that are neither API nor transport errors are returned as is.
    """
    if isinstance(ex, kubernetes_asyncio.client.ApiException):
        message = f"Kubernetes API error ({ex.status}): {ex.reason}"
        try:
            if ex.body:
                body = json.loads(ex.body)
                if "message" in body:
                    message = f"{message} - {body['message']}"
        except (json.JSONDecodeError, TypeError, AttributeError):
            pass

        if not_found_error(ex):
            return NotFoundError(message)
        if ex.status == 409:
            # 409 is shared by "already exists" and "stale resourceVersion".
            if already_exists_error(ex):
                return AlreadyExistsError(message)
            return ConflictError(message)
        if ex.status in _TRANSIENT_STATUSES or ex.status == 0:
            return RemoteUnavailableError(message)
        return OperatorError(message)

    if isinstance(ex, (aiohttp.ClientError, asyncio.TimeoutError)):
        return RemoteUnavailableError(f"Kubernetes API unreachable: {ex!r}")

    return ex


#: Errors a retry cannot fix; they need a change to the cluster or the config.
PERMANENT_ERRORS = (ConfigParseError, OwnershipError, UnsupportedVersionError)


def convert_error(ex: Exception, delay: float = 30):
    """
    Convert an engine error to a Kopf-friendly exception.

    Args:
        ex: The error to convert
        delay: Seconds kopf waits before retrying temporary errors.

    Raises:
        kopf.TemporaryError or kopf.PermanentError with serializable error details
    """
    if isinstance(ex, kubernetes_asyncio.client.ApiException):
        ex = translate_api_exception(ex)

    if isinstance(ex, PERMANENT_ERRORS):
        raise kopf.PermanentError(str(ex)) from ex
    if isinstance(ex, OperatorError):
        raise kopf.TemporaryError(str(ex), delay=delay) from ex
    raise ex
