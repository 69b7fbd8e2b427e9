# errors.py - error types and classification of failed Frappe API calls
import json
from typing import Any, Dict, Optional

import httpx

AUTH_STATUS_CODES = (401, 403)
AUTH_URL_MARKERS = ("/login", "/auth", "oauth", "frappe.auth")


class FrappeApiError(Exception):
    """Base error for everything that goes wrong talking to Frappe."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 endpoint: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint
        self.details = details

    def to_details(self) -> Dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "endpoint": self.endpoint or "unknown",
            "details": self.details,
        }


class ValidationError(FrappeApiError):
    """Caller arguments are missing or malformed; never sent to the network."""


class AuthenticationError(FrappeApiError):
    pass


class NetworkError(FrappeApiError):
    pass


class RemoteApiError(FrappeApiError):
    pass


class NotFoundError(RemoteApiError):
    pass


class VerificationFailure(FrappeApiError):
    """The create call returned, but the new document could not be confirmed."""


def _credential_presence(credentials) -> Dict[str, bool]:
    presence = getattr(credentials, "presence", None)
    if presence is None:
        return {}
    return presence()


def _request_of(exc: httpx.HTTPError) -> Optional[httpx.Request]:
    try:
        return exc.request
    except RuntimeError:
        return None


def _auth_problem(request: Optional[httpx.Request]) -> Optional[str]:
    """Describe what looks wrong with the credentials of a request, if anything."""
    if request is None:
        return None
    url = str(request.url).lower()
    header = request.headers.get("Authorization")
    if header is None or not header.strip():
        return "API key and secret are missing (no Authorization header was sent)"
    token = header.split(" ", 1)[-1].strip()
    if "None" in token or "undefined" in token or ":" not in token:
        return "API key or secret is missing or malformed"
    if token.startswith(":"):
        return "API key is missing or invalid"
    if token.endswith(":"):
        return "API secret is missing or invalid"
    if any(marker in url for marker in AUTH_URL_MARKERS):
        return "API key or secret is invalid"
    return None


def _parse_server_messages(raw: Any):
    """_server_messages is a JSON list of JSON-encoded message objects."""
    try:
        outer = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(outer, list):
        return [outer]
    parsed = []
    for item in outer:
        try:
            parsed.append(json.loads(item))
        except (TypeError, ValueError):
            parsed.append(item)
    return parsed


def _message_text(message: Any) -> str:
    if isinstance(message, dict):
        return str(message.get("message", message))
    return str(message)


def _response_data(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text}


def classify_response(response: httpx.Response, operation: str, credentials=None,
                      underlying: str = "") -> FrappeApiError:
    status = response.status_code
    try:
        endpoint = str(response.request.url)
    except RuntimeError:
        endpoint = "unknown"
    data = _response_data(response)
    error_cls = NotFoundError if status == 404 else RemoteApiError

    if status in AUTH_STATUS_CODES:
        details = {
            "error": "Authentication Error",
            "status": status,
            "statusText": response.reason_phrase,
            "responseData": data,
        }
        details.update(_credential_presence(credentials))
        return AuthenticationError(
            f"Authentication failed during {operation}. Check API key/secret.",
            status, endpoint, details)

    if isinstance(data, dict):
        if data.get("exception"):
            return error_cls(f"Frappe exception during {operation}: {data['exception']}",
                             status, endpoint, data)
        if data.get("_server_messages"):
            parsed = _parse_server_messages(data["_server_messages"])
            if parsed is None:
                return error_cls(
                    f"Frappe server message during {operation}: {data['_server_messages']}",
                    status, endpoint, {"serverMessages": data["_server_messages"]})
            text = "; ".join(_message_text(m) for m in parsed)
            return error_cls(f"Frappe server message during {operation}: {text}",
                             status, endpoint, {"serverMessages": parsed})
        if data.get("message"):
            return error_cls(f"Frappe API error during {operation}: {data['message']}",
                             status, endpoint, data)

    underlying = underlying or f"HTTP {status} {response.reason_phrase}"
    return error_cls(f"Frappe API error during {operation}: {underlying}",
                     status, endpoint, data)


def classify_error(exc: BaseException, operation: str, credentials=None) -> FrappeApiError:
    """Turn any exception raised around a Frappe call into a FrappeApiError.

    The checks run in a fixed order: missing response (network), 401/403,
    ``exception``, ``_server_messages``, ``message``, then a generic message.
    An authentication status always wins over the body content.
    """
    if isinstance(exc, FrappeApiError):
        return exc

    if isinstance(exc, httpx.HTTPStatusError):
        return classify_response(exc.response, operation, credentials, str(exc))

    if isinstance(exc, httpx.RequestError):
        request = _request_of(exc)
        endpoint = str(request.url) if request is not None else "unknown"
        problem = _auth_problem(request)
        details = {"error": "Network error", "code": type(exc).__name__}
        if problem:
            details.update(_credential_presence(credentials))
            return AuthenticationError(
                f"Authentication failed during {operation}: {problem}. "
                f"Check FRAPPE_API_KEY and FRAPPE_API_SECRET. ({exc})",
                None, endpoint, details)
        return NetworkError(f"Network error during {operation}: {exc}", None, endpoint, details)

    return FrappeApiError(f"Error during {operation}: {exc or 'Unknown error'}",
                          None, "unknown", {"error": type(exc).__name__, "message": str(exc)})
