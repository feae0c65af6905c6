"""Shared view utilities: request parsing, caller identity and JSON errors."""

import json
import logging
from collections.abc import Mapping

from django.core.exceptions import ObjectDoesNotExist
from django.http import HttpRequest, JsonResponse
from django.utils.datastructures import MultiValueDict

from core.elections_services import ElectionError
from core.models import Student

logger = logging.getLogger(__name__)


class InvalidPayloadError(ValueError):
    pass


def get_username(request: HttpRequest) -> str:
    """Best-effort username of the caller, used as the audit actor."""
    user = getattr(request, "user", None)
    if user is None or not getattr(user, "is_authenticated", False):
        return ""
    try:
        return str(user.get_username() or "").strip()
    except AttributeError:
        return ""


def get_student(request: HttpRequest) -> Student | None:
    """Return the Student linked to the logged-in account, if any."""
    user = getattr(request, "user", None)
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    try:
        return user.student
    except ObjectDoesNotExist:
        return None


def parse_request_data(request: HttpRequest) -> tuple[Mapping[str, object], MultiValueDict]:
    """Return ``(data, files)`` from a JSON body or a form/multipart POST."""
    if request.content_type and request.content_type.startswith("application/json"):
        raw = request.body.decode("utf-8") if request.body else "{}"
        try:
            data = json.loads(raw or "{}")
        except json.JSONDecodeError as exc:
            raise InvalidPayloadError("Request body is not valid JSON.") from exc
        if not isinstance(data, dict):
            raise InvalidPayloadError("Request body must be a JSON object.")
        return data, MultiValueDict()
    return request.POST, request.FILES


def parse_optional_int(value: object, *, field: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidPayloadError(f"{field} must be an integer.")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidPayloadError(f"{field} must be an integer.") from exc


def parse_required_int(value: object, *, field: str) -> int:
    parsed = parse_optional_int(value, field=field)
    if parsed is None:
        raise InvalidPayloadError(f"{field} is required.")
    return parsed


def json_error(message: str, *, status: int = 400) -> JsonResponse:
    return JsonResponse({"ok": False, "error": message}, status=status)


def election_error_response(exc: ElectionError) -> JsonResponse:
    if exc.status_code >= 500:
        logger.error("Election operation failed: %s", exc)
    return json_error(str(exc), status=exc.status_code)


def form_error_response(form) -> JsonResponse:
    errors = {field: [str(m) for m in messages] for field, messages in form.errors.items()}
    return JsonResponse({"ok": False, "error": "Invalid input.", "fields": errors}, status=400)
