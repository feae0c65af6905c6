from collections.abc import Callable, Collection
from functools import wraps
from typing import ParamSpec, TypeVar

from django.http import HttpRequest, HttpResponse, JsonResponse

# Institution administrators and election coordinators.
CIVICA_MANAGE_ELECTIONS = "core.manage_elections"
# Wider staff access to published results.
CIVICA_VIEW_ELECTION_RESULTS = "core.view_election_results"

ELECTION_RESULTS_PERMISSIONS: frozenset[str] = frozenset(
    {
        CIVICA_MANAGE_ELECTIONS,
        CIVICA_VIEW_ELECTION_RESULTS,
    }
)


P = ParamSpec("P")
R = TypeVar("R", bound=HttpResponse)


def json_permission_required(permission: str) -> Callable[[Callable[P, R]], Callable[P, HttpResponse]]:
    """Decorator for JSON endpoints that require a single Django permission.

    This returns a JSON 403 response instead of redirecting or rendering HTML.
    Authentication is enforced by LoginRequiredMiddleware.
    """
    return json_permission_required_any({permission})


def json_permission_required_any(permissions: Collection[str]) -> Callable[[Callable[P, R]], Callable[P, HttpResponse]]:
    """Decorator for JSON endpoints that accept any one of several permissions."""

    perms = tuple(sorted(permissions))
    if not perms:
        raise ValueError("permissions must not be empty")

    def decorator(view_func: Callable[P, R]) -> Callable[P, HttpResponse]:
        @wraps(view_func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> HttpResponse:
            request = args[0] if args else None
            if not isinstance(request, HttpRequest):
                return JsonResponse({"ok": False, "error": "Permission denied."}, status=403)

            if not _has_any_permission(user=request.user, permissions=perms):
                return JsonResponse({"ok": False, "error": "Permission denied."}, status=403)

            return view_func(*args, **kwargs)

        return wrapper

    return decorator


def can_manage_elections(user: object) -> bool:
    return _has_permission(user=user, permission=CIVICA_MANAGE_ELECTIONS)


def can_view_election_results(user: object) -> bool:
    return _has_any_permission(user=user, permissions=ELECTION_RESULTS_PERMISSIONS)


def _has_permission(*, user: object, permission: str) -> bool:
    try:
        return bool(user.has_perm(permission))
    except AttributeError:
        # Tests and template helpers may pass user-like stubs.
        return False


def _has_any_permission(*, user: object, permissions: Collection[str]) -> bool:
    for perm in permissions:
        if _has_permission(user=user, permission=perm):
            return True
    return False
