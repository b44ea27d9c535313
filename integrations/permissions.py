import hmac
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from django.conf import settings
from rest_framework.permissions import BasePermission

from .models import ApiKey

logger = logging.getLogger(__name__)

KEY_HEADERS = ("X-Warehouse-Key", "X-API-Key")


@dataclass(frozen=True)
class WarehouseKey:
    source: str
    prefix: str
    permissions: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def label(self):
        return f"api-key:{self.prefix}"


def key_from_request(request, *, allow_body: bool = False, query_param: Optional[str] = None) -> str:
    for header in KEY_HEADERS:
        value = (request.headers.get(header) or "").strip()
        if value:
            return value
    if query_param:
        value = (request.query_params.get(query_param) or "").strip()
        if value:
            return value
    if allow_body:
        data = request.data
        if isinstance(data, dict) and isinstance(data.get("APIToken"), str):
            return data["APIToken"].strip()
    return ""


def verify_key(raw_key: str, required=()) -> Optional[WarehouseKey]:
    """Shared keys from settings carry every permission; database keys only their own."""
    if not raw_key:
        return None
    for shared in getattr(settings, "WAREHOUSE_API_KEYS", []):
        if hmac.compare_digest(raw_key.encode(), shared.encode()):
            return WarehouseKey(source="env", prefix=raw_key[:8], permissions=("*",))

    api_key = ApiKey.objects.filter(key=ApiKey.hash_key(raw_key)).first()
    if not api_key or not api_key.is_usable:
        return None
    if not api_key.has_permissions(required):
        logger.warning("API key %s lacks permissions %s", api_key.key_prefix, list(required))
        return None
    api_key.mark_used()
    return WarehouseKey(source="db", prefix=api_key.key_prefix, permissions=tuple(api_key.permissions))


def is_staff_user(user) -> bool:
    return bool(
        user
        and user.is_authenticated
        and (user.is_superuser or getattr(user, "role", None) in {"warehouse", "admin"})
    )


class IsWarehouseOrApiKey(BasePermission):
    """Warehouse/admin session or JWT, or a warehouse API key.

    Views tune the key lookup with ``required_key_permissions``,
    ``allow_body_token`` and ``key_query_param``.
    """

    def has_permission(self, request, view):
        return is_staff_user(request.user) or self.has_valid_key(request, view)

    @staticmethod
    def has_valid_key(request, view):
        raw_key = key_from_request(
            request,
            allow_body=getattr(view, "allow_body_token", False),
            query_param=getattr(view, "key_query_param", None),
        )
        warehouse_key = verify_key(raw_key, getattr(view, "required_key_permissions", ()))
        if warehouse_key:
            request.warehouse_key = warehouse_key
            return True
        return False


class ApiKeyOnly(IsWarehouseOrApiKey):
    def has_permission(self, request, view):
        return self.has_valid_key(request, view)


def actor_label(request) -> str:
    user = getattr(request, "user", None)
    if user and user.is_authenticated:
        return user.user_code or user.email
    warehouse_key = getattr(request, "warehouse_key", None)
    if warehouse_key:
        return warehouse_key.label
    return "warehouse"
