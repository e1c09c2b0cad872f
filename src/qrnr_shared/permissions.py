"""
Route access policies.

Every API endpoint is listed in :data:`ROUTE_POLICIES` with the access level
it requires. The gate in :mod:`qrnr_shared.jwt_middleware` looks the policy up
once per request, before the view runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from qrnr_shared.jwt_service import REALM_ADMIN, REALM_CUST, REALM_SUPER


class Access(str, Enum):
    PUBLIC = "public"
    # Customer token accepted but not required
    CUSTOMER_OPTIONAL = "customer_optional"
    CUSTOMER = "customer"
    # Any realm with a valid token
    AUTHENTICATED = "authenticated"
    # Admin or super, not bound to a store
    STAFF = "staff"
    # Admin or super, resolved to one effective store
    STORE_STAFF = "store_staff"
    SUPER = "super"


# Realms allowed per access level; the order is the cookie lookup order.
ACCESS_REALMS: dict[Access, tuple[str, ...]] = {
    Access.PUBLIC: (),
    Access.CUSTOMER_OPTIONAL: (REALM_CUST,),
    Access.CUSTOMER: (REALM_CUST,),
    Access.AUTHENTICATED: (REALM_SUPER, REALM_ADMIN, REALM_CUST),
    Access.STAFF: (REALM_ADMIN, REALM_SUPER),
    Access.STORE_STAFF: (REALM_ADMIN, REALM_SUPER),
    Access.SUPER: (REALM_SUPER,),
}

DEFAULT_ACCESS = Access.STORE_STAFF

ROUTE_POLICIES: dict[tuple[str, str], Access] = {
    ("GET", "api.health_check"): Access.PUBLIC,
    # Login / session
    ("POST", "api.auth.login_admin"): Access.PUBLIC,
    ("POST", "api.auth.logout_admin"): Access.PUBLIC,
    ("POST", "api.auth.super_login"): Access.PUBLIC,
    ("POST", "api.auth.super_logout"): Access.PUBLIC,
    ("POST", "api.auth.login_customer"): Access.PUBLIC,
    ("GET", "api.auth.verify"): Access.AUTHENTICATED,
    ("POST", "api.auth.verify"): Access.AUTHENTICATED,
    ("GET", "api.auth.me"): Access.AUTHENTICATED,
    ("POST", "api.auth.me"): Access.AUTHENTICATED,
    # Store administration
    ("GET", "api.stores.list_stores"): Access.STAFF,
    ("POST", "api.stores.create_store"): Access.SUPER,
    ("PUT", "api.stores.update_store"): Access.SUPER,
    ("DELETE", "api.stores.delete_store"): Access.SUPER,
    ("GET", "api.admins.list_admins"): Access.SUPER,
    ("POST", "api.admins.register_admin"): Access.SUPER,
    ("DELETE", "api.admins.delete_admin"): Access.SUPER,
    ("GET", "api.mappings.list_mappings"): Access.SUPER,
    ("POST", "api.mappings.upsert_mapping"): Access.SUPER,
    ("DELETE", "api.mappings.delete_mapping"): Access.SUPER,
    # Orders
    ("GET", "api.orders.list_orders"): Access.STORE_STAFF,
    ("GET", "api.orders.get_order"): Access.STORE_STAFF,
    ("PUT", "api.orders.update_order"): Access.STORE_STAFF,
    ("POST", "api.orders.create_order"): Access.CUSTOMER_OPTIONAL,
    ("POST", "api.payments.confirm_payment"): Access.CUSTOMER_OPTIONAL,
    ("POST", "api.payments.cancel_payment"): Access.STORE_STAFF,
    # Staff calls
    ("POST", "api.calls.create_call"): Access.PUBLIC,
    ("GET", "api.calls.list_calls"): Access.STORE_STAFF,
    ("POST", "api.calls.acknowledge_call"): Access.STORE_STAFF,
    # Store settings
    ("GET", "api.settings.get_store_settings"): Access.STORE_STAFF,
    ("PUT", "api.settings.put_store_settings"): Access.STORE_STAFF,
    ("GET", "api.settings.get_payment_code"): Access.STORE_STAFF,
    ("POST", "api.settings.rotate_payment_code"): Access.STORE_STAFF,
    # Realtime
    ("GET", "api.events.stream_events"): Access.STORE_STAFF,
}


def policy_for(method: str, endpoint: str) -> Access:
    """Access required for ``method`` on ``endpoint``; unknown routes need store staff."""
    if method == "HEAD":
        method = "GET"
    return ROUTE_POLICIES.get((method, endpoint), DEFAULT_ACCESS)


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller as resolved by the gate."""

    realm: str | None = None
    store_id: str | None = None
    subject_id: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def is_super(self) -> bool:
        return self.realm == REALM_SUPER

    @property
    def is_authenticated(self) -> bool:
        return self.realm is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "realm": self.realm,
            "storeId": self.store_id,
            "subjectId": self.subject_id,
            "isSuper": self.is_super,
            "name": self.claims.get("name"),
            "role": self.claims.get("role"),
        }


ANONYMOUS = AuthContext()
