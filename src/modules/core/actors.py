"""Actor context: who is performing a marketplace operation.

Every service call receives an explicit ``ActorContext`` instead of reading
the authenticated user from ambient request state.  The HTTP layer builds
it once per request with ``actor_from_request``.

Role resolution:
- Auth0 principals carry the role in a configurable token claim.
- Local (SimpleJWT / session) users carry it through Django group
  membership: a user in the ``wholesaler`` group acts as a wholesaler.
"""

from __future__ import annotations

from dataclasses import dataclass

from django.db import models
from rest_framework.exceptions import PermissionDenied
from rest_framework.request import Request


class ActorRole(models.TextChoices):
    RETAILER = "retailer", "Retailer"
    WHOLESALER = "wholesaler", "Wholesaler"
    TRANSPORTER = "transporter", "Transporter"


@dataclass(frozen=True)
class ActorContext:
    """Immutable (role, id) pair identifying the caller."""

    role: ActorRole
    id: str

    @property
    def is_retailer(self) -> bool:
        return self.role == ActorRole.RETAILER

    @property
    def is_wholesaler(self) -> bool:
        return self.role == ActorRole.WHOLESALER

    @property
    def is_transporter(self) -> bool:
        return self.role == ActorRole.TRANSPORTER


def actor_from_request(request: Request) -> ActorContext:
    """Build the ``ActorContext`` for an authenticated DRF request.

    Raises:
        PermissionDenied: the principal has no marketplace role.
    """
    user = request.user

    if hasattr(user, "groups"):
        group_names = set(user.groups.values_list("name", flat=True))
        matches = [r for r in ActorRole if r.value in group_names]
        # Ambiguous memberships are rejected rather than guessed.
        role = matches[0].value if len(matches) == 1 else None
        actor_id = str(user.pk)
    else:
        role = getattr(user, "role", None)
        actor_id = getattr(user, "sub", "")

    if role not in ActorRole.values:
        raise PermissionDenied("Authenticated user has no marketplace role.")

    return ActorContext(role=ActorRole(role), id=str(actor_id))
