import time
from typing import Any, Callable, Dict

import structlog
from django.core.cache import cache
from django.db import connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.actors import actor_from_request

logger = structlog.get_logger(__name__)


def _check_database() -> None:
    conn = connections["default"]
    conn.ensure_connection()
    with conn.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()


def _check_cache() -> None:
    cache.set("_health_check", "ok", 10)
    if cache.get("_health_check") != "ok":
        raise ConnectionError("Cache read-back mismatch")


_CHECKS: Dict[str, Callable[[], None]] = {
    "database": _check_database,
    "cache": _check_cache,
}


def health_check(request: HttpRequest) -> JsonResponse:
    services: Dict[str, Dict[str, Any]] = {}

    for name, check in _CHECKS.items():
        start = time.monotonic()
        try:
            check()
        except Exception:
            # A failing dependency is reported, not raised: the health
            # endpoint itself must keep answering.
            logger.exception("health_check.check_failed", service=name)
            services[name] = {"status": "down"}
            continue
        services[name] = {
            "status": "up",
            "response_time_ms": round((time.monotonic() - start) * 1000, 2),
        }

    healthy = all(s["status"] == "up" for s in services.values())
    logger.info("health_check.completed", healthy=healthy)

    return JsonResponse(
        {
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=200 if healthy else 503,
    )


class WhoAmIView(APIView):
    """Return the marketplace identity the API resolved for the caller.

    Clients use it after sign-in to decide which dashboard to show.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        actor = actor_from_request(request)
        return Response({"role": actor.role.value, "id": actor.id})
