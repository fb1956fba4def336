"""Notification API views.

Every endpoint is scoped to the caller: a notification addressed to
somebody else is reported as not found.
"""

from __future__ import annotations

from uuid import UUID

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.actors import actor_from_request
from modules.core.pagination import StandardResultsSetPagination
from modules.notifications.serializers import NotificationSerializer
from modules.notifications.services import NotificationNotFound, NotificationService


class NotificationViewSet(GenericViewSet):
    serializer_class = NotificationSerializer
    pagination_class = StandardResultsSetPagination

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = NotificationService()

    def list(self, request: Request) -> Response:
        """GET /api/v1/notifications/?unread_only=true"""
        actor = actor_from_request(request)
        unread_only = request.query_params.get("unread_only", "").lower() in {"1", "true"}
        queryset = self._service.list_for(actor, unread_only=unread_only)
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request: Request) -> Response:
        """GET /api/v1/notifications/unread-count/"""
        actor = actor_from_request(request)
        return Response({"unread_count": self._service.unread_count(actor)})

    @action(detail=True, methods=["post"])
    def read(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/notifications/{pk}/read/"""
        actor = actor_from_request(request)
        try:
            notification_id = UUID(str(pk))
        except ValueError:
            raise NotificationNotFound(f"Notification {pk} not found.") from None
        notification = self._service.mark_read(actor, notification_id)
        return Response(self.get_serializer(notification).data)

    @action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request: Request) -> Response:
        """POST /api/v1/notifications/read-all/"""
        actor = actor_from_request(request)
        updated = self._service.mark_all_read(actor)
        return Response({"updated": updated}, status=status.HTTP_200_OK)
