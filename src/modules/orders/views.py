"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Domain exceptions propagate to the standardized exception handler, which
maps their ``code`` to a status and error envelope; views never catch
generic exceptions.
"""

from __future__ import annotations

from typing import Type, TypeVar
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import ViewSet

from modules.core.actors import actor_from_request
from modules.orders.dtos import ListOrdersQuery, PlaceOrderDTO, StatisticsQuery
from modules.orders.exceptions import OrderNotFound
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    ListOrdersSerializer,
    OrderSerializer,
    OrderStatisticsSerializer,
    PlaceOrderSerializer,
    StatisticsQuerySerializer,
    UpdateStatusSerializer,
)
from modules.orders.services import OrderService
from modules.products.ledger import DjangoStockLedger
from modules.products.repositories.django_repository import ProductDjangoRepository
from shared.infrastructure.bus import event_bus

DTO = TypeVar("DTO", bound=BaseModel)


def _order_id(pk: str | None) -> UUID:
    try:
        return UUID(str(pk))
    except ValueError:
        raise OrderNotFound(f"Order {pk} not found.") from None


def _build(dto_class: Type[DTO], **data) -> DTO:
    try:
        return dto_class(**data)
    except PydanticValidationError as exc:
        raise ValidationError([error["msg"] for error in exc.errors()]) from None


class OrderViewSet(ViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with injected adapters (DIP).  Does **not**
    extend ``ModelViewSet``: all ORM access goes through the
    service/repository layer.
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderService(
            order_repository=OrderDjangoRepository(),
            product_repository=ProductDjangoRepository(),
            ledger=DjangoStockLedger(),
            event_bus=event_bus,
        )

    def get_throttles(self) -> list[BaseThrottle]:
        """Per-action throttle scopes."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve", "stats"}:
            throttle_scope = "order_listing"
        elif self.action == "update_status":
            throttle_scope = "order_transition"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header.
        Returns 200 if the key was already used, 201 for new orders.
        """
        actor = actor_from_request(request)
        serializer = PlaceOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        idempotency_key = request.headers.get("Idempotency-Key") or None
        if idempotency_key:
            existing = self._service.find_by_idempotency_key(actor, idempotency_key)
            if existing is not None:
                return Response(OrderSerializer(existing).data, status=status.HTTP_200_OK)

        dto = _build(PlaceOrderDTO, **serializer.validated_data, idempotency_key=idempotency_key)
        order = self._service.place_order(actor, dto)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve / Stats
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/?status=&page=&page_size=&start_date=&end_date=&min_total=&max_total="""
        actor = actor_from_request(request)
        params = ListOrdersSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        query = _build(ListOrdersQuery, **params.validated_data)
        result = self._service.list_orders(actor, query)
        return Response(
            {
                "count": result.total,
                "total_pages": result.total_pages,
                "page": result.page,
                "results": OrderSerializer(result.items, many=True).data,
            }
        )

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        actor = actor_from_request(request)
        order = self._service.get_order(actor, str(_order_id(pk)))
        return Response(OrderSerializer(order).data)

    @action(detail=False, methods=["get"])
    def stats(self, request: Request) -> Response:
        """GET /api/v1/orders/stats/?time_range=today|week|month|year|all"""
        actor = actor_from_request(request)
        params = StatisticsQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        query = _build(StatisticsQuery, **params.validated_data)
        stats = self._service.order_statistics(actor, query.time_range)
        return Response(OrderStatisticsSerializer(stats).data)

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    @action(detail=True, methods=["patch"], url_path="status")
    def update_status(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/status/"""
        actor = actor_from_request(request)
        serializer = UpdateStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = self._service.update_status(
            order_id=_order_id(pk),
            target_status=data["target_status"],
            actor=actor,
            reason=data.get("reason"),
            transporter_id=data.get("transporter_id"),
        )
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/orders/{pk}/"""
        actor = actor_from_request(request)
        self._service.delete_order(_order_id(pk), actor)
        return Response(status=status.HTTP_204_NO_CONTENT)
