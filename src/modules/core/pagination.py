"""Pagination defaults shared by every list endpoint."""

from __future__ import annotations

from typing import Any, List

from django.conf import settings
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

DEFAULT_PAGE_SIZE = settings.REST_FRAMEWORK.get("PAGE_SIZE", 20)
MAX_PAGE_SIZE = 100


class StandardResultsSetPagination(PageNumberPagination):
    """Page-number pagination with a client-selectable, capped page size."""

    page_size = DEFAULT_PAGE_SIZE
    page_size_query_param = "page_size"
    max_page_size = MAX_PAGE_SIZE

    def get_paginated_response(self, data: List[Any]) -> Response:
        return Response(
            {
                "count": self.page.paginator.count,
                "total_pages": self.page.paginator.num_pages,
                "page": self.page.number,
                "next": self.get_next_link(),
                "previous": self.get_previous_link(),
                "results": data,
            }
        )

