# recovery_core/common/api/pagination.py
from __future__ import annotations

from typing import Type

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class DefaultPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 200


class TrailPagination(DefaultPagination):
    """Audit trails and message histories are read in bigger pages."""
    page_size = 50
    max_page_size = 500


def paginate(
    request,
    queryset,
    serializer_class,
    *,
    pagination_class: Type[PageNumberPagination] = DefaultPagination,
    context: dict | None = None,
) -> Response:
    """
    Paginated list response for plain ViewSets: {count, next, previous, results}.
    """
    paginator = pagination_class()
    page = paginator.paginate_queryset(queryset, request)
    serializer_context = {"request": request, **(context or {})}
    if page is None:
        return Response(serializer_class(queryset, many=True, context=serializer_context).data)
    return paginator.get_paginated_response(serializer_class(page, many=True, context=serializer_context).data)
