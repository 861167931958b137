import json
import logging
import os

from django.apps import apps
from django.http import FileResponse
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from . import services
from .exceptions import NotFound, SourceUnavailable, StorageError
from .serializers import CountrySerializer
from .summary import summary_image_path, summary_json_path

logger = logging.getLogger(__name__)


def get_store():
    return apps.get_app_config('countries').store


def _storage_error_response(e):
    logger.error("Storage error: %s", e)
    return Response(
        {"error": "Internal server error"},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


# ----------------------------
# POST /countries/refresh
# ----------------------------
@api_view(['POST'])
def refresh_countries(request):
    """
    Refresh the country dataset from the external providers.
    Existing countries are updated in place, new ones are inserted.
    """
    try:
        result = services.refresh_countries(get_store())
    except SourceUnavailable as e:
        logger.warning("Refresh aborted: %s", e)
        return Response(
            {
                "error": "External data source unavailable",
                "details": f"Could not fetch data from {e.endpoint}",
            },
            status=status.HTTP_503_SERVICE_UNAVAILABLE
        )
    except StorageError as e:
        return _storage_error_response(e)

    return Response(
        {"message": "Countries refreshed successfully", "total_committed": result.committed},
        status=status.HTTP_200_OK
    )


# ----------------------------
# GET /countries
# ----------------------------
@api_view(['GET'])
def list_countries(request):
    """
    List all countries, with optional filters and sorting.
    Supports:
        - ?region=Asia
        - ?currency=USD
        - ?sort=gdp_desc
    Filters are exact, case-sensitive matches.
    """
    try:
        countries = get_store().list_all(
            region=request.GET.get('region'),
            currency_code=request.GET.get('currency'),
            gdp_desc=request.GET.get('sort') == 'gdp_desc',
        )
    except StorageError as e:
        return _storage_error_response(e)

    serializer = CountrySerializer(countries, many=True)
    return Response(serializer.data)


# ----------------------------
# GET /countries/:name
# DELETE /countries/:name
# ----------------------------
@api_view(['GET', 'DELETE'])
def country_detail(request, name):
    """
    Handle GET and DELETE for a single country by exact name.
    """
    store = get_store()
    try:
        if request.method == 'DELETE':
            if not store.delete_by_name(name):
                raise NotFound(name)
            return Response(status=status.HTTP_204_NO_CONTENT)

        serializer = CountrySerializer(store.get_by_name(name))
        return Response(serializer.data)
    except NotFound:
        return Response({"error": "Country not found"}, status=status.HTTP_404_NOT_FOUND)
    except StorageError as e:
        return _storage_error_response(e)


# ----------------------------
# GET /status
# ----------------------------
@api_view(['GET'])
def status_view(request):
    """
    Return the total number of countries and the latest refresh time.
    """
    try:
        total, last_refreshed_at = get_store().count_and_last_refresh()
    except StorageError as e:
        return _storage_error_response(e)

    return Response({
        "total_countries": total,
        "last_refreshed_at": last_refreshed_at,
    })


# ----------------------------
# GET /countries/image
# ----------------------------
@api_view(['GET'])
def get_summary_image(request):
    """
    Return the summary image (PNG) generated by the last refresh.
    """
    image_path = summary_image_path()

    if not os.path.exists(image_path):
        return Response({"error": "Summary image not found"}, status=status.HTTP_404_NOT_FOUND)

    return FileResponse(open(image_path, 'rb'), content_type='image/png')


# ----------------------------
# GET /countries/summary
# ----------------------------
@api_view(['GET'])
def get_summary(request):
    """
    Return the JSON summary generated by the last refresh.
    """
    json_path = summary_json_path()

    if not os.path.exists(json_path):
        return Response({"error": "Summary not found"}, status=status.HTTP_404_NOT_FOUND)

    try:
        with open(json_path) as f:
            summary = json.load(f)
    except (OSError, ValueError) as e:
        logger.error("Could not read summary %s: %s", json_path, e)
        return Response(
            {"error": "Internal server error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return Response(summary)
