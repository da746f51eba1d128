from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated

from realtime.apps import get_occupancy_registry

from bars import services
from bars.exceptions import BarNotFoundError
from bars.serializers import (
    BarSerializer,
    BarDetailSerializer,
    BarCreateSerializer,
    RatingSerializer,
    CoverFeeSerializer,
    TrafficReportSerializer,
    VenueLocationSerializer,
)


# Utility: resolve a bar or build the 404 response
def require_bar(bar_id):
    try:
        return True, services.get_bar(bar_id)
    except BarNotFoundError:
        return False, Response({"error": "Bar not found"}, status=404)


def _detail_response(request, bar, status_code=200):
    bar = services.get_bar(bar.pk)  # re-read with fresh aggregates
    serializer = BarDetailSerializer(
        bar,
        context={"request": request, "snapshot": get_occupancy_registry().snapshot()},
    )
    return Response(serializer.data, status=status_code)


class BarListView(APIView):
    """List bars (public) or add one (authenticated users)."""

    def get_permissions(self):
        if self.request.method == "POST":
            return [IsAuthenticated()]
        return [AllowAny()]

    def get(self, request):
        bars = services.bars_with_stats()
        serializer = BarSerializer(
            bars,
            many=True,
            context={"request": request, "snapshot": get_occupancy_registry().snapshot()},
        )
        return Response(serializer.data)

    def post(self, request):
        serializer = BarCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        bar = services.create_bar(user=request.user, **serializer.validated_data)
        return _detail_response(request, bar, status_code=status.HTTP_201_CREATED)


class BarDetailView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, bar_id):
        ok, bar = require_bar(bar_id)
        if ok is False:
            return bar  # Response object

        return _detail_response(request, bar)


class VenueLocationsView(APIView):
    """Venues with known coordinates, consumed by tracking clients."""
    permission_classes = [AllowAny]

    def get(self, request):
        locations = services.list_venue_locations()
        serializer = VenueLocationSerializer(locations, many=True)
        return Response(serializer.data)


class PopularityView(APIView):
    """Current occupancy snapshot; polling fallback for clients without a socket."""
    permission_classes = [AllowAny]

    def get(self, request):
        snapshot = get_occupancy_registry().snapshot()
        return Response({"venues": snapshot.to_payload(request.query_params.get("venue_id"))})


class RateBarView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, bar_id):
        ok, bar = require_bar(bar_id)
        if ok is False:
            return bar

        serializer = RatingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        services.rate_bar(bar, request.user, serializer.validated_data["value"])
        return _detail_response(request, bar)


class CoverFeeView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, bar_id):
        ok, bar = require_bar(bar_id)
        if ok is False:
            return bar

        serializer = CoverFeeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        services.report_cover_fee(bar, request.user, serializer.validated_data["amount"])
        return _detail_response(request, bar)


class TrafficReportView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, bar_id):
        ok, bar = require_bar(bar_id)
        if ok is False:
            return bar

        serializer = TrafficReportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        services.report_traffic(bar, request.user, serializer.validated_data["level"])
        return _detail_response(request, bar)


class QueueView(APIView):
    """
    Virtual queue membership for the requesting user.

    GET    -> 200 if queued, 404 otherwise
    POST   -> join
    DELETE -> leave
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, bar_id):
        ok, bar = require_bar(bar_id)
        if ok is False:
            return bar

        if not services.is_in_queue(bar, request.user):
            return Response({"in_queue": False}, status=404)
        return Response({"in_queue": True, "queue_count": services.queue_count(bar)})

    def post(self, request, bar_id):
        ok, bar = require_bar(bar_id)
        if ok is False:
            return bar

        created = services.join_queue(bar, request.user)
        return Response({
            "message": "Joined queue" if created else "Already in queue",
            "in_queue": True,
            "queue_count": services.queue_count(bar),
        }, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)

    def delete(self, request, bar_id):
        ok, bar = require_bar(bar_id)
        if ok is False:
            return bar

        removed = services.leave_queue(bar, request.user)
        return Response({
            "message": "Left queue" if removed else "Not in queue",
            "in_queue": False,
            "queue_count": services.queue_count(bar),
        })
