from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import IsDispatcherOrAdmin, IsDriver, IsPassenger
from common.choices import VehicleType
from pricing.services import estimate_fare
from .serializers import (
    AssignSerializer,
    BookingAssignmentSerializer,
    BookingCreateSerializer,
    BookingSerializer,
    LifecycleSerializer,
    RatingSerializer,
    TripHistorySerializer,
)

from services.booking_lifecycle import (
    actor_for,
    assign_booking,
    create_booking,
    delete_booking,
    get_booking,
    list_bookings,
    rate_driver,
    rate_passenger,
    transition_booking,
)
from services.booking_lifecycle.exceptions import ValidationError
from services.matching import nearby_pending


def _float_param(request, name, default=None):
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number")


# ===================== Collection =====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def bookings_collection(request):
    """
    GET: bookings visible to the caller (own bookings, or all for staff), ?status= filter
    POST: create a booking (passengers only)
        {"vehicleType": "mini", "pickup": {"latitude", "longitude", "address"}, "dropoff": {...}}
    """
    actor = actor_for(request.user)

    if request.method == 'GET':
        bookings = list_bookings(actor, status=request.query_params.get('status'))
        return Response(BookingSerializer(bookings, many=True).data)

    serializer = BookingCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    pickup, dropoff = serializer.points()

    booking = create_booking(
        actor,
        pickup,
        dropoff,
        vehicle_type=serializer.validated_data['vehicleType'],
        claims=request.auth,
    )
    return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def estimate(request):
    """Fare estimate without persisting anything."""
    serializer = BookingCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    pickup, dropoff = serializer.points()

    result = estimate_fare(serializer.validated_data['vehicleType'], pickup, dropoff)
    return Response(result.as_dict())


@api_view(['GET'])
@permission_classes([IsPassenger])
def vehicle_types(request):
    return Response([{"value": value, "label": label} for value, label in VehicleType.choices])


@api_view(['GET'])
@permission_classes([IsDriver])
def pending_nearby(request):
    """Requested bookings near the calling driver's last known location (?radiusKm=, default 3)."""
    radius_km = _float_param(request, 'radiusKm')
    if radius_km is not None and radius_km <= 0:
        raise ValidationError("radiusKm must be positive")

    results = nearby_pending(request.user.id, radius_km=radius_km)
    data = []
    for item in results:
        row = BookingSerializer(item.booking).data
        row['distanceToPickupKm'] = round(item.distance_km, 3)
        data.append(row)
    return Response({"count": len(data), "bookings": data})


# ===================== Single booking =====================

@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def booking_detail(request, booking_id):
    """
    GET: one booking in the caller's scope
    DELETE: owner delete of a booking that has not been accepted yet
    """
    actor = actor_for(request.user)

    if request.method == 'DELETE':
        delete_booking(actor, booking_id)
        return Response(status=status.HTTP_204_NO_CONTENT)

    booking = get_booking(actor, booking_id)
    return Response(BookingSerializer(booking).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def lifecycle(request, booking_id):
    """
    Apply a status transition.
        {"status": "accepted" | "ongoing" | "completed" | "canceled"}
    Staff pair drivers through assign/.
    """
    serializer = LifecycleSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    booking = transition_booking(
        actor_for(request.user),
        booking_id,
        serializer.validated_data['status'],
    )
    return Response(BookingSerializer(booking).data)


@api_view(['POST'])
@permission_classes([IsDispatcherOrAdmin])
def assign(request, booking_id):
    """Dispatcher pairing: {"driverId", "dispatcherId", "passengerId"?}"""
    serializer = AssignSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    booking, assignment = assign_booking(
        actor_for(request.user),
        booking_id,
        driver_id=data.get('driverId'),
        dispatcher_id=data.get('dispatcherId'),
        passenger_id=data.get('passengerId'),
    )
    return Response({
        "booking": BookingSerializer(booking).data,
        "assignment": BookingAssignmentSerializer(assignment).data,
    })


@api_view(['POST'])
@permission_classes([IsDriver])
def rate_passenger_view(request, booking_id):
    serializer = RatingSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    booking = rate_passenger(
        actor_for(request.user),
        booking_id,
        serializer.validated_data.get('rating'),
        serializer.validated_data.get('comment', ''),
    )
    return Response({"message": "Passenger rated successfully", "booking": BookingSerializer(booking).data})


@api_view(['POST'])
@permission_classes([IsPassenger])
def rate_driver_view(request, booking_id):
    serializer = RatingSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    booking = rate_driver(
        actor_for(request.user),
        booking_id,
        serializer.validated_data.get('rating'),
        serializer.validated_data.get('comment', ''),
    )
    return Response({"message": "Driver rated successfully", "booking": BookingSerializer(booking).data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def history(request, booking_id):
    """Audit trail of a booking in the caller's scope."""
    booking = get_booking(actor_for(request.user), booking_id)
    return Response(TripHistorySerializer(booking.history.all(), many=True).data)
