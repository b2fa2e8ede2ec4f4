from rest_framework import status
from rest_framework.exceptions import APIException


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The request conflicts with the current state of the resource."
    default_code = "conflict"


class RoomUnavailable(Conflict):
    default_detail = "Room is not available for the selected dates"
    default_code = "room_unavailable"


class InvalidStatusTransition(Conflict):
    default_detail = "Booking status transition is not allowed."
    default_code = "invalid_status_transition"


class InsufficientFunds(Conflict):
    default_detail = "Insufficient wallet balance."
    default_code = "insufficient_funds"
