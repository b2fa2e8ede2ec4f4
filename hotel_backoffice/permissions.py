import hashlib
import hmac

from django.conf import settings
from rest_framework.permissions import BasePermission

from .models import Hotel


def get_request_hotel(request):
    """Return the hotel owned by the authenticated user, or None."""
    user = request.user
    if not user or not user.is_authenticated:
        return None
    # loaded once per request so balances read by the view are current
    if not hasattr(request, "_hotel"):
        request._hotel = Hotel.objects.filter(owner_id=user.pk).first()
    return request._hotel


def payment_signature(body):
    """Hex HMAC-SHA256 of a callback body, keyed with PAYMENT_CALLBACK_SECRET."""
    return hmac.new(settings.PAYMENT_CALLBACK_SECRET.encode("utf-8"), body, hashlib.sha256).hexdigest()


class IsHotelOperator(BasePermission):
    """
    Allows access only to authenticated users who own a hotel.
    """
    message = "Only hotel operators can access this resource."

    def has_permission(self, request, view):
        return get_request_hotel(request) is not None


class IsHotelOwnerOfObject(BasePermission):
    """
    Object-level permission: the object must belong to the requester's hotel.
    """
    message = "Forbidden"

    def has_object_permission(self, request, view, obj):
        hotel = get_request_hotel(request)
        return hotel is not None and obj.hotel_id == hotel.id


class HasPaymentSignature(BasePermission):
    """
    Payment provider callbacks carry ``X-Payment-Signature``. Without a
    configured secret every callback is refused.
    """
    message = "Invalid payment signature."

    def has_permission(self, request, view):
        provided = request.headers.get("x-payment-signature", "")
        if not settings.PAYMENT_CALLBACK_SECRET or not provided:
            return False
        return hmac.compare_digest(payment_signature(request.body), provided)
