"""
Room inventory, booking lifecycle and wallet operations.

Views validate input with the serializers and hand the validated data to the
functions below. Every change to ``Room.available_rooms`` is a single SQL
UPDATE evaluated by the database, so concurrent requests cannot lose each
other's adjustments and the ``0 <= available_rooms <= total_rooms`` bound is
kept without reading the row first.
"""
import logging
import math
import uuid
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import IntegrityError, models, transaction
from django.db.models import Avg, Count, F, Sum, Value
from django.db.models.functions import Greatest, Least
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from . import notifications
from .exceptions import Conflict, InsufficientFunds, InvalidStatusTransition, RoomUnavailable
from .models import Booking, Hotel, Room, WalletTransaction
from .serializers import BookingSerializer, RoomSerializer, WalletTransactionSerializer

logger = logging.getLogger(__name__)

User = get_user_model()

ALLOWED_TRANSITIONS = {
    Booking.Status.PENDING: {Booking.Status.APPROVED, Booking.Status.REJECTED},
    Booking.Status.APPROVED: {Booking.Status.COMPLETED},
}
ACTIVE_BOOKING_STATUSES = [Booking.Status.PENDING, Booking.Status.APPROVED]
APPROVAL_DEBIT = 1


def _reference(prefix):
    return f"{prefix}-{uuid.uuid4().hex[:20].upper()}"


# Hotels

def register_hotel(data):
    """Create the operator account and its hotel in one transaction."""
    with transaction.atomic():
        user = User.objects.create_user(
            username=data["email"],
            email=data["email"],
            password=data["password"],
        )
        hotel = Hotel.objects.create(
            owner=user,
            name=data["name"],
            email=data["email"],
            phone=data.get("phone", ""),
            address=data.get("address", ""),
            city=data.get("city", ""),
        )
    logger.info("Registered hotel %s (%s)", hotel.id, hotel.email)
    return hotel


def update_hotel_profile(hotel, data):
    """Save profile changes; the login follows the email, and ``new_password`` replaces the password."""
    data = dict(data)
    data.pop("current_password", None)
    new_password = data.pop("new_password", None)

    with transaction.atomic():
        for attr, value in data.items():
            setattr(hotel, attr, value)
        hotel.save(update_fields=list(data))

        owner = hotel.owner
        owner_fields = []
        if "email" in data:
            owner.username = owner.email = data["email"]
            owner_fields += ["username", "email"]
        if new_password:
            owner.set_password(new_password)
            owner_fields.append("password")
        if owner_fields:
            owner.save(update_fields=owner_fields)
    hotel.refresh_from_db(fields=["wallet_balance"])
    return hotel


def hotel_stats(hotel):
    rooms = Room.objects.filter(hotel=hotel).aggregate(
        total=Sum("total_rooms"),
        available=Sum("available_rooms"),
        average_price=Avg("price"),
        room_types=Count("id"),
    )
    total = rooms["total"] or 0
    available = rooms["available"] or 0
    booked = total - available

    by_status = {choice: 0 for choice in Booking.Status.values}
    for row in Booking.objects.filter(hotel=hotel).values("status").annotate(count=Count("id")):
        by_status[row["status"]] = row["count"]

    revenue = Booking.objects.filter(
        hotel=hotel, payment_status=Booking.PaymentStatus.PAID,
    ).aggregate(total=Sum("total_price"))["total"] or Decimal("0")

    return {
        "room_types": rooms["room_types"],
        "total_rooms": total,
        "available_rooms": available,
        "booked_rooms": booked,
        "occupancy_rate": round(booked / total * 100, 1) if total else 0.0,
        "average_price": round(rooms["average_price"] or 0, 2),
        "bookings": by_status,
        "total_bookings": sum(by_status.values()),
        "revenue": revenue,
        "wallet_balance": hotel.wallet_balance,
    }


# Rooms

def get_room(room_id):
    try:
        return Room.objects.get(pk=room_id)
    except Room.DoesNotExist:
        raise NotFound("Room not found")


def _broadcast_room(room):
    notifications.broadcast(room.hotel_id, notifications.ROOM_UPDATE, dict(RoomSerializer(room).data))


def create_room(hotel, data):
    data = dict(data)
    data.setdefault("available_rooms", data["total_rooms"])
    room = Room.objects.create(hotel=hotel, **data)
    logger.info("Hotel %s created room %s with %s units", hotel.id, room.id, room.total_rooms)
    _broadcast_room(room)
    return room


def update_room(room, patch):
    """Apply a validated partial update, writing only the patched columns."""
    for attr, value in patch.items():
        setattr(room, attr, value)
    try:
        with transaction.atomic():
            room.save(update_fields=list(patch))
    except IntegrityError:
        # a concurrent adjustment moved available_rooms past the new total
        raise ValidationError({"available_rooms": ["Available rooms cannot exceed total rooms."]})
    room.refresh_from_db()
    logger.info("Room %s updated: %s", room.id, sorted(patch))
    _broadcast_room(room)
    return room


def adjust_availability(room_id, delta):
    """
    Shift ``available_rooms`` by ``delta``, saturating at 0 and ``total_rooms``.

    Used for manual adjustments from the dashboard: an excess in either
    direction is absorbed at the bound instead of raising.
    """
    # any step larger than the pool saturates the same way, so cap it before adding
    step = Least(Greatest(Value(delta), -F("total_rooms"), output_field=models.IntegerField()), F("total_rooms"),
                 output_field=models.IntegerField())
    updated = Room.objects.filter(pk=room_id).update(
        available_rooms=Least(
            Greatest(F("available_rooms") + step, Value(0), output_field=models.IntegerField()),
            F("total_rooms"),
            output_field=models.IntegerField(),
        )
    )
    if not updated:
        raise NotFound("Room not found")
    room = Room.objects.get(pk=room_id)
    logger.info("Room %s availability adjusted by %s -> %s/%s", room_id, delta, room.available_rooms,
                room.total_rooms)
    _broadcast_room(room)
    return room


def consume_availability(room_id, count):
    """Take ``count`` units out of the pool, or raise ``RoomUnavailable``."""
    updated = Room.objects.filter(pk=room_id, available_rooms__gte=count).update(
        available_rooms=F("available_rooms") - count
    )
    if not updated:
        if not Room.objects.filter(pk=room_id).exists():
            raise NotFound("Room not found")
        logger.warning("Room %s has fewer than %s units left", room_id, count)
        raise RoomUnavailable("No rooms of this type are left to approve this booking.")


def delete_room(room):
    if room.bookings.filter(status__in=ACTIVE_BOOKING_STATUSES).exists():
        raise Conflict("Room has pending or approved bookings and cannot be deleted.")
    room_id, hotel_id = room.id, room.hotel_id
    room.delete()
    logger.info("Hotel %s deleted room %s", hotel_id, room_id)
    notifications.broadcast(hotel_id, notifications.ROOM_DELETED, {"id": room_id})


# Bookings

def compute_total_price(room, check_in, check_out, number_of_rooms):
    nights = max(1, math.ceil((check_out - check_in).total_seconds() / 86400))
    return Decimal(room.price) * nights * number_of_rooms


def create_booking(data):
    """
    Record a pending booking request for an available room.

    Inventory is not reserved here; it is taken when the hotel approves.
    A repeated ``client_token`` returns the booking created the first time.
    """
    client_token = data.get("client_token")
    if client_token:
        existing = Booking.objects.filter(client_token=client_token).first()
        if existing:
            return existing

    room = get_room(data["room_id"])
    number_of_rooms = data.get("number_of_rooms", 1)
    number_of_guests = data.get("number_of_guests", 1)

    if not room.is_available or room.available_rooms < number_of_rooms:
        logger.warning("Booking refused: room %s has %s units, %s requested", room.id, room.available_rooms,
                       number_of_rooms)
        raise RoomUnavailable()
    if number_of_guests > room.capacity * number_of_rooms:
        raise ValidationError({"number_of_guests": [
            f"{number_of_rooms} room(s) of this type hold at most {room.capacity * number_of_rooms} guests."
        ]})

    try:
        with transaction.atomic():
            booking = Booking.objects.create(
                room=room,
                hotel_id=room.hotel_id,
                room_name=room.name,
                guest_name=data["guest_name"],
                guest_email=data["guest_email"],
                guest_phone=data.get("guest_phone", ""),
                check_in=data["check_in"],
                check_out=data["check_out"],
                number_of_rooms=number_of_rooms,
                number_of_guests=number_of_guests,
                total_price=compute_total_price(room, data["check_in"], data["check_out"], number_of_rooms),
                status=Booking.Status.PENDING,
                payment_status=Booking.PaymentStatus.PENDING,
                client_token=client_token,
            )
    except IntegrityError:
        # same client_token submitted concurrently
        existing = Booking.objects.filter(client_token=client_token).first() if client_token else None
        if existing is None:
            raise
        return existing

    logger.info("Booking %s requested for room %s (hotel %s)", booking.id, room.id, room.hotel_id)
    payload = dict(BookingSerializer(booking).data)
    payload["room"] = room.name
    notifications.broadcast(booking.hotel_id, notifications.BOOKING_CREATED, payload)
    return booking


def update_booking_status(booking, new_status):
    """
    Move a booking along pending -> approved/rejected, approved -> completed.

    Asking for the status the booking already has is a no-op. Approval takes
    one unit from the room in the same transaction; when none is left the
    approval fails and the booking stays pending.
    """
    if new_status not in Booking.Status.values:
        raise ValidationError({"status": ["Invalid status"]})

    current = booking.status
    if new_status == current:
        return booking
    if new_status not in ALLOWED_TRANSITIONS.get(current, ()):
        logger.warning("Booking %s: refused transition %s -> %s", booking.id, current, new_status)
        raise InvalidStatusTransition(f"Cannot change booking status from {current} to {new_status}.")

    with transaction.atomic():
        swapped = Booking.objects.filter(pk=booking.pk, status=current).update(
            status=new_status, updated_at=timezone.now(),
        )
        if not swapped:
            booking.refresh_from_db()
            if booking.status == new_status:
                return booking
            raise InvalidStatusTransition(
                f"Booking status changed to {booking.status} by another request."
            )

        if new_status == Booking.Status.APPROVED:
            if booking.room_id is None:
                raise RoomUnavailable("The booked room no longer exists.")
            consume_availability(booking.room_id, APPROVAL_DEBIT)

        booking.refresh_from_db()
        if new_status == Booking.Status.REJECTED and booking.payment_status == Booking.PaymentStatus.PAID:
            refund_booking(booking)

    logger.info("Booking %s: %s -> %s", booking.id, current, new_status)
    notifications.broadcast(booking.hotel_id, notifications.BOOKING_UPDATE, dict(BookingSerializer(booking).data))
    if new_status == Booking.Status.APPROVED:
        _broadcast_room(Room.objects.get(pk=booking.room_id))
    return booking


def confirm_payment(booking, success=True, provider_ref=""):
    """Record the payment provider's answer for a booking and fund the wallet."""
    if booking.status == Booking.Status.REJECTED:
        raise Conflict("Payments are not accepted for rejected bookings.")
    if not success:
        logger.info("Payment for booking %s failed (ref %r)", booking.id, provider_ref)
        return booking

    with transaction.atomic():
        paid = Booking.objects.filter(
            pk=booking.pk, payment_status=Booking.PaymentStatus.PENDING,
        ).exclude(status=Booking.Status.REJECTED).update(
            payment_status=Booking.PaymentStatus.PAID, updated_at=timezone.now(),
        )
        if not paid:
            raise Conflict("Payment for this booking has already been processed.")
        description = f"Payment for booking #{booking.id}"
        if provider_ref:
            description += f" ({provider_ref})"
        credit_wallet(booking.hotel_id, booking.total_price, description, booking=booking)

    booking.refresh_from_db()
    notifications.broadcast(booking.hotel_id, notifications.BOOKING_UPDATE, dict(BookingSerializer(booking).data))
    return booking


# Wallet

def _broadcast_wallet(hotel_id, txn):
    balance = Hotel.objects.values_list("wallet_balance", flat=True).get(pk=hotel_id)
    notifications.broadcast(hotel_id, notifications.WALLET_UPDATE, {
        "balance": str(balance),
        "transaction": dict(WalletTransactionSerializer(txn).data),
    })


def credit_wallet(hotel_id, amount, description, booking=None):
    with transaction.atomic():
        Hotel.objects.filter(pk=hotel_id).update(wallet_balance=F("wallet_balance") + amount)
        txn = WalletTransaction.objects.create(
            hotel_id=hotel_id,
            booking=booking,
            type=WalletTransaction.Type.CREDIT,
            amount=amount,
            status=WalletTransaction.Status.COMPLETED,
            reference=_reference("CR"),
            description=description,
        )
    logger.info("Wallet of hotel %s credited %s (%s)", hotel_id, amount, txn.reference)
    _broadcast_wallet(hotel_id, txn)
    return txn


def _debit_wallet(hotel_id, amount):
    debited = Hotel.objects.filter(pk=hotel_id, wallet_balance__gte=amount).update(
        wallet_balance=F("wallet_balance") - amount
    )
    if not debited:
        logger.warning("Wallet of hotel %s cannot cover %s", hotel_id, amount)
        raise InsufficientFunds()


def refund_booking(booking):
    amount = booking.total_price
    with transaction.atomic():
        _debit_wallet(booking.hotel_id, amount)
        txn = WalletTransaction.objects.create(
            hotel_id=booking.hotel_id,
            booking=booking,
            type=WalletTransaction.Type.DEBIT,
            amount=amount,
            status=WalletTransaction.Status.COMPLETED,
            reference=_reference("RF"),
            description=f"Refund for booking #{booking.id}",
        )
        Booking.objects.filter(pk=booking.pk).update(payment_status=Booking.PaymentStatus.REFUNDED)
    booking.payment_status = Booking.PaymentStatus.REFUNDED
    logger.info("Booking %s refunded %s", booking.id, amount)
    _broadcast_wallet(booking.hotel_id, txn)
    return txn


def request_withdrawal(hotel, amount=None):
    """Move ``amount`` (default: the whole balance) out to the hotel's bank account."""
    if not hotel.has_bank_details:
        raise ValidationError({"detail": "Add your bank account details before requesting a withdrawal."})

    if amount is None:
        hotel.refresh_from_db(fields=["wallet_balance"])
        amount = hotel.wallet_balance
    if amount <= 0:
        raise InsufficientFunds("There is nothing to withdraw.")

    with transaction.atomic():
        _debit_wallet(hotel.id, amount)
        txn = WalletTransaction.objects.create(
            hotel=hotel,
            type=WalletTransaction.Type.DEBIT,
            amount=amount,
            status=WalletTransaction.Status.PENDING,
            reference=_reference("WD"),
            description=f"Withdrawal to {hotel.bank_name} ****{hotel.bank_account_number[-4:]}",
        )
    hotel.refresh_from_db(fields=["wallet_balance"])
    logger.info("Hotel %s requested withdrawal of %s (%s)", hotel.id, amount, txn.reference)
    _broadcast_wallet(hotel.id, txn)
    return txn


def settle_withdrawal(txn, succeeded):
    """Close a pending withdrawal; a failed one returns the money to the wallet."""
    new_status = WalletTransaction.Status.COMPLETED if succeeded else WalletTransaction.Status.FAILED
    with transaction.atomic():
        updated = WalletTransaction.objects.filter(
            pk=txn.pk, type=WalletTransaction.Type.DEBIT, status=WalletTransaction.Status.PENDING,
        ).update(status=new_status)
        if not updated:
            raise Conflict("Only pending withdrawals can be settled.")
        if not succeeded:
            Hotel.objects.filter(pk=txn.hotel_id).update(wallet_balance=F("wallet_balance") + txn.amount)
    txn.refresh_from_db()
    logger.info("Withdrawal %s settled as %s", txn.reference, new_status)
    _broadcast_wallet(txn.hotel_id, txn)
    return txn
