from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q


class Hotel(models.Model):
    owner = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="hotel")
    name = models.CharField(max_length=150)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=50, blank=True)
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    wallet_balance = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    bank_name = models.CharField(max_length=100, blank=True)
    bank_account_number = models.CharField(max_length=34, blank=True)
    bank_account_name = models.CharField(max_length=150, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(wallet_balance__gte=0), name="hotel_wallet_balance_non_negative"),
        ]

    def __str__(self):
        return self.name

    @property
    def has_bank_details(self):
        return bool(self.bank_name and self.bank_account_number and self.bank_account_name)


class Room(models.Model):
    class Type(models.TextChoices):
        STANDARD = "Standard"
        DELUXE = "Deluxe"
        SUITE = "Suite"
        EXECUTIVE_SUITE = "Executive Suite"
        PRESIDENTIAL_SUITE = "Presidential Suite"

    class Amenity(models.TextChoices):
        WIFI = "Wi-Fi"
        TV = "TV"
        MINI_BAR = "Mini Bar"
        ROOM_SERVICE = "Room Service"
        AIR_CONDITIONING = "Air Conditioning"
        SAFE = "Safe"
        COFFEE_MAKER = "Coffee Maker"
        BALCONY = "Balcony"

    hotel = models.ForeignKey(Hotel, on_delete=models.CASCADE, related_name="rooms")
    name = models.CharField(max_length=150)
    type = models.CharField(max_length=30, choices=Type.choices)
    capacity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    price = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    description = models.TextField(blank=True)
    amenities = models.JSONField(default=list, blank=True)
    images = models.JSONField(default=list, blank=True)
    total_rooms = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    available_rooms = models.PositiveIntegerField()
    is_available = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(condition=Q(total_rooms__gte=1), name="room_total_rooms_positive"),
            models.CheckConstraint(condition=Q(available_rooms__gte=0), name="room_available_rooms_non_negative"),
            models.CheckConstraint(
                condition=Q(available_rooms__lte=F("total_rooms")),
                name="room_available_rooms_within_total",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.hotel_id})"


class Booking(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending"
        APPROVED = "approved"
        REJECTED = "rejected"
        COMPLETED = "completed"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending"
        PAID = "paid"
        REFUNDED = "refunded"

    room = models.ForeignKey(Room, on_delete=models.SET_NULL, null=True, related_name="bookings")
    hotel = models.ForeignKey(Hotel, on_delete=models.CASCADE, related_name="bookings")
    room_name = models.CharField(max_length=150)
    guest_name = models.CharField(max_length=150)
    guest_email = models.EmailField()
    guest_phone = models.CharField(max_length=50, blank=True)
    check_in = models.DateTimeField()
    check_out = models.DateTimeField()
    number_of_rooms = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    number_of_guests = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    payment_status = models.CharField(max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    client_token = models.UUIDField(null=True, blank=True, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["hotel", "status"], name="booking_hotel_status_idx"),
            models.Index(fields=["guest_email"], name="booking_guest_email_idx"),
        ]

    def __str__(self):
        return f"Booking #{self.pk} ({self.status})"


class WalletTransaction(models.Model):
    class Type(models.TextChoices):
        CREDIT = "credit"
        DEBIT = "debit"

    class Status(models.TextChoices):
        PENDING = "pending"
        COMPLETED = "completed"
        FAILED = "failed"

    hotel = models.ForeignKey(Hotel, on_delete=models.CASCADE, related_name="wallet_transactions")
    booking = models.ForeignKey(Booking, on_delete=models.SET_NULL, null=True, blank=True,
                                related_name="wallet_transactions")
    type = models.CharField(max_length=10, choices=Type.choices)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    reference = models.CharField(max_length=64, unique=True)
    description = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="wallet_transaction_amount_positive"),
        ]

    def __str__(self):
        return f"{self.type} {self.amount} ({self.reference})"
