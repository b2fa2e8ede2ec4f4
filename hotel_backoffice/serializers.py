from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from .models import Booking, Hotel, Room, WalletTransaction

User = get_user_model()


class RegisterSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    phone = serializers.CharField(max_length=50, allow_blank=True, required=False)
    address = serializers.CharField(max_length=255, allow_blank=True, required=False)
    city = serializers.CharField(max_length=100, allow_blank=True, required=False)

    def validate_email(self, value):
        value = value.lower()
        if User.objects.filter(username=value).exists() or Hotel.objects.filter(email=value).exists():
            raise serializers.ValidationError("A hotel with this email is already registered.")
        return value

    def validate_password(self, value):
        validate_password(value)
        return value


class HotelSerializer(serializers.ModelSerializer):
    has_bank_details = serializers.BooleanField(read_only=True)
    current_password = serializers.CharField(write_only=True, required=False, trim_whitespace=False)
    new_password = serializers.CharField(write_only=True, required=False, min_length=8, trim_whitespace=False)

    class Meta:
        model = Hotel
        fields = [
            "id", "name", "email", "phone", "address", "city", "wallet_balance",
            "bank_name", "bank_account_number", "bank_account_name", "has_bank_details", "created_at",
            "current_password", "new_password",
        ]
        read_only_fields = ["id", "wallet_balance", "created_at"]

    def validate_email(self, value):
        value = value.lower()
        owner_id = self.instance.owner_id if self.instance else None
        if User.objects.filter(username=value).exclude(pk=owner_id).exists():
            raise serializers.ValidationError("This email is already in use.")
        return value

    def validate_new_password(self, value):
        validate_password(value, user=self.instance.owner if self.instance else None)
        return value

    def validate(self, data):
        # every profile change is confirmed with the account password
        if self.instance is not None:
            current = data.get("current_password")
            if not current:
                raise serializers.ValidationError({"current_password": "This field is required."})
            if not self.instance.owner.check_password(current):
                raise serializers.ValidationError({"current_password": "Current password is incorrect"})
        return data


class RoomSerializer(serializers.ModelSerializer):
    amenities = serializers.ListField(
        child=serializers.ChoiceField(choices=Room.Amenity.choices), required=False,
    )
    images = serializers.ListField(child=serializers.CharField(max_length=500))
    available_rooms = serializers.IntegerField(min_value=0, required=False)

    class Meta:
        model = Room
        fields = [
            "id", "hotel", "name", "type", "capacity", "price", "description", "amenities", "images",
            "total_rooms", "available_rooms", "is_available", "created_at",
        ]
        read_only_fields = ["id", "hotel", "created_at"]

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data['booked_rooms'] = instance.total_rooms - instance.available_rooms
        return data

    def validate_amenities(self, value):
        # keep first occurrence order
        return list(dict.fromkeys(value))

    def validate_images(self, value):
        low, high = settings.ROOM_IMAGES_MIN, settings.ROOM_IMAGES_MAX
        if not low <= len(value) <= high:
            raise serializers.ValidationError(f"Provide between {low} and {high} images.")
        return value

    def validate(self, data):
        # Check the bound on the merged record for partial updates
        total = data.get('total_rooms', getattr(self.instance, 'total_rooms', None))
        if self.instance is not None:
            available = data.get('available_rooms', self.instance.available_rooms)
        else:
            available = data.get('available_rooms', total)

        if total is not None and available is not None and available > total:
            raise serializers.ValidationError({"available_rooms": "Available rooms cannot exceed total rooms."})

        return data


# largest value a 32-bit INTEGER column (and query parameter) holds
MAX_DB_INT = 2147483647


class RoomAvailabilitySerializer(serializers.Serializer):
    count = serializers.IntegerField(min_value=-MAX_DB_INT, max_value=MAX_DB_INT)


class BookingSerializer(serializers.ModelSerializer):
    room_id = serializers.IntegerField()
    client_token = serializers.UUIDField(write_only=True, required=False)

    class Meta:
        model = Booking
        fields = [
            "id", "room_id", "hotel", "room_name", "guest_name", "guest_email", "guest_phone",
            "check_in", "check_out", "number_of_rooms", "number_of_guests", "total_price",
            "status", "payment_status", "client_token", "created_at", "updated_at",
        ]
        read_only_fields = [
            "id", "hotel", "room_name", "total_price", "status", "payment_status", "created_at", "updated_at",
        ]

    def validate(self, data):
        check_in = data.get('check_in')
        check_out = data.get('check_out')

        if check_in and check_out and check_out <= check_in:
            raise serializers.ValidationError("check_out must be after check_in")

        return data


class BookingStatusSerializer(serializers.Serializer):
    status = serializers.CharField()

    def validate_status(self, value):
        # dashboards send either "approved" or "APPROVED"
        value = value.strip().lower()
        if value not in Booking.Status.values:
            raise serializers.ValidationError("Invalid status")
        return value


class PaymentConfirmationSerializer(serializers.Serializer):
    success = serializers.BooleanField(default=True)
    provider_ref = serializers.CharField(max_length=100, allow_blank=True, required=False, default="")


class WalletTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = WalletTransaction
        fields = ["id", "type", "amount", "status", "reference", "description", "booking", "created_at"]
        read_only_fields = fields


class WithdrawalSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"), required=False)


class ImageUploadSerializer(serializers.Serializer):
    images = serializers.ListField(child=serializers.FileField(), allow_empty=False)

    def validate_images(self, files):
        if len(files) > settings.UPLOAD_MAX_FILES:
            raise serializers.ValidationError(f"Upload at most {settings.UPLOAD_MAX_FILES} files at once.")
        for upload in files:
            if upload.content_type not in settings.UPLOAD_ALLOWED_CONTENT_TYPES:
                raise serializers.ValidationError("Invalid file type. Only JPEG, PNG and WebP are allowed")
            if upload.size > settings.UPLOAD_MAX_FILE_SIZE:
                limit_mb = settings.UPLOAD_MAX_FILE_SIZE // (1024 * 1024)
                raise serializers.ValidationError(f"{upload.name} is larger than the {limit_mb}MB limit.")
        return files
