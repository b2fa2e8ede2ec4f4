import logging
import os
import uuid

from django.contrib.auth import logout
from django.core.files.storage import default_storage
from django.http import JsonResponse
from rest_framework import generics, mixins, status, viewsets
from rest_framework.authtoken.models import Token
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .models import Booking, Room, WalletTransaction
from .permissions import HasPaymentSignature, IsHotelOperator, IsHotelOwnerOfObject, get_request_hotel
from .serializers import (
    BookingSerializer,
    BookingStatusSerializer,
    HotelSerializer,
    ImageUploadSerializer,
    PaymentConfirmationSerializer,
    RegisterSerializer,
    RoomAvailabilitySerializer,
    RoomSerializer,
    WalletTransactionSerializer,
    WithdrawalSerializer,
)

logger = logging.getLogger(__name__)


def welcome(request):
    return JsonResponse({"message": "Welcome to the Hotel Back Office"})


def health_check(request):
    return JsonResponse({"status": "ok"})


def _int_param(request, name):
    value = request.query_params.get(name)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError({name: "Must be an integer."})


# Accounts

class RegisterView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        hotel = services.register_hotel(serializer.validated_data)
        token, _ = Token.objects.get_or_create(user=hotel.owner)
        return Response({"token": token.key, "hotel": HotelSerializer(hotel).data},
                        status=status.HTTP_201_CREATED)


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        Token.objects.filter(user=request.user).delete()
        logout(request)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Hotel operator endpoints

class HotelProfileView(generics.RetrieveUpdateAPIView):
    serializer_class = HotelSerializer
    permission_classes = [IsAuthenticated, IsHotelOperator]

    def get_object(self):
        return get_request_hotel(self.request)

    def perform_update(self, serializer):
        serializer.instance = services.update_hotel_profile(serializer.instance, serializer.validated_data)


class HotelStatsView(APIView):
    permission_classes = [IsAuthenticated, IsHotelOperator]

    def get(self, request):
        return Response(services.hotel_stats(get_request_hotel(request)))


class ImageUploadView(APIView):
    permission_classes = [IsAuthenticated, IsHotelOperator]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        serializer = ImageUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        urls = []
        for upload in serializer.validated_data["images"]:
            extension = os.path.splitext(upload.name)[1].lower()
            name = default_storage.save(f"rooms/{uuid.uuid4().hex}{extension}", upload)
            urls.append(default_storage.url(name))

        logger.info("Hotel %s uploaded %s image(s)", get_request_hotel(request).id, len(urls))
        return Response({"urls": urls})


class HotelRoomViewSet(viewsets.ModelViewSet):
    serializer_class = RoomSerializer
    permission_classes = [IsAuthenticated, IsHotelOperator, IsHotelOwnerOfObject]

    def get_queryset(self):
        # Detail lookups span all hotels so a foreign room is a 403, not a 404
        if self.action == "list":
            return Room.objects.filter(hotel=get_request_hotel(self.request))
        return Room.objects.all()

    def perform_create(self, serializer):
        serializer.instance = services.create_room(get_request_hotel(self.request), serializer.validated_data)

    def perform_update(self, serializer):
        serializer.instance = services.update_room(serializer.instance, serializer.validated_data)

    def perform_destroy(self, instance):
        services.delete_room(instance)

    @action(detail=True, methods=['patch'])
    def availability(self, request, pk=None):
        """Adjust the number of free units by `count` (clamped to the room's bounds)"""
        room = self.get_object()
        serializer = RoomAvailabilitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        room = services.adjust_availability(room.pk, serializer.validated_data["count"])
        return Response(RoomSerializer(room).data)


class HotelBookingViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = BookingSerializer
    permission_classes = [IsAuthenticated, IsHotelOperator, IsHotelOwnerOfObject]

    def get_queryset(self):
        if self.action != "list":
            return Booking.objects.all()

        bookings = Booking.objects.filter(hotel=get_request_hotel(self.request))
        booking_status = self.request.query_params.get('status')
        if booking_status:
            bookings = bookings.filter(status=booking_status.lower())
        return bookings

    @action(detail=True, methods=['patch'], url_path='status')
    def update_status(self, request, pk=None):
        """Approve, reject or complete a booking"""
        booking = self.get_object()
        serializer = BookingStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = services.update_booking_status(booking, serializer.validated_data["status"])
        return Response(BookingSerializer(booking).data)


class HotelWalletViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated, IsHotelOperator]

    def list(self, request):
        """Current balance with the latest transactions"""
        hotel = get_request_hotel(request)
        recent = WalletTransaction.objects.filter(hotel=hotel)[:10]
        return Response({
            "balance": hotel.wallet_balance,
            "has_bank_details": hotel.has_bank_details,
            "recent_transactions": WalletTransactionSerializer(recent, many=True).data,
        })

    @action(detail=False, methods=['get'])
    def transactions(self, request):
        transactions = WalletTransaction.objects.filter(hotel=get_request_hotel(request))
        txn_type = request.query_params.get('type')
        if txn_type:
            transactions = transactions.filter(type=txn_type)
        return Response(WalletTransactionSerializer(transactions, many=True).data)

    @action(detail=False, methods=['post'])
    def withdraw(self, request):
        """Send the wallet balance (or part of it) to the hotel's bank account"""
        serializer = WithdrawalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        txn = services.request_withdrawal(get_request_hotel(request), serializer.validated_data.get("amount"))
        return Response(WalletTransactionSerializer(txn).data, status=status.HTTP_201_CREATED)


# Public endpoints for the guest-facing app

class PublicRoomViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = RoomSerializer
    permission_classes = [AllowAny]

    def get_queryset(self):
        if self.action != "list":
            return Room.objects.all()

        rooms = Room.objects.filter(is_available=True, available_rooms__gt=0)
        hotel_id = _int_param(self.request, 'hotel')
        max_price = _int_param(self.request, 'max_price')
        guests = _int_param(self.request, 'guests')
        room_type = self.request.query_params.get('type')

        if hotel_id is not None:
            rooms = rooms.filter(hotel_id=hotel_id)
        if max_price is not None:
            rooms = rooms.filter(price__lte=max_price)
        if guests is not None:
            rooms = rooms.filter(capacity__gte=guests)
        if room_type:
            rooms = rooms.filter(type=room_type)
        return rooms


class PublicBookingViewSet(mixins.CreateModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    queryset = Booking.objects.all()
    serializer_class = BookingSerializer
    permission_classes = [AllowAny]

    def perform_create(self, serializer):
        serializer.instance = services.create_booking(serializer.validated_data)

    @action(detail=False, methods=['get'])
    def by_email(self, request):
        """Get bookings by guest email"""
        email = request.query_params.get('email')
        if not email:
            return Response({'error': 'Email parameter is required'},
                            status=status.HTTP_400_BAD_REQUEST)

        bookings = Booking.objects.filter(guest_email__iexact=email)
        serializer = self.get_serializer(bookings, many=True)
        return Response(serializer.data)

    @action(detail=True, methods=['post'], authentication_classes=[], permission_classes=[HasPaymentSignature])
    def confirm_payment(self, request, pk=None):
        """Payment provider callback for a booking, signed with the shared secret"""
        booking = self.get_object()
        serializer = PaymentConfirmationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = services.confirm_payment(booking, **serializer.validated_data)
        return Response({
            'payment_status': booking.payment_status,
            'booking_id': booking.id,
            'amount': booking.total_price,
        })
