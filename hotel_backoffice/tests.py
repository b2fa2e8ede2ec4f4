import json
import shutil
import tempfile
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from io import StringIO
from unittest import mock

from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.db import IntegrityError, connection, transaction
from django.test import TestCase, TransactionTestCase, override_settings
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.test import APITestCase

from hotel_backoffice_backend.asgi import application

from . import notifications, services
from .exceptions import Conflict, InsufficientFunds, InvalidStatusTransition, RoomUnavailable
from .models import Booking, Hotel, Room, WalletTransaction
from .permissions import payment_signature

User = get_user_model()

PASSWORD = "s3cret-pass-123"
CHECK_IN = datetime(2030, 1, 10, 14, 0, tzinfo=dt_timezone.utc)
CHECK_OUT = CHECK_IN + timedelta(days=2)


def make_hotel(email="ops@seaview.test", name="Sea View", **extra):
    user = User.objects.create_user(username=email, email=email, password=PASSWORD)
    return Hotel.objects.create(owner=user, name=name, email=email, **extra)


def make_room(hotel, total_rooms=5, available_rooms=None, **extra):
    data = {
        "name": "Deluxe King",
        "type": Room.Type.DELUXE,
        "capacity": 2,
        "price": 10000,
        "description": "King bed, city view",
        "amenities": ["Wi-Fi", "TV"],
        "images": ["/media/rooms/a.jpg"],
        "total_rooms": total_rooms,
        "available_rooms": total_rooms if available_rooms is None else available_rooms,
    }
    data.update(extra)
    return Room.objects.create(hotel=hotel, **data)


def booking_data(room, **extra):
    data = {
        "room_id": room.id,
        "guest_name": "Ada Obi",
        "guest_email": "ada@example.com",
        "guest_phone": "0800 000 0000",
        "check_in": CHECK_IN,
        "check_out": CHECK_OUT,
        "number_of_rooms": 1,
        "number_of_guests": 2,
    }
    data.update(extra)
    return data


class RoomAvailabilityTestCase(TestCase):
    """Saturating and strict adjustments of available_rooms"""

    def setUp(self):
        self.hotel = make_hotel()
        self.room = make_room(self.hotel, total_rooms=5)

    def test_increment_at_total_is_absorbed(self):
        room = services.adjust_availability(self.room.id, 3)
        self.assertEqual(room.available_rooms, 5)

    def test_decrement_at_zero_is_absorbed(self):
        services.adjust_availability(self.room.id, -5)
        room = services.adjust_availability(self.room.id, -2)
        self.assertEqual(room.available_rooms, 0)

    def test_bounds_hold_after_any_sequence(self):
        for delta in [-1, -3, 7, -10, 2, 2, 2, -1, 100, -100, 4]:
            room = services.adjust_availability(self.room.id, delta)
            with self.subTest(delta=delta):
                self.assertGreaterEqual(room.available_rooms, 0)
                self.assertLessEqual(room.available_rooms, room.total_rooms)
        self.assertEqual(room.available_rooms, 4)

    def test_adjustments_from_stale_copies_are_not_lost(self):
        """Two requests that loaded the room earlier both land"""
        first = Room.objects.get(pk=self.room.pk)
        second = Room.objects.get(pk=self.room.pk)

        services.adjust_availability(first.pk, -1)
        services.adjust_availability(second.pk, -1)

        self.room.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 3)

    def test_unknown_room(self):
        with self.assertRaises(NotFound):
            services.adjust_availability(9999, 1)

    def test_consume_fails_when_pool_is_empty(self):
        services.consume_availability(self.room.id, 5)
        with self.assertRaises(RoomUnavailable):
            services.consume_availability(self.room.id, 1)
        self.room.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 0)

    def test_database_rejects_available_above_total(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            Room.objects.filter(pk=self.room.pk).update(available_rooms=6)

    def test_update_room_writes_only_patched_columns(self):
        stale = Room.objects.get(pk=self.room.pk)
        services.adjust_availability(self.room.id, -2)

        room = services.update_room(stale, {"name": "Deluxe Queen"})

        self.assertEqual(room.name, "Deluxe Queen")
        self.assertEqual(room.available_rooms, 3)


class BookingLifecycleTestCase(TestCase):
    """Booking status transitions and the availability they consume"""

    def setUp(self):
        self.hotel = make_hotel()
        self.room = make_room(self.hotel, total_rooms=5)

    def test_full_lifecycle_scenario(self):
        booking = services.create_booking(booking_data(self.room))
        self.room.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.PENDING)
        self.assertEqual(booking.payment_status, Booking.PaymentStatus.PENDING)
        self.assertEqual(booking.hotel, self.hotel)
        self.assertEqual(self.room.available_rooms, 5)

        services.update_booking_status(booking, Booking.Status.APPROVED)
        self.room.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 4)

        services.update_booking_status(booking, Booking.Status.COMPLETED)
        self.room.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.COMPLETED)
        self.assertEqual(self.room.available_rooms, 4)

    def test_rejection_leaves_availability_alone(self):
        booking = services.create_booking(booking_data(self.room))
        services.update_booking_status(booking, Booking.Status.REJECTED)
        self.room.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 5)

    def test_repeated_approval_debits_once(self):
        booking = services.create_booking(booking_data(self.room))
        services.update_booking_status(booking, Booking.Status.APPROVED)
        services.update_booking_status(booking, Booking.Status.APPROVED)

        again = Booking.objects.get(pk=booking.pk)
        services.update_booking_status(again, Booking.Status.APPROVED)

        self.room.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 4)

    def test_approval_through_stale_copy_debits_once(self):
        """Two requests approving the same booking"""
        booking = services.create_booking(booking_data(self.room))
        first = Booking.objects.get(pk=booking.pk)
        second = Booking.objects.get(pk=booking.pk)

        services.update_booking_status(first, Booking.Status.APPROVED)
        result = services.update_booking_status(second, Booking.Status.APPROVED)

        self.assertEqual(result.status, Booking.Status.APPROVED)
        self.room.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 4)

    def test_disallowed_transitions_are_rejected(self):
        scenarios = [
            (Booking.Status.PENDING, Booking.Status.COMPLETED),
            (Booking.Status.APPROVED, Booking.Status.PENDING),
            (Booking.Status.APPROVED, Booking.Status.REJECTED),
            (Booking.Status.REJECTED, Booking.Status.PENDING),
            (Booking.Status.REJECTED, Booking.Status.APPROVED),
            (Booking.Status.COMPLETED, Booking.Status.APPROVED),
            (Booking.Status.COMPLETED, Booking.Status.PENDING),
        ]
        booking = services.create_booking(booking_data(self.room))

        for current, target in scenarios:
            with self.subTest(current=current, target=target):
                Booking.objects.filter(pk=booking.pk).update(status=current)
                booking.refresh_from_db()
                with self.assertRaises(InvalidStatusTransition):
                    services.update_booking_status(booking, target)
                booking.refresh_from_db()
                self.assertEqual(booking.status, current)

        self.room.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 5)

    def test_unknown_status_value(self):
        booking = services.create_booking(booking_data(self.room))
        with self.assertRaises(ValidationError):
            services.update_booking_status(booking, "cancelled")

    def test_second_approval_fails_when_last_unit_is_taken(self):
        Room.objects.filter(pk=self.room.pk).update(available_rooms=1)
        first = services.create_booking(booking_data(self.room, guest_email="one@example.com"))
        second = services.create_booking(booking_data(self.room, guest_email="two@example.com"))

        services.update_booking_status(first, Booking.Status.APPROVED)
        with self.assertRaises(RoomUnavailable):
            services.update_booking_status(second, Booking.Status.APPROVED)

        self.room.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 0)
        self.assertEqual(second.status, Booking.Status.PENDING)

    def test_pending_requests_do_not_hold_inventory(self):
        Room.objects.filter(pk=self.room.pk).update(available_rooms=1)
        for i in range(3):
            services.create_booking(booking_data(self.room, guest_email=f"guest{i}@example.com"))

        self.assertEqual(Booking.objects.filter(room=self.room, status=Booking.Status.PENDING).count(), 3)
        self.room.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 1)

    def test_unavailable_room_refuses_bookings(self):
        Room.objects.filter(pk=self.room.pk).update(is_available=False)
        with self.assertRaises(RoomUnavailable):
            services.create_booking(booking_data(self.room))

    def test_request_larger_than_pool_is_refused(self):
        Room.objects.filter(pk=self.room.pk).update(available_rooms=2)
        with self.assertRaises(RoomUnavailable):
            services.create_booking(booking_data(self.room, number_of_rooms=3, number_of_guests=3))

    def test_guests_must_fit_the_rooms(self):
        with self.assertRaises(ValidationError):
            services.create_booking(booking_data(self.room, number_of_rooms=1, number_of_guests=3))

    def test_total_price_covers_nights_and_rooms(self):
        booking = services.create_booking(booking_data(self.room, number_of_rooms=2, number_of_guests=4))
        self.assertEqual(booking.total_price, Decimal("40000"))  # 2 nights * 2 rooms * 10000

    def test_partial_night_counts_as_a_night(self):
        booking = services.create_booking(booking_data(self.room, check_out=CHECK_IN + timedelta(hours=30)))
        self.assertEqual(booking.total_price, Decimal("20000"))

    def test_client_token_makes_creation_idempotent(self):
        token = uuid.uuid4()
        first = services.create_booking(booking_data(self.room, client_token=token))
        second = services.create_booking(booking_data(self.room, client_token=token))

        self.assertEqual(first.id, second.id)
        self.assertEqual(Booking.objects.filter(room=self.room).count(), 1)

    def test_approval_fails_once_room_is_gone(self):
        booking = services.create_booking(booking_data(self.room))
        Booking.objects.filter(pk=booking.pk).update(room=None)
        booking.refresh_from_db()

        with self.assertRaises(RoomUnavailable):
            services.update_booking_status(booking, Booking.Status.APPROVED)


class PaymentAndWalletTestCase(TestCase):
    """Payments fund the wallet; refunds and withdrawals drain it"""

    def setUp(self):
        self.hotel = make_hotel(bank_name="First Bank", bank_account_number="0123456789",
                                bank_account_name="Sea View Ltd")
        self.room = make_room(self.hotel)
        self.booking = services.create_booking(booking_data(self.room))

    def test_successful_payment_credits_wallet(self):
        services.confirm_payment(self.booking, success=True, provider_ref="psk_123")

        self.hotel.refresh_from_db()
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.payment_status, Booking.PaymentStatus.PAID)
        self.assertEqual(self.hotel.wallet_balance, Decimal("20000.00"))

        txn = WalletTransaction.objects.get(hotel=self.hotel)
        self.assertEqual(txn.type, WalletTransaction.Type.CREDIT)
        self.assertEqual(txn.status, WalletTransaction.Status.COMPLETED)
        self.assertEqual(txn.booking, self.booking)
        self.assertIn("psk_123", txn.description)

    def test_failed_payment_keeps_booking_pending(self):
        services.confirm_payment(self.booking, success=False)

        self.booking.refresh_from_db()
        self.hotel.refresh_from_db()
        self.assertEqual(self.booking.payment_status, Booking.PaymentStatus.PENDING)
        self.assertEqual(self.hotel.wallet_balance, Decimal("0"))

    def test_payment_is_processed_once(self):
        services.confirm_payment(self.booking)
        with self.assertRaises(Conflict):
            services.confirm_payment(self.booking)

        self.hotel.refresh_from_db()
        self.assertEqual(self.hotel.wallet_balance, Decimal("20000.00"))

    def test_rejected_booking_cannot_be_paid(self):
        services.update_booking_status(self.booking, Booking.Status.REJECTED)
        with self.assertRaises(Conflict):
            services.confirm_payment(self.booking)

    def test_rejecting_paid_booking_refunds_it(self):
        services.confirm_payment(self.booking)
        services.update_booking_status(self.booking, Booking.Status.REJECTED)

        self.booking.refresh_from_db()
        self.hotel.refresh_from_db()
        self.assertEqual(self.booking.payment_status, Booking.PaymentStatus.REFUNDED)
        self.assertEqual(self.hotel.wallet_balance, Decimal("0"))
        self.assertEqual(
            WalletTransaction.objects.filter(hotel=self.hotel, type=WalletTransaction.Type.DEBIT).count(), 1
        )

    def test_refund_needs_funds_and_rolls_back(self):
        services.confirm_payment(self.booking)
        services.request_withdrawal(self.hotel)

        with self.assertRaises(InsufficientFunds):
            services.update_booking_status(self.booking, Booking.Status.REJECTED)

        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.PENDING)
        self.assertEqual(self.booking.payment_status, Booking.PaymentStatus.PAID)

    def test_withdrawal_defaults_to_whole_balance(self):
        services.credit_wallet(self.hotel.id, Decimal("15000"), "Deposit")

        txn = services.request_withdrawal(self.hotel)

        self.assertEqual(txn.amount, Decimal("15000"))
        self.assertEqual(txn.status, WalletTransaction.Status.PENDING)
        self.assertTrue(txn.reference.startswith("WD-"))
        self.assertEqual(self.hotel.wallet_balance, Decimal("0"))

    def test_withdrawal_cannot_exceed_balance(self):
        services.credit_wallet(self.hotel.id, Decimal("100"), "Deposit")
        with self.assertRaises(InsufficientFunds):
            services.request_withdrawal(self.hotel, Decimal("100.01"))

    def test_withdrawal_of_empty_wallet(self):
        with self.assertRaises(InsufficientFunds):
            services.request_withdrawal(self.hotel)

    def test_withdrawal_requires_bank_details(self):
        hotel = make_hotel(email="nobank@example.com", name="No Bank Inn")
        services.credit_wallet(hotel.id, Decimal("100"), "Deposit")
        with self.assertRaises(ValidationError):
            services.request_withdrawal(hotel)

    def test_failed_withdrawal_returns_funds(self):
        services.credit_wallet(self.hotel.id, Decimal("500"), "Deposit")
        txn = services.request_withdrawal(self.hotel, Decimal("300"))

        services.settle_withdrawal(txn, succeeded=False)

        self.hotel.refresh_from_db()
        self.assertEqual(txn.status, WalletTransaction.Status.FAILED)
        self.assertEqual(self.hotel.wallet_balance, Decimal("500"))

    def test_settled_withdrawal_is_immutable(self):
        services.credit_wallet(self.hotel.id, Decimal("500"), "Deposit")
        txn = services.request_withdrawal(self.hotel)
        services.settle_withdrawal(txn, succeeded=True)

        with self.assertRaises(Conflict):
            services.settle_withdrawal(txn, succeeded=False)

        self.hotel.refresh_from_db()
        self.assertEqual(self.hotel.wallet_balance, Decimal("0"))


class AccountApiTestCase(APITestCase):
    """Registration, login and hotel profile"""

    def test_register_and_login(self):
        response = self.client.post('/api/auth/register', {
            'name': 'Harbour Hotel',
            'email': 'Manager@Harbour.test',
            'password': PASSWORD,
            'city': 'Lagos',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['token'])
        self.assertEqual(response.data['hotel']['email'], 'manager@harbour.test')
        self.assertEqual(Decimal(response.data['hotel']['wallet_balance']), Decimal('0'))

        response = self.client.post('/api/auth/login', {
            'username': 'manager@harbour.test',
            'password': PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.credentials(HTTP_AUTHORIZATION=f"Token {response.data['token']}")
        response = self.client.get('/api/hotel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Harbour Hotel')

    def test_duplicate_email_is_rejected(self):
        make_hotel(email="taken@example.com")
        response = self.client.post('/api/auth/register', {
            'name': 'Copycat', 'email': 'taken@example.com', 'password': PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_logout_revokes_token(self):
        response = self.client.post('/api/auth/register', {
            'name': 'Harbour Hotel', 'email': 'out@harbour.test', 'password': PASSWORD,
        }, format='json')
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {response.data['token']}")

        self.assertEqual(self.client.post('/api/auth/logout').status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.get('/api/hotel/').status_code, status.HTTP_401_UNAUTHORIZED)

    def test_profile_update_keeps_wallet_read_only(self):
        hotel = make_hotel()
        self.client.force_authenticate(user=hotel.owner)

        response = self.client.patch('/api/hotel/', {
            'phone': '+234 700 000 0000',
            'bank_name': 'First Bank',
            'bank_account_number': '0123456789',
            'bank_account_name': 'Sea View Ltd',
            'wallet_balance': '999999.00',
            'current_password': PASSWORD,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['has_bank_details'])
        hotel.refresh_from_db()
        self.assertEqual(hotel.phone, '+234 700 000 0000')
        self.assertEqual(hotel.wallet_balance, Decimal('0'))

    def test_profile_email_change_moves_login(self):
        hotel = make_hotel()
        self.client.force_authenticate(user=hotel.owner)

        response = self.client.patch('/api/hotel/', {'email': 'new@seaview.test', 'current_password': PASSWORD},
                                     format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        hotel.owner.refresh_from_db()
        self.assertEqual(hotel.owner.username, 'new@seaview.test')

    def test_profile_update_requires_current_password(self):
        hotel = make_hotel()
        self.client.force_authenticate(user=hotel.owner)

        for description, extra in [('missing', {}), ('wrong', {'current_password': 'not-my-password'})]:
            with self.subTest(current_password=description):
                response = self.client.patch('/api/hotel/', {'email': 'thief@example.com', **extra}, format='json')
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertIn('current_password', response.data)

        hotel.owner.refresh_from_db()
        self.assertEqual(hotel.owner.username, 'ops@seaview.test')

    def test_password_change(self):
        hotel = make_hotel()
        self.client.force_authenticate(user=hotel.owner)

        response = self.client.patch('/api/hotel/', {
            'current_password': PASSWORD, 'new_password': 'an0ther-pass-456',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn('new_password', response.data)

        self.client.force_authenticate(user=None)
        response = self.client.post('/api/auth/login', {
            'username': 'ops@seaview.test', 'password': PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/auth/login', {
            'username': 'ops@seaview.test', 'password': 'an0ther-pass-456',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_weak_new_password_is_rejected(self):
        hotel = make_hotel()
        self.client.force_authenticate(user=hotel.owner)

        response = self.client.patch('/api/hotel/', {
            'current_password': PASSWORD, 'new_password': '12345678',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('new_password', response.data)

    def test_user_without_hotel_is_forbidden(self):
        user = User.objects.create_user(username="guest", password=PASSWORD)
        self.client.force_authenticate(user=user)
        self.assertEqual(self.client.get('/api/hotel/rooms/').status_code, status.HTTP_403_FORBIDDEN)


class RoomApiTestCase(APITestCase):
    """Hotel-scoped room inventory endpoints"""

    def setUp(self):
        self.hotel = make_hotel()
        self.other_hotel = make_hotel(email="ops@rival.test", name="Rival")
        self.client.force_authenticate(user=self.hotel.owner)
        self.payload = {
            'name': 'Ocean Suite',
            'type': 'Suite',
            'capacity': 3,
            'price': 45000,
            'description': 'Corner suite',
            'amenities': ['Wi-Fi', 'Balcony', 'Wi-Fi'],
            'images': ['/media/rooms/1.jpg', '/media/rooms/2.jpg'],
            'total_rooms': 4,
        }

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.get('/api/hotel/rooms/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_room_defaults_available_to_total(self):
        response = self.client.post('/api/hotel/rooms/', self.payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['available_rooms'], 4)
        self.assertEqual(response.data['hotel'], self.hotel.id)
        self.assertEqual(response.data['amenities'], ['Wi-Fi', 'Balcony'])
        self.assertEqual(response.data['booked_rooms'], 0)

    def test_create_room_validation(self):
        scenarios = {
            'unknown amenity': {'amenities': ['Jacuzzi']},
            'unknown type': {'type': 'Penthouse'},
            'no images': {'images': []},
            'too many images': {'images': [f'/media/rooms/{i}.jpg' for i in range(16)]},
            'available above total': {'available_rooms': 5},
            'negative available': {'available_rooms': -1},
            'no rooms': {'total_rooms': 0},
            'zero capacity': {'capacity': 0},
            'zero price': {'price': 0},
        }
        for description, override in scenarios.items():
            with self.subTest(scenario=description):
                response = self.client.post('/api/hotel/rooms/', {**self.payload, **override}, format='json')
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.assertFalse(Room.objects.exists())

    @override_settings(ROOM_IMAGES_MIN=3, ROOM_IMAGES_MAX=4)
    def test_image_bounds_follow_settings(self):
        response = self.client.post('/api/hotel/rooms/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('images', response.data)

    def test_list_only_own_rooms(self):
        make_room(self.hotel)
        make_room(self.other_hotel)

        response = self.client.get('/api/hotel/rooms/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['hotel'], self.hotel.id)

    def test_lowering_total_below_available_is_rejected(self):
        room = make_room(self.hotel, total_rooms=5)

        response = self.client.patch(f'/api/hotel/rooms/{room.id}/', {'total_rooms': 3}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        room.refresh_from_db()
        self.assertEqual(room.total_rooms, 5)
        self.assertEqual(room.available_rooms, 5)

    def test_lowering_total_with_available(self):
        room = make_room(self.hotel, total_rooms=5)

        response = self.client.patch(f'/api/hotel/rooms/{room.id}/',
                                     {'total_rooms': 3, 'available_rooms': 3}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_rooms'], 3)
        self.assertEqual(response.data['available_rooms'], 3)

    def test_partial_update(self):
        room = make_room(self.hotel)

        response = self.client.patch(f'/api/hotel/rooms/{room.id}/', {'price': 12000, 'is_available': False},
                                     format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        room.refresh_from_db()
        self.assertEqual(room.price, 12000)
        self.assertFalse(room.is_available)

    def test_foreign_room_is_forbidden_missing_room_is_not_found(self):
        foreign = make_room(self.other_hotel)

        for method, suffix, body in [
            ('patch', '', {'price': 1}),
            ('delete', '', None),
            ('patch', 'availability/', {'count': -1}),
        ]:
            with self.subTest(method=method, suffix=suffix):
                response = getattr(self.client, method)(f'/api/hotel/rooms/{foreign.id}/{suffix}', body,
                                                        format='json')
                self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

                response = getattr(self.client, method)(f'/api/hotel/rooms/9999/{suffix}', body, format='json')
                self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        foreign.refresh_from_db()
        self.assertEqual(foreign.price, 10000)
        self.assertEqual(foreign.available_rooms, 5)

    def test_availability_endpoint_clamps(self):
        room = make_room(self.hotel, total_rooms=5, available_rooms=2)

        response = self.client.patch(f'/api/hotel/rooms/{room.id}/availability/', {'count': 10}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['available_rooms'], 5)

        response = self.client.patch(f'/api/hotel/rooms/{room.id}/availability/', {'count': -8}, format='json')
        self.assertEqual(response.data['available_rooms'], 0)

    def test_availability_endpoint_needs_integer_count(self):
        room = make_room(self.hotel)
        response = self.client.patch(f'/api/hotel/rooms/{room.id}/availability/', {'count': 'many'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_availability_count_outside_integer_range(self):
        room = make_room(self.hotel, total_rooms=5, available_rooms=2)

        for count in [10 ** 20, -(10 ** 20), 2147483648]:
            with self.subTest(count=count):
                response = self.client.patch(f'/api/hotel/rooms/{room.id}/availability/', {'count': count},
                                             format='json')
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        room.refresh_from_db()
        self.assertEqual(room.available_rooms, 2)

    def test_availability_extreme_counts_saturate(self):
        room = make_room(self.hotel, total_rooms=5, available_rooms=2)
        url = f'/api/hotel/rooms/{room.id}/availability/'

        response = self.client.patch(url, {'count': 2147483647}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['available_rooms'], 5)

        response = self.client.patch(url, {'count': -2147483647}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['available_rooms'], 0)

    def test_delete_room_with_active_booking_conflicts(self):
        room = make_room(self.hotel)
        services.create_booking(booking_data(room))

        response = self.client.delete(f'/api/hotel/rooms/{room.id}/')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Room.objects.filter(pk=room.pk).exists())

    def test_delete_room_keeps_finished_bookings(self):
        room = make_room(self.hotel)
        booking = services.create_booking(booking_data(room))
        services.update_booking_status(booking, Booking.Status.REJECTED)

        response = self.client.delete(f'/api/hotel/rooms/{room.id}/')

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        booking.refresh_from_db()
        self.assertIsNone(booking.room)
        self.assertEqual(booking.room_name, 'Deluxe King')


class BookingApiTestCase(APITestCase):
    """Public booking requests and hotel-side approvals"""

    def setUp(self):
        self.hotel = make_hotel()
        self.other_hotel = make_hotel(email="ops@rival.test", name="Rival")
        self.room = make_room(self.hotel, total_rooms=5)
        self.request_body = {
            'room_id': self.room.id,
            'guest_name': 'Ada Obi',
            'guest_email': 'ada@example.com',
            'check_in': '2030-01-10T14:00:00Z',
            'check_out': '2030-01-12T11:00:00Z',
            'number_of_rooms': 1,
            'number_of_guests': 2,
        }

    def test_public_booking_request(self):
        response = self.client.post('/api/public/bookings/', self.request_body, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['payment_status'], 'pending')
        self.assertEqual(response.data['hotel'], self.hotel.id)
        self.assertEqual(response.data['room_name'], 'Deluxe King')
        self.room.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 5)

    def test_client_supplied_hotel_and_status_are_ignored(self):
        response = self.client.post('/api/public/bookings/', {
            **self.request_body, 'hotel': self.other_hotel.id, 'status': 'approved',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        booking = Booking.objects.get(pk=response.data['id'])
        self.assertEqual(booking.hotel, self.hotel)
        self.assertEqual(booking.status, Booking.Status.PENDING)

    def test_public_booking_for_unavailable_room(self):
        Room.objects.filter(pk=self.room.pk).update(available_rooms=0)
        response = self.client.post('/api/public/bookings/', self.request_body, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('Room is not available', str(response.data))

    def test_public_booking_for_unknown_room(self):
        response = self.client.post('/api/public/bookings/', {**self.request_body, 'room_id': 9999},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_check_out_must_follow_check_in(self):
        response = self.client.post('/api/public/bookings/', {
            **self.request_body, 'check_out': '2030-01-10T14:00:00Z',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('check_out must be after check_in', str(response.data))

    def test_public_room_listing_hides_full_rooms(self):
        full = make_room(self.hotel, name='Full Room', total_rooms=2, available_rooms=0)
        closed = make_room(self.hotel, name='Closed Room', is_available=False)
        make_room(self.other_hotel, name='Elsewhere', price=99000)

        response = self.client.get('/api/public/rooms/')
        ids = {room['id'] for room in response.data}
        self.assertIn(self.room.id, ids)
        self.assertNotIn(full.id, ids)
        self.assertNotIn(closed.id, ids)

        response = self.client.get('/api/public/rooms/', {'hotel': self.hotel.id, 'max_price': 50000, 'guests': 2})
        self.assertEqual([room['id'] for room in response.data], [self.room.id])

        response = self.client.get('/api/public/rooms/', {'max_price': 'cheap'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(f'/api/public/rooms/{full.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_booking_lookup(self):
        booking = services.create_booking(booking_data(self.room))

        response = self.client.get(f'/api/public/bookings/{booking.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'pending')

        response = self.client.get('/api/public/bookings/by_email/', {'email': 'ADA@example.com'})
        self.assertEqual([b['id'] for b in response.data], [booking.id])

        response = self.client.get('/api/public/bookings/by_email/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_hotel_lists_own_bookings(self):
        services.create_booking(booking_data(self.room))
        rival_room = make_room(self.other_hotel)
        services.create_booking(booking_data(rival_room))
        self.client.force_authenticate(user=self.hotel.owner)

        response = self.client.get('/api/hotel/bookings/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['hotel'], self.hotel.id)

        response = self.client.get('/api/hotel/bookings/', {'status': 'approved'})
        self.assertEqual(response.data, [])

    def test_approve_then_complete(self):
        booking = services.create_booking(booking_data(self.room))
        self.client.force_authenticate(user=self.hotel.owner)
        url = f'/api/hotel/bookings/{booking.id}/status/'

        response = self.client.patch(url, {'status': 'APPROVED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'approved')
        self.room.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 4)

        response = self.client.patch(url, {'status': 'approved'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.room.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 4)

        response = self.client.patch(url, {'status': 'completed'}, format='json')
        self.assertEqual(response.data['status'], 'completed')
        self.room.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 4)

    def test_status_update_errors(self):
        booking = services.create_booking(booking_data(self.room))
        url = f'/api/hotel/bookings/{booking.id}/status/'

        self.assertEqual(self.client.patch(url, {'status': 'approved'}, format='json').status_code,
                         status.HTTP_401_UNAUTHORIZED)

        self.client.force_authenticate(user=self.other_hotel.owner)
        self.assertEqual(self.client.patch(url, {'status': 'approved'}, format='json').status_code,
                         status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.hotel.owner)
        self.assertEqual(self.client.patch('/api/hotel/bookings/9999/status/', {'status': 'approved'},
                                           format='json').status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.patch(url, {'status': 'cancelled'}, format='json').status_code,
                         status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.client.patch(url, {'status': 'completed'}, format='json').status_code,
                         status.HTTP_409_CONFLICT)

        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.PENDING)

    def test_approval_conflict_when_no_units_left(self):
        Room.objects.filter(pk=self.room.pk).update(available_rooms=1)
        first = services.create_booking(booking_data(self.room))
        second = services.create_booking(booking_data(self.room, guest_email='late@example.com'))
        self.client.force_authenticate(user=self.hotel.owner)

        response = self.client.patch(f'/api/hotel/bookings/{first.id}/status/', {'status': 'approved'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.patch(f'/api/hotel/bookings/{second.id}/status/', {'status': 'approved'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        self.room.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 0)

    def post_payment_callback(self, url, payload, signature=None):
        body = json.dumps(payload)
        if signature is None:
            signature = payment_signature(body.encode('utf-8'))
        return self.client.post(url, body, content_type='application/json', HTTP_X_PAYMENT_SIGNATURE=signature)

    @override_settings(PAYMENT_CALLBACK_SECRET='whsec-test')
    def test_confirm_payment(self):
        booking = services.create_booking(booking_data(self.room))
        url = f'/api/public/bookings/{booking.id}/confirm_payment/'

        response = self.post_payment_callback(url, {'success': True, 'provider_ref': 'psk_123'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['payment_status'], 'paid')

        response = self.post_payment_callback(url, {'success': True})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        self.hotel.refresh_from_db()
        self.assertEqual(self.hotel.wallet_balance, Decimal('20000.00'))

    @override_settings(PAYMENT_CALLBACK_SECRET='whsec-test')
    def test_unsigned_payment_callback_is_refused(self):
        booking = services.create_booking(booking_data(self.room))
        url = f'/api/public/bookings/{booking.id}/confirm_payment/'

        response = self.client.post(url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.post_payment_callback(url, {'success': True}, signature='0' * 64)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        # signature of a different body
        signature = payment_signature(json.dumps({'success': False}).encode('utf-8'))
        response = self.post_payment_callback(url, {'success': True}, signature=signature)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.hotel.owner)
        response = self.client.post(url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        booking.refresh_from_db()
        self.hotel.refresh_from_db()
        self.assertEqual(booking.payment_status, Booking.PaymentStatus.PENDING)
        self.assertEqual(self.hotel.wallet_balance, Decimal('0'))
        self.assertFalse(WalletTransaction.objects.exists())

    @override_settings(PAYMENT_CALLBACK_SECRET='')
    def test_payment_callback_refused_without_configured_secret(self):
        booking = services.create_booking(booking_data(self.room))
        url = f'/api/public/bookings/{booking.id}/confirm_payment/'

        response = self.post_payment_callback(url, {'success': True})

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.hotel.refresh_from_db()
        self.assertEqual(self.hotel.wallet_balance, Decimal('0'))


class WalletApiTestCase(APITestCase):

    def setUp(self):
        self.hotel = make_hotel(bank_name="First Bank", bank_account_number="0123456789",
                                bank_account_name="Sea View Ltd")
        self.client.force_authenticate(user=self.hotel.owner)
        services.credit_wallet(self.hotel.id, Decimal("30000"), "Payment for booking #1")

    def test_wallet_overview(self):
        response = self.client.get('/api/hotel/wallet/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['balance'], Decimal('30000.00'))
        self.assertEqual(len(response.data['recent_transactions']), 1)

    def test_withdraw_part_then_list(self):
        response = self.client.post('/api/hotel/wallet/withdraw/', {'amount': '10000.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['type'], 'debit')

        response = self.client.get('/api/hotel/wallet/transactions/')
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/hotel/wallet/transactions/', {'type': 'debit'})
        self.assertEqual(len(response.data), 1)

        self.hotel.refresh_from_db()
        self.assertEqual(self.hotel.wallet_balance, Decimal('20000.00'))

    def test_withdraw_more_than_balance(self):
        response = self.client.post('/api/hotel/wallet/withdraw/', {'amount': '30000.01'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_withdraw_rejects_non_positive_amount(self):
        response = self.client.post('/api/hotel/wallet/withdraw/', {'amount': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_withdraw_without_bank_details(self):
        Hotel.objects.filter(pk=self.hotel.pk).update(bank_account_number="")
        response = self.client.post('/api/hotel/wallet/withdraw/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_stats(self):
        room = make_room(self.hotel, total_rooms=5)
        booking = services.create_booking(booking_data(room))
        services.update_booking_status(booking, Booking.Status.APPROVED)
        services.confirm_payment(booking)

        response = self.client.get('/api/hotel/stats/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_rooms'], 5)
        self.assertEqual(response.data['available_rooms'], 4)
        self.assertEqual(response.data['occupancy_rate'], 20.0)
        self.assertEqual(response.data['bookings']['approved'], 1)
        self.assertEqual(response.data['revenue'], Decimal('20000.00'))


class ImageUploadTestCase(APITestCase):

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)
        self.hotel = make_hotel()
        self.client.force_authenticate(user=self.hotel.owner)

    def test_upload_returns_urls(self):
        files = [
            SimpleUploadedFile('front.png', b'\x89PNG fake', content_type='image/png'),
            SimpleUploadedFile('bath.jpg', b'\xff\xd8 fake', content_type='image/jpeg'),
        ]
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self.client.post('/api/hotel/upload/images/', {'images': files}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['urls']), 2)
        self.assertTrue(response.data['urls'][0].startswith('/media/rooms/'))
        self.assertTrue(response.data['urls'][1].endswith('.jpg'))

    def test_upload_rejects_other_types(self):
        document = SimpleUploadedFile('menu.pdf', b'%PDF', content_type='application/pdf')
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self.client.post('/api/hotel/upload/images/', {'images': [document]}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(UPLOAD_MAX_FILE_SIZE=4)
    def test_upload_rejects_large_files(self):
        image = SimpleUploadedFile('big.png', b'0123456789', content_type='image/png')
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self.client.post('/api/hotel/upload/images/', {'images': [image]}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class NotificationTestCase(TestCase):
    """Events reach the relay only after the mutation commits"""

    def setUp(self):
        self.hotel = make_hotel()
        self.room = make_room(self.hotel, total_rooms=5)

    def test_room_update_published_on_commit(self):
        with mock.patch('hotel_backoffice.notifications.publish') as publish:
            with self.captureOnCommitCallbacks(execute=True):
                services.adjust_availability(self.room.id, -1)

        publish.assert_called_once()
        hotel_id, event_type, payload = publish.call_args.args
        self.assertEqual(hotel_id, self.hotel.id)
        self.assertEqual(event_type, notifications.ROOM_UPDATE)
        self.assertEqual(payload['available_rooms'], 4)

    def test_booking_created_includes_room_name(self):
        with mock.patch('hotel_backoffice.notifications.publish') as publish:
            with self.captureOnCommitCallbacks(execute=True):
                booking = services.create_booking(booking_data(self.room))

        publish.assert_called_once_with(self.hotel.id, notifications.BOOKING_CREATED, mock.ANY)
        payload = publish.call_args.args[2]
        self.assertEqual(payload['id'], booking.id)
        self.assertEqual(payload['room'], 'Deluxe King')

    def test_approval_publishes_booking_and_room(self):
        booking = services.create_booking(booking_data(self.room))
        with mock.patch('hotel_backoffice.notifications.publish') as publish:
            with self.captureOnCommitCallbacks(execute=True):
                services.update_booking_status(booking, Booking.Status.APPROVED)

        event_types = [c.args[1] for c in publish.call_args_list]
        self.assertEqual(event_types, [notifications.BOOKING_UPDATE, notifications.ROOM_UPDATE])

    def test_failed_approval_publishes_nothing(self):
        booking = services.create_booking(booking_data(self.room))
        Room.objects.filter(pk=self.room.pk).update(available_rooms=0)
        with mock.patch('hotel_backoffice.notifications.publish') as publish:
            with self.captureOnCommitCallbacks(execute=True):
                with self.assertRaises(RoomUnavailable):
                    services.update_booking_status(booking, Booking.Status.APPROVED)

        publish.assert_not_called()

    def test_room_deleted_event(self):
        room_id = self.room.id
        with mock.patch('hotel_backoffice.notifications.publish') as publish:
            with self.captureOnCommitCallbacks(execute=True):
                services.delete_room(self.room)

        publish.assert_called_once_with(self.hotel.id, notifications.ROOM_DELETED, {'id': room_id})

    def test_publish_reaches_hotel_group(self):
        layer = get_channel_layer()
        channel = async_to_sync(layer.new_channel)()
        async_to_sync(layer.group_add)(notifications.hotel_group_name(self.hotel.id), channel)

        notifications.publish(self.hotel.id, notifications.ROOM_UPDATE, {'id': self.room.id})

        message = async_to_sync(layer.receive)(channel)
        self.assertEqual(message['event'], {'type': 'ROOM_UPDATE', 'payload': {'id': self.room.id}})
        async_to_sync(layer.group_discard)(notifications.hotel_group_name(self.hotel.id), channel)

    def test_publish_failure_is_logged_not_raised(self):
        class BrokenLayer:
            async def group_send(self, group, message):
                raise RuntimeError("channel layer down")

        with mock.patch('hotel_backoffice.notifications.get_channel_layer', return_value=BrokenLayer()):
            with self.assertLogs('hotel_backoffice.notifications', level='ERROR'):
                notifications.publish(self.hotel.id, notifications.ROOM_UPDATE, {})


class ConcurrentApprovalTestCase(TransactionTestCase):
    """Approvals racing for the last unit of a room"""

    def setUp(self):
        self.hotel = make_hotel()
        self.room = make_room(self.hotel, total_rooms=5, available_rooms=1)
        self.bookings = [
            services.create_booking(booking_data(self.room, guest_email=f"guest{i}@example.com"))
            for i in range(2)
        ]

    def test_concurrent_approvals_for_last_unit(self):
        """Exactly one approval wins when both requests arrive together"""
        barrier = threading.Barrier(len(self.bookings))

        def approve(booking_id):
            try:
                booking = Booking.objects.get(pk=booking_id)
                barrier.wait(timeout=10)
                services.update_booking_status(booking, Booking.Status.APPROVED)
                return 'approved'
            except RoomUnavailable:
                return 'unavailable'
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=len(self.bookings)) as executor:
            results = list(executor.map(approve, [booking.id for booking in self.bookings]))

        self.assertEqual(sorted(results), ['approved', 'unavailable'])
        self.room.refresh_from_db()
        self.assertEqual(self.room.available_rooms, 0)
        statuses = sorted(Booking.objects.filter(room=self.room).values_list('status', flat=True))
        self.assertEqual(statuses, [Booking.Status.APPROVED, Booking.Status.PENDING])


class HotelEventsConsumerTestCase(TransactionTestCase):
    """Dashboards subscribe over the websocket with their API token"""

    def setUp(self):
        self.hotel = make_hotel()
        self.token = Token.objects.create(user=self.hotel.owner)

    def connect(self, path='/ws/hotel/', headers=()):
        return WebsocketCommunicator(application, path, headers=[(b'origin', b'http://testserver'), *headers])

    async def test_operator_receives_own_hotel_events(self):
        communicator = self.connect(f'/ws/hotel/?token={self.token.key}')

        connected, _ = await communicator.connect()
        self.assertTrue(connected)

        event = {'type': 'BOOKING_CREATED', 'payload': {'id': 7, 'room': 'Deluxe King'}}
        await get_channel_layer().group_send(
            notifications.hotel_group_name(self.hotel.id),
            {'type': notifications.EVENT_MESSAGE_TYPE, 'event': event},
        )
        self.assertEqual(await communicator.receive_json_from(), event)

        await get_channel_layer().group_send(
            notifications.hotel_group_name(self.hotel.id + 1),
            {'type': notifications.EVENT_MESSAGE_TYPE, 'event': event},
        )
        self.assertTrue(await communicator.receive_nothing())

        await communicator.disconnect()

    async def test_authorization_header_token(self):
        communicator = self.connect(headers=[(b'authorization', f'Token {self.token.key}'.encode())])

        connected, _ = await communicator.connect()

        self.assertTrue(connected)
        await communicator.disconnect()

    async def test_connection_without_valid_token_is_refused(self):
        for path in ['/ws/hotel/', '/ws/hotel/?token=not-a-real-token']:
            with self.subTest(path=path):
                connected, _ = await self.connect(path).connect()
                self.assertFalse(connected)

    async def test_user_without_hotel_is_refused(self):
        user = await database_sync_to_async(User.objects.create_user)(username='guest', password=PASSWORD)
        token = await database_sync_to_async(Token.objects.create)(user=user)

        connected, _ = await self.connect(f'/ws/hotel/?token={token.key}').connect()

        self.assertFalse(connected)


class PopulateDbCommandTestCase(TestCase):

    def test_populate_is_repeatable(self):
        call_command('populate_db', stdout=StringIO())
        call_command('populate_db', stdout=StringIO())

        hotel = Hotel.objects.get(email='demo@hotel.test')
        self.assertEqual(hotel.rooms.count(), 4)
        for room in hotel.rooms.all():
            self.assertEqual(room.available_rooms, room.total_rooms)
