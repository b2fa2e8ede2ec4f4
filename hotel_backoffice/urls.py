from django.urls import include, path
from rest_framework.authtoken.views import obtain_auth_token
from rest_framework.routers import SimpleRouter

from hotel_backoffice.views import (
    HotelBookingViewSet,
    HotelProfileView,
    HotelRoomViewSet,
    HotelStatsView,
    HotelWalletViewSet,
    ImageUploadView,
    LogoutView,
    PublicBookingViewSet,
    PublicRoomViewSet,
    RegisterView,
)

hotel_router = SimpleRouter()
hotel_router.register(r'rooms', HotelRoomViewSet, basename='hotel-room')
hotel_router.register(r'bookings', HotelBookingViewSet, basename='hotel-booking')
hotel_router.register(r'wallet', HotelWalletViewSet, basename='hotel-wallet')

public_router = SimpleRouter()
public_router.register(r'rooms', PublicRoomViewSet, basename='public-room')
public_router.register(r'bookings', PublicBookingViewSet, basename='public-booking')

urlpatterns = [
    path('auth/register', RegisterView.as_view(), name='register'),
    path('auth/login', obtain_auth_token, name='login'),
    path('auth/logout', LogoutView.as_view(), name='logout'),
    path('hotel/', HotelProfileView.as_view(), name='hotel-profile'),
    path('hotel/stats/', HotelStatsView.as_view(), name='hotel-stats'),
    path('hotel/upload/images/', ImageUploadView.as_view(), name='hotel-upload-images'),
    path('hotel/', include(hotel_router.urls)),
    path('public/', include(public_router.urls)),
]
