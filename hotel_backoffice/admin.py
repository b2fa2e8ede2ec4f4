from django.contrib import admin, messages

from hotel_backoffice import services
from hotel_backoffice.exceptions import Conflict
from hotel_backoffice.models import Booking, Hotel, Room, WalletTransaction


@admin.register(Hotel)
class HotelAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "email", "city", "wallet_balance")
    search_fields = ("name", "email", "city")
    readonly_fields = ("wallet_balance", "created_at")


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "hotel", "type", "price", "available_rooms", "total_rooms", "is_available")
    list_filter = ("type", "is_available", "hotel")
    search_fields = ("name", "hotel__name")


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("id", "room_name", "hotel", "guest_name", "check_in", "check_out", "status", "payment_status")
    list_filter = ("status", "payment_status", "hotel")
    search_fields = ("guest_name", "guest_email", "room_name")
    readonly_fields = ("status", "payment_status", "total_price", "created_at", "updated_at")


@admin.register(WalletTransaction)
class WalletTransactionAdmin(admin.ModelAdmin):
    list_display = ("reference", "hotel", "type", "amount", "status", "created_at")
    list_filter = ("type", "status")
    search_fields = ("reference", "hotel__name")
    actions = ["mark_completed", "mark_failed"]

    def has_change_permission(self, request, obj=None):
        return False

    def _settle(self, request, queryset, succeeded):
        settled = 0
        for txn in queryset:
            try:
                services.settle_withdrawal(txn, succeeded)
                settled += 1
            except Conflict as exc:
                self.message_user(request, f"{txn.reference}: {exc.detail}", level=messages.WARNING)
        self.message_user(request, f"{settled} withdrawal(s) settled.")

    @admin.action(description="Mark selected withdrawals as completed")
    def mark_completed(self, request, queryset):
        self._settle(request, queryset, succeeded=True)

    @admin.action(description="Mark selected withdrawals as failed (refund wallet)")
    def mark_failed(self, request, queryset):
        self._settle(request, queryset, succeeded=False)
