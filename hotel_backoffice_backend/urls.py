from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path, include
from hotel_backoffice.views import health_check, welcome

urlpatterns = [
    path('admin/', admin.site.urls),
    path('health', health_check, name='health'),
    path('', welcome, name='welcome'),
    path('api/', include('hotel_backoffice.urls')),  # Include the app's API URLs
] + static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
