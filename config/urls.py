# config/urls.py

from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

from . import views

# -------------------------------------------------------------------
# URL CONFIGURATION
# -------------------------------------------------------------------

urlpatterns = [
    # ----------------------------------------------------------------
    # Health & diagnostics
    # ----------------------------------------------------------------
    path("health/", views.health_check_view, name="health_check"),

    # ----------------------------------------------------------------
    # API namespaces
    # ----------------------------------------------------------------
    path("api/lessons/", include(("lessons.urls", "lessons"), namespace="lessons")),
    path("api/billing/", include(("billing.urls", "billing"), namespace="billing")),
    path("api/bulk-uploads/", include(("bulk_uploads.urls", "bulk_uploads"), namespace="bulk_uploads")),

    # ----------------------------------------------------------------
    # Session login for the browsable dashboard client
    # ----------------------------------------------------------------
    path("api/auth/", include("rest_framework.urls")),

    # ----------------------------------------------------------------
    # Admin
    # ----------------------------------------------------------------
    path("admin/", admin.site.urls),
]

# -------------------------------------------------------------------
# Error handlers
# -------------------------------------------------------------------

handler400 = "config.views.handler400"
handler403 = "config.views.handler403"
handler404 = "config.views.handler404"
handler500 = "config.views.handler500"

# -------------------------------------------------------------------
# Media (development only)
# -------------------------------------------------------------------

if settings.DEBUG:
    urlpatterns += static(
        settings.MEDIA_URL,
        document_root=settings.MEDIA_ROOT,
    )
