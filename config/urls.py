"""
Le Marché Luxe — urls.py
Point d'entrée de toutes les URLs du projet (API JSON uniquement)
"""
from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

urlpatterns = [
    path('admin/', admin.site.urls),

    # ── API REST ─────────────────────────────────────────────
    path('api/auth/',     include('apps.users.api_urls')),
    path('api/produits/', include('apps.products.api_urls')),
    path('api/chat/',     include('apps.chat.api_urls')),
]

if settings.DEBUG:
    # Photos des annonces et avatars servis par Django en local
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
