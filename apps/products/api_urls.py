"""
Routes API REST pour les annonces. Retournent du JSON.
"""
from django.urls import path, include
from rest_framework.routers import SimpleRouter
from . import api_views

produit_router = SimpleRouter()
produit_router.register(r'', api_views.ProduitViewSet, basename='produit')

urlpatterns = [
    # Route directe pour categories (évite le conflit avec /<id>/)
    path('categories/', api_views.CategorieViewSet.as_view({'get': 'list'}), name='categorie-list'),
    path('categories/<int:pk>/', api_views.CategorieViewSet.as_view({'get': 'retrieve'}), name='categorie-detail'),
    path('', include(produit_router.urls)),
]
