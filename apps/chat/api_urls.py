"""
Le Marché Luxe — chat/api_urls.py
Routes API pour la messagerie (préfixe 'api/chat/' défini dans config/urls.py).
"""
from django.urls import path
from . import api_views

urlpatterns = [
    path('',
         api_views.ConversationListeAPIView.as_view(),
         name='chat-liste'),

    # Depuis la fiche annonce
    path('contacter/',
         api_views.ContacterVendeurAPIView.as_view(),
         name='chat-contacter'),

    # Badge navbar
    path('non_lus/',
         api_views.NonLusAPIView.as_view(),
         name='chat-non-lus'),

    path('<int:pk>/',
         api_views.ConversationDetailAPIView.as_view(),
         name='chat-detail'),

    path('<int:pk>/messages/',
         api_views.MessagesConversationAPIView.as_view(),
         name='chat-messages'),

    path('<int:pk>/envoyer/',
         api_views.EnvoyerMessageAPIView.as_view(),
         name='chat-envoyer'),

    path('<int:pk>/marquer_lu/',
         api_views.MarquerLuAPIView.as_view(),
         name='chat-marquer-lu'),

    path('messages/<int:pk>/lu/',
         api_views.MarquerMessageLuAPIView.as_view(),
         name='chat-message-lu'),
]
