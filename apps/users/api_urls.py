"""
Le Marché Luxe — users/api_urls.py
Routes pour l'API REST de l'app users.
"""
from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from . import api_views

urlpatterns = [
    # ── Authentification JWT ──────────────────────────────────
    # POST → envoie email+password → reçoit access+refresh tokens
    path('token/',          TokenObtainPairView.as_view(), name='token_obtain'),
    path('token/refresh/',  TokenRefreshView.as_view(),    name='token_refresh'),

    # ── Compte ───────────────────────────────────────────────
    path('register/',                  api_views.InscriptionAPIView.as_view(),       name='api_inscription'),
    path('verifier-email/<uuid:token>/', api_views.VerifierEmailAPIView.as_view(),   name='api_verifier_email'),
    path('logout/',                    api_views.DeconnexionAPIView.as_view(),       name='api_deconnexion'),
    path('profil/',                    api_views.ProfilAPIView.as_view(),            name='api_profil'),
    path('changer-password/',          api_views.ChangerMotDePasseAPIView.as_view(), name='api_changer_mdp'),

    # ── Mot de passe oublié ──────────────────────────────────
    path('mot-de-passe/reinitialiser/', api_views.DemandeReinitialisationAPIView.as_view(),    name='api_reinitialiser_mdp'),
    path('mot-de-passe/confirmer/',     api_views.ConfirmationReinitialisationAPIView.as_view(), name='api_confirmer_mdp'),

    # ── Membres ──────────────────────────────────────────────
    path('utilisateurs/<int:pk>/', api_views.ProfilPublicAPIView.as_view(),        name='api_profil_public'),
    path('recherche/',             api_views.RechercheUtilisateursAPIView.as_view(), name='api_recherche_utilisateurs'),
]
