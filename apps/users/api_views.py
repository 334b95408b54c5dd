"""
Le Marché Luxe — users/api_views.py

Endpoints gérés :
  - POST /api/auth/register/                      → Inscription
  - GET  /api/auth/verifier-email/<token>/        → Activation du compte
  - POST /api/auth/token/                         → Connexion (JWT)
  - POST /api/auth/token/refresh/                 → Renouveler token
  - POST /api/auth/logout/                        → Déconnexion
  - GET/PATCH /api/auth/profil/                   → Voir/modifier son profil
  - POST /api/auth/changer-password/              → Changer mot de passe
  - POST /api/auth/mot-de-passe/reinitialiser/    → Mot de passe oublié
  - POST /api/auth/mot-de-passe/confirmer/        → Nouveau mot de passe
  - GET  /api/auth/utilisateurs/<id>/             → Profil public
  - GET  /api/auth/recherche/?q=                  → Recherche de membres
"""
import logging

from django.conf import settings
from django.shortcuts import get_object_or_404
from rest_framework import generics, status, permissions
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from .models import CustomUser, TokenVerificationEmail
from .serializers import (
    InscriptionSerializer,
    ProfilSerializer,
    ChangerMotDePasseSerializer,
    UtilisateurPublicSerializer,
    DemandeReinitialisationSerializer,
    ConfirmationReinitialisationSerializer,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# VUE API — Inscription
# POST /api/auth/register/
# ═══════════════════════════════════════════════════════════════

class InscriptionAPIView(generics.CreateAPIView):
    """
    Crée un compte inactif. L'email de vérification part
    automatiquement via le signal users/signals.py.
    """
    serializer_class   = InscriptionSerializer
    permission_classes = [permissions.AllowAny]

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        return Response({
            'message': f"Compte créé ! Vérifiez votre email {user.email} pour activer votre compte.",
            'email'  : user.email
        }, status=status.HTTP_201_CREATED)


# ═══════════════════════════════════════════════════════════════
# VUE API — Vérification email
# GET /api/auth/verifier-email/<token>/
# ═══════════════════════════════════════════════════════════════

class VerifierEmailAPIView(APIView):
    """
    Active le compte lié au token.
    Token expiré → le compte jamais activé est supprimé (réinscription).
    Le token est à usage unique.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, token):
        try:
            token_obj = TokenVerificationEmail.objects.select_related('utilisateur').get(token=token)
        except TokenVerificationEmail.DoesNotExist:
            return Response(
                {'detail': "Lien de vérification invalide."},
                status=status.HTTP_400_BAD_REQUEST
            )

        if token_obj.est_expire():
            logger.info(f"Token expiré pour {token_obj.utilisateur.email} : compte supprimé")
            token_obj.utilisateur.delete()
            return Response(
                {'detail': "Ce lien a expiré. Inscrivez-vous à nouveau."},
                status=status.HTTP_400_BAD_REQUEST
            )

        user = token_obj.utilisateur
        user.is_active     = True
        user.email_verifie = True
        user.save(update_fields=['is_active', 'email_verifie', 'date_modification'])

        token_obj.delete()

        return Response({'message': "Votre compte est activé ! Vous pouvez vous connecter."})


# ═══════════════════════════════════════════════════════════════
# VUE API — Déconnexion (blacklist du refresh token)
# POST /api/auth/logout/
# ═══════════════════════════════════════════════════════════════

class DeconnexionAPIView(APIView):
    """
    SimpleJWT garde les tokens valides jusqu'à expiration,
    la blacklist permet d'invalider le refresh avant.
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        refresh = request.data.get('refresh')
        if not refresh:
            return Response(
                {'detail': 'Le refresh token est obligatoire.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        try:
            token = RefreshToken(refresh)
            token.blacklist()
        except TokenError:
            return Response(
                {'detail': 'Token invalide.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        return Response({'message': 'Déconnexion réussie.'}, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════
# VUE API — Profil du membre connecté
# GET   /api/auth/profil/
# PATCH /api/auth/profil/ (multipart pour l'avatar)
# ═══════════════════════════════════════════════════════════════

class ProfilAPIView(generics.RetrieveUpdateAPIView):
    """Chaque membre ne voit et ne modifie QUE son propre profil."""
    serializer_class   = ProfilSerializer
    permission_classes = [permissions.IsAuthenticated]
    parser_classes     = [JSONParser, MultiPartParser, FormParser]

    def get_object(self):
        return self.request.user

    def perform_update(self, serializer):
        user = self.request.user
        # Le nouvel avatar reprend le chemin avatars/<id>/avatar.<ext> : on libère l'ancien
        if serializer.validated_data.get('photo_profil') and user.photo_profil:
            user.photo_profil.delete(save=False)
        serializer.save()


# ═══════════════════════════════════════════════════════════════
# VUE API — Changer le mot de passe
# POST /api/auth/changer-password/
# ═══════════════════════════════════════════════════════════════

class ChangerMotDePasseAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = ChangerMotDePasseSerializer(
            data=request.data,
            context={'request': request}
        )
        if serializer.is_valid():
            serializer.save()
            return Response(
                {'message': 'Mot de passe changé avec succès.'},
                status=status.HTTP_200_OK
            )
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# ═══════════════════════════════════════════════════════════════
# VUES API — Mot de passe oublié
# ═══════════════════════════════════════════════════════════════

class DemandeReinitialisationAPIView(APIView):
    """
    POST /api/auth/mot-de-passe/reinitialiser/ {"email": ...}
    Répond toujours 200 : on ne révèle pas si un compte existe.
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = DemandeReinitialisationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = CustomUser.objects.filter(
            email__iexact=serializer.validated_data['email'],
            is_active=True
        ).first()
        if user is not None:
            from apps.notifications.tasks import envoyer_email_reinitialisation
            envoyer_email_reinitialisation.delay(user.id)

        return Response({
            'message': "Si un compte existe pour cette adresse, un email de réinitialisation a été envoyé."
        })


class ConfirmationReinitialisationAPIView(APIView):
    """POST /api/auth/mot-de-passe/confirmer/ {"uid", "token", "password"}"""
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = ConfirmationReinitialisationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response({'message': 'Mot de passe réinitialisé. Vous pouvez vous connecter.'})


# ═══════════════════════════════════════════════════════════════
# VUE API — Profil public d'un membre
# GET /api/auth/utilisateurs/<id>/
# ═══════════════════════════════════════════════════════════════

class ProfilPublicAPIView(generics.RetrieveAPIView):
    serializer_class   = UtilisateurPublicSerializer
    permission_classes = [permissions.AllowAny]
    queryset           = CustomUser.objects.filter(is_active=True)


# ═══════════════════════════════════════════════════════════════
# VUE API — Recherche de membres
# GET /api/auth/recherche/?q=dupont
# ═══════════════════════════════════════════════════════════════

class RechercheUtilisateursAPIView(APIView):
    """
    Sous-chaîne sur email, nom, prénom ou pseudo.
    Exclut le membre connecté, 20 résultats au maximum.
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        resultats = CustomUser.objects.rechercher(
            request.query_params.get('q', ''),
            exclure=request.user,
            limite=settings.RECHERCHE_UTILISATEURS_LIMITE,
        )
        serializer = UtilisateurPublicSerializer(resultats, many=True, context={'request': request})
        return Response(serializer.data)
