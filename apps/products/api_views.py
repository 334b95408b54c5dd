"""
Le Marché Luxe — products/api_views.py
Vues API REST pour les annonces.
"""
import logging

from django.core.cache import cache
from django.db.models import Q
from django_filters.rest_framework import DjangoFilterBackend
from django_fsm import TransitionNotAllowed
from rest_framework import viewsets, status, permissions
from rest_framework.decorators import action
from rest_framework.filters import SearchFilter, OrderingFilter
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from apps.users.permissions import EstProprietaire
from .filters import ProduitFilter
from .models import Produit, Categorie
from .serializers import (
    ProduitListSerializer,
    ProduitDetailSerializer,
    ProduitCreerSerializer,
    ProduitModifierSerializer,
    CategorieSerializer,
    ChangerStatutSerializer,
    AjouterImageSerializer,
)

logger = logging.getLogger(__name__)

# Durée du cache de la fiche annonce (10 minutes)
CACHE_PRODUIT_SECONDES = 600


# ═══════════════════════════════════════════════════════════════
# VIEWSET — Catégories
# GET /api/produits/categories/
# ═══════════════════════════════════════════════════════════════

class CategorieViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Lecture seule — catégories racines avec leurs sous-catégories imbriquées.
    """
    serializer_class   = CategorieSerializer
    permission_classes = [permissions.AllowAny]
    pagination_class   = None

    def get_queryset(self):
        if self.action == 'retrieve':
            return Categorie.objects.filter(est_active=True)
        return Categorie.objects.filter(
            parent=None,
            est_active=True
        ).prefetch_related('sous_categories')


# ═══════════════════════════════════════════════════════════════
# VIEWSET — Annonces
# ═══════════════════════════════════════════════════════════════

class ProduitViewSet(viewsets.ModelViewSet):
    """
    GET    /api/produits/          → catalogue (annonces en ligne)
    POST   /api/produits/          → déposer une annonce
    GET    /api/produits/<id>/     → fiche annonce
    PATCH  /api/produits/<id>/     → modifier (propriétaire)
    DELETE /api/produits/<id>/     → supprimer (propriétaire)

    Actions spéciales :
    GET  /api/produits/mes_annonces/?statut=actif
    POST /api/produits/<id>/changer_statut/ {"action": "mettre_en_pause"}
    POST /api/produits/<id>/ajouter_image/
    """

    filter_backends  = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class  = ProduitFilter
    search_fields    = ['titre', 'description', 'marque', 'modele']
    ordering_fields  = ['prix', 'date_creation']
    ordering         = ['-date_creation']
    parser_classes   = [JSONParser, MultiPartParser, FormParser]

    def get_queryset(self):
        """
        - Catalogue → annonces en ligne uniquement
        - Fiche et gestion → annonces en ligne + toutes celles du membre connecté
        """
        if self.action == 'list':
            return Produit.actifs.all()

        user = self.request.user
        visibles = Q(statut=Produit.ACTIF)
        if user.is_authenticated:
            visibles |= Q(vendeur=user)
        return Produit.objects.filter(visibles).select_related(
            'categorie', 'vendeur'
        ).prefetch_related('images')

    def get_serializer_class(self):
        if self.action in ['list', 'mes_annonces']:
            return ProduitListSerializer
        if self.action == 'retrieve':
            return ProduitDetailSerializer
        if self.action == 'create':
            return ProduitCreerSerializer
        if self.action == 'changer_statut':
            return ChangerStatutSerializer
        if self.action == 'ajouter_image':
            return AjouterImageSerializer
        return ProduitModifierSerializer

    def get_permissions(self):
        """
        - Lecture (list, retrieve) → tout le monde
        - Dépôt, mes annonces → membre connecté (tout membre peut vendre)
        - Modification, statut, photos, suppression → propriétaire
        """
        if self.action in ['list', 'retrieve']:
            return [permissions.AllowAny()]
        if self.action in ['create', 'mes_annonces']:
            return [permissions.IsAuthenticated()]
        return [permissions.IsAuthenticated(), EstProprietaire()]

    def perform_create(self, serializer):
        produit = serializer.save(vendeur=self.request.user)
        logger.info(f"Annonce #{produit.pk} déposée par {self.request.user.email} ({produit.statut})")

    def retrieve(self, request, *args, **kwargs):
        """
        Fiche annonce avec cache 10 minutes.
        Invalidé par products/signals.py à chaque modification de l'annonce,
        de ses photos ou du profil du vendeur.

        Les URLs d'images sont absolues, donc une entrée par hôte :
        {"<hôte>": data}.
        """
        instance  = self.get_object()
        cache_key = f'produit_{instance.pk}'
        hote      = request.get_host()
        par_hote  = cache.get(cache_key) or {}
        data      = par_hote.get(hote)

        if not data:
            serializer = self.get_serializer(instance)
            data       = serializer.data
            par_hote[hote] = data
            cache.set(cache_key, par_hote, CACHE_PRODUIT_SECONDES)

        return Response(data)

    # ── Mes annonces (onglets du profil) ─────────────────────
    @action(detail=False, methods=['get'], url_path='mes_annonces')
    def mes_annonces(self, request):
        """
        GET /api/produits/mes_annonces/?statut=actif|brouillon|en_pause|vendu
        Sans paramètre : toutes les annonces du membre.
        """
        produits = Produit.objects.filter(vendeur=request.user).select_related(
            'categorie'
        ).prefetch_related('images').order_by('-date_creation', '-id')

        statut = request.query_params.get('statut')
        if statut:
            if statut not in dict(Produit.STATUT_CHOICES):
                return Response({'detail': 'Statut inconnu.'}, status=status.HTTP_400_BAD_REQUEST)
            produits = produits.filter(statut=statut)

        serializer = self.get_serializer(produits, many=True)
        return Response(serializer.data)

    # ── Changer le statut (transitions FSM) ──────────────────
    @action(detail=True, methods=['post'], url_path='changer_statut')
    def changer_statut(self, request, pk=None):
        """
        POST /api/produits/<id>/changer_statut/
        Body : { "action": "publier" | "mettre_en_pause" | "reactiver" | "marquer_vendu" }
        """
        produit = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        nom_action = serializer.validated_data['action']

        try:
            getattr(produit, nom_action)()
        except TransitionNotAllowed:
            return Response(
                {'detail': f"Action '{nom_action}' impossible depuis le statut '{produit.statut}'."},
                status=status.HTTP_400_BAD_REQUEST
            )
        produit.save()
        logger.info(f"Annonce #{produit.pk} : {nom_action} → {produit.statut}")

        return Response({'id': produit.pk, 'statut': produit.statut})

    # ── Ajouter une photo ────────────────────────────────────
    @action(detail=True, methods=['post'], url_path='ajouter_image')
    def ajouter_image(self, request, pk=None):
        """
        POST /api/produits/<id>/ajouter_image/ (multipart, champ "image")
        """
        produit = self.get_object()
        serializer = self.get_serializer(data=request.data, context={'request': request, 'produit': produit})
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)
