"""
Serializers pour les annonces :
- CategorieSerializer       → arbre des catégories
- ImageProduitSerializer    → photos d'une annonce
- ProduitListSerializer     → carte d'annonce (catalogue, mes annonces)
- ProduitDetailSerializer   → fiche complète
- ProduitCreerSerializer    → dépôt d'annonce
- ProduitModifierSerializer → modification (le statut passe par changer_statut)
"""
from django.conf import settings
from rest_framework import serializers

from apps.users.serializers import UtilisateurPublicSerializer
from .catalogue import MARQUES, MARQUE_AUTRE
from .models import Produit, Categorie, ImageProduit


# ═══════════════════════════════════════════════════════════════
# SERIALIZER — Catégorie
# ═══════════════════════════════════════════════════════════════

class CategorieSerializer(serializers.ModelSerializer):
    """
    Sérialise une catégorie avec ses sous-catégories.
    La récursivité permet de retourner tout l'arbre en une seule réponse.
    """
    sous_categories = serializers.SerializerMethodField()

    class Meta:
        model  = Categorie
        fields = ['id', 'nom', 'slug', 'parent', 'sous_categories']

    def get_sous_categories(self, obj):
        sous_cats = obj.sous_categories.filter(est_active=True)
        return CategorieSerializer(sous_cats, many=True, context=self.context).data


# ═══════════════════════════════════════════════════════════════
# SERIALIZER — Photo d'annonce
# ═══════════════════════════════════════════════════════════════

class ImageProduitSerializer(serializers.ModelSerializer):

    class Meta:
        model  = ImageProduit
        fields = ['id', 'image', 'ordre', 'est_principale']
        read_only_fields = ['ordre', 'est_principale']


# ═══════════════════════════════════════════════════════════════
# SERIALIZER — Liste (version légère)
# ═══════════════════════════════════════════════════════════════

class ProduitListSerializer(serializers.ModelSerializer):

    image_principale = serializers.SerializerMethodField()
    categorie_nom = serializers.CharField(source='categorie.nom', read_only=True, default=None)
    etat_libelle  = serializers.CharField(source='get_etat_display', read_only=True)
    vendeur_id    = serializers.IntegerField(read_only=True)

    class Meta:
        model  = Produit
        fields = [
            'id', 'titre', 'slug',
            'marque', 'modele', 'etat', 'etat_libelle',
            'prix', 'negociable', 'localisation',
            'categorie_nom', 'statut', 'vendeur_id',
            'image_principale',
            'date_creation'
        ]

    def get_image_principale(self, obj):
        image = obj.image_principale
        if image:
            request = self.context.get('request')
            if request:
                return request.build_absolute_uri(image.image.url)
            return image.image.url
        return None


# ═══════════════════════════════════════════════════════════════
# SERIALIZER — Détail (fiche annonce)
# ═══════════════════════════════════════════════════════════════

class ProduitDetailSerializer(serializers.ModelSerializer):

    images    = ImageProduitSerializer(many=True, read_only=True)
    categorie = CategorieSerializer(read_only=True)
    vendeur   = UtilisateurPublicSerializer(read_only=True)
    etat_libelle = serializers.CharField(source='get_etat_display', read_only=True)

    class Meta:
        model  = Produit
        fields = [
            'id', 'titre', 'slug',
            'marque', 'modele', 'etat', 'etat_libelle',
            'description',
            'prix', 'negociable', 'localisation',
            'categorie', 'vendeur', 'statut',
            'images',
            'date_creation', 'date_modification'
        ]


# ═══════════════════════════════════════════════════════════════
# SERIALIZERS — Dépôt / modification d'annonce
# ═══════════════════════════════════════════════════════════════

class ProduitEcritureMixin:
    """
    Règles communes au dépôt et à la modification :
    prix > 0, sous-catégorie obligatoire, marque du catalogue ou saisie libre.
    """

    def validate_prix(self, value):
        if value <= 0:
            raise serializers.ValidationError("Le prix doit être supérieur à 0.")
        return value

    def validate_categorie(self, value):
        if value is not None and not value.is_leaf_node():
            raise serializers.ValidationError("Choisissez une sous-catégorie.")
        return value

    def validate(self, attrs):
        marque_perso = attrs.pop('marque_personnalisee', '').strip()
        if attrs.get('marque') == MARQUE_AUTRE:
            if not marque_perso:
                raise serializers.ValidationError({
                    'marque_personnalisee': "Précisez la marque."
                })
            attrs['marque'] = marque_perso
        return attrs


class ProduitCreerSerializer(ProduitEcritureMixin, serializers.ModelSerializer):
    """
    Le vendeur est le membre connecté (fourni par la vue).
    L'annonce est enregistrée en brouillon ou publiée directement.
    """
    marque = serializers.ChoiceField(choices=MARQUES)
    marque_personnalisee = serializers.CharField(
        write_only=True, required=False, allow_blank=True, max_length=100
    )
    statut = serializers.ChoiceField(
        choices=[Produit.BROUILLON, Produit.ACTIF],
        default=Produit.BROUILLON
    )
    categorie = serializers.PrimaryKeyRelatedField(queryset=Categorie.objects.filter(est_active=True))

    class Meta:
        model  = Produit
        fields = [
            'id', 'titre', 'categorie',
            'marque', 'marque_personnalisee', 'modele', 'etat',
            'description', 'prix', 'negociable', 'localisation',
            'statut', 'slug'
        ]
        read_only_fields = ['slug']


class ProduitModifierSerializer(ProduitEcritureMixin, serializers.ModelSerializer):
    """Le statut n'est pas modifiable ici : il passe par les transitions."""
    marque = serializers.ChoiceField(choices=MARQUES, required=False)
    marque_personnalisee = serializers.CharField(
        write_only=True, required=False, allow_blank=True, max_length=100
    )
    categorie = serializers.PrimaryKeyRelatedField(
        queryset=Categorie.objects.filter(est_active=True), required=False
    )

    class Meta:
        model  = Produit
        fields = [
            'id', 'titre', 'categorie',
            'marque', 'marque_personnalisee', 'modele', 'etat',
            'description', 'prix', 'negociable', 'localisation',
            'statut', 'slug'
        ]
        read_only_fields = ['statut', 'slug']


class ChangerStatutSerializer(serializers.Serializer):
    ACTIONS = ['publier', 'mettre_en_pause', 'reactiver', 'marquer_vendu']

    action = serializers.ChoiceField(choices=ACTIONS)


class AjouterImageSerializer(ImageProduitSerializer):
    """Ajout d'une photo : 8 au maximum, la première devient principale."""

    def validate(self, attrs):
        produit = self.context['produit']
        if produit.images.count() >= settings.ANNONCE_MAX_IMAGES:
            raise serializers.ValidationError(
                f"Une annonce ne peut pas avoir plus de {settings.ANNONCE_MAX_IMAGES} photos."
            )
        return attrs

    def create(self, validated_data):
        produit = self.context['produit']
        nb_images = produit.images.count()
        return ImageProduit.objects.create(
            produit=produit,
            ordre=nb_images,
            est_principale=(nb_images == 0),
            **validated_data
        )
