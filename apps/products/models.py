"""
Gestion des annonces :
- Categorie    : arbre hiérarchique (Sacs → Sac à main)
- Produit      : l'annonce d'un article de luxe d'occasion
- ImageProduit : photos de l'annonce (8 au maximum)

Cycle de vie d'une annonce (django-fsm) :

  brouillon ──publier──▶ actif ──mettre_en_pause──▶ en_pause
                           ▲ ◀──────reactiver──────────┘
                           │
                           └──marquer_vendu──▶ vendu ◀── (depuis en_pause aussi)
"""
import os
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.text import slugify
from django_fsm import FSMField, transition
from mptt.models import MPTTModel, TreeForeignKey

from .managers import ProduitActifManager


# ═══════════════════════════════════════════════════════════════
# CATÉGORIE — Arbre hiérarchique via django-mptt
# ═══════════════════════════════════════════════════════════════

class Categorie(MPTTModel):
    """
    Une catégorie racine (Sacs, Montres...) ou une sous-catégorie.
    Les annonces sont rattachées aux sous-catégories.
    """

    nom = models.CharField(max_length=100, unique=True, verbose_name="Nom")
    slug = models.SlugField(max_length=120, unique=True, blank=True)

    parent = TreeForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='sous_categories',
        verbose_name="Catégorie parente"
    )

    est_active = models.BooleanField(default=True)
    date_creation = models.DateTimeField(auto_now_add=True)

    class MPTTMeta:
        order_insertion_by = ['nom']

    class Meta:
        verbose_name = "Catégorie"
        verbose_name_plural = "Catégories"

    def __str__(self):
        return self.nom

    def save(self, *args, **kwargs):
        """Génère automatiquement le slug depuis le nom"""
        if not self.slug:
            self.slug = slugify(self.nom)
        super().save(*args, **kwargs)


# ═══════════════════════════════════════════════════════════════
# PRODUIT (annonce)
# ═══════════════════════════════════════════════════════════════

class Produit(models.Model):

    # ── Statuts ───────────────────────────────────────────────
    BROUILLON = 'brouillon'
    ACTIF     = 'actif'
    EN_PAUSE  = 'en_pause'
    VENDU     = 'vendu'

    STATUT_CHOICES = [
        (BROUILLON, 'Brouillon'),
        (ACTIF,     'En ligne'),
        (EN_PAUSE,  'En pause'),
        (VENDU,     'Vendu'),
    ]

    # ── État de l'article ─────────────────────────────────────
    class Etat(models.TextChoices):
        NEUF_AVEC_ETIQUETTE = 'neuf_avec_etiquette', 'Neuf avec étiquette'
        NEUF_SANS_ETIQUETTE = 'neuf_sans_etiquette', 'Neuf sans étiquette'
        EXCELLENT           = 'excellent',           'Excellent état'
        TRES_BON            = 'tres_bon',            'Très bon état'
        BON                 = 'bon',                 'Bon état'
        CORRECT             = 'correct',             'État correct'

    vendeur = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='produits',
        verbose_name="Vendeur"
    )

    titre = models.CharField(max_length=255, verbose_name="Titre")
    slug = models.SlugField(max_length=280, unique=True, blank=True)

    categorie = models.ForeignKey(
        Categorie,
        on_delete=models.SET_NULL,
        null=True,
        related_name='produits',
        verbose_name="Catégorie"
    )

    # Marque du catalogue, ou saisie libre quand "Autre" a été choisi
    marque = models.CharField(max_length=100, verbose_name="Marque")
    modele = models.CharField(max_length=150, blank=True, verbose_name="Modèle")
    etat = models.CharField(max_length=25, choices=Etat.choices, verbose_name="État")

    description = models.TextField(verbose_name="Description")

    prix = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
        verbose_name="Prix (EUR)"
    )
    negociable = models.BooleanField(default=False, verbose_name="Prix négociable")
    localisation = models.CharField(max_length=150, blank=True, verbose_name="Localisation")

    # Les changements de statut passent par les transitions ci-dessous
    statut = FSMField(
        default=BROUILLON,
        choices=STATUT_CHOICES,
        verbose_name="Statut"
    )

    objects = models.Manager()
    actifs  = ProduitActifManager()     # Produit.actifs.all() → annonces en ligne

    date_creation     = models.DateTimeField(auto_now_add=True)
    date_modification = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Annonce"
        verbose_name_plural = "Annonces"
        ordering = ['-date_creation']

    def __str__(self):
        return f"{self.marque} — {self.titre}"

    def save(self, *args, **kwargs):
        """Génère un slug unique depuis la marque et le titre"""
        if not self.slug:
            base_slug = slugify(f"{self.marque} {self.titre}")[:260] or 'annonce'
            slug = base_slug
            counter = 1
            while Produit.objects.filter(slug=slug).exclude(pk=self.pk).exists():
                slug = f"{base_slug}-{counter}"
                counter += 1
            self.slug = slug
        super().save(*args, **kwargs)

    @property
    def image_principale(self):
        images = list(self.images.all())
        for image in images:
            if image.est_principale:
                return image
        return images[0] if images else None

    # ── Transitions ───────────────────────────────────────────
    # django-fsm lève TransitionNotAllowed si la source ne correspond pas

    @transition(field=statut, source=BROUILLON, target=ACTIF)
    def publier(self):
        """Met l'annonce en ligne"""

    @transition(field=statut, source=ACTIF, target=EN_PAUSE)
    def mettre_en_pause(self):
        """Retire temporairement l'annonce du catalogue"""

    @transition(field=statut, source=EN_PAUSE, target=ACTIF)
    def reactiver(self):
        pass

    @transition(field=statut, source=[ACTIF, EN_PAUSE], target=VENDU)
    def marquer_vendu(self):
        """L'article a trouvé preneur : statut définitif"""


# ═══════════════════════════════════════════════════════════════
# IMAGE PRODUIT
# ═══════════════════════════════════════════════════════════════

def chemin_image_produit(instance, filename):
    """produits/<id vendeur>/<uuid>.<ext> : un nom aléatoire par photo"""
    ext = os.path.splitext(filename)[1].lower().lstrip('.') or 'jpg'
    return f'produits/{instance.produit.vendeur_id}/{uuid.uuid4().hex}.{ext}'


class ImageProduit(models.Model):
    """
    Photos d'une annonce. La première ajoutée devient l'image principale.
    Le resize automatique est géré dans signals.py via Pillow.
    """

    produit = models.ForeignKey(
        Produit,
        on_delete=models.CASCADE,
        related_name='images',
        verbose_name="Annonce"
    )
    image = models.ImageField(upload_to=chemin_image_produit, verbose_name="Image")

    # Ordre d'affichage (0 = première photo)
    ordre = models.PositiveIntegerField(default=0, verbose_name="Ordre d'affichage")
    est_principale = models.BooleanField(default=False, verbose_name="Image principale")

    date_ajout = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Photo d'annonce"
        verbose_name_plural = "Photos d'annonce"
        ordering = ['ordre', 'id']

    def __str__(self):
        return f"Photo {self.ordre} — {self.produit.titre}"

    def save(self, *args, **kwargs):
        """
        Si cette image est marquée comme principale,
        retire ce statut des autres images de la même annonce.
        """
        if self.est_principale:
            ImageProduit.objects.filter(
                produit=self.produit,
                est_principale=True
            ).exclude(pk=self.pk).update(est_principale=False)
        super().save(*args, **kwargs)
