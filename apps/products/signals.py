"""
Le Marché Luxe — products/signals.py

1. Resize automatique des photos via Pillow après upload
2. Invalidation du cache de la fiche annonce (annonce, photos, profil du vendeur)
"""
import logging

from django.conf import settings
from django.core.cache import cache
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Côté le plus long autorisé pour une photo d'annonce
TAILLE_MAX_IMAGE = 1200


# ═══════════════════════════════════════════════════════════════
# SIGNAL 1 — Resize automatique des photos d'annonce
# ═══════════════════════════════════════════════════════════════

@receiver(post_save, sender='products.ImageProduit')
def redimensionner_image_produit(sender, instance, created, **kwargs):
    """
    Max : 1200x1200 pixels (proportions conservées), qualité 85%.
    """
    if not created or not instance.image:
        return

    img_path = instance.image.path
    try:
        with Image.open(img_path) as img:
            if img.width <= TAILLE_MAX_IMAGE and img.height <= TAILLE_MAX_IMAGE:
                return
            format_origine = img.format
            # JPEG ne gère pas la transparence
            if format_origine == 'JPEG' and img.mode in ('RGBA', 'P'):
                img = img.convert('RGB')
            img.thumbnail((TAILLE_MAX_IMAGE, TAILLE_MAX_IMAGE), Image.LANCZOS)
            img.save(img_path, format=format_origine, quality=85, optimize=True)
        logger.info(f"Image redimensionnée : {img_path}")
    except (OSError, UnidentifiedImageError) as e:
        logger.error(f"Erreur resize image {img_path} : {e}")


# ═══════════════════════════════════════════════════════════════
# SIGNAL 2 — Invalidation du cache de la fiche annonce
# ═══════════════════════════════════════════════════════════════

def _invalider_cache(produit_id):
    cache.delete(f'produit_{produit_id}')


@receiver(post_save, sender='products.Produit')
@receiver(post_delete, sender='products.Produit')
def invalider_cache_produit(sender, instance, **kwargs):
    _invalider_cache(instance.pk)
    logger.debug(f"Cache invalidé pour l'annonce #{instance.pk}")


@receiver(post_save, sender='products.ImageProduit')
@receiver(post_delete, sender='products.ImageProduit')
def invalider_cache_images(sender, instance, **kwargs):
    _invalider_cache(instance.produit_id)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def invalider_cache_vendeur(sender, instance, created, **kwargs):
    """La fiche embarque le profil public du vendeur (pseudo, avatar)."""
    if created:
        return
    ids = list(instance.produits.values_list('pk', flat=True))
    if ids:
        cache.delete_many([f'produit_{pk}' for pk in ids])
