"""
Le Marché Luxe — products/managers.py

Au lieu d'écrire partout :
  Produit.objects.filter(statut='actif')

On écrit simplement :
  Produit.actifs.all()
"""
from django.db import models


class ProduitActifManager(models.Manager):
    """
    Annonces en ligne uniquement (catalogue public).
    """
    def get_queryset(self):
        return super().get_queryset().filter(
            statut='actif'
        ).select_related(
            'categorie',  # Évite les requêtes N+1 sur la catégorie
            'vendeur'
        ).prefetch_related(
            'images'
        )
