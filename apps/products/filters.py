"""
Le Marché Luxe — products/filters.py

Filtres django-filter pour le catalogue :
  /api/produits/?categorie_slug=sacs&prix_min=500&marque=Hermès&negociable=true
"""
import django_filters
from .models import Produit, Categorie


class ProduitFilter(django_filters.FilterSet):

    # ?prix_min=500&prix_max=5000
    prix_min = django_filters.NumberFilter(field_name='prix', lookup_expr='gte', label="Prix minimum")
    prix_max = django_filters.NumberFilter(field_name='prix', lookup_expr='lte', label="Prix maximum")

    # ?marque=chanel (insensible à la casse, couvre aussi les marques libres)
    marque = django_filters.CharFilter(field_name='marque', lookup_expr='iexact', label="Marque")

    etat = django_filters.MultipleChoiceFilter(choices=Produit.Etat.choices, label="État")

    negociable = django_filters.BooleanFilter(field_name='negociable', label="Prix négociable")

    # ?vendeur=3 → la vitrine d'un membre
    vendeur = django_filters.NumberFilter(field_name='vendeur__id', label="Vendeur (ID)")

    # Filtre par slug de catégorie (inclut sous-catégories via MPTT)
    # ?categorie_slug=sacs
    categorie_slug = django_filters.CharFilter(method='filter_categorie_slug', label="Slug catégorie")

    def filter_categorie_slug(self, queryset, name, value):
        try:
            cat = Categorie.objects.get(slug=value, est_active=True)
        except Categorie.DoesNotExist:
            return queryset.none()
        return queryset.filter(categorie__in=cat.get_descendants(include_self=True))

    class Meta:
        model  = Produit
        fields = ['categorie', 'etat', 'negociable', 'vendeur']
