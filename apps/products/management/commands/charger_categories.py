"""
Charge l'arbre des catégories du catalogue (Sacs → Sac à main...).

Idempotent : relancer la commande ne crée pas de doublons.
    python manage.py charger_categories
"""
from django.core.management.base import BaseCommand
from django.db import transaction

from apps.products.catalogue import CATEGORIES
from apps.products.models import Categorie


class Command(BaseCommand):
    help = "Crée les catégories et sous-catégories du catalogue"

    @transaction.atomic
    def handle(self, *args, **options):
        nb_crees = 0

        for nom_racine, sous_categories in CATEGORIES.items():
            racine, created = Categorie.objects.get_or_create(nom=nom_racine, defaults={'parent': None})
            nb_crees += created

            for nom in sous_categories:
                _, created = Categorie.objects.get_or_create(nom=nom, defaults={'parent': racine})
                nb_crees += created

        self.stdout.write(self.style.SUCCESS(
            f"{nb_crees} catégorie(s) créée(s), {Categorie.objects.count()} au total."
        ))
