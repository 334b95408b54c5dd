"""
Le Marché Luxe — products/admin.py
Interface d'administration pour les annonces et catégories.
"""
from django.contrib import admin
from django.utils.html import format_html
from django_fsm import TransitionNotAllowed
from mptt.admin import MPTTModelAdmin
from .models import Produit, Categorie, ImageProduit


class ImageProduitInline(admin.TabularInline):
    model   = ImageProduit
    extra   = 0
    readonly_fields = ['apercu_image', 'date_ajout']
    fields  = ['image', 'apercu_image', 'ordre', 'est_principale']

    @admin.display(description="Aperçu")
    def apercu_image(self, obj):
        if obj.image:
            return format_html(
                '<img src="{}" width="80" height="80" '
                'style="object-fit:cover; border-radius:4px;" />',
                obj.image.url
            )
        return "Aucune image"


@admin.register(Categorie)
class CategorieAdmin(MPTTModelAdmin):

    list_display  = ['nom', 'parent', 'est_active', 'nombre_produits']
    list_filter   = ['est_active']
    search_fields = ['nom']
    prepopulated_fields = {'slug': ('nom',)}

    @admin.display(description="Annonces")
    def nombre_produits(self, obj):
        return obj.produits.count()


@admin.register(Produit)
class ProduitAdmin(admin.ModelAdmin):

    list_display  = [
        'titre', 'marque', 'categorie', 'vendeur',
        'prix', 'etat', 'statut', 'date_creation'
    ]
    list_filter   = ['statut', 'etat', 'negociable', 'categorie']
    search_fields = ['titre', 'marque', 'modele', 'vendeur__email']
    readonly_fields = ['slug', 'date_creation', 'date_modification']
    inlines = [ImageProduitInline]

    fieldsets = (
        ('Annonce', {
            'fields': ('titre', 'slug', 'categorie', 'marque', 'modele', 'etat', 'description')
        }),
        ('Prix', {
            'fields': ('prix', 'negociable', 'localisation')
        }),
        ('Statut', {
            'fields': ('vendeur', 'statut')
        }),
        ('Dates', {
            'fields': ('date_creation', 'date_modification'),
            'classes': ('collapse',)
        }),
    )

    actions = ['mettre_en_pause']

    @admin.action(description="Mettre en pause les annonces sélectionnées")
    def mettre_en_pause(self, request, queryset):
        nb = 0
        for produit in queryset:
            try:
                produit.mettre_en_pause()
            except TransitionNotAllowed:
                continue
            produit.save()
            nb += 1
        self.message_user(request, f"{nb} annonce(s) mise(s) en pause.")
