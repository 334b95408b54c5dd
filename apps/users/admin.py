"""
Configure l'affichage et la gestion des membres
dans l'interface d'administration Django.
"""
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from django.utils.html import format_html
from .models import CustomUser, TokenVerificationEmail


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):

    list_display = [
        'username', 'email', 'get_full_name', 'ville',
        'is_active', 'email_verifie', 'date_inscription',
        'afficher_photo'
    ]
    list_filter   = ['is_active', 'is_staff', 'email_verifie', 'pays']
    search_fields = ['username', 'email', 'nom', 'prenom']
    ordering      = ['-date_inscription']
    readonly_fields = ['date_inscription', 'date_modification', 'afficher_photo']

    fieldsets = (
        ('Connexion', {
            'fields': ('email', 'username', 'password')
        }),
        ('Profil', {
            'fields': (
                'nom', 'prenom', 'ville', 'pays',
                'photo_profil', 'afficher_photo'
            )
        }),
        ('Statuts', {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'email_verifie')
        }),
        ('Permissions', {
            'fields': ('groups', 'user_permissions'),
            'classes': ('collapse',)
        }),
        ('Dates', {
            'fields': ('date_inscription', 'date_modification'),
            'classes': ('collapse',)
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': (
                'email', 'username',
                'nom', 'prenom',
                'password1', 'password2',
                'is_active'
            ),
        }),
    )

    actions = ['activer_comptes', 'desactiver_comptes']

    @admin.action(description="Activer les comptes sélectionnés")
    def activer_comptes(self, request, queryset):
        nb = queryset.update(is_active=True, email_verifie=True)
        self.message_user(request, f"{nb} compte(s) activé(s) avec succès.")

    @admin.action(description="Désactiver les comptes sélectionnés")
    def desactiver_comptes(self, request, queryset):
        nb = queryset.update(is_active=False)
        self.message_user(request, f"{nb} compte(s) désactivé(s).")

    @admin.display(description="Avatar")
    def afficher_photo(self, obj):
        if obj.photo_profil:
            return format_html(
                '<img src="{}" width="50" height="50" '
                'style="border-radius:50%; object-fit:cover;" />',
                obj.photo_profil.url
            )
        return "Aucun avatar"


@admin.register(TokenVerificationEmail)
class TokenVerificationEmailAdmin(admin.ModelAdmin):

    list_display    = ['utilisateur', 'token', 'date_creation', 'expire']
    readonly_fields = ['token', 'date_creation']
    search_fields   = ['utilisateur__email']

    @admin.display(boolean=True, description="Expiré")
    def expire(self, obj):
        return obj.est_expire()
