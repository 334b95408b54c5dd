"""
Interface d'administration des emails asynchrones.
"""
from django.contrib import admin
from django.utils.html import format_html

from .models import EmailAsynchrone


@admin.register(EmailAsynchrone)
class EmailAsynchroneAdmin(admin.ModelAdmin):

    list_display    = ['email_destinataire', 'sujet', 'statut_badge', 'date_creation', 'date_envoi']
    list_filter     = ['statut', 'date_creation']
    search_fields   = ['email_destinataire', 'sujet']
    readonly_fields = ['destinataire', 'email_destinataire', 'sujet', 'corps',
                       'statut', 'erreur', 'date_creation', 'date_envoi']
    ordering        = ['-date_creation']

    @admin.display(description="Statut")
    def statut_badge(self, obj):
        couleurs = {
            EmailAsynchrone.STATUT_EN_ATTENTE: '#d97706',
            EmailAsynchrone.STATUT_ENVOYE:     '#16a34a',
            EmailAsynchrone.STATUT_ECHEC:      '#dc2626',
        }
        return format_html(
            '<span style="background:{}; color:white; padding:2px 8px; '
            'border-radius:4px; font-size:11px;">{}</span>',
            couleurs.get(obj.statut, '#6b7280'), obj.get_statut_display()
        )

    def has_add_permission(self, request):
        return False
