"""
Interface d'administration de la messagerie (modération).
"""
from django.contrib import admin
from django.utils.html import format_html

from .models import Conversation, ParticipantConversation, MessageChat


class ParticipantInline(admin.TabularInline):
    model           = ParticipantConversation
    extra           = 0
    readonly_fields = ['utilisateur', 'date_ajout']
    can_delete      = False


# Lecture seule : on ne réécrit pas les messages des membres
class MessageChatInline(admin.TabularInline):
    model           = MessageChat
    extra           = 0
    readonly_fields = ['expediteur', 'contenu', 'is_read', 'date_envoi']
    can_delete      = False
    ordering        = ['date_envoi', 'id']
    max_num         = 50


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):

    list_display    = ['id', 'produit', 'liste_participants', 'nombre_messages', 'date_modification']
    list_filter     = ['date_creation']
    search_fields   = ['produit__titre', 'participations__utilisateur__email']
    readonly_fields = ['produit', 'date_creation', 'date_modification']
    inlines         = [ParticipantInline, MessageChatInline]

    @admin.display(description="Participants")
    def liste_participants(self, obj):
        return ", ".join(p.utilisateur.username for p in obj.participations.select_related('utilisateur'))

    @admin.display(description="Nb messages")
    def nombre_messages(self, obj):
        return obj.messages.count()


@admin.register(MessageChat)
class MessageChatAdmin(admin.ModelAdmin):

    list_display    = ['id', 'expediteur', 'conversation', 'apercu_contenu', 'statut_lu', 'date_envoi']
    list_filter     = ['is_read', 'date_envoi']
    search_fields   = ['expediteur__username', 'contenu']
    readonly_fields = ['conversation', 'expediteur', 'contenu', 'date_envoi']
    ordering        = ['-date_envoi']

    @admin.display(description="Message")
    def apercu_contenu(self, obj):
        if len(obj.contenu) > 60:
            return obj.contenu[:60] + "…"
        return obj.contenu

    @admin.display(description="Statut")
    def statut_lu(self, obj):
        if obj.is_read:
            return format_html('<span style="color:#16a34a;">{}</span>', "✓ Lu")
        return format_html('<span style="color:#d97706;">{}</span>', "● Non lu")
