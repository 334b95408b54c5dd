"""
Le Marché Luxe — users/permissions.py
Permissions personnalisées pour l'API DRF.
"""
from rest_framework.permissions import BasePermission


class EstProprietaire(BasePermission):
    """
    Vérifie que l'utilisateur est le propriétaire de l'objet.
    Une annonce appartient à son vendeur, un profil à lui-même.
    """
    def has_object_permission(self, request, view, obj):
        if hasattr(obj, 'vendeur'):
            return obj.vendeur == request.user
        if hasattr(obj, 'utilisateur'):
            return obj.utilisateur == request.user
        return obj == request.user


class EstParticipant(BasePermission):
    """
    Vérifie que l'utilisateur participe à la conversation.
    L'objet peut être une Conversation ou un MessageChat.
    """
    message = "Vous n'êtes pas membre de cette conversation."

    def has_object_permission(self, request, view, obj):
        conversation = getattr(obj, 'conversation', obj)
        return conversation.a_pour_participant(request.user)
