"""
Le Marché Luxe — notifications/context_processors.py
Injecte le nombre de messages non lus dans les templates (admin Django).

Enregistré dans config/settings.py → TEMPLATES → OPTIONS → context_processors.
"""


def messages_non_lus(request):
    """
    {{ messages_non_lus }} et {{ badge_messages }} ("9+" au-delà de 9, None si 0).
    """
    user = getattr(request, 'user', None)
    if user is None or not user.is_authenticated:
        return {'messages_non_lus': 0, 'badge_messages': None}

    from apps.chat.services import total_non_lus, libelle_badge
    nombre = total_non_lus(user)
    return {'messages_non_lus': nombre, 'badge_messages': libelle_badge(nombre)}
