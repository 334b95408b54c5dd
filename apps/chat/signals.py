"""
Le Marché Luxe — chat/signals.py
Chaque nouveau message est poussé en temps réel aux membres de la conversation.
"""
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import MessageChat
from .realtime import diffuser_nouveau_message


@receiver(post_save, sender=MessageChat)
def diffuser_message(sender, instance, created, **kwargs):
    # Les passages à "lu" sont diffusés par services.py (update en masse sans signal)
    if created:
        diffuser_nouveau_message(instance)
