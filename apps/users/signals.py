"""
Les signals Django sont comme des "écouteurs d'événements".

Ici on écoute la création d'un membre : on crée son token
de vérification et on programme l'email d'activation (Celery).
"""
import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import CustomUser, TokenVerificationEmail

logger = logging.getLogger(__name__)


@receiver(post_save, sender=CustomUser)
def creer_token_verification(sender, instance, created, **kwargs):
    """
    'created' = True uniquement lors de la toute première création.
    Les comptes créés déjà actifs (admin, superuser) n'ont pas besoin de token.
    """
    if not created or instance.is_active:
        return

    TokenVerificationEmail.objects.create(utilisateur=instance)

    # Import ici pour éviter les imports circulaires (notifications → users)
    from apps.notifications.tasks import envoyer_email_verification
    envoyer_email_verification.delay(instance.id)
    logger.info(f"Inscription de {instance.email} : email de vérification programmé")
