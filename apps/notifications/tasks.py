"""
Le Marché Luxe — notifications/tasks.py
Tâches Celery : emails transactionnels et nettoyage périodique.

Tâches déclenchées par des événements :
  - envoyer_email_verification    : lien d'activation (users/signals.py)
  - envoyer_email_reinitialisation: lien "mot de passe oublié" (users/api_views.py)
  - envoyer_email_premier_contact : un acheteur contacte le vendeur (chat/api_views.py)

Tâche planifiée par Celery Beat (config/celery.py) :
  - nettoyer_conversations_vides  : chaque nuit à 3h

Architecture email :
  Chaque envoi :
    1. Crée un EmailAsynchrone en DB (statut='en_attente') pour la traçabilité
    2. Envoie l'email via Django (EMAIL_BACKEND=console en local)
    3. Met à jour le statut (envoye / echec)
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.tokens import default_token_generator
from django.core.mail import send_mail
from django.utils import timezone
from django.utils.encoding import force_bytes
from django.utils.http import urlsafe_base64_encode

from config.celery import app

logger = logging.getLogger(__name__)


# ── Utilitaire : créer et envoyer un email journalisé ─────────────────────────

def _envoyer_email(destinataire, sujet, corps):
    """
    Envoie un email et crée un log EmailAsynchrone en DB.

    Args:
        destinataire : instance CustomUser
        sujet        : sujet de l'email
        corps        : corps texte de l'email

    Returns:
        EmailAsynchrone : instance créée
    """
    from apps.notifications.models import EmailAsynchrone

    log_email = EmailAsynchrone.objects.create(
        destinataire=destinataire,
        sujet=sujet,
        corps=corps,
        email_destinataire=destinataire.email,
        statut=EmailAsynchrone.STATUT_EN_ATTENTE,
    )

    try:
        send_mail(
            subject        = sujet,
            message        = corps,
            from_email     = settings.DEFAULT_FROM_EMAIL,
            recipient_list = [destinataire.email],
            fail_silently  = False,
        )
        log_email.statut     = EmailAsynchrone.STATUT_ENVOYE
        log_email.date_envoi = timezone.now()
        log_email.save(update_fields=['statut', 'date_envoi'])
        logger.info(f"Email envoyé à {destinataire.email} : {sujet}")

    except Exception as e:
        # SMTP indisponible, adresse refusée... : on garde la trace de l'échec
        log_email.statut = EmailAsynchrone.STATUT_ECHEC
        log_email.erreur = str(e)
        log_email.save(update_fields=['statut', 'erreur'])
        logger.error(f"Échec envoi email à {destinataire.email} : {e}")

    return log_email


def _lien_frontend(chemin):
    return f"{settings.FRONTEND_URL.rstrip('/')}{chemin}"


# ═══════════════════════════════════════════════════════════════
# TÂCHE 1 — Email d'activation du compte
# Déclenchée par : users/signals.py (inscription)
# ═══════════════════════════════════════════════════════════════

@app.task(bind=True, max_retries=3, default_retry_delay=60)
def envoyer_email_verification(self, utilisateur_id):
    from apps.users.models import TokenVerificationEmail

    try:
        token = TokenVerificationEmail.objects.select_related('utilisateur').get(
            utilisateur_id=utilisateur_id
        )
        membre = token.utilisateur

        sujet = "[Le Marché Luxe] Activez votre compte"
        corps = (
            f"Bonjour {membre.get_short_name()},\n\n"
            f"Bienvenue sur Le Marché Luxe ! Pour activer votre compte, "
            f"cliquez sur le lien ci-dessous (valable 24 heures) :\n\n"
            f"{_lien_frontend(f'/verifier-email/{token.token}/')}\n\n"
            f"Si vous n'êtes pas à l'origine de cette inscription, ignorez cet email.\n\n"
            f"L'équipe Le Marché Luxe"
        )
        _envoyer_email(membre, sujet, corps)

    except TokenVerificationEmail.DoesNotExist:
        logger.error(f"envoyer_email_verification : aucun token pour le membre #{utilisateur_id}")
    except Exception as exc:
        logger.error(f"envoyer_email_verification erreur : {exc}")
        raise self.retry(exc=exc)


# ═══════════════════════════════════════════════════════════════
# TÂCHE 2 — Email "mot de passe oublié"
# Déclenchée par : users/api_views.py (DemandeReinitialisationAPIView)
# ═══════════════════════════════════════════════════════════════

@app.task(bind=True, max_retries=3, default_retry_delay=60)
def envoyer_email_reinitialisation(self, utilisateur_id):
    """
    Le lien contient l'uid (base64) et un token Django à usage unique :
    le frontend les renvoie à /api/auth/mot-de-passe/confirmer/.
    """
    from apps.users.models import CustomUser

    try:
        membre = CustomUser.objects.get(pk=utilisateur_id)
        uid    = urlsafe_base64_encode(force_bytes(membre.pk))
        token  = default_token_generator.make_token(membre)

        sujet = "[Le Marché Luxe] Réinitialisation de votre mot de passe"
        corps = (
            f"Bonjour {membre.get_short_name()},\n\n"
            f"Vous avez demandé à réinitialiser votre mot de passe. "
            f"Choisissez-en un nouveau en suivant ce lien :\n\n"
            f"{_lien_frontend(f'/mot-de-passe/nouveau/{uid}/{token}/')}\n\n"
            f"Si vous n'avez rien demandé, ignorez cet email : "
            f"votre mot de passe actuel reste valable.\n\n"
            f"L'équipe Le Marché Luxe"
        )
        _envoyer_email(membre, sujet, corps)

    except CustomUser.DoesNotExist:
        logger.error(f"envoyer_email_reinitialisation : membre #{utilisateur_id} introuvable")
    except Exception as exc:
        logger.error(f"envoyer_email_reinitialisation erreur : {exc}")
        raise self.retry(exc=exc)


# ═══════════════════════════════════════════════════════════════
# TÂCHE 3 — Premier contact sur une annonce
# Déclenchée par : chat/api_views.py (ContacterVendeurAPIView, conversation créée)
# ═══════════════════════════════════════════════════════════════

@app.task(bind=True, max_retries=3, default_retry_delay=60)
def envoyer_email_premier_contact(self, conversation_id):
    from apps.chat.models import Conversation

    try:
        conversation = Conversation.objects.select_related('produit__vendeur').get(pk=conversation_id)
        produit = conversation.produit
        if produit is None:
            logger.warning(f"envoyer_email_premier_contact : conversation #{conversation_id} sans annonce")
            return

        vendeur  = produit.vendeur
        acheteur = conversation.get_autre_participant(vendeur)
        nom_acheteur = acheteur.get_full_name() if acheteur else "Un membre"

        sujet = f"[Le Marché Luxe] {nom_acheteur} s'intéresse à « {produit.titre} »"
        corps = (
            f"Bonjour {vendeur.get_short_name()},\n\n"
            f"{nom_acheteur} souhaite échanger avec vous à propos de votre annonce "
            f"« {produit.titre} » ({produit.prix} €).\n\n"
            f"Répondez-lui depuis votre messagerie :\n"
            f"{_lien_frontend(f'/messages/{conversation.id}/')}\n\n"
            f"L'équipe Le Marché Luxe"
        )
        _envoyer_email(vendeur, sujet, corps)

    except Conversation.DoesNotExist:
        logger.error(f"envoyer_email_premier_contact : conversation #{conversation_id} introuvable")
    except Exception as exc:
        logger.error(f"envoyer_email_premier_contact erreur : {exc}")
        raise self.retry(exc=exc)


# ═══════════════════════════════════════════════════════════════
# TÂCHE 4 — Nettoyage des conversations vides
# Planifiée via : Celery Beat (config/celery.py)
# ═══════════════════════════════════════════════════════════════

@app.task
def nettoyer_conversations_vides():
    """
    Une conversation est créée dès le clic sur "Contacter le vendeur",
    avant tout message. Celles restées vides plus de CONVERSATION_VIDE_JOURS
    jours sont supprimées (participants en cascade).

    Returns:
        int : nombre de conversations supprimées
    """
    from apps.chat.models import Conversation

    seuil = timezone.now() - timedelta(days=settings.CONVERSATION_VIDE_JOURS)
    vides = Conversation.objects.filter(date_creation__lt=seuil, messages__isnull=True)

    nb = vides.count()
    if nb == 0:
        logger.info("nettoyer_conversations_vides : aucune conversation à supprimer")
        return 0

    vides.delete()
    logger.info(f"nettoyer_conversations_vides : {nb} conversation(s) supprimée(s)")
    return nb
