"""
Le Marché Luxe — notifications/models.py
Journal des emails envoyés par les tâches Celery (tasks.py).

Le badge "messages non lus" n'a pas de table dédiée : il est calculé
à partir de chat.MessageChat (chat/services.py → total_non_lus).
"""
from django.db import models
from django.conf import settings


# ═══════════════════════════════════════════════════════════════
# EMAIL ASYNCHRONE
# ═══════════════════════════════════════════════════════════════

class EmailAsynchrone(models.Model):
    """
    Une ligne par email transactionnel (activation, mot de passe oublié,
    premier contact). Permet de retrouver un email "jamais reçu" et son
    éventuelle erreur SMTP.
    """

    STATUT_EN_ATTENTE = 'en_attente'
    STATUT_ENVOYE     = 'envoye'
    STATUT_ECHEC      = 'echec'

    STATUT_CHOICES = [
        (STATUT_EN_ATTENTE, 'En attente'),
        (STATUT_ENVOYE,     'Envoyé'),
        (STATUT_ECHEC,      'Échec'),
    ]

    # ── Destinataire ───────────────────────────────────────────
    # SET_NULL : on garde le log même si l'utilisateur est supprimé
    destinataire = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='emails_recus',
        verbose_name="Destinataire"
    )

    # ── Contenu email ──────────────────────────────────────────
    sujet           = models.CharField(max_length=300, verbose_name="Sujet")
    corps           = models.TextField(verbose_name="Corps de l'email")
    email_destinataire = models.EmailField(verbose_name="Email destinataire")

    # ── Statut d'envoi ─────────────────────────────────────────
    statut = models.CharField(
        max_length=20,
        choices=STATUT_CHOICES,
        default=STATUT_EN_ATTENTE,
        verbose_name="Statut"
    )

    # ── Détail erreur (si échec) ───────────────────────────────
    erreur = models.TextField(blank=True, verbose_name="Détail erreur")

    # ── Dates ──────────────────────────────────────────────────
    date_creation = models.DateTimeField(auto_now_add=True, verbose_name="Créé le")
    date_envoi    = models.DateTimeField(null=True, blank=True, verbose_name="Envoyé le")

    class Meta:
        verbose_name        = "Email asynchrone"
        verbose_name_plural = "Emails asynchrones"
        ordering            = ['-date_creation']

    def __str__(self):
        dest = self.destinataire.username if self.destinataire else self.email_destinataire
        return f"Email [{self.get_statut_display()}] → {dest} : {self.sujet}"