"""
Le Marché Luxe — chat/models.py
Messagerie entre acheteurs et vendeurs, rattachée à une annonce.

Architecture :
  - Conversation             : fil de discussion autour d'une annonce
  - ParticipantConversation  : appartenance d'un membre à une conversation
  - MessageChat              : un message (texte + horodatage + statut lu)

Fonctionnement :
  1. L'acheteur clique sur "Contacter le vendeur" depuis une annonce
  2. services.trouver_ou_creer_conversation() réutilise ou crée le fil
  3. Chaque message est persisté via services.envoyer_message()
  4. signals.py diffuse l'insertion aux groupes Channels (realtime.py)

Choix de conception :
  - Les participants passent par une table de liaison : une conversation
    n'est pas limitée à deux colonnes participant1 / participant2.
  - Une conversation appartient à une annonce : le même couple de membres
    peut discuter de plusieurs annonces dans des fils séparés.
"""
from django.db import models
from django.conf import settings


# ═══════════════════════════════════════════════════════════════
# CONVERSATION
# ═══════════════════════════════════════════════════════════════

class Conversation(models.Model):

    # SET_NULL : l'historique reste lisible si l'annonce est supprimée
    produit = models.ForeignKey(
        'products.Produit',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='conversations',
        verbose_name="Annonce"
    )

    participants = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through='ParticipantConversation',
        related_name='conversations',
        verbose_name="Participants"
    )

    date_creation     = models.DateTimeField(auto_now_add=True, verbose_name="Créée le")
    # Mise à jour à chaque nouveau message
    date_modification = models.DateTimeField(auto_now=True, verbose_name="Dernière activité")

    class Meta:
        verbose_name = "Conversation"
        verbose_name_plural = "Conversations"
        ordering = ['-date_modification']

    def a_pour_participant(self, user):
        if not user or not user.is_authenticated:
            return False
        return self.participations.filter(utilisateur=user).exists()

    def get_autre_participant(self, user):
        """
        Retourne l'interlocuteur de `user` (None s'il a quitté la plateforme).
        """
        participation = (
            self.participations
            .exclude(utilisateur=user)
            .select_related('utilisateur')
            .order_by('date_ajout', 'id')
            .first()
        )
        return participation.utilisateur if participation else None

    def __str__(self):
        sujet = self.produit.titre if self.produit else "Annonce supprimée"
        return f"Conversation #{self.pk} ({sujet})"


# ═══════════════════════════════════════════════════════════════
# PARTICIPANT
# ═══════════════════════════════════════════════════════════════

class ParticipantConversation(models.Model):

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name='participations',
        verbose_name="Conversation"
    )
    utilisateur = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='participations',
        verbose_name="Membre"
    )
    date_ajout = models.DateTimeField(auto_now_add=True, verbose_name="Ajouté le")

    class Meta:
        verbose_name = "Participant"
        verbose_name_plural = "Participants"
        # Un membre n'apparaît qu'une fois par conversation
        unique_together = ('conversation', 'utilisateur')

    def __str__(self):
        return f"{self.utilisateur.username} dans la conversation #{self.conversation_id}"


# ═══════════════════════════════════════════════════════════════
# MESSAGE CHAT
# ═══════════════════════════════════════════════════════════════

class MessageChat(models.Model):
    """
    Un message textuel dans une conversation.

    Cycle de vie :
      1. services.envoyer_message() crée le message (is_read=False)
      2. signals.py le diffuse au groupe chat_<id> et aux badges des membres
      3. Quand le destinataire ouvre la conversation, is_read passe à True
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name='messages',
        verbose_name="Conversation"
    )

    # SET_NULL : si le compte est supprimé, le message reste mais anonymisé
    expediteur = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='messages_envoyes',
        verbose_name="Expéditeur"
    )

    contenu = models.TextField(verbose_name="Message")
    is_read = models.BooleanField(default=False, verbose_name="Lu")
    date_envoi = models.DateTimeField(auto_now_add=True, verbose_name="Envoyé le")

    class Meta:
        verbose_name = "Message"
        verbose_name_plural = "Messages"
        # Deux messages de la même milliseconde restent dans l'ordre d'insertion
        ordering = ['date_envoi', 'id']

    def __str__(self):
        exp = self.expediteur.username if self.expediteur else "Anonyme"
        apercu = self.contenu[:40] + "…" if len(self.contenu) > 40 else self.contenu
        return f"[{exp}] {apercu}"
