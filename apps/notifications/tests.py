"""
Tests pour l'app notifications.

Couverture :
  - Journal EmailAsynchrone (envoyé / échec)
  - Tâches Celery (appelées directement, sans worker, email backend locmem)
  - Context processor du badge
  - WebSocket NotificationConsumer (init, conversations.maj, rejet anonyme)
"""
from datetime import timedelta
from decimal import Decimal
from smtplib import SMTPException
from unittest.mock import patch

from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.core import mail
from django.test import RequestFactory, TestCase, TransactionTestCase, override_settings
from django.utils import timezone

from apps.chat import services
from apps.chat.models import Conversation
from apps.notifications.context_processors import messages_non_lus
from apps.notifications.models import EmailAsynchrone
from apps.notifications.routing import websocket_urlpatterns
from apps.notifications.tasks import (
    _envoyer_email,
    envoyer_email_premier_contact,
    nettoyer_conversations_vides,
)
from apps.products.models import Produit
from apps.users.models import CustomUser

LOCMEM = 'django.core.mail.backends.locmem.EmailBackend'


# ═══════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════

def creer_membre(username, prenom=''):
    return CustomUser.objects.create_user(
        email=f'{username}@marcheluxe.fr', username=username,
        password='Membre123!', is_active=True, prenom=prenom,
    )


def creer_produit(vendeur, titre='Sac Lady Dior'):
    return Produit.objects.create(
        titre=titre, marque='Dior', etat=Produit.Etat.TRES_BON,
        description='Cuir cannage noir.', prix=Decimal('3200.00'),
        statut=Produit.ACTIF, vendeur=vendeur,
    )


def vieillir_conversation(conversation, jours):
    Conversation.objects.filter(pk=conversation.pk).update(
        date_creation=timezone.now() - timedelta(days=jours)
    )


# ═══════════════════════════════════════════════════════════════
# TESTS — Journal des emails
# ═══════════════════════════════════════════════════════════════

@override_settings(EMAIL_BACKEND=LOCMEM)
class EnvoyerEmailTest(TestCase):

    def setUp(self):
        self.membre = creer_membre('claire', 'Claire')

    def test_email_envoye_et_journalise(self):
        log = _envoyer_email(self.membre, 'Sujet test', 'Corps test')
        self.assertEqual(log.statut, EmailAsynchrone.STATUT_ENVOYE)
        self.assertIsNotNone(log.date_envoi)
        self.assertEqual(log.email_destinataire, 'claire@marcheluxe.fr')
        self.assertEqual(len(mail.outbox), 1)

    @patch('apps.notifications.tasks.send_mail', side_effect=SMTPException('Connexion refusée'))
    def test_echec_journalise(self, mock_send):
        log = _envoyer_email(self.membre, 'Sujet test', 'Corps test')
        self.assertEqual(log.statut, EmailAsynchrone.STATUT_ECHEC)
        self.assertIn('Connexion refusée', log.erreur)
        self.assertIsNone(log.date_envoi)


# ═══════════════════════════════════════════════════════════════
# TESTS — Tâches Celery
# ═══════════════════════════════════════════════════════════════

@override_settings(EMAIL_BACKEND=LOCMEM)
class PremierContactTaskTest(TestCase):

    def setUp(self):
        self.vendeuse = creer_membre('vendeuse', 'Inès')
        self.acheteur = creer_membre('acheteur', 'Paul')
        self.produit  = creer_produit(self.vendeuse)
        self.conv = services.creer_conversation(self.produit, [self.acheteur, self.vendeuse])

    def test_email_au_vendeur(self):
        envoyer_email_premier_contact(self.conv.id)
        self.assertEqual(len(mail.outbox), 1)
        email = mail.outbox[0]
        self.assertEqual(email.to, ['vendeuse@marcheluxe.fr'])
        self.assertIn('Sac Lady Dior', email.subject)
        self.assertIn(f'/messages/{self.conv.id}/', email.body)
        self.assertTrue(
            EmailAsynchrone.objects.filter(destinataire=self.vendeuse, statut=EmailAsynchrone.STATUT_ENVOYE).exists()
        )

    def test_conversation_inconnue(self):
        with self.assertLogs('apps.notifications.tasks', level='ERROR'):
            envoyer_email_premier_contact(99999)
        self.assertEqual(len(mail.outbox), 0)

    def test_annonce_supprimee(self):
        self.produit.delete()
        envoyer_email_premier_contact(self.conv.id)
        self.assertEqual(len(mail.outbox), 0)


class NettoyageConversationsTest(TestCase):

    def setUp(self):
        self.vendeur  = creer_membre('vendeur')
        self.acheteur = creer_membre('acheteur')
        self.produit  = creer_produit(self.vendeur)

    def _conversation(self, titre):
        produit = creer_produit(self.vendeur, titre=titre)
        return services.creer_conversation(produit, [self.acheteur, self.vendeur])

    def test_supprime_les_conversations_vides_anciennes(self):
        vide_ancienne  = self._conversation('Ancienne')
        vide_recente   = self._conversation('Récente')
        utilisee       = self._conversation('Utilisée')
        services.envoyer_message(utilisee, self.acheteur, 'Bonjour')
        vieillir_conversation(vide_ancienne, 40)
        vieillir_conversation(utilisee, 40)

        self.assertEqual(nettoyer_conversations_vides(), 1)
        self.assertFalse(Conversation.objects.filter(pk=vide_ancienne.pk).exists())
        self.assertTrue(Conversation.objects.filter(pk=vide_recente.pk).exists())
        self.assertTrue(Conversation.objects.filter(pk=utilisee.pk).exists())

    @override_settings(CONVERSATION_VIDE_JOURS=7)
    def test_delai_configurable(self):
        conv = self._conversation('Une semaine')
        vieillir_conversation(conv, 8)
        self.assertEqual(nettoyer_conversations_vides(), 1)

    def test_rien_a_nettoyer(self):
        self.assertEqual(nettoyer_conversations_vides(), 0)


# ═══════════════════════════════════════════════════════════════
# TESTS — Context processor
# ═══════════════════════════════════════════════════════════════

class ContextProcessorTest(TestCase):

    def setUp(self):
        self.factory = RequestFactory()
        self.alice = creer_membre('alice')
        self.bob   = creer_membre('bob')
        conv = services.creer_conversation(creer_produit(self.bob), [self.alice, self.bob])
        services.envoyer_message(conv, self.bob, 'Bonjour')

    def test_membre_connecte(self):
        request = self.factory.get('/admin/')
        request.user = self.alice
        self.assertEqual(messages_non_lus(request), {'messages_non_lus': 1, 'badge_messages': '1'})

    def test_anonyme(self):
        request = self.factory.get('/admin/')
        request.user = AnonymousUser()
        self.assertEqual(messages_non_lus(request), {'messages_non_lus': 0, 'badge_messages': None})


# ═══════════════════════════════════════════════════════════════
# TESTS — WebSocket NotificationConsumer
# ═══════════════════════════════════════════════════════════════

class NotificationWebSocketTest(TransactionTestCase):
    """
    TransactionTestCase pour éviter les problèmes de connexion DB en async.
    """

    def setUp(self):
        self.alice = creer_membre('alice_notif')
        self.bob   = creer_membre('bob_notif')
        self.conv  = services.creer_conversation(creer_produit(self.bob), [self.alice, self.bob])
        services.envoyer_message(self.conv, self.bob, 'Bonjour')
        self.application = URLRouter(websocket_urlpatterns)

    def _communicator(self, user):
        communicator = WebsocketCommunicator(self.application, '/ws/notifications/')
        communicator.scope['user'] = user
        return communicator

    def test_init_avec_total_non_lus(self):
        async def _run():
            communicator = self._communicator(self.alice)
            connected, _ = await communicator.connect()
            self.assertTrue(connected)
            response = await communicator.receive_json_from(timeout=3)
            self.assertEqual(response, {'type': 'init', 'messages_non_lus': 1, 'badge': '1'})
            await communicator.disconnect()

        async_to_sync(_run)()

    def test_nouveau_message_met_a_jour_le_badge(self):
        async def _run():
            communicator = self._communicator(self.alice)
            await communicator.connect()
            await communicator.receive_json_from(timeout=3)

            await database_sync_to_async(services.envoyer_message)(self.conv, self.bob, 'Toujours là ?')

            response = await communicator.receive_json_from(timeout=3)
            self.assertEqual(response['type'], 'conversations_maj')
            self.assertEqual(response['conversation_id'], self.conv.id)
            self.assertEqual(response['messages_non_lus'], 2)
            await communicator.disconnect()

        async_to_sync(_run)()

    def test_lecture_remet_le_badge_a_zero(self):
        async def _run():
            communicator = self._communicator(self.alice)
            await communicator.connect()
            await communicator.receive_json_from(timeout=3)

            await database_sync_to_async(services.marquer_tous_lus)(self.conv, self.alice)

            response = await communicator.receive_json_from(timeout=3)
            self.assertEqual(response['messages_non_lus'], 0)
            self.assertIsNone(response['badge'])
            await communicator.disconnect()

        async_to_sync(_run)()

    def test_connexion_refusee_non_authentifie(self):
        async def _run():
            communicator = self._communicator(AnonymousUser())
            connected, code = await communicator.connect()
            self.assertFalse(connected)
            self.assertEqual(code, 4001)

        async_to_sync(_run)()
