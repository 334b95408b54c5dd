"""
Tests pour l'app chat.

Couverture :
  - Services (création atomique, résolution de conversation, messages, lus, badge)
  - Diffusion temps réel (événements émis, panne du channel layer)
  - API Chat (liste, contacter, détail, messages, envoyer, marquer lu, non lus)
  - WebSocket ChatConsumer et middleware JWT

Note sur TransactionTestCase :
  Les tests WebSocket sont async. TestCase utilise une transaction englobante
  qui peut provoquer des "connection already closed" en contexte async.
  TransactionTestCase vide la DB entre chaque test → plus sûr.
"""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from asgiref.sync import async_to_sync
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.core import mail
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import IntegrityError
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import RefreshToken

from apps.chat import services
from apps.chat.middleware import JWTAuthMiddleware
from apps.chat.models import Conversation, ParticipantConversation, MessageChat
from apps.chat.routing import websocket_urlpatterns
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


def creer_produit(vendeur, titre='Kelly 28 Epsom', **kwargs):
    defaults = {
        'titre'      : titre,
        'marque'     : 'Hermès',
        'etat'       : Produit.Etat.EXCELLENT,
        'description': 'Cuir Epsom noir, garnitures palladium.',
        'prix'       : Decimal('8900.00'),
        'statut'     : Produit.ACTIF,
        'vendeur'    : vendeur,
    }
    defaults.update(kwargs)
    return Produit.objects.create(**defaults)


def get_jwt_header(user):
    refresh = RefreshToken.for_user(user)
    return f'Bearer {str(refresh.access_token)}'


def vieillir_message(message, minutes):
    """Décale date_envoi dans le passé (auto_now_add ne se surcharge pas à la création)."""
    MessageChat.objects.filter(pk=message.pk).update(
        date_envoi=timezone.now() - timedelta(minutes=minutes)
    )


# ═══════════════════════════════════════════════════════════════
# TESTS — Conversations
# ═══════════════════════════════════════════════════════════════

class ConversationServiceTest(TestCase):

    def setUp(self):
        self.alice = creer_membre('alice', 'Alice')
        self.bob   = creer_membre('bob', 'Bob')
        self.carol = creer_membre('carol')
        self.produit = creer_produit(self.bob)

    def test_creer_conversation(self):
        conv = services.creer_conversation(self.produit, [self.alice, self.bob])
        self.assertEqual(conv.produit, self.produit)
        self.assertEqual(
            set(conv.participants.values_list('username', flat=True)), {'alice', 'bob'}
        )

    def test_creer_conversation_un_seul_participant(self):
        with self.assertRaises(ValidationError):
            services.creer_conversation(self.produit, [self.alice, self.alice])
        self.assertEqual(Conversation.objects.count(), 0)

    def test_creer_conversation_atomique(self):
        """Si l'insertion des participants échoue, la conversation n'est pas conservée."""
        with patch.object(
            ParticipantConversation.objects, 'bulk_create', side_effect=IntegrityError('boom')
        ):
            with self.assertRaises(IntegrityError):
                services.creer_conversation(self.produit, [self.alice, self.bob])
        self.assertEqual(Conversation.objects.count(), 0)

    def test_trouver_ou_creer_cree_puis_reutilise(self):
        conv, created = services.trouver_ou_creer_conversation(self.produit, self.alice, self.bob)
        self.assertTrue(created)

        meme, created = services.trouver_ou_creer_conversation(self.produit, self.alice, self.bob)
        self.assertFalse(created)
        self.assertEqual(meme, conv)

    def test_trouver_ou_creer_dans_les_deux_sens(self):
        conv, _ = services.trouver_ou_creer_conversation(self.produit, self.alice, self.bob)
        meme, created = services.trouver_ou_creer_conversation(self.produit, self.bob, self.alice)
        self.assertFalse(created)
        self.assertEqual(meme, conv)

    def test_une_conversation_par_annonce(self):
        autre_produit = creer_produit(self.bob, titre='Speedy 30')
        conv1, _ = services.trouver_ou_creer_conversation(self.produit, self.alice, self.bob)
        conv2, created = services.trouver_ou_creer_conversation(autre_produit, self.alice, self.bob)
        self.assertTrue(created)
        self.assertNotEqual(conv1, conv2)

    def test_conversation_d_un_tiers_non_reutilisee(self):
        conv_carol, _ = services.trouver_ou_creer_conversation(self.produit, self.carol, self.bob)
        conv_alice, created = services.trouver_ou_creer_conversation(self.produit, self.alice, self.bob)
        self.assertTrue(created)
        self.assertNotEqual(conv_alice, conv_carol)

    def test_conversation_avec_soi_meme_refusee(self):
        with self.assertRaises(ValidationError):
            services.trouver_ou_creer_conversation(self.produit, self.bob, self.bob)

    def test_get_autre_participant(self):
        conv = services.creer_conversation(self.produit, [self.alice, self.bob])
        self.assertEqual(conv.get_autre_participant(self.alice), self.bob)
        self.assertEqual(conv.get_autre_participant(self.bob), self.alice)

    def test_a_pour_participant(self):
        conv = services.creer_conversation(self.produit, [self.alice, self.bob])
        self.assertTrue(conv.a_pour_participant(self.alice))
        self.assertFalse(conv.a_pour_participant(self.carol))
        self.assertFalse(conv.a_pour_participant(AnonymousUser()))


# ═══════════════════════════════════════════════════════════════
# TESTS — Messages et statut lu
# ═══════════════════════════════════════════════════════════════

class MessageServiceTest(TestCase):

    def setUp(self):
        self.alice = creer_membre('alice', 'Alice')
        self.bob   = creer_membre('bob', 'Bob')
        self.carol = creer_membre('carol')
        self.produit = creer_produit(self.bob)
        self.conv = services.creer_conversation(self.produit, [self.alice, self.bob])

    def test_envoyer_message(self):
        message = services.envoyer_message(self.conv, self.alice, '  Toujours disponible ?  ')
        self.assertEqual(message.contenu, 'Toujours disponible ?')
        self.assertFalse(message.is_read)
        self.assertEqual(message.expediteur, self.alice)

    def test_envoyer_message_vide(self):
        for contenu in ['', '   ', None]:
            with self.assertRaises(ValidationError):
                services.envoyer_message(self.conv, self.alice, contenu)
        self.assertEqual(MessageChat.objects.count(), 0)

    def test_envoyer_message_non_participant(self):
        with self.assertRaises(PermissionDenied):
            services.envoyer_message(self.conv, self.carol, 'Bonjour')

    def test_messages_ordonnes_par_date(self):
        m1 = services.envoyer_message(self.conv, self.alice, 'Premier')
        m2 = services.envoyer_message(self.conv, self.bob, 'Second')
        vieillir_message(m1, 5)
        self.assertEqual(list(services.messages_conversation(self.conv)), [m1, m2])

    def test_marquer_tous_lus_ignore_ses_propres_messages(self):
        services.envoyer_message(self.conv, self.alice, 'Bonjour')
        services.envoyer_message(self.conv, self.bob, 'Bonjour Alice')
        services.envoyer_message(self.conv, self.bob, 'Il est disponible')

        self.assertEqual(services.marquer_tous_lus(self.conv, self.alice), 2)
        self.assertFalse(MessageChat.objects.get(contenu='Bonjour').is_read)
        # Deuxième appel : plus rien à marquer
        self.assertEqual(services.marquer_tous_lus(self.conv, self.alice), 0)

    def test_marquer_message_lu(self):
        message = services.envoyer_message(self.conv, self.bob, 'Bonjour')
        self.assertTrue(services.marquer_message_lu(message))
        message.refresh_from_db()
        self.assertTrue(message.is_read)
        self.assertFalse(services.marquer_message_lu(message))

    def test_total_non_lus_limite_a_ses_conversations(self):
        services.envoyer_message(self.conv, self.bob, 'Un')
        services.envoyer_message(self.conv, self.bob, 'Deux')
        services.envoyer_message(self.conv, self.alice, 'Ma réponse')
        autre = services.creer_conversation(self.produit, [self.carol, self.bob])
        services.envoyer_message(autre, self.bob, 'Pour Carol')

        self.assertEqual(services.total_non_lus(self.alice), 2)
        self.assertEqual(services.total_non_lus(self.carol), 1)
        self.assertEqual(services.total_non_lus(self.bob), 1)
        self.assertEqual(services.total_non_lus(AnonymousUser()), 0)


class ResumeConversationsTest(TestCase):

    def setUp(self):
        self.alice = creer_membre('alice', 'Alice')
        self.bob   = creer_membre('bob', 'Bob')
        self.carol = creer_membre('carol', 'Carol')
        self.produit = creer_produit(self.bob)

    def test_resume_complet(self):
        conv = services.creer_conversation(self.produit, [self.alice, self.bob])
        services.envoyer_message(conv, self.bob, 'Bonjour Alice')

        resumes = services.conversations_utilisateur(self.alice)
        self.assertEqual(len(resumes), 1)
        resume = resumes[0]
        self.assertEqual(resume['id'], conv.id)
        self.assertEqual(resume['produit_id'], self.produit.id)
        self.assertEqual(resume['autre_utilisateur']['email'], 'bob@marcheluxe.fr')
        self.assertEqual(resume['autre_utilisateur']['nom_complet'], self.bob.get_full_name())
        self.assertIsNone(resume['autre_utilisateur']['avatar_url'])
        self.assertEqual(resume['dernier_message']['contenu'], 'Bonjour Alice')
        self.assertEqual(resume['dernier_message']['expediteur_id'], self.bob.id)
        self.assertEqual(resume['messages_non_lus'], 1)

    def test_tri_par_dernier_message_vides_en_dernier(self):
        produit2 = creer_produit(self.carol, titre='Speedy 30')
        produit3 = creer_produit(self.carol, titre='Jackie 1961')
        ancienne = services.creer_conversation(self.produit, [self.alice, self.bob])
        recente  = services.creer_conversation(produit2, [self.alice, self.carol])
        vide     = services.creer_conversation(produit3, [self.alice, self.carol])

        vieillir_message(services.envoyer_message(ancienne, self.bob, 'Ancien'), 60)
        services.envoyer_message(recente, self.carol, 'Récent')

        ids = [r['id'] for r in services.conversations_utilisateur(self.alice)]
        self.assertEqual(ids, [recente.id, ancienne.id, vide.id])
        self.assertIsNone(services.conversations_utilisateur(self.alice)[-1]['dernier_message'])

    def test_conversation_sans_interlocuteur_ignoree(self):
        conv = services.creer_conversation(self.produit, [self.alice, self.bob])
        ParticipantConversation.objects.filter(conversation=conv, utilisateur=self.bob).delete()
        self.assertEqual(services.conversations_utilisateur(self.alice), [])

    def test_aucune_conversation(self):
        self.assertEqual(services.conversations_utilisateur(self.carol), [])


class BadgeEtFusionTest(TestCase):

    def test_libelle_badge(self):
        self.assertIsNone(services.libelle_badge(0))
        self.assertIsNone(services.libelle_badge(-3))
        self.assertEqual(services.libelle_badge(1), '1')
        self.assertEqual(services.libelle_badge(9), '9')
        self.assertEqual(services.libelle_badge(10), '9+')

    def test_fusionner_message_ajoute(self):
        messages = [{'id': 1, 'contenu': 'Bonjour'}]
        resultat = services.fusionner_message(messages, {'id': 2, 'contenu': 'Re'})
        self.assertEqual([m['id'] for m in resultat], [1, 2])
        # La liste d'origine n'est pas modifiée
        self.assertEqual(len(messages), 1)

    def test_fusionner_message_doublon(self):
        messages = [{'id': 1, 'contenu': 'Bonjour'}, {'id': 2, 'contenu': 'Re'}]
        resultat = services.fusionner_message(messages, {'id': 2, 'contenu': 'Re'})
        self.assertEqual(resultat, messages)


# ═══════════════════════════════════════════════════════════════
# TESTS — Diffusion temps réel
# ═══════════════════════════════════════════════════════════════

class DiffusionTempsReelTest(TestCase):

    def setUp(self):
        self.alice = creer_membre('alice')
        self.bob   = creer_membre('bob')
        self.produit = creer_produit(self.bob)
        self.conv = services.creer_conversation(self.produit, [self.alice, self.bob])

    def _evenements(self, mock_envoi):
        return [(c.args[0], c.args[1]) for c in mock_envoi.call_args_list]

    @patch('apps.chat.realtime._envoyer_groupe')
    def test_nouveau_message(self, mock_envoi):
        message = services.envoyer_message(self.conv, self.alice, 'Bonjour')
        evenements = self._evenements(mock_envoi)

        groupe, evenement = evenements[0]
        self.assertEqual(groupe, f'chat_{self.conv.id}')
        self.assertEqual(evenement['type'], 'message.nouveau')
        self.assertEqual(evenement['message']['id'], message.id)

        maj = {g: e for g, e in evenements[1:]}
        self.assertEqual(set(maj), {f'notifications_{self.alice.id}', f'notifications_{self.bob.id}'})
        self.assertEqual(maj[f'notifications_{self.bob.id}']['type'], 'conversations.maj')
        self.assertEqual(maj[f'notifications_{self.bob.id}']['messages_non_lus'], 1)
        self.assertEqual(maj[f'notifications_{self.alice.id}']['messages_non_lus'], 0)

    def test_messages_lus(self):
        m1 = services.envoyer_message(self.conv, self.alice, 'Un')
        m2 = services.envoyer_message(self.conv, self.alice, 'Deux')

        with patch('apps.chat.realtime._envoyer_groupe') as mock_envoi:
            services.marquer_tous_lus(self.conv, self.bob)

        evenements = self._evenements(mock_envoi)
        self.assertEqual(evenements[0][0], f'chat_{self.conv.id}')
        self.assertEqual(evenements[0][1]['type'], 'messages.lus')
        self.assertEqual(sorted(evenements[0][1]['message_ids']), [m1.id, m2.id])
        self.assertEqual(evenements[1][0], f'notifications_{self.bob.id}')
        self.assertEqual(evenements[1][1]['messages_non_lus'], 0)

    @patch('apps.chat.realtime._envoyer_groupe')
    def test_rien_a_lire_aucune_diffusion(self, mock_envoi):
        services.marquer_tous_lus(self.conv, self.bob)
        mock_envoi.assert_not_called()

    @patch('apps.chat.realtime._envoyer_groupe')
    def test_nouvelle_conversation(self, mock_envoi):
        carol = creer_membre('carol')
        conv = services.creer_conversation(self.produit, [carol, self.bob])
        groupes = {c.args[0] for c in mock_envoi.call_args_list}
        self.assertEqual(groupes, {f'notifications_{carol.id}', f'notifications_{self.bob.id}'})
        for c in mock_envoi.call_args_list:
            self.assertEqual(c.args[1]['conversation_id'], conv.id)

    @patch('apps.chat.realtime.get_channel_layer', side_effect=RuntimeError('Redis indisponible'))
    def test_panne_channel_layer_ne_bloque_pas_l_ecriture(self, mock_layer):
        with self.assertLogs('apps.chat.realtime', level='WARNING'):
            message = services.envoyer_message(self.conv, self.alice, 'Bonjour')
        self.assertTrue(MessageChat.objects.filter(pk=message.pk).exists())


# ═══════════════════════════════════════════════════════════════
# TESTS — API Chat
# ═══════════════════════════════════════════════════════════════

@override_settings(EMAIL_BACKEND=LOCMEM)
class ChatAPITest(APITestCase):

    def setUp(self):
        self.alice = creer_membre('alice', 'Alice')
        self.bob   = creer_membre('bob', 'Bob')
        self.carol = creer_membre('carol')
        self.produit = creer_produit(self.bob)
        self.conv = services.creer_conversation(self.produit, [self.alice, self.bob])
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.alice))

    def test_liste_conversations(self):
        services.envoyer_message(self.conv, self.bob, 'Bonjour')
        response = self.client.get(reverse('chat-liste'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['messages_non_lus'], 1)
        self.assertEqual(response.data[0]['autre_utilisateur']['id'], self.bob.id)

    def test_liste_avatar_url_absolue(self):
        self.bob.photo_profil.name = f'avatars/{self.bob.pk}/avatar.jpg'
        self.bob.save()
        response = self.client.get(reverse('chat-liste'))
        self.assertEqual(
            response.data[0]['autre_utilisateur']['avatar_url'],
            f'http://testserver/media/avatars/{self.bob.pk}/avatar.jpg'
        )

    def test_liste_filtre_par_participant(self):
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.carol))
        response = self.client.get(reverse('chat-liste'))
        self.assertEqual(response.data, [])

    def test_liste_non_authentifie(self):
        self.client.credentials()
        response = self.client.get(reverse('chat-liste'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    # ── Contacter le vendeur ─────────────────────────────────

    def test_contacter_cree_conversation(self):
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.carol))
        response = self.client.post(reverse('chat-contacter'), {'produit_id': self.produit.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['produit']['id'], self.produit.id)
        self.assertEqual(response.data['interlocuteur']['id'], self.bob.id)
        self.assertEqual(response.data['messages'], [])

    def test_contacter_previent_le_vendeur(self):
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.carol))
        self.client.post(reverse('chat-contacter'), {'produit_id': self.produit.id}, format='json')
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('bob@marcheluxe.fr', mail.outbox[0].to)
        self.assertIn(self.produit.titre, mail.outbox[0].subject)

    def test_contacter_conversation_existante(self):
        response = self.client.post(reverse('chat-contacter'), {'produit_id': self.produit.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.conv.id)
        # Pas de nouvel email pour une conversation déjà ouverte
        self.assertEqual(len(mail.outbox), 0)

    def test_contacter_sa_propre_annonce(self):
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.bob))
        response = self.client.post(reverse('chat-contacter'), {'produit_id': self.produit.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_contacter_annonce_hors_ligne(self):
        brouillon = creer_produit(self.bob, titre='Brouillon', statut=Produit.BROUILLON)
        response = self.client.post(reverse('chat-contacter'), {'produit_id': brouillon.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    # ── Détail et messages ───────────────────────────────────

    def test_detail_conversation_marque_messages_lus(self):
        services.envoyer_message(self.conv, self.bob, 'Bonjour Alice')
        response = self.client.get(reverse('chat-detail', args=[self.conv.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['messages']), 1)
        self.assertEqual(response.data['interlocuteur']['email'], 'bob@marcheluxe.fr')
        self.assertTrue(MessageChat.objects.get(conversation=self.conv).is_read)

    def test_detail_conversation_non_participant(self):
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.carol))
        response = self.client.get(reverse('chat-detail', args=[self.conv.id]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_detail_conversation_inconnue(self):
        response = self.client.get(reverse('chat-detail', args=[99999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_messages_ordre_chronologique(self):
        m1 = services.envoyer_message(self.conv, self.alice, 'Premier')
        services.envoyer_message(self.conv, self.bob, 'Second')
        vieillir_message(m1, 5)
        response = self.client.get(reverse('chat-messages', args=[self.conv.id]))
        self.assertEqual([m['contenu'] for m in response.data], ['Premier', 'Second'])
        # Lister les messages ne les marque pas comme lus
        self.assertFalse(MessageChat.objects.get(contenu='Second').is_read)

    # ── Envoi ────────────────────────────────────────────────

    def test_envoyer_message(self):
        response = self.client.post(
            reverse('chat-envoyer', args=[self.conv.id]), {'message': ' Bonjour '}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['contenu'], 'Bonjour')
        self.assertEqual(response.data['expediteur'], self.alice.id)

    def test_envoyer_message_vide(self):
        response = self.client.post(
            reverse('chat-envoyer', args=[self.conv.id]), {'message': '   '}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(MessageChat.objects.exists())

    def test_envoyer_message_non_participant(self):
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.carol))
        response = self.client.post(
            reverse('chat-envoyer', args=[self.conv.id]), {'message': 'Intrus'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    # ── Lecture ──────────────────────────────────────────────

    def test_marquer_lu(self):
        services.envoyer_message(self.conv, self.bob, 'Un')
        services.envoyer_message(self.conv, self.bob, 'Deux')
        response = self.client.post(reverse('chat-marquer-lu', args=[self.conv.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['messages_lus'], 2)

    def test_marquer_message_lu_destinataire(self):
        message = services.envoyer_message(self.conv, self.bob, 'Bonjour')
        response = self.client.post(reverse('chat-message-lu', args=[message.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_read'])

    def test_marquer_message_lu_expediteur_refuse(self):
        message = services.envoyer_message(self.conv, self.alice, 'Bonjour')
        response = self.client.post(reverse('chat-message-lu', args=[message.id]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        message.refresh_from_db()
        self.assertFalse(message.is_read)

    def test_marquer_message_lu_non_participant(self):
        message = services.envoyer_message(self.conv, self.bob, 'Bonjour')
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.carol))
        response = self.client.post(reverse('chat-message-lu', args=[message.id]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_non_lus_badge(self):
        for i in range(11):
            services.envoyer_message(self.conv, self.bob, f'Message {i}')
        response = self.client.get(reverse('chat-non-lus'))
        self.assertEqual(response.data['messages_non_lus'], 11)
        self.assertEqual(response.data['badge'], '9+')

    def test_non_lus_aucun(self):
        response = self.client.get(reverse('chat-non-lus'))
        self.assertEqual(response.data, {'messages_non_lus': 0, 'badge': None})


# ═══════════════════════════════════════════════════════════════
# TESTS — WebSocket
# ═══════════════════════════════════════════════════════════════

class ChatWebSocketTest(TransactionTestCase):

    def setUp(self):
        self.alice = creer_membre('alice_ws')
        self.bob   = creer_membre('bob_ws')
        self.carol = creer_membre('carol_ws')
        self.produit = creer_produit(self.bob)
        self.conv = services.creer_conversation(self.produit, [self.alice, self.bob])
        self.application = URLRouter(websocket_urlpatterns)

    def _communicator(self, user, chemin=None):
        communicator = WebsocketCommunicator(self.application, chemin or f'/ws/chat/{self.conv.id}/')
        communicator.scope['user'] = user
        return communicator

    def test_connexion_acceptee(self):
        async def _run():
            communicator = self._communicator(self.alice)
            connected, _ = await communicator.connect()
            self.assertTrue(connected)
            await communicator.disconnect()

        async_to_sync(_run)()

    def test_connexion_refusee_non_authentifie(self):
        async def _run():
            communicator = self._communicator(AnonymousUser())
            connected, code = await communicator.connect()
            self.assertFalse(connected)
            self.assertEqual(code, 4001)

        async_to_sync(_run)()

    def test_connexion_refusee_non_participant(self):
        async def _run():
            communicator = self._communicator(self.carol)
            connected, code = await communicator.connect()
            self.assertFalse(connected)
            self.assertEqual(code, 4003)

        async_to_sync(_run)()

    def test_connexion_marque_messages_lus(self):
        services.envoyer_message(self.conv, self.bob, 'Bonjour')

        async def _run():
            communicator = self._communicator(self.alice)
            await communicator.connect()
            evenement = await communicator.receive_json_from(timeout=3)
            self.assertEqual(evenement['type'], 'lus')
            await communicator.disconnect()

        async_to_sync(_run)()
        self.assertTrue(MessageChat.objects.get(contenu='Bonjour').is_read)

    def test_envoi_reception_message(self):
        async def _run():
            alice = self._communicator(self.alice)
            bob   = self._communicator(self.bob)
            await alice.connect()
            await bob.connect()

            await alice.send_json_to({'message': ' Le sac est-il disponible ? '})

            recu = await bob.receive_json_from(timeout=3)
            self.assertEqual(recu['type'], 'message')
            self.assertEqual(recu['message']['contenu'], 'Le sac est-il disponible ?')
            self.assertEqual(recu['message']['expediteur'], 'alice_ws')

            # Confirmation côté expéditeur
            echo = await alice.receive_json_from(timeout=3)
            self.assertEqual(echo['message']['id'], recu['message']['id'])

            # Bob a la conversation ouverte : le message passe à lu
            lus = await bob.receive_json_from(timeout=3)
            self.assertEqual(lus['type'], 'lus')
            self.assertEqual(lus['message_ids'], [recu['message']['id']])

            await alice.disconnect()
            await bob.disconnect()

        async_to_sync(_run)()
        self.assertTrue(MessageChat.objects.get().is_read)

    def test_message_invalide_ignore(self):
        async def _run():
            communicator = self._communicator(self.alice)
            await communicator.connect()
            await communicator.send_to(text_data='pas du json')
            await communicator.send_json_to({'message': '   '})
            await communicator.send_json_to(['message'])
            self.assertTrue(await communicator.receive_nothing(timeout=0.5))
            await communicator.disconnect()

        async_to_sync(_run)()
        self.assertFalse(MessageChat.objects.exists())


class JWTMiddlewareTest(TransactionTestCase):

    def setUp(self):
        self.alice = creer_membre('alice_jwt')
        self.bob   = creer_membre('bob_jwt')
        self.produit = creer_produit(self.bob)
        self.conv = services.creer_conversation(self.produit, [self.alice, self.bob])
        self.application = JWTAuthMiddleware(URLRouter(websocket_urlpatterns))

    def test_token_valide(self):
        token = str(RefreshToken.for_user(self.alice).access_token)

        async def _run():
            communicator = WebsocketCommunicator(
                self.application, f'/ws/chat/{self.conv.id}/?token={token}'
            )
            connected, _ = await communicator.connect()
            self.assertTrue(connected)
            await communicator.disconnect()

        async_to_sync(_run)()

    def test_token_invalide(self):
        async def _run():
            communicator = WebsocketCommunicator(
                self.application, f'/ws/chat/{self.conv.id}/?token=falsifie'
            )
            connected, code = await communicator.connect()
            self.assertFalse(connected)
            self.assertEqual(code, 4001)

        async_to_sync(_run)()

    def test_sans_token(self):
        async def _run():
            communicator = WebsocketCommunicator(self.application, f'/ws/chat/{self.conv.id}/')
            connected, code = await communicator.connect()
            self.assertFalse(connected)
            self.assertEqual(code, 4001)

        async_to_sync(_run)()

    def test_compte_desactive(self):
        token = str(RefreshToken.for_user(self.alice).access_token)
        CustomUser.objects.filter(pk=self.alice.pk).update(is_active=False)

        async def _run():
            communicator = WebsocketCommunicator(
                self.application, f'/ws/chat/{self.conv.id}/?token={token}'
            )
            connected, code = await communicator.connect()
            self.assertFalse(connected)
            self.assertEqual(code, 4001)

        async_to_sync(_run)()
