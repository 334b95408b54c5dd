"""
Tests du middleware d'audit (journalisation des requêtes d'écriture).
"""
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import RefreshToken

from apps.users.models import CustomUser


class AuditLogMiddlewareTest(APITestCase):

    def setUp(self):
        self.membre = CustomUser.objects.create_user(
            email='audit@marcheluxe.fr', username='audit',
            password='Audit123!', is_active=True,
        )

    def test_ecriture_authentifiee_journalisee(self):
        token = RefreshToken.for_user(self.membre).access_token
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        with self.assertLogs('apps.audit.middleware', level='INFO') as logs:
            self.client.post(reverse('chat-contacter'), {'produit_id': 99999}, format='json')
        self.assertIn('[AUDIT] POST', logs.output[0])
        self.assertIn('audit@marcheluxe.fr', logs.output[0])
        self.assertIn('Status: 400', logs.output[0])

    def test_ecriture_anonyme_journalisee(self):
        with self.assertLogs('apps.audit.middleware', level='INFO') as logs:
            self.client.post(reverse('chat-contacter'), {'produit_id': 1}, format='json')
        self.assertIn('User: Anonyme', logs.output[0])
        self.assertIn('Status: 401', logs.output[0])

    def test_lecture_non_journalisee(self):
        with self.assertNoLogs('apps.audit.middleware', level='INFO'):
            self.client.get(reverse('categorie-list'))
