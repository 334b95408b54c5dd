"""
Le Marché Luxe — users/tests.py
"""
import io
import shutil
import tempfile
from datetime import timedelta
from types import SimpleNamespace

from django.contrib.auth.tokens import default_token_generator
from django.core import mail
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import RequestFactory, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from django.utils.encoding import force_bytes
from django.utils.http import urlsafe_base64_encode
from PIL import Image
from rest_framework import status
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import RefreshToken

from apps.notifications.models import EmailAsynchrone
from apps.users.models import CustomUser, TokenVerificationEmail
from apps.users.permissions import EstProprietaire

LOCMEM = 'django.core.mail.backends.locmem.EmailBackend'


def creer_user_actif(email='actif@marcheluxe.fr', username='actif', password='Pass123!', **kwargs):
    return CustomUser.objects.create_user(
        email=email, username=username, password=password, is_active=True, **kwargs
    )


def get_jwt_header(user):
    refresh = RefreshToken.for_user(user)
    return f'Bearer {str(refresh.access_token)}'


def image_png(nom='avatar.png'):
    buffer = io.BytesIO()
    Image.new('RGB', (60, 60), color='black').save(buffer, format='PNG')
    return SimpleUploadedFile(nom, buffer.getvalue(), content_type='image/png')


# ═══════════════════════════════════════════════════════════════
# TESTS — Modèle CustomUser
# ═══════════════════════════════════════════════════════════════

@override_settings(EMAIL_BACKEND=LOCMEM)
class CustomUserModelTest(TestCase):

    def setUp(self):
        self.user = CustomUser.objects.create_user(
            email='test@marcheluxe.fr', username='testuser', password='TestPassword123!',
            nom='Dupont', prenom='Claire',
        )

    def test_creation_utilisateur(self):
        self.assertEqual(self.user.email, 'test@marcheluxe.fr')
        self.assertFalse(self.user.is_active)
        self.assertFalse(self.user.email_verifie)
        self.assertEqual(self.user.pays, 'France')

    def test_mot_de_passe_hache(self):
        self.assertNotEqual(self.user.password, 'TestPassword123!')
        self.assertTrue(self.user.check_password('TestPassword123!'))

    def test_str(self):
        self.assertEqual(str(self.user), 'testuser (test@marcheluxe.fr)')

    def test_get_full_name(self):
        self.assertEqual(self.user.get_full_name(), 'Claire Dupont')

    def test_get_full_name_sans_nom(self):
        user = creer_user_actif(email='noname@test.com', username='noname')
        self.assertEqual(user.get_full_name(), 'noname')

    def test_avatar_url_absent(self):
        self.assertIsNone(self.user.avatar_url)

    def test_creation_superuser(self):
        admin = CustomUser.objects.create_superuser(
            email='admin@marcheluxe.fr', username='admin', password='AdminPass123!'
        )
        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.is_superuser)
        self.assertTrue(admin.is_active)
        # Compte déjà actif : pas de token de vérification
        self.assertFalse(TokenVerificationEmail.objects.filter(utilisateur=admin).exists())

    def test_email_obligatoire(self):
        with self.assertRaises(ValueError):
            CustomUser.objects.create_user(email='', username='nomail', password='Pass!')

    def test_username_obligatoire(self):
        with self.assertRaises(ValueError):
            CustomUser.objects.create_user(email='x@x.com', username='', password='Pass!')

    def test_date_modification_mise_a_jour(self):
        avant = self.user.date_modification
        CustomUser.objects.filter(pk=self.user.pk).update(date_modification=avant - timedelta(days=1))
        self.user.refresh_from_db()
        self.user.ville = 'Paris'
        self.user.save()
        self.assertGreater(self.user.date_modification, avant - timedelta(days=1))


# ═══════════════════════════════════════════════════════════════
# TESTS — Recherche de membres (manager)
# ═══════════════════════════════════════════════════════════════

class RechercheManagerTest(TestCase):

    def setUp(self):
        self.moi   = creer_user_actif(email='moi@test.com', username='moi', nom='Dupuis')
        self.alice = creer_user_actif(email='alice@test.com', username='alice', nom='Dupont')
        self.bob   = creer_user_actif(email='bob@test.com', username='bobby', prenom='Robert')
        CustomUser.objects.create_user(
            email='dupont.inactif@test.com', username='inactif', password='Pass123!'
        )

    def test_recherche_par_nom_insensible_casse(self):
        resultats = list(CustomUser.objects.rechercher('DUPONT'))
        self.assertEqual(resultats, [self.alice])

    def test_recherche_par_email_et_pseudo(self):
        self.assertIn(self.bob, CustomUser.objects.rechercher('bob@'))
        self.assertIn(self.bob, CustomUser.objects.rechercher('bobb'))

    def test_recherche_exclut_membre_courant(self):
        resultats = CustomUser.objects.rechercher('dup', exclure=self.moi)
        self.assertNotIn(self.moi, resultats)
        self.assertIn(self.alice, resultats)

    def test_recherche_ignore_comptes_inactifs(self):
        emails = [u.email for u in CustomUser.objects.rechercher('dupont')]
        self.assertNotIn('dupont.inactif@test.com', emails)

    def test_recherche_par_nom_complet(self):
        jean = creer_user_actif(
            email='jd@test.com', username='jd', prenom='Jean', nom='Dupont'
        )
        self.assertEqual(list(CustomUser.objects.rechercher('jean dupont')), [jean])
        self.assertEqual(list(CustomUser.objects.rechercher('Jean Dup')), [jean])

    def test_recherche_vide(self):
        self.assertEqual(list(CustomUser.objects.rechercher('   ')), [])

    def test_recherche_limitee(self):
        for i in range(25):
            creer_user_actif(email=f'serie{i}@test.com', username=f'serie{i}')
        self.assertEqual(len(CustomUser.objects.rechercher('serie')), 20)


# ═══════════════════════════════════════════════════════════════
# TESTS — Permissions
# ═══════════════════════════════════════════════════════════════

class EstProprietaireTest(TestCase):
    """Lecture comme écriture : seul le propriétaire passe."""

    def setUp(self):
        self.factory = RequestFactory()
        self.vendeur = creer_user_actif(email='vendeur@test.com', username='vendeur')
        self.autre   = creer_user_actif(email='autre@test.com', username='autre')
        self.permission = EstProprietaire()

    def _autorise(self, user, obj, methode='get'):
        request = getattr(self.factory, methode)('/')
        request.user = user
        return self.permission.has_object_permission(request, None, obj)

    def test_annonce_du_vendeur(self):
        annonce = SimpleNamespace(vendeur=self.vendeur)
        self.assertTrue(self._autorise(self.vendeur, annonce, 'patch'))
        self.assertFalse(self._autorise(self.autre, annonce, 'patch'))

    def test_lecture_refusee_aux_autres(self):
        annonce = SimpleNamespace(vendeur=self.vendeur)
        self.assertFalse(self._autorise(self.autre, annonce, 'get'))

    def test_profil(self):
        self.assertTrue(self._autorise(self.vendeur, self.vendeur))
        self.assertFalse(self._autorise(self.autre, self.vendeur))


# ═══════════════════════════════════════════════════════════════
# TESTS — Token de vérification email & signal d'inscription
# ═══════════════════════════════════════════════════════════════

@override_settings(EMAIL_BACKEND=LOCMEM)
class TokenVerificationEmailTest(TestCase):

    def setUp(self):
        self.user = CustomUser.objects.create_user(
            email='token@marcheluxe.fr', username='tokenuser', password='Token123!'
        )
        # Le signal crée le token automatiquement
        self.token = TokenVerificationEmail.objects.get(utilisateur=self.user)

    def test_token_non_expire(self):
        self.assertFalse(self.token.est_expire())

    def test_token_expire(self):
        TokenVerificationEmail.objects.filter(pk=self.token.pk).update(
            date_creation=timezone.now() - timedelta(hours=25)
        )
        self.token.refresh_from_db()
        self.assertTrue(self.token.est_expire())

    def test_email_envoye_apres_inscription(self):
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('Activez', mail.outbox[0].subject)
        self.assertIn('token@marcheluxe.fr', mail.outbox[0].to)
        self.assertIn(str(self.token.token), mail.outbox[0].body)

    def test_email_journalise(self):
        log = EmailAsynchrone.objects.get(destinataire=self.user)
        self.assertEqual(log.statut, EmailAsynchrone.STATUT_ENVOYE)


@override_settings(EMAIL_BACKEND=LOCMEM)
class VerifierEmailAPITest(APITestCase):

    def setUp(self):
        self.user = CustomUser.objects.create_user(
            email='verif@marcheluxe.fr', username='verif', password='Verif123!'
        )
        self.token = TokenVerificationEmail.objects.get(utilisateur=self.user)

    def _url(self, token):
        return reverse('api_verifier_email', args=[token])

    def test_activation(self):
        response = self.client.get(self._url(self.token.token))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.is_active)
        self.assertTrue(self.user.email_verifie)

    def test_token_usage_unique(self):
        self.client.get(self._url(self.token.token))
        response = self.client.get(self._url(self.token.token))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_token_expire_supprime_le_compte(self):
        TokenVerificationEmail.objects.filter(pk=self.token.pk).update(
            date_creation=timezone.now() - timedelta(hours=25)
        )
        response = self.client.get(self._url(self.token.token))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(CustomUser.objects.filter(pk=self.user.pk).exists())

    def test_token_inconnu(self):
        response = self.client.get(self._url('7b1d2d3e-0000-4000-8000-000000000000'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


# ═══════════════════════════════════════════════════════════════
# TESTS — API Inscription
# ═══════════════════════════════════════════════════════════════

@override_settings(EMAIL_BACKEND=LOCMEM)
class InscriptionAPITest(APITestCase):

    def setUp(self):
        self.url = reverse('api_inscription')
        self.data_valide = {
            'username': 'newuser', 'email': 'New@MarcheLuxe.fr',
            'nom': 'Lambert', 'prenom': 'Sophie', 'ville': 'Lyon',
            'password': 'SecurePass123!', 'password2': 'SecurePass123!',
        }

    def test_inscription_valide(self):
        response = self.client.post(self.url, self.data_valide, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = CustomUser.objects.get(email='new@marcheluxe.fr')
        self.assertFalse(user.is_active)
        self.assertEqual(user.ville, 'Lyon')

    def test_inscription_email_duplique(self):
        self.client.post(self.url, self.data_valide, format='json')
        data = {**self.data_valide, 'username': 'autre'}
        response = self.client.post(self.url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_inscription_passwords_differents(self):
        data = {**self.data_valide, 'password2': 'AutrePassword123!'}
        response = self.client.post(self.url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_inscription_email_invalide(self):
        data = {**self.data_valide, 'email': 'pasunemail'}
        response = self.client.post(self.url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


# ═══════════════════════════════════════════════════════════════
# TESTS — API Connexion / Déconnexion JWT
# ═══════════════════════════════════════════════════════════════

class ConnexionAPITest(APITestCase):

    def setUp(self):
        self.url = reverse('token_obtain')
        self.user = creer_user_actif(
            email='login@marcheluxe.fr', username='loginuser', password='Login123!'
        )

    def test_connexion_valide(self):
        response = self.client.post(self.url, {
            'email': 'login@marcheluxe.fr', 'password': 'Login123!'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access',  response.data)
        self.assertIn('refresh', response.data)

    def test_connexion_mauvais_password(self):
        response = self.client.post(self.url, {
            'email': 'login@marcheluxe.fr', 'password': 'MauvaisPass!'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    @override_settings(EMAIL_BACKEND=LOCMEM)
    def test_connexion_compte_inactif(self):
        CustomUser.objects.create_user(
            email='inactif@marcheluxe.fr', username='inactif', password='Inactif123!'
        )
        response = self.client.post(self.url, {
            'email': 'inactif@marcheluxe.fr', 'password': 'Inactif123!'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_deconnexion_blackliste_refresh(self):
        refresh = RefreshToken.for_user(self.user)
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.user))
        response = self.client.post(reverse('api_deconnexion'), {'refresh': str(refresh)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(reverse('token_refresh'), {'refresh': str(refresh)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_deconnexion_token_invalide(self):
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.user))
        response = self.client.post(reverse('api_deconnexion'), {'refresh': 'bidon'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_deconnexion_sans_refresh(self):
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.user))
        response = self.client.post(reverse('api_deconnexion'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('refresh', response.data['detail'])


# ═══════════════════════════════════════════════════════════════
# TESTS — API Profil
# ═══════════════════════════════════════════════════════════════

class ProfilAPITest(APITestCase):

    def setUp(self):
        self.media = tempfile.mkdtemp()
        self.user = creer_user_actif(
            email='profil@marcheluxe.fr', username='profiluser', password='Profil123!'
        )
        self.url = reverse('api_profil')
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.user))

    def tearDown(self):
        shutil.rmtree(self.media, ignore_errors=True)

    def test_voir_profil(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['email'],    'profil@marcheluxe.fr')
        self.assertEqual(response.data['username'], 'profiluser')

    def test_modifier_profil_patch(self):
        response = self.client.patch(
            self.url, {'nom': 'Moreau', 'prenom': 'Julie', 'ville': 'Bordeaux'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.get_full_name(), 'Julie Moreau')
        self.assertEqual(self.user.ville, 'Bordeaux')

    def test_email_non_modifiable(self):
        self.client.patch(self.url, {'email': 'pirate@test.com'}, format='json')
        self.user.refresh_from_db()
        self.assertEqual(self.user.email, 'profil@marcheluxe.fr')

    def test_envoi_avatar(self):
        with override_settings(MEDIA_ROOT=self.media):
            response = self.client.patch(self.url, {'photo_profil': image_png()}, format='multipart')
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            self.user.refresh_from_db()
            self.assertEqual(self.user.photo_profil.name, f'avatars/{self.user.pk}/avatar.png')

            # Le second envoi remplace le premier au même chemin
            self.client.patch(self.url, {'photo_profil': image_png('autre.png')}, format='multipart')
            self.user.refresh_from_db()
            self.assertEqual(self.user.photo_profil.name, f'avatars/{self.user.pk}/avatar.png')

    def test_profil_sans_token(self):
        self.client.credentials()
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class ChangerMotDePasseAPITest(APITestCase):

    def setUp(self):
        self.user = creer_user_actif(password='Ancien123!')
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.user))
        self.url = reverse('api_changer_mdp')

    def test_changement_valide(self):
        response = self.client.post(self.url, {
            'ancien_password': 'Ancien123!',
            'nouveau_password': 'NouveauLuxe456!', 'nouveau_password2': 'NouveauLuxe456!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('NouveauLuxe456!'))

    def test_ancien_mot_de_passe_incorrect(self):
        response = self.client.post(self.url, {
            'ancien_password': 'Faux123!',
            'nouveau_password': 'NouveauLuxe456!', 'nouveau_password2': 'NouveauLuxe456!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


# ═══════════════════════════════════════════════════════════════
# TESTS — Mot de passe oublié
# ═══════════════════════════════════════════════════════════════

@override_settings(EMAIL_BACKEND=LOCMEM)
class ReinitialisationMotDePasseAPITest(APITestCase):

    def setUp(self):
        self.user = creer_user_actif(email='oubli@marcheluxe.fr', username='oubli', password='Oubli123!')

    def test_demande_compte_existant(self):
        response = self.client.post(
            reverse('api_reinitialiser_mdp'), {'email': 'oubli@marcheluxe.fr'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        uid = urlsafe_base64_encode(force_bytes(self.user.pk))
        self.assertIn(uid, mail.outbox[0].body)

    def test_demande_compte_inconnu_meme_reponse(self):
        response = self.client.post(
            reverse('api_reinitialiser_mdp'), {'email': 'personne@marcheluxe.fr'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 0)

    def test_confirmation(self):
        response = self.client.post(reverse('api_confirmer_mdp'), {
            'uid': urlsafe_base64_encode(force_bytes(self.user.pk)),
            'token': default_token_generator.make_token(self.user),
            'password': 'NouveauLuxe789!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('NouveauLuxe789!'))

    def test_confirmation_token_invalide(self):
        response = self.client.post(reverse('api_confirmer_mdp'), {
            'uid': urlsafe_base64_encode(force_bytes(self.user.pk)),
            'token': 'faux-token',
            'password': 'NouveauLuxe789!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


# ═══════════════════════════════════════════════════════════════
# TESTS — Profil public & recherche
# ═══════════════════════════════════════════════════════════════

class ProfilPublicEtRechercheAPITest(APITestCase):

    def setUp(self):
        self.moi   = creer_user_actif(email='moi@test.com', username='moi')
        self.alice = creer_user_actif(email='alice@test.com', username='alice', nom='Martin', ville='Nice')

    def test_profil_public(self):
        response = self.client.get(reverse('api_profil_public', args=[self.alice.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['ville'], 'Nice')
        self.assertNotIn('password', response.data)

    def test_profil_public_inconnu(self):
        response = self.client.get(reverse('api_profil_public', args=[9999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_recherche(self):
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.moi))
        response = self.client.get(reverse('api_recherche_utilisateurs'), {'q': 'mart'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([u['id'] for u in response.data], [self.alice.pk])

    def test_recherche_vide(self):
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.moi))
        response = self.client.get(reverse('api_recherche_utilisateurs'), {'q': ''})
        self.assertEqual(response.data, [])

    def test_recherche_anonyme_refusee(self):
        response = self.client.get(reverse('api_recherche_utilisateurs'), {'q': 'alice'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
