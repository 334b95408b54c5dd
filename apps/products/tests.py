"""
Tests pour l'app products.

Couverture :
  - Modèle Categorie (slug auto, hiérarchie MPTT, commande charger_categories)
  - Modèle Produit (slug unique, transitions de statut)
  - Photos (chemin de stockage, resize, limite de 8)
  - API annonces (catalogue public, filtres, dépôt, permissions, mes annonces, statut)
"""
import io
import shutil
import tempfile
from decimal import Decimal

from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.urls import reverse
from django_fsm import TransitionNotAllowed
from PIL import Image
from rest_framework import status
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import RefreshToken

from apps.products.models import Produit, Categorie, ImageProduit
from apps.users.models import CustomUser


# ═══════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════

def creer_membre(email='vendeur@marcheluxe.fr', username='vendeur'):
    return CustomUser.objects.create_user(
        email=email, username=username, password='Vendeur123!', is_active=True,
    )


def get_jwt_header(user):
    refresh = RefreshToken.for_user(user)
    return f'Bearer {str(refresh.access_token)}'


def creer_sous_categorie(nom='Sac à main', parent='Sacs'):
    racine, _ = Categorie.objects.get_or_create(nom=parent)
    categorie, _ = Categorie.objects.get_or_create(nom=nom, defaults={'parent': racine})
    return categorie


def creer_produit(vendeur, categorie=None, **kwargs):
    """Crée une annonce en ligne avec des valeurs par défaut."""
    if categorie is None:
        categorie = creer_sous_categorie()
    defaults = {
        'titre'      : 'Birkin 30 Togo',
        'marque'     : 'Hermès',
        'modele'     : 'Birkin 30',
        'etat'       : Produit.Etat.EXCELLENT,
        'description': 'Cuir Togo gold, garnitures dorées.',
        'prix'       : Decimal('9500.00'),
        'localisation': 'Paris',
        'statut'     : Produit.ACTIF,
        'categorie'  : categorie,
        'vendeur'    : vendeur,
    }
    defaults.update(kwargs)
    return Produit.objects.create(**defaults)


def image_fichier(nom='photo.png', taille=(60, 60), fmt='PNG'):
    buffer = io.BytesIO()
    Image.new('RGB', taille, color='white').save(buffer, format=fmt)
    return SimpleUploadedFile(nom, buffer.getvalue(), content_type=f'image/{fmt.lower()}')


# ═══════════════════════════════════════════════════════════════
# TESTS — Catégories
# ═══════════════════════════════════════════════════════════════

class CategorieModelTest(TestCase):

    def test_slug_auto_depuis_nom(self):
        cat = Categorie.objects.create(nom='Sac à dos')
        self.assertEqual(cat.slug, 'sac-a-dos')

    def test_sous_categorie_avec_parent(self):
        enfant = creer_sous_categorie('Pochette')
        parent = Categorie.objects.get(nom='Sacs')
        self.assertIn(enfant, parent.sous_categories.all())
        self.assertTrue(enfant.is_leaf_node())
        self.assertFalse(parent.is_leaf_node())

    def test_charger_categories(self):
        call_command('charger_categories', stdout=io.StringIO())
        self.assertTrue(Categorie.objects.filter(nom='Montres', parent=None).exists())
        self.assertEqual(Categorie.objects.get(nom='Sac à main').parent.nom, 'Sacs')

    def test_charger_categories_idempotent(self):
        call_command('charger_categories', stdout=io.StringIO())
        total = Categorie.objects.count()
        call_command('charger_categories', stdout=io.StringIO())
        self.assertEqual(Categorie.objects.count(), total)


# ═══════════════════════════════════════════════════════════════
# TESTS — Modèle Produit
# ═══════════════════════════════════════════════════════════════

class ProduitModelTest(TestCase):

    def setUp(self):
        self.vendeur = creer_membre()

    def test_brouillon_par_defaut(self):
        produit = creer_produit(self.vendeur, statut=Produit.BROUILLON)
        self.assertEqual(produit.statut, 'brouillon')
        self.assertEqual(Produit(titre='x').statut, Produit.BROUILLON)

    def test_slug_unique(self):
        p1 = creer_produit(self.vendeur)
        p2 = creer_produit(self.vendeur)
        self.assertEqual(p1.slug, 'hermes-birkin-30-togo')
        self.assertEqual(p2.slug, 'hermes-birkin-30-togo-1')

    def test_publier(self):
        produit = creer_produit(self.vendeur, statut=Produit.BROUILLON)
        produit.publier()
        produit.save()
        self.assertEqual(Produit.objects.get(pk=produit.pk).statut, Produit.ACTIF)

    def test_pause_puis_reactivation(self):
        produit = creer_produit(self.vendeur)
        produit.mettre_en_pause()
        self.assertEqual(produit.statut, Produit.EN_PAUSE)
        produit.reactiver()
        self.assertEqual(produit.statut, Produit.ACTIF)

    def test_vendu_depuis_pause(self):
        produit = creer_produit(self.vendeur, statut=Produit.EN_PAUSE)
        produit.marquer_vendu()
        self.assertEqual(produit.statut, Produit.VENDU)

    def test_transition_interdite(self):
        produit = creer_produit(self.vendeur, statut=Produit.BROUILLON)
        with self.assertRaises(TransitionNotAllowed):
            produit.marquer_vendu()
        vendu = creer_produit(self.vendeur, statut=Produit.VENDU)
        with self.assertRaises(TransitionNotAllowed):
            vendu.reactiver()

    def test_manager_actifs(self):
        actif = creer_produit(self.vendeur)
        creer_produit(self.vendeur, statut=Produit.BROUILLON)
        creer_produit(self.vendeur, statut=Produit.VENDU)
        self.assertEqual(list(Produit.actifs.all()), [actif])


# ═══════════════════════════════════════════════════════════════
# TESTS — Photos d'annonce
# ═══════════════════════════════════════════════════════════════

class ImageProduitTest(TestCase):

    def setUp(self):
        self.media = tempfile.mkdtemp()
        self.override = override_settings(MEDIA_ROOT=self.media)
        self.override.enable()
        self.vendeur = creer_membre()
        self.produit = creer_produit(self.vendeur)

    def tearDown(self):
        self.override.disable()
        shutil.rmtree(self.media, ignore_errors=True)

    def test_chemin_stockage(self):
        image = ImageProduit.objects.create(produit=self.produit, image=image_fichier('Photo.JPG', fmt='JPEG'))
        self.assertTrue(image.image.name.startswith(f'produits/{self.vendeur.pk}/'))
        self.assertTrue(image.image.name.endswith('.jpg'))

    def test_resize_grande_image(self):
        image = ImageProduit.objects.create(
            produit=self.produit, image=image_fichier(taille=(2400, 1600))
        )
        with Image.open(image.image.path) as img:
            self.assertEqual(img.size, (1200, 800))

    def test_petite_image_intacte(self):
        image = ImageProduit.objects.create(produit=self.produit, image=image_fichier(taille=(800, 600)))
        with Image.open(image.image.path) as img:
            self.assertEqual(img.size, (800, 600))

    def test_une_seule_image_principale(self):
        i1 = ImageProduit.objects.create(produit=self.produit, image=image_fichier(), est_principale=True)
        i2 = ImageProduit.objects.create(produit=self.produit, image=image_fichier(), est_principale=True)
        i1.refresh_from_db()
        self.assertFalse(i1.est_principale)
        self.assertEqual(self.produit.image_principale, i2)


# ═══════════════════════════════════════════════════════════════
# TESTS — API catalogue public
# ═══════════════════════════════════════════════════════════════

class CatalogueAPITest(APITestCase):

    def setUp(self):
        cache.clear()
        self.vendeur = creer_membre()
        self.sac = creer_sous_categorie('Sac à main', 'Sacs')
        self.montre = creer_sous_categorie('Montres homme', 'Montres')
        self.birkin = creer_produit(self.vendeur, categorie=self.sac, prix=Decimal('9500'))
        self.rolex = creer_produit(
            self.vendeur, categorie=self.montre, titre='Submariner', marque='Rolex',
            prix=Decimal('12000'), negociable=True, etat=Produit.Etat.TRES_BON,
        )
        self.brouillon = creer_produit(self.vendeur, categorie=self.sac, statut=Produit.BROUILLON)
        self.url = reverse('produit-list')

    def _ids(self, response):
        return {p['id'] for p in response.data['results']}

    def test_liste_annonces_en_ligne_uniquement(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self._ids(response), {self.birkin.pk, self.rolex.pk})

    def test_filtre_categorie_racine_inclut_sous_categories(self):
        response = self.client.get(self.url, {'categorie_slug': 'sacs'})
        self.assertEqual(self._ids(response), {self.birkin.pk})

    def test_filtre_categorie_inconnue(self):
        response = self.client.get(self.url, {'categorie_slug': 'inconnue'})
        self.assertEqual(response.data['count'], 0)

    def test_filtre_prix(self):
        response = self.client.get(self.url, {'prix_min': 10000})
        self.assertEqual(self._ids(response), {self.rolex.pk})
        response = self.client.get(self.url, {'prix_max': 10000})
        self.assertEqual(self._ids(response), {self.birkin.pk})

    def test_filtre_marque_et_negociable(self):
        response = self.client.get(self.url, {'marque': 'rolex'})
        self.assertEqual(self._ids(response), {self.rolex.pk})
        response = self.client.get(self.url, {'negociable': 'true'})
        self.assertEqual(self._ids(response), {self.rolex.pk})

    def test_recherche(self):
        response = self.client.get(self.url, {'search': 'submariner'})
        self.assertEqual(self._ids(response), {self.rolex.pk})

    def test_tri_par_prix(self):
        response = self.client.get(self.url, {'ordering': '-prix'})
        self.assertEqual([p['id'] for p in response.data['results']], [self.rolex.pk, self.birkin.pk])

    def test_detail_annonce_en_ligne(self):
        response = self.client.get(reverse('produit-detail', args=[self.birkin.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['vendeur']['id'], self.vendeur.pk)
        self.assertEqual(response.data['etat_libelle'], 'Excellent état')

    def test_detail_brouillon_invisible_pour_les_autres(self):
        response = self.client.get(reverse('produit-detail', args=[self.brouillon.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_detail_brouillon_visible_pour_le_vendeur(self):
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.vendeur))
        response = self.client.get(reverse('produit-detail', args=[self.brouillon.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_cache_invalide_apres_modification(self):
        url = reverse('produit-detail', args=[self.birkin.pk])
        self.client.get(url)
        self.assertIsNotNone(cache.get(f'produit_{self.birkin.pk}'))
        self.birkin.prix = Decimal('9000')
        self.birkin.save()
        self.assertIsNone(cache.get(f'produit_{self.birkin.pk}'))
        response = self.client.get(url)
        self.assertEqual(response.data['prix'], '9000.00')

    def test_cache_par_hote(self):
        self.vendeur.photo_profil.name = f'avatars/{self.vendeur.pk}/avatar.jpg'
        self.vendeur.save()
        url = reverse('produit-detail', args=[self.birkin.pk])

        response = self.client.get(url)
        self.assertTrue(response.data['vendeur']['avatar_url'].startswith('http://testserver/'))

        response = self.client.get(url, HTTP_HOST='localhost')
        self.assertTrue(response.data['vendeur']['avatar_url'].startswith('http://localhost/'))
        self.assertEqual(set(cache.get(f'produit_{self.birkin.pk}')), {'testserver', 'localhost'})

    def test_cache_invalide_apres_modification_du_vendeur(self):
        url = reverse('produit-detail', args=[self.birkin.pk])
        self.client.get(url)
        self.assertIsNotNone(cache.get(f'produit_{self.birkin.pk}'))

        self.vendeur.photo_profil.name = f'avatars/{self.vendeur.pk}/avatar.png'
        self.vendeur.save()
        self.assertIsNone(cache.get(f'produit_{self.birkin.pk}'))

        response = self.client.get(url)
        self.assertTrue(response.data['vendeur']['avatar_url'].endswith('/avatar.png'))

    def test_categories(self):
        response = self.client.get(reverse('categorie-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        racines = {c['nom']: c for c in response.data}
        self.assertEqual(set(racines), {'Sacs', 'Montres'})
        self.assertEqual(racines['Sacs']['sous_categories'][0]['nom'], 'Sac à main')


# ═══════════════════════════════════════════════════════════════
# TESTS — API dépôt et gestion d'annonce
# ═══════════════════════════════════════════════════════════════

class GestionAnnonceAPITest(APITestCase):

    def setUp(self):
        cache.clear()
        self.vendeur = creer_membre()
        self.autre = creer_membre('autre@marcheluxe.fr', 'autre')
        self.categorie = creer_sous_categorie()
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.vendeur))
        self.data = {
            'titre': 'Timeless Classique',
            'categorie': self.categorie.pk,
            'marque': 'Chanel',
            'modele': 'Classique 25',
            'etat': 'tres_bon',
            'description': 'Cuir matelassé noir.',
            'prix': '6200.00',
            'localisation': 'Lyon',
            'negociable': True,
        }

    def test_depot_en_brouillon_par_defaut(self):
        response = self.client.post(reverse('produit-list'), self.data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        produit = Produit.objects.get(pk=response.data['id'])
        self.assertEqual(produit.vendeur, self.vendeur)
        self.assertEqual(produit.statut, Produit.BROUILLON)

    def test_depot_publie(self):
        response = self.client.post(reverse('produit-list'), {**self.data, 'statut': 'actif'}, format='json')
        self.assertEqual(response.data['statut'], Produit.ACTIF)

    def test_depot_statut_vendu_refuse(self):
        response = self.client.post(reverse('produit-list'), {**self.data, 'statut': 'vendu'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_marque_autre_saisie_libre(self):
        data = {**self.data, 'marque': 'Autre', 'marque_personnalisee': 'Goyard'}
        response = self.client.post(reverse('produit-list'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Produit.objects.get(pk=response.data['id']).marque, 'Goyard')

    def test_marque_autre_sans_precision(self):
        response = self.client.post(reverse('produit-list'), {**self.data, 'marque': 'Autre'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_marque_hors_catalogue(self):
        response = self.client.post(reverse('produit-list'), {**self.data, 'marque': 'Inconnue'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_prix_nul_refuse(self):
        response = self.client.post(reverse('produit-list'), {**self.data, 'prix': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_categorie_racine_refusee(self):
        response = self.client.post(
            reverse('produit-list'), {**self.data, 'categorie': self.categorie.parent_id}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_depot_anonyme_refuse(self):
        self.client.credentials()
        response = self.client.post(reverse('produit-list'), self.data, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_modification_par_le_vendeur(self):
        produit = creer_produit(self.vendeur)
        response = self.client.patch(
            reverse('produit-detail', args=[produit.pk]), {'prix': '8900.00'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        produit.refresh_from_db()
        self.assertEqual(produit.prix, Decimal('8900.00'))

    def test_modification_statut_ignoree(self):
        produit = creer_produit(self.vendeur)
        self.client.patch(reverse('produit-detail', args=[produit.pk]), {'statut': 'vendu'}, format='json')
        produit.refresh_from_db()
        self.assertEqual(produit.statut, Produit.ACTIF)

    def test_modification_par_un_autre_refusee(self):
        produit = creer_produit(self.vendeur)
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.autre))
        response = self.client.patch(
            reverse('produit-detail', args=[produit.pk]), {'prix': '1.00'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_suppression(self):
        produit = creer_produit(self.vendeur)
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.autre))
        response = self.client.delete(reverse('produit-detail', args=[produit.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.vendeur))
        response = self.client.delete(reverse('produit-detail', args=[produit.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Produit.objects.filter(pk=produit.pk).exists())

    def test_mes_annonces_par_statut(self):
        actif = creer_produit(self.vendeur)
        brouillon = creer_produit(self.vendeur, statut=Produit.BROUILLON)
        creer_produit(self.autre)

        response = self.client.get(reverse('produit-mes-annonces'), {'statut': 'brouillon'})
        self.assertEqual([p['id'] for p in response.data], [brouillon.pk])

        response = self.client.get(reverse('produit-mes-annonces'))
        self.assertEqual([p['id'] for p in response.data], [brouillon.pk, actif.pk])

    def test_mes_annonces_statut_inconnu(self):
        response = self.client.get(reverse('produit-mes-annonces'), {'statut': 'published'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_changer_statut(self):
        produit = creer_produit(self.vendeur, statut=Produit.BROUILLON)
        url = reverse('produit-changer-statut', args=[produit.pk])

        response = self.client.post(url, {'action': 'publier'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['statut'], Produit.ACTIF)

        response = self.client.post(url, {'action': 'reactiver'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(url, {'action': 'marquer_vendu'}, format='json')
        produit.refresh_from_db()
        self.assertEqual(produit.statut, Produit.VENDU)

    def test_changer_statut_action_inconnue(self):
        produit = creer_produit(self.vendeur)
        url = reverse('produit-changer-statut', args=[produit.pk])
        response = self.client.post(url, {'action': 'supprimer'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class AjouterImageAPITest(APITestCase):

    def setUp(self):
        self.media = tempfile.mkdtemp()
        self.override = override_settings(MEDIA_ROOT=self.media)
        self.override.enable()
        self.vendeur = creer_membre()
        self.produit = creer_produit(self.vendeur)
        self.url = reverse('produit-ajouter-image', args=[self.produit.pk])
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(self.vendeur))

    def tearDown(self):
        self.override.disable()
        shutil.rmtree(self.media, ignore_errors=True)

    def test_premiere_image_principale(self):
        response = self.client.post(self.url, {'image': image_fichier()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['est_principale'])

        response = self.client.post(self.url, {'image': image_fichier()}, format='multipart')
        self.assertFalse(response.data['est_principale'])
        self.assertEqual(response.data['ordre'], 1)

    @override_settings(ANNONCE_MAX_IMAGES=8)
    def test_limite_de_huit_photos(self):
        for _ in range(8):
            ImageProduit.objects.create(produit=self.produit, image=image_fichier())
        response = self.client.post(self.url, {'image': image_fichier()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.produit.images.count(), 8)

    def test_image_invalide(self):
        faux = SimpleUploadedFile('photo.png', b'pas une image', content_type='image/png')
        response = self.client.post(self.url, {'image': faux}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_ajout_par_un_autre_refuse(self):
        autre = creer_membre('autre@marcheluxe.fr', 'autre')
        self.client.credentials(HTTP_AUTHORIZATION=get_jwt_header(autre))
        response = self.client.post(self.url, {'image': image_fichier()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
