"""
Le Marché Luxe — users/models.py
Profils des membres (acheteurs et vendeurs) et vérification email.

Un seul modèle porte à la fois le compte (email + mot de passe) et
le profil public (pseudo, nom, avatar, ville, pays).
N'importe quel membre peut vendre : il n'y a pas de rôle "vendeur".
"""
import os
import uuid
from datetime import timedelta

from django.db import models
from django.db.models import Q, Value
from django.db.models.functions import Concat
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.utils import timezone


def chemin_avatar(instance, filename):
    """
    Range l'avatar sous avatars/<id utilisateur>/avatar.<ext>
    Un nouvel envoi remplace donc toujours le même fichier logique.
    """
    ext = os.path.splitext(filename)[1].lower().lstrip('.') or 'jpg'
    return f'avatars/{instance.pk}/avatar.{ext}'


# ═══════════════════════════════════════════════════════════════
# MANAGER UTILISATEUR
# L'email est l'identifiant de connexion, pas le username.
# ═══════════════════════════════════════════════════════════════

class CustomUserManager(BaseUserManager):

    def create_user(self, email, username, password=None, **extra_fields):
        """
        Crée un membre.
        Le compte reste inactif tant que l'email n'est pas vérifié.
        """
        if not email:
            raise ValueError("L'adresse email est obligatoire")
        if not username:
            raise ValueError("Le nom d'utilisateur est obligatoire")

        email = self.normalize_email(email)

        user = self.model(email=email, username=username, **extra_fields)

        # hash le mot de passe avant de le stocker (jamais en clair)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, username, password=None, **extra_fields):
        """Crée un administrateur (python manage.py createsuperuser)"""
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('email_verifie', True)

        return self.create_user(email, username, password, **extra_fields)

    def rechercher(self, terme, exclure=None, limite=20):
        """
        Recherche de membres par email, nom, prénom, nom complet ("Jean Dupont")
        ou pseudo (sous-chaîne, insensible à la casse). Membres actifs uniquement.
        Une recherche vide ne renvoie rien.
        """
        terme = (terme or '').strip()
        if not terme:
            return self.none()

        qs = self.filter(is_active=True).annotate(
            nom_complet=Concat('prenom', Value(' '), 'nom')
        ).filter(
            Q(email__icontains=terme)       |
            Q(nom__icontains=terme)         |
            Q(prenom__icontains=terme)      |
            Q(nom_complet__icontains=terme) |
            Q(username__icontains=terme)
        )
        if exclure is not None:
            qs = qs.exclude(pk=exclure.pk)
        return qs.order_by('username')[:limite]


# ═══════════════════════════════════════════════════════════════
# MEMBRE
# ═══════════════════════════════════════════════════════════════

class CustomUser(AbstractBaseUser, PermissionsMixin):

    # ── Identité ──────────────────────────────────────────────
    username = models.CharField(
        max_length=50,
        unique=True,
        verbose_name="Nom d'utilisateur"
    )
    email = models.EmailField(
        unique=True,
        verbose_name="Adresse email"
    )
    nom = models.CharField(max_length=100, blank=True, verbose_name="Nom")
    prenom = models.CharField(max_length=100, blank=True, verbose_name="Prénom")
    photo_profil = models.ImageField(
        upload_to=chemin_avatar,
        null=True,
        blank=True,
        verbose_name="Photo de profil"
    )

    # ── Localisation affichée sur le profil ───────────────────
    ville = models.CharField(max_length=100, blank=True, verbose_name="Ville")
    pays = models.CharField(max_length=100, blank=True, default="France", verbose_name="Pays")

    # ── Statuts du compte ─────────────────────────────────────
    is_active = models.BooleanField(
        default=False,           # False = compte non activé par email
        verbose_name="Compte actif"
    )
    is_staff = models.BooleanField(default=False, verbose_name="Staff")
    email_verifie = models.BooleanField(
        default=False,           # True après clic sur le lien de vérification
        verbose_name="Email vérifié"
    )

    # ── Dates ─────────────────────────────────────────────────
    date_inscription = models.DateTimeField(
        default=timezone.now,
        verbose_name="Date d'inscription"
    )
    date_modification = models.DateTimeField(
        auto_now=True,
        verbose_name="Dernière modification du profil"
    )

    objects = CustomUserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    class Meta:
        verbose_name = "Membre"
        verbose_name_plural = "Membres"
        ordering = ['-date_inscription']

    def __str__(self):
        return f"{self.username} ({self.email})"

    def get_full_name(self):
        """Retourne le nom complet, ou le pseudo à défaut"""
        return f"{self.prenom} {self.nom}".strip() or self.username

    def get_short_name(self):
        return self.prenom or self.username

    @property
    def avatar_url(self):
        return self.photo_profil.url if self.photo_profil else None


# ═══════════════════════════════════════════════════════════════
# TOKEN DE VÉRIFICATION EMAIL
# Envoyé à l'inscription. Le clic sur le lien active le compte.
# ═══════════════════════════════════════════════════════════════

class TokenVerificationEmail(models.Model):

    DUREE_VALIDITE = timedelta(hours=24)

    utilisateur = models.OneToOneField(
        CustomUser,
        on_delete=models.CASCADE,
        related_name='token_verification'
    )
    token = models.UUIDField(default=uuid.uuid4, unique=True)
    date_creation = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Token de {self.utilisateur.email}"

    def est_expire(self):
        """Vérifie si le token a plus de 24h"""
        return timezone.now() > self.date_creation + self.DUREE_VALIDITE
