"""
Les serializers sont les "traducteurs" entre Python et JSON.
Ils font deux choses :
  1. Convertir un objet Python (modèle) → JSON (pour envoyer au frontend)
  2. Valider et convertir du JSON reçu → objet Python (pour sauvegarder en DB)
"""
from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from django.contrib.auth.tokens import default_token_generator
from django.utils.encoding import force_str
from django.utils.http import urlsafe_base64_decode

from .models import CustomUser


# ═══════════════════════════════════════════════════════════════
# SERIALIZER — Profil public d'un membre
# Affiché sur les annonces, les conversations et la recherche
# ═══════════════════════════════════════════════════════════════

class UtilisateurPublicSerializer(serializers.ModelSerializer):
    """
    Version légère — uniquement les infos non sensibles.
    L'email reste visible : c'est lui qui identifie l'interlocuteur
    dans la messagerie.
    """
    nom_complet = serializers.CharField(source='get_full_name', read_only=True)
    avatar_url  = serializers.SerializerMethodField()

    class Meta:
        model  = CustomUser
        fields = [
            'id', 'username', 'email', 'nom_complet',
            'avatar_url', 'ville', 'pays', 'date_inscription'
        ]

    def get_avatar_url(self, obj):
        if not obj.photo_profil:
            return None
        request = self.context.get('request')
        url = obj.photo_profil.url
        return request.build_absolute_uri(url) if request else url


# ═══════════════════════════════════════════════════════════════
# SERIALIZER — Profil complet du membre connecté
# ═══════════════════════════════════════════════════════════════

class ProfilSerializer(serializers.ModelSerializer):
    """
    Lecture et modification de son propre profil.
    L'avatar s'envoie en multipart dans le champ photo_profil.
    """
    nom_complet = serializers.SerializerMethodField()

    class Meta:
        model  = CustomUser
        fields = [
            'id', 'username', 'email',
            'nom', 'prenom', 'nom_complet',
            'photo_profil', 'ville', 'pays',
            'email_verifie', 'date_inscription', 'date_modification'
        ]
        read_only_fields = ['email', 'email_verifie', 'date_inscription', 'date_modification']

    def get_nom_complet(self, obj):
        return obj.get_full_name()


# ═══════════════════════════════════════════════════════════════
# SERIALIZER — Inscription d'un nouveau membre
# ═══════════════════════════════════════════════════════════════

class InscriptionSerializer(serializers.ModelSerializer):
    """
    Valide : format email, unicité, force du mot de passe,
    confirmation du mot de passe.
    """
    password = serializers.CharField(
        write_only=True,
        required=True,
        validators=[validate_password],
        style={'input_type': 'password'}
    )
    password2 = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'},
        label="Confirmer le mot de passe"
    )

    class Meta:
        model  = CustomUser
        fields = [
            'username', 'email',
            'nom', 'prenom', 'ville', 'pays',
            'password', 'password2'
        ]

    def validate_email(self, value):
        if CustomUser.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError(
                "Un compte existe déjà avec cette adresse email."
            )
        return value.lower()

    def validate(self, attrs):
        if attrs['password'] != attrs['password2']:
            raise serializers.ValidationError({
                'password': "Les deux mots de passe ne correspondent pas."
            })
        return attrs

    def create(self, validated_data):
        validated_data.pop('password2')
        # Inactif jusqu'au clic sur le lien reçu par email
        return CustomUser.objects.create_user(**validated_data, is_active=False)


# ═══════════════════════════════════════════════════════════════
# SERIALIZER — Changement de mot de passe
# ═══════════════════════════════════════════════════════════════

class ChangerMotDePasseSerializer(serializers.Serializer):
    """
    Permet à un membre connecté de changer son mot de passe.
    Vérifie l'ancien mot de passe avant d'accepter le nouveau.
    """
    ancien_password = serializers.CharField(write_only=True, style={'input_type': 'password'})
    nouveau_password = serializers.CharField(
        write_only=True,
        validators=[validate_password],
        style={'input_type': 'password'}
    )
    nouveau_password2 = serializers.CharField(write_only=True, style={'input_type': 'password'})

    def validate_ancien_password(self, value):
        user = self.context['request'].user
        if not user.check_password(value):
            raise serializers.ValidationError("L'ancien mot de passe est incorrect.")
        return value

    def validate(self, attrs):
        if attrs['nouveau_password'] != attrs['nouveau_password2']:
            raise serializers.ValidationError({
                'nouveau_password': "Les deux mots de passe ne correspondent pas."
            })
        return attrs

    def save(self, **kwargs):
        user = self.context['request'].user
        user.set_password(self.validated_data['nouveau_password'])
        user.save()
        return user


# ═══════════════════════════════════════════════════════════════
# SERIALIZERS — Mot de passe oublié
# 1. demande : l'email reçoit un lien uid/token
# 2. confirmation : uid + token + nouveau mot de passe
# ═══════════════════════════════════════════════════════════════

class DemandeReinitialisationSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ConfirmationReinitialisationSerializer(serializers.Serializer):
    uid      = serializers.CharField()
    token    = serializers.CharField()
    password = serializers.CharField(
        write_only=True,
        validators=[validate_password],
        style={'input_type': 'password'}
    )

    def validate(self, attrs):
        try:
            pk = force_str(urlsafe_base64_decode(attrs['uid']))
            user = CustomUser.objects.get(pk=pk)
        except (TypeError, ValueError, OverflowError, CustomUser.DoesNotExist):
            user = None

        if user is None or not default_token_generator.check_token(user, attrs['token']):
            raise serializers.ValidationError("Lien de réinitialisation invalide ou expiré.")

        attrs['utilisateur'] = user
        return attrs

    def save(self, **kwargs):
        user = self.validated_data['utilisateur']
        user.set_password(self.validated_data['password'])
        user.save()
        return user
