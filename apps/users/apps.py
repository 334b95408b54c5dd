"""
On connecte les signals ici pour qu'ils soient
chargés au démarrage de Django.
"""
from django.apps import AppConfig


class UsersConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.users'
    verbose_name = 'Membres'

    def ready(self):
        # Importe les signals → Django les enregistre au démarrage
        import apps.users.signals
