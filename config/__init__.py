# Charge Celery au démarrage de Django (pour que @app.task soit enregistré)
from .celery import app as celery_app

__all__ = ('celery_app',)
