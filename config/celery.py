"""
Le Marché Luxe — celery.py
Configuration de Celery pour les tâches asynchrones (emails, nettoyage...)
"""
import os
from celery import Celery
from celery.schedules import crontab

# Indique à Celery quel fichier settings utiliser
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

# Crée l'instance Celery nommée "marcheluxe"
app = Celery('marcheluxe')

# Charge la configuration depuis settings.py (tout ce qui commence par CELERY_)
app.config_from_object('django.conf:settings', namespace='CELERY')

# Découvre automatiquement les fichiers tasks.py dans chaque app
app.autodiscover_tasks()

# Tâches périodiques (recopiées en base par django-celery-beat au démarrage)
app.conf.beat_schedule = {
    # Chaque nuit à 3h : conversations ouvertes mais jamais utilisées
    'nettoyer-conversations-vides': {
        'task': 'apps.notifications.tasks.nettoyer_conversations_vides',
        'schedule': crontab(hour=3, minute=0),
    },
}
