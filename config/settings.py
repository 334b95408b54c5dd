"""
Le Marché Luxe — settings.py
Fichier central de configuration Django (Mode Local)
"""
from pathlib import Path
from decouple import config
from datetime import timedelta

# Racine du projet (dossier contenant manage.py)
BASE_DIR = Path(__file__).resolve().parent.parent


# ═══════════════════════════════════════════════
# SÉCURITÉ
# ═══════════════════════════════════════════════

# Clé secrète lue depuis .env (la valeur par défaut ne sert qu'en local)
SECRET_KEY = config('SECRET_KEY', default='django-insecure-marche-luxe-local')

# True en local → affiche les erreurs détaillées
DEBUG = config('DEBUG', default=True, cast=bool)

# Hôtes autorisés à accéder au site
ALLOWED_HOSTS = ['localhost', '127.0.0.1', '0.0.0.0', 'testserver'] + config('ALLOWED_HOSTS', default='', cast=lambda v: [s.strip() for s in v.split(',') if s.strip()])


# ═══════════════════════════════════════════════
# APPLICATIONS INSTALLÉES
# ═══════════════════════════════════════════════

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'daphne',
    'django.contrib.staticfiles',

    # API REST
    'rest_framework',
    'rest_framework_simplejwt',
    'rest_framework_simplejwt.token_blacklist',
    'corsheaders',
    'django_filters',

    # WebSockets (messagerie temps réel)
    'channels',

    # Fonctionnalités métier
    'mptt',           # Catégories en arbre (Sacs → Sac à main)
    'django_fsm',     # Statut des annonces (machine à états)

    # Tâches asynchrones
    'django_celery_beat',

    # Nos applications Le Marché Luxe
    'apps.users',
    'apps.products',
    'apps.chat',
    'apps.notifications',
    'apps.audit',
]


# ═══════════════════════════════════════════════
# MIDDLEWARE
# Couches qui traitent chaque requête HTTP dans l'ordre
# ═══════════════════════════════════════════════

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',  # Servir les fichiers statiques en prod
    'corsheaders.middleware.CorsMiddleware',           # CORS pour le frontend
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'apps.audit.middleware.AuditLogMiddleware',        # Log automatique des actions
]


# ═══════════════════════════════════════════════
# URLS & ASGI
# ═══════════════════════════════════════════════

ROOT_URLCONF = 'config.urls'

# ASGI = Daphne gère HTTP + WebSocket
ASGI_APPLICATION = 'config.asgi.application'

# ═══════════════════════════════════════════════
# TEMPLATES (admin uniquement, le frontend consomme l'API)
# ═══════════════════════════════════════════════

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
                # Injecte le nombre de messages non lus (badge messagerie)
                'apps.notifications.context_processors.messages_non_lus',
            ],
        },
    },
]


# ═══════════════════════════════════════════════
# BASE DE DONNÉES
# ═══════════════════════════════════════════════

# DATABASE_URL (Postgres en production), SQLite par défaut en local
import dj_database_url as _dj_db_url

DATABASES = {
    'default': _dj_db_url.parse(
        config('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
        conn_max_age=600,
    )
}

AUTH_USER_MODEL = 'users.CustomUser'


# ═══════════════════════════════════════════════
# REDIS — Cache, Sessions, WebSockets, Celery
# Sans REDIS_URL : cache mémoire + channel layer en mémoire (local / tests)
# ═══════════════════════════════════════════════

REDIS_URL = config('REDIS_URL', default='')

if REDIS_URL:
    CACHES = {
        'default': {
            'BACKEND': 'django_redis.cache.RedisCache',
            # Base Redis n°1 réservée au cache
            'LOCATION': f'{REDIS_URL}/1',
            'OPTIONS': {
                'CLIENT_CLASS': 'django_redis.client.DefaultClient',
            },
            # Préfixe sur toutes les clés Redis pour éviter les conflits
            'KEY_PREFIX': 'marcheluxe',
            'TIMEOUT': 300,
        }
    }
    # Base Redis n°0 réservée aux WebSockets
    CHANNEL_LAYERS = {
        'default': {
            'BACKEND': 'channels_redis.core.RedisChannelLayer',
            'CONFIG': {
                'hosts': [f'{REDIS_URL}/0'],
            },
        }
    }
    # Les sessions utilisateur sont stockées dans Redis
    SESSION_ENGINE = 'django.contrib.sessions.backends.cache'
    SESSION_CACHE_ALIAS = 'default'
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'marcheluxe',
            'TIMEOUT': 300,
        }
    }
    CHANNEL_LAYERS = {
        'default': {
            'BACKEND': 'channels.layers.InMemoryChannelLayer',
        }
    }


# ═══════════════════════════════════════════════
# CELERY — Tâches asynchrones
# ═══════════════════════════════════════════════

# Base Redis n°2 réservée à Celery (broker = file d'attente des tâches)
CELERY_BROKER_URL = f'{REDIS_URL}/2' if REDIS_URL else 'memory://'
CELERY_RESULT_BACKEND = f'{REDIS_URL}/2' if REDIS_URL else 'cache+memory://'
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = 'Europe/Paris'
CELERY_BEAT_SCHEDULER = 'django_celery_beat.schedulers:DatabaseScheduler'
# Sans worker (local / tests) : exécution immédiate dans le process courant
CELERY_TASK_ALWAYS_EAGER = config('CELERY_TASK_ALWAYS_EAGER', default=not REDIS_URL, cast=bool)
CELERY_TASK_EAGER_PROPAGATES = False


# ═══════════════════════════════════════════════
# DJANGO REST FRAMEWORK
# ═══════════════════════════════════════════════

REST_FRAMEWORK = {
    # Authentification JWT + Session Django (pour l'admin)
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework_simplejwt.authentication.JWTAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ],
    # Par défaut : lecture publique, écriture authentifiée
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticatedOrReadOnly',
    ],
    'DEFAULT_FILTER_BACKENDS': [
        'django_filters.rest_framework.DjangoFilterBackend',
        'rest_framework.filters.SearchFilter',
        'rest_framework.filters.OrderingFilter',
    ],
    # Pagination : 12 annonces par page
    'DEFAULT_PAGINATION_CLASS': 'rest_framework.pagination.PageNumberPagination',
    'PAGE_SIZE': 12,
}

# Configuration des tokens JWT
SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME':  timedelta(minutes=60),  # Token valide 1h
    'REFRESH_TOKEN_LIFETIME': timedelta(days=7),       # Refresh valide 7 jours
    'ROTATE_REFRESH_TOKENS':  True,                    # Nouveau refresh à chaque usage
    'BLACKLIST_AFTER_ROTATION': True,                  # Invalide l'ancien refresh
    'AUTH_HEADER_TYPES': ('Bearer',),
    'USER_ID_FIELD': 'id',
    'USER_ID_CLAIM': 'user_id',
}


# ═══════════════════════════════════════════════
# CORS — Autorise le frontend à appeler l'API
# ═══════════════════════════════════════════════

CORS_ALLOW_ALL_ORIGINS = DEBUG
CORS_ALLOWED_ORIGINS = config('CORS_ALLOWED_ORIGINS', default='', cast=lambda v: [s.strip() for s in v.split(',') if s.strip()])


# ═══════════════════════════════════════════════
# EMAILS — Console en local (affiche dans le terminal)
# ═══════════════════════════════════════════════

EMAIL_BACKEND   = config('EMAIL_BACKEND', default='django.core.mail.backends.console.EmailBackend')
EMAIL_HOST      = config('EMAIL_HOST',      default='smtp.gmail.com')
EMAIL_PORT      = config('EMAIL_PORT',      default=587, cast=int)
EMAIL_USE_TLS   = config('EMAIL_USE_TLS',   default=True, cast=bool)
EMAIL_HOST_USER = config('EMAIL_HOST_USER', default='')
EMAIL_HOST_PASSWORD = config('EMAIL_HOST_PASSWORD', default='')
DEFAULT_FROM_EMAIL  = config('DEFAULT_FROM_EMAIL', default='Le Marché Luxe <no-reply@marcheluxe.fr>')

# URL du frontend, utilisée pour les liens envoyés par email
FRONTEND_URL = config('FRONTEND_URL', default='http://localhost:5173')


# ═══════════════════════════════════════════════
# FICHIERS STATIQUES & MEDIA
# ═══════════════════════════════════════════════

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    # Manifest (hash dans les noms) seulement hors DEBUG, après collectstatic
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage' if DEBUG
        else 'whitenoise.storage.CompressedManifestStaticFilesStorage',
    },
}

MEDIA_URL = '/media/'
# Photos des annonces et avatars (remplace le stockage objet)
MEDIA_ROOT = config('MEDIA_ROOT', default=str(BASE_DIR / 'media'))


# ═══════════════════════════════════════════════
# VALIDATION DES MOTS DE PASSE
# ═══════════════════════════════════════════════

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]


# ═══════════════════════════════════════════════
# INTERNATIONALISATION
# ═══════════════════════════════════════════════

LANGUAGE_CODE = 'fr-fr'
TIME_ZONE = 'Europe/Paris'
USE_I18N = True
USE_TZ = True


# ═══════════════════════════════════════════════
# LOGS
# ═══════════════════════════════════════════════

LOG_LEVEL = config('LOG_LEVEL', default='INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '{asctime} [{levelname}] {name} | {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        # Toutes nos apps (apps.chat, apps.products...)
        'apps': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
        },
    },
}


# ═══════════════════════════════════════════════
# DIVERS
# ═══════════════════════════════════════════════

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# ═══════════════════════════════════════════════
# ANNONCES & MESSAGERIE
# ═══════════════════════════════════════════════

# Nombre maximum de photos par annonce
ANNONCE_MAX_IMAGES = config('ANNONCE_MAX_IMAGES', default=8, cast=int)

# Les conversations sans aucun message sont supprimées après ce délai
CONVERSATION_VIDE_JOURS = config('CONVERSATION_VIDE_JOURS', default=30, cast=int)

# Nombre maximum de résultats pour la recherche d'utilisateurs
RECHERCHE_UTILISATEURS_LIMITE = 20
