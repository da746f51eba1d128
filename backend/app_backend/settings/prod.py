from .settings import *
import os
from dotenv import load_dotenv
load_dotenv(os.path.join(BASE_DIR, '..', '.env'))

DEBUG = False
SECRET_KEY = os.environ["DJANGO_SECRET_KEY"]
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost").split(',')

CORS_ALLOW_ALL_ORIGINS = False
CSRF_TRUSTED_ORIGINS = CORS_ALLOWED_ORIGINS
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

# Occupancy is held per process, so the realtime route runs on a single
# ASGI worker (or behind sticky routing). Broadcasts still go through Redis.
CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels_redis.core.RedisChannelLayer",
        "CONFIG": {
            "hosts": [REDIS_URL],
            "capacity": int(os.getenv("CHANNEL_CAPACITY", 1500)),
        },
    }
}

# Double-check client venue matches against stored coordinates
PROXIMITY_REVALIDATE = os.getenv("PROXIMITY_REVALIDATE", "True") == "True"

LOGGING['root']['level'] = os.getenv("LOG_LEVEL", "WARNING")
