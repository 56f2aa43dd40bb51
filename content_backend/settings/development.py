from .base import *

# Development specific settings
DEBUG = True

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

# Use local file storage for development
MEDIA_URL = "/media/"
MEDIA_ROOT = BASE_DIR / "media"

# Disable CORS restrictions for easier local development (use with caution)
# CORS_ALLOW_ALL_ORIGINS = True

LOGGING["loggers"]["apps"]["level"] = "DEBUG"
