"""
WSGI config for tierbot project (serves the admin only).
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "tierbot.settings.development")

application = get_wsgi_application()
