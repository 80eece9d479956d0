"""
WSGI config for topup_admin. Plain HTTP only; WebSocket reordering needs
the ASGI application served by daphne.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "topup_admin.settings")

application = get_wsgi_application()
