from django.urls import re_path

from . import consumers

websocket_urlpatterns = [
    re_path(r"ws/catalog/(?P<collection>[a-z-]+)/$", consumers.CollectionConsumer.as_asgi()),
]
