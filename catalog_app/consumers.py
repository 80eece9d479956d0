"""
Admin WebSocket for drag-to-reorder. Each gesture is answered with the
optimistic ordering (state "pending") before the write settles, then the
persisted ordering is broadcast to every admin tab ("confirmed"). A write
that fails after the pending ordering went out sends "resync" with the
authoritative rows instead.
"""

import logging

from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from .exceptions import OrderingError
from .services.collection_state import TrackedCollection
from .services.collections import get_store
from .utils import parse_rank

logger = logging.getLogger(__name__)


class CollectionConsumer(AsyncJsonWebsocketConsumer):
    async def connect(self):
        self.collection = self.scope["url_route"]["kwargs"]["collection"]
        store = get_store(self.collection)
        if store is None:
            logger.info("ws connect rejected, unknown collection=%r", self.collection)
            await self.close()
            return
        self.group_name = f"catalog_order_{self.collection}"
        self.pending_sent = False
        self.tracked = await database_sync_to_async(TrackedCollection)(
            store, on_pending=self._send_pending
        )
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send_json({"action": "initial", **self.tracked.snapshot()})

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    def _send_pending(self, snapshot):
        # called from the database thread while the write is in flight
        self.pending_sent = True
        async_to_sync(self.send_json)({"action": "pending", **snapshot})

    def _gesture(self, content):
        """(apply, args) for a gesture message, or None if it is malformed."""
        if not isinstance(content, dict):
            return None
        action = content.get("action")
        if action == "reorder":
            ids = content.get("ids")
            if not isinstance(ids, list):
                return None
            return self.tracked.apply_reorder, (ids,)
        if action == "shift":
            rank = parse_rank(content.get("rank"))
            if rank is None:
                return None
            return self.tracked.apply_shift_insert, (rank, content.get("id"))
        return None

    async def receive_json(self, content):
        # Expect content: {action: "reorder", ids: [...]} or {action: "shift", id, rank}
        gesture = self._gesture(content)
        if gesture is None:
            logger.info("ws %s malformed message: %r", self.collection, content)
            await self.send_json({"action": "error", "message": "malformed message"})
            return
        apply, args = gesture
        action = content["action"]

        self.pending_sent = False
        try:
            await database_sync_to_async(apply)(*args)
        except OrderingError as e:
            if not self.pending_sent:
                logger.warning("ws %s %s rejected: %s", self.collection, action, e)
                await self.send_json({"action": "error", "message": str(e)})
            else:
                logger.warning("ws %s %s failed, resync: %s", self.collection, action, e)
                await self.send_json({"action": "resync", "message": str(e), **self.tracked.snapshot()})
            return

        logger.info("ws %s %s confirmed", self.collection, action)
        await self.channel_layer.group_send(
            self.group_name,
            {"type": "broadcast", "message": {"action": "confirmed", **self.tracked.snapshot()}},
        )

    async def broadcast(self, event):
        message = event["message"]
        await self.send_json(message)
