"""
WebSocket consumer for live query subscriptions.

One socket per client carries any number of subscriptions. Each subscription
names a query from chat.subscriptions.LIVE_QUERIES plus its arguments; the
consumer evaluates it, joins the channel groups of the topics it depends on,
and pushes a fresh result whenever a change event for one of those topics
arrives and the result actually changed.

Authentication:
    IdentityTokenAuthMiddleware attaches the verified ExternalIdentity to
    self.scope["user"]. Anonymous connections are closed with code 4001.

Presence:
    Connecting marks the caller online, disconnecting marks them offline,
    and {"type": "heartbeat"} refreshes last_seen.

Message Types (from client):
    - subscribe: {"type": "subscribe", "id": "s1", "query": "getMessages",
                  "args": {"conversation_id": 7}}
    - unsubscribe: {"type": "unsubscribe", "id": "s1"}
    - heartbeat: {"type": "heartbeat"}

Message Types (to client):
    - result: {"type": "result", "id": "s1", "data": ...}
    - error: {"type": "error", "id": "s1", "error": "...", "error_code": "..."}
    - heartbeat: {"type": "heartbeat", "online": true}
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from authentication.services import IdentityService
from chat.events import group_name
from chat.services import PresenceService
from chat.subscriptions import LiveQuery, get_live_query
from core.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class Subscription:
    """State of one client subscription."""

    id: str
    query: LiveQuery
    args: dict
    topics: list[str] = field(default_factory=list)
    last_result: Any = None
    refresh_task: asyncio.Task | None = None


class LiveQueryConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for live query subscriptions.

    Handles:
        - Connection authentication and presence
        - Subscribe / unsubscribe bookkeeping
        - Topic group membership (joined once per topic, reference counted)
        - Re-evaluation on change events, pushing only changed results

    Attributes:
        identity: Verified ExternalIdentity from the scope
        caller_id: Internal user id, resolved lazily (None until synced)
        subscriptions: Subscription state keyed by client-chosen id
        topic_subscribers: Subscription ids per topic
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.identity = None
        self.caller_id: int | None = None
        self.subscriptions: dict[str, Subscription] = {}
        self.topic_subscribers: dict[str, set[str]] = {}

    async def connect(self):
        user = self.scope.get("user")

        if not user or not getattr(user, "is_authenticated", False):
            logger.warning("Rejected unauthenticated live query connection")
            await self.close(code=4001)
            return

        self.identity = user
        if "jwt" in self.scope.get("subprotocols", []):
            await self.accept(subprotocol="jwt")
        else:
            await self.accept()

        self.caller_id = await self._resolve_caller_id()
        await self._set_presence(online=True)
        logger.info(f"Identity {self.identity} connected to live queries")

    async def disconnect(self, close_code):
        for subscription in list(self.subscriptions.values()):
            await self._drop_subscription(subscription)

        if self.identity is not None:
            await self._set_presence(online=False)
            logger.info(f"Identity {self.identity} disconnected ({close_code})")

    async def receive_json(self, content, **kwargs):
        message_type = content.get("type")

        if message_type == "subscribe":
            await self._handle_subscribe(content)
        elif message_type == "unsubscribe":
            await self._handle_unsubscribe(content)
        elif message_type == "heartbeat":
            await self._set_presence(online=True)
            await self.send_json({"type": "heartbeat", "online": True})
        else:
            await self.send_json(
                {
                    "type": "error",
                    "error": f"Unknown message type: {message_type}",
                    "error_code": "UNKNOWN_MESSAGE_TYPE",
                }
            )

    async def _handle_subscribe(self, content):
        subscription_id = str(content.get("id") or "")
        if not subscription_id:
            await self._send_error(None, "Subscription id is required", "INVALID_ARGUMENT")
            return

        if subscription_id in self.subscriptions:
            await self._drop_subscription(self.subscriptions[subscription_id])

        args = content.get("args") or {}
        try:
            query = get_live_query(content.get("query", ""))
            if self.caller_id is None:
                self.caller_id = await self._resolve_caller_id()
            topics = query.topics(self.caller_id, args)
            result = await self._evaluate(query, args)
        except ValidationError as e:
            await self._send_error(subscription_id, e.message, e.error_code)
            return

        subscription = Subscription(
            id=subscription_id,
            query=query,
            args=args,
            topics=topics,
            last_result=result,
        )
        self.subscriptions[subscription_id] = subscription
        for topic in topics:
            await self._join_topic(topic, subscription_id)

        if query.refresh_seconds:
            subscription.refresh_task = asyncio.create_task(self._refresh_loop(subscription))

        await self._send_result(subscription)

    async def _handle_unsubscribe(self, content):
        subscription = self.subscriptions.get(str(content.get("id") or ""))
        if subscription is not None:
            await self._drop_subscription(subscription)

    async def change_event(self, event):
        """
        Handle change.event messages from the channel layer.

        Re-evaluates every subscription that depends on the topic and pushes
        the ones whose result changed.
        """
        for subscription_id in list(self.topic_subscribers.get(event["topic"], ())):
            subscription = self.subscriptions.get(subscription_id)
            if subscription is not None:
                await self._reevaluate(subscription)

    async def _reevaluate(self, subscription: Subscription):
        try:
            result = await self._evaluate(subscription.query, subscription.args)
        except ValidationError as e:
            await self._send_error(subscription.id, e.message, e.error_code)
            return

        if result == subscription.last_result:
            return
        subscription.last_result = result
        await self._send_result(subscription)

    async def _refresh_loop(self, subscription: Subscription):
        while True:
            await asyncio.sleep(subscription.query.refresh_seconds)
            await self._reevaluate(subscription)

    async def _join_topic(self, topic: str, subscription_id: str):
        subscribers = self.topic_subscribers.setdefault(topic, set())
        if not subscribers:
            await self.channel_layer.group_add(group_name(topic), self.channel_name)
        subscribers.add(subscription_id)

    async def _drop_subscription(self, subscription: Subscription):
        self.subscriptions.pop(subscription.id, None)
        if subscription.refresh_task is not None:
            subscription.refresh_task.cancel()

        for topic in subscription.topics:
            subscribers = self.topic_subscribers.get(topic)
            if subscribers is None:
                continue
            subscribers.discard(subscription.id)
            if not subscribers:
                del self.topic_subscribers[topic]
                await self.channel_layer.group_discard(group_name(topic), self.channel_name)

    async def _send_result(self, subscription: Subscription):
        await self.send_json(
            {"type": "result", "id": subscription.id, "data": subscription.last_result}
        )

    async def _send_error(self, subscription_id, error: str, error_code: str):
        await self.send_json(
            {
                "type": "error",
                "id": subscription_id,
                "error": error,
                "error_code": error_code,
            }
        )

    @database_sync_to_async
    def _evaluate(self, query: LiveQuery, args: dict):
        return query.evaluate(self.identity, args)

    @database_sync_to_async
    def _resolve_caller_id(self) -> int | None:
        user = IdentityService.resolve_user(self.identity)
        return user.pk if user else None

    @database_sync_to_async
    def _set_presence(self, online: bool):
        # Not-yet-synced identities get UNAUTHENTICATED here; nothing to record
        if online:
            return PresenceService.set_online(self.identity)
        return PresenceService.set_offline(self.identity)
