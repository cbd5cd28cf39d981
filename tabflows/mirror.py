"""
Mirrors the full flow document over MQTT.

After every successful save the whole document is published to the
configured topics. Any message on a subscribed topic triggers a reload from
disk followed by a republish; the inbound payload itself is ignored and no
loop suppression is performed, so two instances subscribed to each other's
publish topics will keep echoing.
"""

from __future__ import annotations

import asyncio
import logging
import ssl
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

import paho.mqtt.client as mqtt

from .nodes import Node, to_json

logger = logging.getLogger(__name__)

DEFAULT_BROKER = "mosquitto"
DEFAULT_PORT = 1883

TopicSpec = Union[str, List[str], None]


def normalize_topics(topics: TopicSpec) -> List[str]:
    """Accept a single topic or a list; drop empty entries."""
    if not topics:
        return []
    if isinstance(topics, str):
        return [topics]
    return [t for t in topics if isinstance(t, str) and t]


@dataclass
class MirrorSettings:
    """Broker connection and topic settings for document mirroring."""

    enabled: bool = False
    broker: str = DEFAULT_BROKER
    port: int = DEFAULT_PORT
    secure: bool = False
    username: Optional[str] = None
    password: Optional[str] = None
    subscribe_topics: List[str] = field(default_factory=list)
    publish_topics: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MirrorSettings":
        """Build settings from a config mapping; a present mapping enables mirroring."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("mirror settings must be a mapping")
        return cls(
            enabled=data.get("enabled", True),
            broker=data.get("broker") or DEFAULT_BROKER,
            port=int(data.get("port") or DEFAULT_PORT),
            secure=bool(data.get("secure", False)),
            username=data.get("username"),
            password=data.get("password"),
            subscribe_topics=normalize_topics(data.get("subscribe_topic")),
            publish_topics=normalize_topics(data.get("publish_topic")),
        )

    def broker_url(self, redact: bool = False) -> str:
        url = "mqtts://" if self.secure else "mqtt://"
        if self.username:
            url += self.username
            if self.password:
                url += ":" + ("****" if redact else self.password)
            url += "@"
        return f"{url}{self.broker}:{self.port}"


class MirrorTransport(Protocol):
    """Minimal pub/sub client used by ``DocumentMirror``."""

    def set_handlers(
        self,
        on_connect: Callable[[], None],
        on_message: Callable[[str, bytes], None],
    ) -> None: ...

    def connect(self) -> None: ...

    def subscribe(self, topic: str) -> None: ...

    def publish(self, topic: str, payload: str) -> None: ...

    def disconnect(self) -> None: ...


class MqttTransport:
    """paho-mqtt adapter running its network loop on a background thread."""

    def __init__(self, settings: MirrorSettings):
        self._settings = settings
        self._client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        if settings.username:
            self._client.username_pw_set(settings.username, settings.password)
        if settings.secure:
            # TODO: verify the broker certificate once a CA bundle can be configured
            self._client.tls_set(cert_reqs=ssl.CERT_NONE)
            self._client.tls_insecure_set(True)
        self._on_connect: Callable[[], None] = lambda: None
        self._on_message: Callable[[str, bytes], None] = lambda topic, payload: None
        self._client.on_connect = self._handle_connect
        self._client.on_message = self._handle_message

    def set_handlers(self, on_connect, on_message) -> None:
        self._on_connect = on_connect
        self._on_message = on_message

    def _handle_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.warning("MQTT connection refused: %s", reason_code)
            return
        self._on_connect()

    def _handle_message(self, client, userdata, message):
        self._on_message(message.topic, message.payload)

    def connect(self) -> None:
        self._client.connect_async(self._settings.broker, self._settings.port)
        self._client.loop_start()

    def subscribe(self, topic: str) -> None:
        result, _ = self._client.subscribe(topic)
        if result != mqtt.MQTT_ERR_SUCCESS:
            logger.warning("Can't subscribe to topic %s (rc=%s)", topic, result)

    def publish(self, topic: str, payload: str) -> None:
        self._client.publish(topic, payload)

    def disconnect(self) -> None:
        self._client.disconnect()
        self._client.loop_stop()


class DocumentMirror:
    """Publishes saved documents and refreshes on inbound messages."""

    def __init__(
        self,
        settings: MirrorSettings,
        reload: Callable[[], Awaitable[List[Node]]],
        transport: Optional[MirrorTransport] = None,
    ):
        self._settings = settings
        self._reload = reload
        self._transport = transport
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.connected = False

    @property
    def settings(self) -> MirrorSettings:
        return self._settings

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Connect to the broker; inbound refreshes run on ``loop``."""
        self._loop = loop or asyncio.get_running_loop()
        if self._transport is None:
            self._transport = MqttTransport(self._settings)
        self._transport.set_handlers(self._on_connect, self.handle_message)
        logger.info("Connecting flow mirror to %s", self._settings.broker_url(redact=True))
        self._transport.connect()

    def stop(self) -> None:
        if self._transport is not None:
            self._transport.disconnect()
        self.connected = False

    def _on_connect(self) -> None:
        self.connected = True
        logger.info("Flow mirror connected to %s", self._settings.broker_url(redact=True))
        for topic in self._settings.subscribe_topics:
            self._transport.subscribe(topic)

    def publish(self, document: List[Node]) -> int:
        """Publish ``document`` to every publish topic; return the topic count."""
        if not self.connected or self._transport is None:
            return 0
        payload = to_json(document)
        for topic in self._settings.publish_topics:
            self._transport.publish(topic, payload)
        logger.debug(
            "Published %d nodes to %d topic(s)",
            len(document),
            len(self._settings.publish_topics),
        )
        return len(self._settings.publish_topics)

    async def refresh(self) -> int:
        """Reload the document from storage and republish it."""
        document = await self._reload()
        return self.publish(document)

    def handle_message(self, topic: str, payload: bytes) -> None:
        """Transport callback, possibly on a foreign thread."""
        logger.debug("Mirror message on %s; refreshing", topic)
        if self._loop is None:
            logger.warning("Mirror received a message before start(); ignored")
            return
        future = asyncio.run_coroutine_threadsafe(self.refresh(), self._loop)
        future.add_done_callback(_log_refresh_failure)


def _log_refresh_failure(future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.warning("Mirror refresh failed: %s", error)
