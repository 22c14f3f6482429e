"""Faye (Bayeux) push client for Gitter.

A blocking client speaking Bayeux long-polling over httpx: connect()
performs the handshake and starts a daemon thread that keeps a
/meta/connect request open; subscribe() and disconnect() are plain
requests. Pushed messages are handed to subscription callbacks on the
polling thread.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_FAYE_URL = "https://ws.gitter.im/faye"

MessageCallback = Callable[[dict[str, Any]], None]

# Seconds to wait before polling again after a failed /meta/connect.
RETRY_DELAY = 2.0


class FayeError(RuntimeError):
    """Raised when the server rejects a handshake or subscription."""


class GitterTokenExtension:
    """Adds the Gitter access token to the Bayeux handshake."""

    def __init__(self, token: str) -> None:
        self._token = token

    def outgoing(self, messages: list[dict[str, Any]]) -> None:
        for message in messages:
            if message.get("channel") == "/meta/handshake":
                message.setdefault("ext", {})["token"] = self._token

    def incoming(self, messages: list[dict[str, Any]]) -> None:
        pass


class FayeClient:
    """Bayeux long-polling client with a blocking interface.

    Usage::

        client = FayeClient(extensions=[GitterTokenExtension(token)])
        client.connect()
        client.subscribe("/api/v1/rooms/123/chatMessages", on_message)
        ...
        client.disconnect()
    """

    def __init__(
        self,
        url: str = DEFAULT_FAYE_URL,
        extensions: list[Any] | None = None,
        connection_timeout: float = 10.0,
        poll_timeout: float = 90.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._url = url
        self._extensions = list(extensions or [])
        self._timeout = httpx.Timeout(poll_timeout, connect=connection_timeout)
        self._transport = transport
        self._http: httpx.Client | None = None
        self._ids = itertools.count(1)
        self._client_id: str | None = None
        self._callbacks: dict[str, MessageCallback] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_connected(self) -> bool:
        return self._client_id is not None

    def connect(self) -> None:
        """Handshake and start the polling thread."""
        if self._thread is not None:
            return  # Already connected

        if self._http is None:
            self._http = httpx.Client(timeout=self._timeout, transport=self._transport)
        self._handshake()
        self._stop.clear()
        self._thread = threading.Thread(target=self._poll, args=(self._http,), daemon=True, name="faye")
        self._thread.start()
        logger.info("Connected to %s", self._url)

    def subscribe(self, channel: str, callback: MessageCallback) -> None:
        """Subscribe to `channel`; `callback` receives each raw Bayeux message."""
        if self._client_id is None:
            raise RuntimeError("Faye client is not connected")

        with self._lock:
            self._callbacks[channel] = callback
        self._send_subscribe(channel)

    def disconnect(self) -> None:
        """Stop polling and end the session. Safe to call more than once."""
        client_id, self._client_id = self._client_id, None
        if client_id is not None:
            try:
                self._send({"channel": "/meta/disconnect", "clientId": client_id})
            except (httpx.HTTPError, FayeError):
                logger.warning("Faye disconnect request failed", exc_info=True)

        self._stop.set()
        thread, self._thread = self._thread, None
        http, self._http = self._http, None
        with self._lock:
            self._callbacks.clear()

        if thread is not None:
            thread.join(timeout=5)
            if thread.is_alive():
                # The poller closes its HTTP client once its request returns.
                logger.warning("Faye poller did not stop in time")
                return

        if http is not None:
            http.close()
            logger.info("Disconnected from %s", self._url)

    # ── Protocol ──

    def _handshake(self) -> None:
        reply = self._meta(self._send({
            "channel": "/meta/handshake",
            "version": "1.0",
            "supportedConnectionTypes": ["long-polling"],
        }), "/meta/handshake")
        if not reply.get("successful"):
            raise FayeError(f"Handshake rejected: {reply.get('error', 'unknown error')}")
        self._client_id = reply["clientId"]

    def _send_subscribe(self, channel: str) -> None:
        reply = self._meta(self._send({
            "channel": "/meta/subscribe",
            "clientId": self._client_id,
            "subscription": channel,
        }), "/meta/subscribe")
        if not reply.get("successful"):
            raise FayeError(f"Subscription to {channel} rejected: {reply.get('error', 'unknown error')}")

    def _session_over(self) -> bool:
        return self._stop.is_set() or self._client_id is None

    def _poll(self, http: httpx.Client) -> None:
        try:
            while not self._session_over():
                try:
                    messages = self._send({
                        "channel": "/meta/connect",
                        "clientId": self._client_id,
                        "connectionType": "long-polling",
                    }, http)
                except (httpx.HTTPError, FayeError):
                    if self._session_over():
                        break
                    logger.warning("Faye poll failed, retrying", exc_info=True)
                    self._stop.wait(RETRY_DELAY)
                    continue

                self._dispatch(messages)
                if self._session_over():
                    break

                reply = next((m for m in messages if m.get("channel") == "/meta/connect"), {})
                reconnect = reply.get("advice", {}).get("reconnect")
                if reconnect == "none":
                    logger.warning("Faye server asked us not to reconnect")
                    break
                if reconnect == "handshake" or (reply and not reply.get("successful")):
                    self._rehandshake()
        finally:
            if self._stop.is_set():
                http.close()

    def _rehandshake(self) -> None:
        """Handshake again and restore every subscription."""
        try:
            self._handshake()
            with self._lock:
                channels = list(self._callbacks)
            for channel in channels:
                self._send_subscribe(channel)
            logger.info("Re-established Faye session (%d subscriptions)", len(channels))
        except (httpx.HTTPError, FayeError):
            logger.warning("Faye re-handshake failed, retrying", exc_info=True)
            self._stop.wait(RETRY_DELAY)

    def _dispatch(self, messages: list[dict[str, Any]]) -> None:
        for message in messages:
            channel = message.get("channel", "")
            if channel.startswith("/meta/"):
                continue
            with self._lock:
                callback = self._callbacks.get(channel)
            if callback is None:
                logger.debug("No subscriber for message on %s", channel)
                continue
            try:
                callback(message)
            except Exception:
                logger.exception("Subscriber for %s failed", channel)

    def _send(self, message: dict[str, Any], http: httpx.Client | None = None) -> list[dict[str, Any]]:
        http = http or self._http
        if http is None:
            raise RuntimeError("Faye client is not connected")

        message["id"] = str(next(self._ids))
        outgoing = [message]
        for ext in self._extensions:
            ext.outgoing(outgoing)

        response = http.post(self._url, json=outgoing)
        response.raise_for_status()
        try:
            incoming = response.json()
        except ValueError as e:
            raise FayeError("Faye response is not JSON") from e
        if isinstance(incoming, dict):
            incoming = [incoming]
        if not isinstance(incoming, list):
            raise FayeError("Unexpected Faye response")

        for ext in self._extensions:
            ext.incoming(incoming)
        return incoming

    @staticmethod
    def _meta(messages: list[dict[str, Any]], channel: str) -> dict[str, Any]:
        for message in messages:
            if message.get("channel") == channel:
                return message
        raise FayeError(f"No {channel} reply from server")
