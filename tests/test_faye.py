"""Tests for the Faye client against an in-process Bayeux server."""

import json
import threading

import httpx
import pytest

from gitterbot.gitter.faye import FayeClient, FayeError, GitterTokenExtension

URL = "https://faye.test/faye"
ROOM1 = "/api/v1/rooms/r1/chatMessages"
ROOM2 = "/api/v1/rooms/r2/chatMessages"


class StubFayeServer:
    """Minimal long-polling Bayeux server behind httpx.MockTransport."""

    def __init__(self, handshake_ok=True, subscribe_ok=True):
        self.handshake_ok = handshake_ok
        self.subscribe_ok = subscribe_ok
        self.received: list[dict] = []
        self.handshakes = 0
        self.force_rehandshake = False
        self.disconnected = threading.Event()
        # While set, /meta/connect stays open until `release` is set.
        self.hold_polls = False
        self.release = threading.Event()
        self._pending: list[dict] = []
        self._cond = threading.Condition()

    def transport(self):
        return httpx.MockTransport(self.handle)

    def push(self, channel, data):
        with self._cond:
            self._pending.append({"channel": channel, "data": data})
            self._cond.notify_all()

    def wait_for(self, channel, count, timeout=5):
        with self._cond:
            return self._cond.wait_for(
                lambda: sum(1 for m in self.received if m["channel"] == channel) >= count,
                timeout=timeout,
            )

    def of_channel(self, channel):
        with self._cond:
            return [m for m in self.received if m["channel"] == channel]

    def handle(self, request):
        replies = []
        for message in json.loads(request.content):
            with self._cond:
                self.received.append(message)
                self._cond.notify_all()
            replies.extend(self._reply(message))
        return httpx.Response(200, json=replies)

    def _reply(self, message):
        channel = message["channel"]
        base = {"channel": channel, "id": message["id"]}

        if channel == "/meta/handshake":
            self.handshakes += 1
            if not self.handshake_ok:
                return [{**base, "successful": False, "error": "403::Unauthorized"}]
            return [{**base, "successful": True, "clientId": f"client-{self.handshakes}", "version": "1.0"}]

        if channel == "/meta/subscribe":
            if not self.subscribe_ok:
                return [{**base, "successful": False, "error": "403::Forbidden"}]
            return [{**base, "successful": True, "subscription": message["subscription"]}]

        if channel == "/meta/connect":
            if self.force_rehandshake:
                self.force_rehandshake = False
                return [{**base, "successful": False, "advice": {"reconnect": "handshake"}}]
            if self.hold_polls:
                self.release.wait(timeout=5)
            with self._cond:
                self._cond.wait_for(lambda: self._pending or self.disconnected.is_set(), timeout=0.05)
                data, self._pending = self._pending, []
            return data + [{**base, "successful": True, "advice": {"reconnect": "retry"}}]

        if channel == "/meta/disconnect":
            self.disconnected.set()
            with self._cond:
                self._cond.notify_all()
            return [{**base, "successful": True}]

        return [{**base, "successful": False, "error": "400::Unknown channel"}]


@pytest.fixture
def server():
    return StubFayeServer()


@pytest.fixture
def client(server):
    c = FayeClient(URL, extensions=[GitterTokenExtension("secret")], transport=server.transport())
    yield c
    c.disconnect()


class TestGitterTokenExtension:
    def test_adds_token_to_handshake(self):
        ext = GitterTokenExtension("secret")
        payload = [
            {"channel": "/meta/handshake", "version": "1.0"},
            {"channel": "/meta/connect"},
        ]

        ext.outgoing(payload)

        assert payload[0]["ext"] == {"token": "secret"}
        assert "ext" not in payload[1]

    def test_keeps_existing_ext_fields(self):
        ext = GitterTokenExtension("secret")
        payload = [{"channel": "/meta/handshake", "ext": {"other": 1}}]

        ext.outgoing(payload)

        assert payload[0]["ext"] == {"other": 1, "token": "secret"}


class TestConnect:
    def test_handshake_carries_token(self, server, client):
        client.connect()

        assert client.is_connected
        handshake = server.of_channel("/meta/handshake")[0]
        assert handshake["ext"] == {"token": "secret"}
        assert handshake["supportedConnectionTypes"] == ["long-polling"]

    def test_polls_with_client_id(self, server, client):
        client.connect()

        assert server.wait_for("/meta/connect", 1)
        poll = server.of_channel("/meta/connect")[0]
        assert poll["clientId"] == "client-1"
        assert poll["connectionType"] == "long-polling"

    def test_rejected_handshake(self):
        server = StubFayeServer(handshake_ok=False)
        client = FayeClient(URL, transport=server.transport())

        with pytest.raises(FayeError, match="Unauthorized"):
            client.connect()

        assert not client.is_connected
        client.disconnect()  # Should not raise

    def test_http_error_on_handshake(self):
        client = FayeClient(URL, transport=httpx.MockTransport(lambda r: httpx.Response(502)))

        with pytest.raises(httpx.HTTPStatusError):
            client.connect()
        client.disconnect()

    def test_non_json_response(self):
        client = FayeClient(URL, transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>")))

        with pytest.raises(FayeError):
            client.connect()
        client.disconnect()


class TestSubscribe:
    def test_requires_connection(self):
        client = FayeClient(URL)
        with pytest.raises(RuntimeError, match="not connected"):
            client.subscribe(ROOM1, lambda m: None)

    def test_sends_subscription(self, server, client):
        client.connect()
        client.subscribe(ROOM1, lambda m: None)

        subscribe = server.of_channel("/meta/subscribe")[0]
        assert subscribe["subscription"] == ROOM1
        assert subscribe["clientId"] == "client-1"

    def test_rejected_subscription(self):
        server = StubFayeServer(subscribe_ok=False)
        client = FayeClient(URL, transport=server.transport())
        client.connect()
        try:
            with pytest.raises(FayeError, match="Forbidden"):
                client.subscribe(ROOM1, lambda m: None)
        finally:
            client.disconnect()


class TestMessageDelivery:
    def test_messages_routed_by_channel(self, server, client):
        got: dict[str, list] = {ROOM1: [], ROOM2: []}
        both = threading.Event()

        def collector(channel):
            def callback(message):
                got[channel].append(message["data"]["text"])
                if got[ROOM1] and got[ROOM2]:
                    both.set()
            return callback

        client.connect()
        client.subscribe(ROOM1, collector(ROOM1))
        client.subscribe(ROOM2, collector(ROOM2))
        server.push(ROOM2, {"text": "for two"})
        server.push(ROOM1, {"text": "for one"})
        server.push("/api/v1/rooms/r9/chatMessages", {"text": "nobody listens"})

        assert both.wait(timeout=5)
        assert got == {ROOM1: ["for one"], ROOM2: ["for two"]}

    def test_callbacks_run_on_polling_thread(self, server, client):
        threads = []
        delivered = threading.Event()

        def callback(message):
            threads.append(threading.current_thread().name)
            delivered.set()

        client.connect()
        client.subscribe(ROOM1, callback)
        server.push(ROOM1, {"text": "hi"})

        assert delivered.wait(timeout=5)
        assert threads == ["faye"]

    def test_failing_callback_does_not_stop_delivery(self, server, client, caplog):
        seen = []
        second = threading.Event()

        def callback(message):
            text = message["data"]["text"]
            if text == "bad":
                raise ValueError("cannot handle")
            seen.append(text)
            second.set()

        client.connect()
        client.subscribe(ROOM1, callback)
        server.push(ROOM1, {"text": "bad"})
        server.push(ROOM1, {"text": "good"})

        assert second.wait(timeout=5)
        assert seen == ["good"]
        assert f"Subscriber for {ROOM1} failed" in caplog.text

    def test_rehandshake_restores_subscriptions(self, server, client):
        delivered = threading.Event()

        client.connect()
        client.subscribe(ROOM1, lambda m: delivered.set())
        server.force_rehandshake = True

        assert server.wait_for("/meta/subscribe", 2)
        assert server.handshakes == 2
        assert [m["clientId"] for m in server.of_channel("/meta/subscribe")] == ["client-1", "client-2"]

        server.push(ROOM1, {"text": "after"})
        assert delivered.wait(timeout=5)


class TestDisconnect:
    def test_disconnect_after_connect(self, server, client):
        client.connect()
        client.subscribe(ROOM1, lambda m: None)
        poller = client._thread

        client.disconnect()

        assert server.disconnected.is_set()
        assert server.of_channel("/meta/disconnect")[0]["clientId"] == "client-1"
        assert not client.is_connected
        assert not poller.is_alive()

    def test_disconnect_twice(self, server, client):
        client.connect()
        client.disconnect()
        client.disconnect()

        assert len(server.of_channel("/meta/disconnect")) == 1

    def test_disconnect_without_connect(self):
        client = FayeClient(URL)
        client.disconnect()  # Should not raise
        assert client.is_connected is False

    def test_reconnect_after_disconnect(self, server, client):
        client.connect()
        client.disconnect()
        client.connect()

        assert client.is_connected
        assert server.handshakes == 2

    def test_slow_poller_closes_its_own_http_client(self, server, client, monkeypatch, caplog):
        server.hold_polls = True
        client.connect()
        assert server.wait_for("/meta/connect", 1)
        poller, http = client._thread, client._http

        real_join = threading.Thread.join
        monkeypatch.setattr(threading.Thread, "join", lambda self, timeout=None: real_join(self, 0.1))
        client.disconnect()
        monkeypatch.undo()

        assert "did not stop in time" in caplog.text
        assert poller.is_alive()
        assert not http.is_closed

        server.release.set()
        poller.join(timeout=5)
        assert not poller.is_alive()
        assert http.is_closed
