import asyncio
import json
import pytest
from stock_ledger.main import stop_relay
from stock_ledger.services.notification.stock_broadcaster import StockUpdateBroadcaster

EVENT = {"partId": 3, "availableQty": 12, "action": "purchase"}


class FakeWebSocket:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def send_text(self, data: str):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)


class FakePubSub:
    """Yields the given messages, then raises ``error`` or blocks like an idle subscription"""

    def __init__(self, messages, error=None):
        self.messages = messages
        self.error = error
        self.subscribed = []
        self.closed = False

    async def subscribe(self, channel):
        self.subscribed.append(channel)

    async def listen(self):
        for message in self.messages:
            yield message
        if self.error is not None:
            raise self.error
        await asyncio.Event().wait()

    async def aclose(self):
        self.closed = True


class FakeRedis:
    def __init__(self, subscriptions=()):
        self.enabled = True
        self.published = []
        self.subscriptions = list(subscriptions)

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 1

    async def pubsub(self):
        if self.subscriptions:
            return self.subscriptions.pop(0)
        return FakePubSub([])


def redis_message(event):
    return {"type": "message", "data": json.dumps(event)}


async def wait_until(predicate, timeout: float = 2.0):
    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(poll(), timeout)


@pytest.mark.asyncio
class TestStockUpdateBroadcaster:
    """Fan-out of stock updates to WebSocket clients"""

    async def test_fan_out_frames_event(self):
        broadcaster = StockUpdateBroadcaster(channel="stockUpdate")
        websocket = FakeWebSocket()
        broadcaster.add_connection(websocket)

        delivered = await broadcaster.fan_out(EVENT)

        assert delivered == 1
        assert json.loads(websocket.sent[0]) == {"event": "stockUpdate", "data": EVENT}

    async def test_failed_sockets_are_dropped(self):
        broadcaster = StockUpdateBroadcaster(channel="stockUpdate")
        healthy, dead = FakeWebSocket(), FakeWebSocket(fail=True)
        broadcaster.add_connection(healthy)
        broadcaster.add_connection(dead)

        assert await broadcaster.fan_out(EVENT) == 1
        assert broadcaster.connection_count == 1
        assert len(healthy.sent) == 1

    async def test_connections_are_registered_once(self):
        broadcaster = StockUpdateBroadcaster(channel="stockUpdate")
        websocket = FakeWebSocket()
        broadcaster.add_connection(websocket)
        broadcaster.add_connection(websocket)
        assert broadcaster.connection_count == 1

        broadcaster.remove_connection(websocket)
        broadcaster.remove_connection(websocket)
        assert broadcaster.connection_count == 0

    async def test_publish_without_redis_reaches_local_sockets(self):
        broadcaster = StockUpdateBroadcaster(channel="stockUpdate", redis=None)
        websocket = FakeWebSocket()
        broadcaster.add_connection(websocket)

        await broadcaster.publish(EVENT)

        assert len(websocket.sent) == 1

    async def test_publish_with_redis_goes_through_channel(self):
        redis = FakeRedis()
        broadcaster = StockUpdateBroadcaster(channel="stockUpdate", redis=redis)
        websocket = FakeWebSocket()
        broadcaster.add_connection(websocket)

        await broadcaster.publish(EVENT)

        assert redis.published == [("stockUpdate", json.dumps(EVENT))]
        assert websocket.sent == []

    async def test_relay_forwards_redis_messages(self):
        subscription = FakePubSub([
            {"type": "subscribe", "data": 1},
            redis_message(EVENT),
            {"type": "message", "data": "not json"},
        ])
        broadcaster = StockUpdateBroadcaster(channel="stockUpdate", redis=FakeRedis([subscription]))
        websocket = FakeWebSocket()
        broadcaster.add_connection(websocket)

        relay = asyncio.create_task(broadcaster.relay_from_redis(retry_delay=0))
        await wait_until(lambda: broadcaster.relayed_count == 1)
        relay.cancel()
        with pytest.raises(asyncio.CancelledError):
            await relay

        assert subscription.subscribed == ["stockUpdate"]
        assert [json.loads(frame)["data"] for frame in websocket.sent] == [EVENT]
        assert subscription.closed

    async def test_relay_resubscribes_after_connection_loss(self, caplog):
        later = {"partId": 3, "availableQty": 11, "action": "used"}
        dropped = FakePubSub([redis_message(EVENT)], error=ConnectionError("redis connection lost"))
        resumed = FakePubSub([redis_message(later)])
        broadcaster = StockUpdateBroadcaster(channel="stockUpdate", redis=FakeRedis([dropped, resumed]))
        websocket = FakeWebSocket()
        broadcaster.add_connection(websocket)

        relay = asyncio.create_task(broadcaster.relay_from_redis(retry_delay=0))
        await wait_until(lambda: len(websocket.sent) == 2)

        assert not relay.done()
        relay.cancel()
        with pytest.raises(asyncio.CancelledError):
            await relay

        assert [json.loads(frame)["data"] for frame in websocket.sent] == [EVENT, later]
        assert dropped.closed and resumed.closed
        assert "lost Redis" in caplog.text


@pytest.mark.asyncio
class TestStopRelay:
    """Shutdown of the Redis relay task"""

    async def test_cancels_running_relay(self):
        relay = asyncio.create_task(asyncio.Event().wait())
        await asyncio.sleep(0)

        await stop_relay(relay)

        assert relay.cancelled()

    async def test_crashed_relay_does_not_break_shutdown(self, caplog):
        async def crashed():
            raise ConnectionError("redis connection lost")

        relay = asyncio.create_task(crashed())
        await asyncio.sleep(0)

        await stop_relay(relay)

        assert "stopped with an error" in caplog.text
