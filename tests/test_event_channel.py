from __future__ import annotations

import asyncio

import pytest

from voicewin.core.stt.channel import EventChannel


def test_publish_drops_oldest_when_full():
    channel: EventChannel[int] = EventChannel("final", capacity=3)

    for i in range(5):
        channel.publish(i)

    assert len(channel) == 3
    assert channel.dropped == 2
    assert channel.drain() == [2, 3, 4]
    assert channel.drain() == []


def test_get_with_timeout_and_clear():
    channel: EventChannel[str] = EventChannel("partial")
    channel.publish("a")
    channel.publish("b")

    assert channel.get(timeout=0.1) == "a"
    channel.clear()
    assert len(channel) == 0


def test_rejects_non_positive_capacity():
    with pytest.raises(ValueError):
        EventChannel("error", capacity=0)


@pytest.mark.asyncio
async def test_receive_waits_for_published_item():
    channel: EventChannel[str] = EventChannel("final")

    async def _publish_later() -> None:
        await asyncio.sleep(0.02)
        channel.publish("done")

    task = asyncio.create_task(_publish_later())
    assert await asyncio.wait_for(channel.receive(), timeout=1.0) == "done"
    await task
