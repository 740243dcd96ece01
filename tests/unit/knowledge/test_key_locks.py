import asyncio
from uuid import uuid4

import pytest

from intelligence_engine.services.knowledge.key_locks import KeyedLockRegistry, knowledge_key


@pytest.mark.asyncio
async def test_same_key_is_serialized():
    registry = KeyedLockRegistry()
    events = []

    async def worker(name):
        async with registry.hold("project:1:financials.gdv"):
            events.append(f"{name}-start")
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            events.append(f"{name}-end")

    await asyncio.gather(worker("a"), worker("b"))

    assert events == ["a-start", "a-end", "b-start", "b-end"]
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_different_keys_do_not_block_each_other():
    registry = KeyedLockRegistry()
    events = []

    async def worker(key):
        async with registry.hold(key):
            events.append(f"{key}-start")
            await asyncio.sleep(0)
            events.append(f"{key}-end")

    await asyncio.gather(worker("a"), worker("b"))

    assert events == ["a-start", "b-start", "a-end", "b-end"]


@pytest.mark.asyncio
async def test_lock_is_released_on_error():
    registry = KeyedLockRegistry()

    with pytest.raises(RuntimeError):
        async with registry.hold("key"):
            raise RuntimeError("boom")

    assert len(registry) == 0
    async with registry.hold("key"):
        pass


def test_knowledge_key():
    client_id, project_id = uuid4(), uuid4()
    assert knowledge_key("company.name", client_id=client_id) == f"client:{client_id}:company.name"
    assert knowledge_key("financials.gdv", project_id=project_id) == f"project:{project_id}:financials.gdv"
