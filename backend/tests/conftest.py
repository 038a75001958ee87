import asyncio
import pytest


class FakeSocket:
    """Stands in for a FastAPI WebSocket; records what the hub sends."""

    def __init__(self, fail_sends=False, block_sends=False):
        self.accepted = False
        self.sent = []
        self.closed_with = None
        self.fail_sends = fail_sends
        self._gate = asyncio.Event() if block_sends else None

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self._gate is not None:
            await self._gate.wait()
        if self.fail_sends:
            raise RuntimeError("socket is closed")
        self.sent.append(text)

    async def close(self, code=1000):
        self.closed_with = code

    def unblock(self):
        self._gate.set()


async def settle(rounds=10):
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def run():
    return asyncio.run
