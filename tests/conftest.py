"""Shared fixtures: an in-memory catalog client."""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeCatalogClient:
    """Records every call; optionally fails or stalls requests."""

    def __init__(
        self,
        *,
        delay: float = 0.0,
        fail_fetch: Optional[Exception] = None,
        fail_mutate: Optional[Exception] = None,
        fail_every: int = 0,
    ):
        self.delay = delay
        self.fail_fetch = fail_fetch
        self.fail_mutate = fail_mutate
        self.fail_every = fail_every
        self.fetches: list[tuple[str, tuple[str, ...], str]] = []
        self.mutations: list[tuple[str, tuple[str, ...], str, dict]] = []

    @property
    def calls(self) -> int:
        return len(self.fetches) + len(self.mutations)

    async def _pause(self, ctx):
        if self.delay > 0:
            await ctx.guard(asyncio.sleep(self.delay))

    async def fetch(self, ctx, catalog, namespace, name):
        self.fetches.append((catalog, tuple(namespace), name))
        await self._pause(ctx)
        if self.fail_fetch is not None:
            raise self.fail_fetch
        if self.fail_every and len(self.fetches) % self.fail_every == 0:
            raise RuntimeError("injected failure")
        return {"metadata": {"properties": {}}}

    async def mutate(self, ctx, catalog, namespace, name, patch):
        self.mutations.append((catalog, tuple(namespace), name, dict(patch)))
        await self._pause(ctx)
        if self.fail_mutate is not None:
            raise self.fail_mutate
        return {"metadata": {"properties": dict(patch)}}


@pytest.fixture
def fake_client():
    return FakeCatalogClient()


@pytest.fixture
def make_client():
    return FakeCatalogClient
