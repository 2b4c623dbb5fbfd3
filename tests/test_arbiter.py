"""Tests for media arbitration and artwork resolution."""

import asyncio
import threading
import time

import pytest

from core.arbiter import ArtworkResolver, SourceArbiter, prioritize
from core.errors import ProviderFailure
from core.models import MediaSnapshot, ProviderResult, ResultKind
from core.provider import MediaProvider


def snap(label, playing, title="Track"):
    return MediaSnapshot(track_title=title, source_label=label, is_playing=playing)


class FakeProvider(MediaProvider):
    def __init__(self, name, snapshot=None, error=None, delay=0.0, timeout=0.5):
        super().__init__(name, {"timeout": timeout})
        self.snapshot = snapshot
        self.error = error
        self.delay = delay
        self.calls = 0

    def query(self):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.snapshot


class TestPrioritize:
    def test_playing_wins_over_earlier_paused(self):
        results = [
            ProviderResult.success(snap("A", False)),
            ProviderResult.success(snap("B", True)),
        ]
        playing, paused = prioritize(results)
        assert playing.source_label == "B"
        assert paused.source_label == "A"

    def test_first_paused_kept(self):
        results = [
            ProviderResult.success(snap("A", False)),
            ProviderResult.empty(),
            ProviderResult.success(snap("C", False)),
        ]
        playing, paused = prioritize(results)
        assert playing is None
        assert paused.source_label == "A"

    def test_failures_skipped(self):
        playing, paused = prioritize([ProviderResult.failed("x"), ProviderResult.timed_out()])
        assert playing is None and paused is None


class TestProviderAttempt:
    @pytest.mark.asyncio
    async def test_timeout_becomes_timed_out(self):
        provider = FakeProvider("slow", snap("S", True), delay=0.3, timeout=0.05)
        result = await provider.attempt()
        assert result.kind is ResultKind.TIMED_OUT

    @pytest.mark.asyncio
    async def test_failure_becomes_failed(self):
        provider = FakeProvider("broken", error=ProviderFailure("broken", "not running"))
        result = await provider.attempt()
        assert result.kind is ResultKind.FAILED
        assert result.reason == "not running"

    @pytest.mark.asyncio
    async def test_none_becomes_empty(self):
        result = await FakeProvider("idle").attempt()
        assert result.kind is ResultKind.EMPTY


class TestSourceArbiter:
    @pytest.mark.asyncio
    async def test_playing_lower_priority_beats_paused(self):
        p1 = FakeProvider("p1", snap("P1", False))
        p2 = FakeProvider("p2", snap("P2", True))
        p3 = FakeProvider("p3", snap("P3", True), delay=0.3, timeout=0.05)
        arbiter = SourceArbiter([p1, p2, p3])

        winner = await arbiter.resolve()
        assert winner.source_label == "P2"
        assert p3.calls == 0

    @pytest.mark.asyncio
    async def test_first_paused_by_priority(self):
        arbiter = SourceArbiter([
            FakeProvider("p1", snap("P1", False)),
            FakeProvider("p2"),
            FakeProvider("p3", snap("P3", False)),
        ])
        winner = await arbiter.resolve()
        assert winner.source_label == "P1"

    @pytest.mark.asyncio
    async def test_fallback_playing_wins(self):
        fallback = FakeProvider("session", snap("Session", True))
        arbiter = SourceArbiter(
            [
                FakeProvider("p1", error=ProviderFailure("p1", "denied")),
                FakeProvider("p2", snap("P2", True), delay=0.3, timeout=0.05),
                FakeProvider("p3"),
            ],
            fallback=fallback,
        )
        winner = await arbiter.resolve()
        assert winner.source_label == "Session"
        assert fallback.calls == 1

    @pytest.mark.asyncio
    async def test_paused_candidate_beats_paused_fallback(self):
        arbiter = SourceArbiter(
            [FakeProvider("p1", snap("P1", False))],
            fallback=FakeProvider("session", snap("Session", False)),
        )
        winner = await arbiter.resolve()
        assert winner.source_label == "P1"

    @pytest.mark.asyncio
    async def test_paused_fallback_used_when_nothing_else(self):
        arbiter = SourceArbiter(
            [FakeProvider("p1")],
            fallback=FakeProvider("session", snap("Session", False)),
        )
        winner = await arbiter.resolve()
        assert winner.source_label == "Session"

    @pytest.mark.asyncio
    async def test_fallback_skipped_when_playing_found(self):
        fallback = FakeProvider("session", snap("Session", True))
        arbiter = SourceArbiter([FakeProvider("p1", snap("P1", True))], fallback=fallback)
        await arbiter.resolve()
        assert fallback.calls == 0

    @pytest.mark.asyncio
    async def test_nothing_anywhere(self):
        arbiter = SourceArbiter([FakeProvider("p1")], fallback=FakeProvider("session"))
        assert await arbiter.resolve() is None

    @pytest.mark.asyncio
    async def test_parallel_mode_keeps_priority(self):
        arbiter = SourceArbiter(
            [
                FakeProvider("p1", snap("P1", False), delay=0.05),
                FakeProvider("p2", snap("P2", True), delay=0.05),
                FakeProvider("p3", snap("P3", True)),
            ],
            parallel=True,
        )
        winner = await arbiter.resolve()
        assert winner.source_label == "P2"


class TestArtworkResolver:
    @pytest.mark.asyncio
    async def test_new_identity_cancels_old_fetch(self):
        gate = threading.Event()
        delivered = []

        def loader(ref):
            if ref == "slow":
                gate.wait(1.0)
            return ref.upper()

        resolver = ArtworkResolver(loader, lambda identity, image: delivered.append((identity, image)))
        first = MediaSnapshot("One", "Spotify", True, artwork_ref="slow")
        second = MediaSnapshot("Two", "Spotify", True, artwork_ref="fast")

        resolver.update(first)
        assert resolver.pending
        resolver.update(second)
        gate.set()
        await asyncio.sleep(0.2)

        images = [image for identity, image in delivered if image is not None]
        assert images == ["FAST"]
        assert resolver.identity == second.identity

    @pytest.mark.asyncio
    async def test_same_identity_is_ignored(self):
        calls = []
        resolver = ArtworkResolver(lambda ref: calls.append(ref) or ref, lambda i, img: None)
        snapshot = MediaSnapshot("One", "Spotify", True, artwork_ref="a")
        resolver.update(snapshot)
        resolver.update(MediaSnapshot("One", "Spotify", False, artwork_ref="a"))
        await asyncio.sleep(0.05)
        assert calls == ["a"]

    @pytest.mark.asyncio
    async def test_nothing_playing_clears_artwork(self):
        delivered = []
        resolver = ArtworkResolver(lambda ref: ref, lambda i, img: delivered.append((i, img)))
        resolver.update(MediaSnapshot("One", "Spotify", True))
        resolver.update(None)
        assert delivered[-1] == (None, None)
        assert not resolver.pending

    @pytest.mark.asyncio
    async def test_loader_error_is_absorbed(self):
        delivered = []

        def loader(ref):
            raise OSError("gone")

        resolver = ArtworkResolver(loader, lambda i, img: delivered.append(img))
        resolver.update(MediaSnapshot("One", "Spotify", True, artwork_ref="x"))
        await asyncio.sleep(0.05)
        assert delivered == [None]
