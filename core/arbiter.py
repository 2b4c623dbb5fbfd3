"""Source arbiter -- decides which media source is "now playing".

Collect-then-prioritize: providers are consulted in trust order. The
first actively playing result wins outright and ends the scan; paused
results only matter if nobody is playing, and then the first paused one
by priority wins. Empty, failed and timed-out results are skipped.

After the ordered providers, a generic fallback (the OS media session)
is consulted exactly once.

Artwork is a second, independent fetch keyed by the winning snapshot's
identity; a new winner cancels the previous winner's artwork fetch.
"""

import asyncio
import logging
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from core.models import MediaSnapshot, ProviderResult
from core.provider import MediaProvider

logger = logging.getLogger(__name__)


class Prioritizer:
    """Ordered reduction over provider results.

    Feed results in priority order with offer(); it returns True once a
    playing result has been seen and the scan can stop.
    """

    def __init__(self):
        self.playing: Optional[MediaSnapshot] = None
        self.paused: Optional[MediaSnapshot] = None

    def offer(self, result: ProviderResult) -> bool:
        if self.playing is not None:
            return True
        if not result.ok:
            return False
        snapshot = result.snapshot
        if snapshot.is_playing:
            self.playing = snapshot
            return True
        if self.paused is None:
            self.paused = snapshot
        return False


def prioritize(results: Iterable[ProviderResult]) -> Tuple[Optional[MediaSnapshot], Optional[MediaSnapshot]]:
    """Reduce results (priority order) to (playing, first_paused)."""
    reduction = Prioritizer()
    for result in results:
        if reduction.offer(result):
            break
    return reduction.playing, reduction.paused


class SourceArbiter:
    """Runs media providers and returns one winning snapshot or None."""

    def __init__(
        self,
        providers: Sequence[MediaProvider],
        fallback: Optional[MediaProvider] = None,
        parallel: bool = False,
    ):
        self.providers: List[MediaProvider] = list(providers)
        self.fallback = fallback
        self.parallel = parallel

    async def resolve(self) -> Optional[MediaSnapshot]:
        """One arbitration pass."""
        if self.parallel:
            results = await asyncio.gather(*(p.attempt() for p in self.providers))
            playing, paused = prioritize(results)
        else:
            reduction = Prioritizer()
            for provider in self.providers:
                result = await provider.attempt()
                logger.debug("Arbiter: %s -> %s", provider.name, result.kind.value)
                if reduction.offer(result):
                    break
            playing, paused = reduction.playing, reduction.paused

        if playing is not None:
            return playing

        fallback_snapshot = None
        if self.fallback is not None:
            result = await self.fallback.attempt()
            logger.debug("Arbiter: fallback %s -> %s", self.fallback.name, result.kind.value)
            if result.ok:
                fallback_snapshot = result.snapshot
                if fallback_snapshot.is_playing:
                    return fallback_snapshot

        return paused or fallback_snapshot


class ArtworkResolver:
    """Keeps artwork in step with the current media winner.

    loader(ref) is blocking (file read / HTTP + decode) and runs on a
    worker thread. on_artwork(identity, image_or_None) is called on the
    decision loop, and only for the identity that is still current.
    """

    def __init__(
        self,
        loader: Callable[[str], Any],
        on_artwork: Callable[[Optional[Tuple[str, str]], Any], None],
        timeout: float = 5.0,
    ):
        self._loader = loader
        self._on_artwork = on_artwork
        self._timeout = timeout
        self._identity: Optional[Tuple[str, str]] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def identity(self) -> Optional[Tuple[str, str]]:
        return self._identity

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def update(self, snapshot: Optional[MediaSnapshot]):
        """Called with every new media result (or None when nothing plays)."""
        identity = snapshot.identity if snapshot is not None else None
        if identity == self._identity:
            return

        self.cancel()
        self._identity = identity
        self._on_artwork(identity, None)

        if snapshot is not None and snapshot.artwork_ref:
            self._task = asyncio.get_running_loop().create_task(
                self._load(identity, snapshot.artwork_ref),
                name=f"artwork-{snapshot.source_label}",
            )

    def cancel(self):
        if self._task is not None and not self._task.done():
            logger.debug("Cancelling artwork fetch for %s", self._identity)
            self._task.cancel()
        self._task = None

    async def _load(self, identity: Tuple[str, str], ref: str):
        loop = asyncio.get_running_loop()
        try:
            image = await asyncio.wait_for(
                loop.run_in_executor(None, self._loader, ref), self._timeout
            )
        except asyncio.TimeoutError:
            logger.debug("Artwork fetch timed out: %s", ref)
            return
        except Exception as exc:
            logger.debug("Artwork fetch failed for %s: %s", ref, exc)
            return

        if identity == self._identity and image is not None:
            self._on_artwork(identity, image)
