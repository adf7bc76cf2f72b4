"""
MutationWatch: debounced reapplication after structural document changes.

Added nodes are classified as significant when they are (or contain) an
article, section or main region, or a content/post/comments block. Each
significant batch restarts one debounce timer; when it expires without
another significant batch, ``on_settled`` runs once.

The timer is a single slot: restarting it cancels only the pending sleep,
never a callback that is already running.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

from .config import settings
from .document import AddedNode, Document
from .utils.logger import get_logger

logger = get_logger(__name__)

STRUCTURAL_TAGS = frozenset({"article", "section", "main"})
STRUCTURAL_CLASSES = frozenset({"content", "post", "comments"})
STRUCTURAL_IDS = frozenset({"comments"})


def is_significant(nodes: List[AddedNode]) -> bool:
    """True if any added node marks a structural change worth reapplying rules for."""
    for node in nodes:
        if (
            node.tag.lower() in STRUCTURAL_TAGS
            or STRUCTURAL_CLASSES.intersection(node.classes)
            or node.id in STRUCTURAL_IDS
            or node.has_structural_descendant
        ):
            return True
    return False


class MutationWatch:
    """
    Watches a Document for significant mutations.

    Args:
        document:   document to observe
        on_settled: coroutine function run once per settled burst
        debounce:   seconds of quiet required before ``on_settled`` runs
    """

    def __init__(
        self,
        document: Document,
        on_settled: Callable[[], Awaitable[None]],
        debounce: Optional[float] = None,
    ):
        self.document = document
        self.on_settled = on_settled
        self.debounce = settings.REAPPLY_DEBOUNCE_SECONDS if debounce is None else debounce
        self._timer: Optional[asyncio.Task] = None
        self.started = False

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        if self.started:
            return
        self.document.add_mutation_listener(self.notify)
        self.started = True
        logger.info(f"[MutationWatch] Observing {self.document.url} (debounce={self.debounce}s)")

    def stop(self) -> None:
        self.document.remove_mutation_listener(self.notify)
        self.started = False
        self._cancel_timer()

    def notify(self, nodes: List[AddedNode]) -> None:
        """Mutation listener: restart the debounce slot on a significant batch."""
        if not self.started or not is_significant(nodes):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("[MutationWatch] Significant mutation outside an event loop; ignored")
            return

        restarted = self._cancel_timer()
        logger.debug(f"[MutationWatch] Significant change ({len(nodes)} node(s)); "
                     f"{'restarting' if restarted else 'starting'} debounce")
        self._timer = loop.create_task(self._wait_then_fire())

    def _cancel_timer(self) -> bool:
        if self.pending:
            self._timer.cancel()
            self._timer = None
            return True
        self._timer = None
        return False

    async def _wait_then_fire(self) -> None:
        await asyncio.sleep(self.debounce)
        self._timer = None
        logger.info("[MutationWatch] Document settled; reapplying rules")
        try:
            await self.on_settled()
        except Exception as e:
            logger.error(f"[MutationWatch] Reapplication failed: {e}", exc_info=True)
