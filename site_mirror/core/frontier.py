"""
Per-job breadth-first work queue.
"""


class Frontier:
    """
    One ordered batch of pending URLs per depth level plus the visited set.

    Level 0 holds only the seed.  A URL is handed out for fetching at most
    once: :meth:`mark_visited` returns ``False`` for repeats, however many
    pages linked to it.
    """

    def __init__(self, seed: str) -> None:
        self._levels: list[list[str]] = [[seed]]
        self._visited: set[str] = set()
        self._discovered: set[str] = {seed}
        self._assets: set[str] = set()

    def level(self, depth: int) -> list[str]:
        """Snapshot of the batch queued for *depth* (empty if none)."""
        if depth < len(self._levels):
            return list(self._levels[depth])
        return []

    def mark_visited(self, url: str) -> bool:
        """Claim *url* for fetching; ``False`` if it was already claimed."""
        if url in self._visited:
            return False
        self._visited.add(url)
        return True

    def enqueue(self, url: str, depth: int) -> bool:
        """Queue *url* at *depth* unless already visited or queued."""
        if url in self._visited or url in self._discovered:
            return False
        self._discovered.add(url)
        while len(self._levels) <= depth:
            self._levels.append([])
        self._levels[depth].append(url)
        return True

    def claim_asset(self, url: str) -> bool:
        """``True`` the first time an asset URL is seen in this job."""
        if url in self._assets:
            return False
        self._assets.add(url)
        return True
