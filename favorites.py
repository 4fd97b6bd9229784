from typing import Iterable, Iterator, Optional


class Favorites:
    """A set of favorite product ids owned by one user."""

    def __init__(self, product_ids: Optional[Iterable[str]] = None):
        self._ids = set(product_ids or [])

    def toggle(self, product_id: str) -> bool:
        """Flip membership and return whether the product is now a favorite."""
        if product_id in self._ids:
            self._ids.discard(product_id)
            return False
        self._ids.add(product_id)
        return True

    def add(self, product_id: str) -> None:
        self._ids.add(product_id)

    def remove(self, product_id: str) -> None:
        self._ids.discard(product_id)

    def contains(self, product_id: str) -> bool:
        return product_id in self._ids

    def clear(self) -> None:
        self._ids.clear()

    def __contains__(self, product_id: str) -> bool:
        return self.contains(product_id)

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._ids))
