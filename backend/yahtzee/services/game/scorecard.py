from collections.abc import Mapping
from typing import Dict, Iterator, List, Optional

from yahtzee.errors import CategoryFilled
from .categories import ALL_CATEGORIES, Category


class Scorecard(Mapping):
    """One player's 13 entries. A filled entry can never be overwritten."""

    def __init__(self, entries: Optional[Dict[Category, Optional[int]]] = None):
        self._entries: Dict[Category, Optional[int]] = {c: None for c in ALL_CATEGORIES}
        for category, value in (entries or {}).items():
            self._entries[Category(category)] = value

    def __getitem__(self, category) -> Optional[int]:
        return self._entries[Category(category)]

    def __iter__(self) -> Iterator[Category]:
        return iter(ALL_CATEGORIES)

    def __len__(self) -> int:
        return len(ALL_CATEGORIES)

    def __repr__(self):
        filled = {c.value: v for c, v in self._entries.items() if v is not None}
        return f"Scorecard({filled})"

    def fill(self, category: Category, value: int) -> None:
        if self._entries[category] is not None:
            raise CategoryFilled(category)
        self._entries[category] = int(value)

    def unfilled(self) -> List[Category]:
        return [c for c in ALL_CATEGORIES if self._entries[c] is None]

    def to_dict(self) -> Dict[str, Optional[int]]:
        return {c.value: self._entries[c] for c in ALL_CATEGORIES}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Optional[int]]]) -> 'Scorecard':
        return cls({Category(k): v for k, v in (data or {}).items()})
