# fusion_engine/utils/ring_buffer.py
from typing import Generic, Iterator, List, Optional, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """
    Кольцевой буфер фиксированной ёмкости.

    Хранилище выделяется один раз; при заполнении самый старый элемент
    перезаписывается.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._items: List[Optional[T]] = [None] * capacity
        self._head = 0
        self._size = 0

    def push(self, item: T) -> None:
        self._items[self._head] = item
        self._head = (self._head + 1) % self._capacity
        if self._size < self._capacity:
            self._size += 1

    def to_list(self) -> List[T]:
        """Элементы от самого старого к самому новому."""
        if self._size < self._capacity:
            return list(self._items[:self._size])  # type: ignore[arg-type]
        return list(self._items[self._head:] + self._items[:self._head])  # type: ignore[operator]

    def latest(self) -> Optional[T]:
        if self._size == 0:
            return None
        return self._items[(self._head - 1) % self._capacity]

    def clear(self) -> None:
        for i in range(self._capacity):
            self._items[i] = None
        self._head = 0
        self._size = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return self._size == self._capacity

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[T]:
        return iter(self.to_list())
