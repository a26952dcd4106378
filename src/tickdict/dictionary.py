"""Dictionary — ordered key/value container with an optional key cache.

Storage is a plain dict kept apart from the container's own state, so no
user key can collide with cache bookkeeping.

Key caching (cache_keys=True) keeps a tuple snapshot of the keys. Every
mutation marks it dirty; the next read rebuilds it in full. There is no
incremental maintenance.

Two ways to walk the container:
- each()/for_each(): blocking, in one pass.
- async_for_each(): cooperative, one key per scheduling tick (see
  tickdict.cooperative).
"""

from __future__ import annotations

from typing import Any, Callable, Iterator

from tickdict import _scheduling
from tickdict.cooperative import Advance, Completion, StepCallback, Traversal


class _Missing:
    """Type of MISSING, the result of reading a key that was never set."""

    __slots__ = ()
    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"

    def __reduce__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


class EntriesView:
    """Lazy, restartable (key, value) pairs of a Dictionary.

    Every iter() re-reads the owner's keys, so a view taken once can be
    looped over again after mutations.
    """

    __slots__ = ("_owner",)

    def __init__(self, owner: Dictionary) -> None:
        self._owner = owner

    def __iter__(self) -> Iterator[tuple[Any, Any]]:
        owner = self._owner
        for key in owner.get_keys():
            yield key, owner.get(key)

    def __len__(self) -> int:
        return self._owner.size()

    def __repr__(self) -> str:
        return f"EntriesView({list(self)!r})"


class Dictionary:
    """Ordered key/value container with optional key caching."""

    __slots__ = ("_data", "_cache_keys", "_keys_dirty", "_keys", "_scheduler")

    def __init__(
        self,
        cache_keys: bool = False,
        *,
        scheduler: _scheduling.Scheduler | None = None,
    ) -> None:
        self._data: dict[Any, Any] = {}
        self._cache_keys = bool(cache_keys)
        self._keys_dirty = True
        self._keys: tuple | None = None
        self._scheduler = scheduler

    @property
    def cache_keys(self) -> bool:
        return self._cache_keys

    # --- Storage ---

    def has(self, key: Any) -> bool:
        """True if key is stored. Never raises."""
        if key is None:
            return False
        try:
            return key in self._data
        except TypeError:  # unhashable
            return False

    def size(self) -> int:
        return len(self.get_keys())

    @property
    def length(self) -> int:
        return self.size()

    def set(self, key: Any, value: Any) -> None:
        """Store value at key. Always invalidates the key cache, even on overwrite.

        None is not a valid key; raises TypeError like an unhashable key does.
        """
        if key is None:
            raise TypeError("None is not a valid Dictionary key")
        self.invalidate()
        self._data[key] = value

    def get(self, key: Any) -> Any:
        """Return the stored value, or MISSING if key was never set."""
        try:
            return self._data.get(key, MISSING)
        except TypeError:
            return MISSING

    def get_default(self, key: Any, default: Any) -> Any:
        if self.has(key):
            return self._data[key]
        return default

    def remove(self, key: Any) -> None:
        """Remove key. Absent keys are a no-op."""
        self.invalidate()
        try:
            self._data.pop(key, None)
        except TypeError:
            pass

    def invalidate(self) -> None:
        """Mark the key cache dirty.

        Only needed when storage changed through a path the container can't
        see; set() and remove() already do this.
        """
        self._keys_dirty = True

    def get_keys(self) -> tuple:
        """Keys in storage order."""
        if not self._cache_keys:
            return tuple(self._data)
        if self._keys_dirty or self._keys is None:
            self._keys_dirty = False
            self._keys = tuple(self._data)
        return self._keys

    def keys(self) -> tuple:
        return self.get_keys()

    def values(self) -> list:
        """Values in get_keys() order."""
        return [self.get(key) for key in self.get_keys()]

    def entries(self) -> EntriesView:
        """Restartable (key, value) pairs in get_keys() order.

        Usage:
            for key, value in d.entries():
                ...
        """
        return EntriesView(self)

    # --- Synchronous iteration ---

    def each(self, step: Callable[[Any, Any], Any]) -> None:
        """Blocking loop over live storage: step(key, value) per key.

        Return False from step to stop. The callback may mutate the
        container; keys removed before their turn are skipped.
        """
        for key in list(self._data):
            if self.has(key):
                if step(key, self._data[key]) is False:
                    break

    def for_each(self, step: Callable[[Any, Any], Any]) -> None:
        self.each(step)

    def empty(self) -> None:
        """Remove every key. Blocking."""
        self.each(lambda key, value: self.remove(key))

    def clear(self) -> None:
        self.empty()

    # --- Cooperative iteration ---

    def async_for_each(
        self,
        step: StepCallback,
        on_complete: Callable[[], None] | None = None,
        *,
        scheduler: _scheduling.Scheduler | None = None,
    ) -> Completion:
        """Non-blocking loop: one key per scheduling tick.

        step(key, value, advance) must either return False to stop or call
        advance() to move on. Keys are snapshotted now; values are read at
        each step. on_complete(), when given, replaces resolution of the
        returned Completion.

        Usage:
            def step(key, value, advance):
                print(key, value)
                advance()

            await d.async_for_each(step)
        """
        traversal = Traversal(
            self.get_keys(),
            self.get,
            step,
            on_complete,
            scheduler or self._scheduler or _scheduling.defer,
        )
        return traversal.start()

    def async_empty(
        self,
        on_complete: Callable[[], None] | None = None,
        *,
        scheduler: _scheduling.Scheduler | None = None,
    ) -> Completion:
        """Non-blocking empty(): removes one key per scheduling tick."""

        def _remove(key: Any, value: Any, advance: Advance) -> None:
            self.remove(key)
            advance()

        return self.async_for_each(_remove, on_complete, scheduler=scheduler)

    # --- Python protocols ---

    def __contains__(self, key: Any) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        return self.size()

    def __iter__(self) -> Iterator[Any]:
        """Yield values in get_keys() order."""
        for key in self.get_keys():
            yield self.get(key)

    def __getitem__(self, key: Any) -> Any:
        return self._data[key]

    def __setitem__(self, key: Any, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: Any) -> None:
        if not self.has(key):
            raise KeyError(key)
        self.remove(key)

    def __repr__(self) -> str:
        return f"Dictionary({self._data!r})"
