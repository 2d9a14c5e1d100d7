"""
Per-object invocation state that does not keep its owners alive.
"""

import weakref
from typing import Any, Callable, Dict, Optional

from callguard.errors import PolicyConfigurationError


class InvocationStateStore:
    """Maps (owner, operation name) pairs to mutable records.

    Owners are tracked by identity, so two distinct objects that compare equal
    never share a record. Each owner is held through a weak reference whose
    callback drops the owner's records once it is collected.
    """

    def __init__(self, factory: Callable[[], Any]):
        self._factory = factory
        self._refs: Dict[int, weakref.ref] = {}
        self._records: Dict[int, Dict[str, Any]] = {}

    def state_for(self, owner: Any, key: str) -> Any:
        """Return the record for ``(owner, key)``, creating it on first use."""
        records = self._records_for(owner, create=True)
        record = records.get(key)
        if record is None:
            record = self._factory()
            records[key] = record
        return record

    def peek(self, owner: Any, key: str) -> Optional[Any]:
        """Return the record for ``(owner, key)`` without creating it."""
        records = self._records_for(owner, create=False)
        if records is None:
            return None
        return records.get(key)

    def clear(self, owner: Any, key: Optional[str] = None) -> None:
        """Drop one record of ``owner``, or all of them when ``key`` is None."""
        records = self._records_for(owner, create=False)
        if records is None:
            return
        if key is None:
            records.clear()
        else:
            records.pop(key, None)

    def _records_for(self, owner: Any, create: bool) -> Optional[Dict[str, Any]]:
        owner_id = id(owner)
        ref = self._refs.get(owner_id)
        if ref is not None and ref() is owner:
            return self._records[owner_id]
        if not create:
            return None

        try:
            ref = weakref.ref(owner, self._evict_callback(owner_id))
        except TypeError as e:
            raise PolicyConfigurationError(
                f"{type(owner).__name__} instances cannot be weakly referenced",
                {"owner_type": type(owner).__name__}
            ) from e

        self._refs[owner_id] = ref
        self._records[owner_id] = {}
        return self._records[owner_id]

    def _evict_callback(self, owner_id: int) -> Callable[[weakref.ref], None]:
        store_ref = weakref.ref(self)

        def evict(ref: weakref.ref) -> None:
            store = store_ref()
            # The id may already belong to a newer owner.
            if store is not None and store._refs.get(owner_id) is ref:
                del store._refs[owner_id]
                del store._records[owner_id]

        return evict

    def __contains__(self, owner: Any) -> bool:
        return self._records_for(owner, create=False) is not None

    def __len__(self) -> int:
        return sum(1 for ref in self._refs.values() if ref() is not None)
