from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Callable, Generic, List, Optional, Type, TypeVar, Union
import logging

from pydantic import BaseModel

from ..core.errors import SubscriptionError, error_message
from ..database.store import DocumentStore, StoredDocument, Unsubscribe
from .query import QueryBuilder
from .state import BinderState, StateListener, to_records

logger = logging.getLogger(__name__)

T = TypeVar("T")

QueryBuilderLike = Union[QueryBuilder, Callable[[Any], Optional[Any]]]

UNSET: Any = object()


class BaseBinder(ABC, Generic[T]):
    """
    Subscription lifecycle shared by the collection and document binders.

    Every (re)bind bumps a generation counter and tears down the previous
    subscription before anything new is opened. Store callbacks and one-shot
    results carry the generation they were started under and are dropped
    once it is stale, so nothing lands on a binder after teardown.
    """

    def __init__(self, store: DocumentStore, collection_name: str, listen: bool = True,
                 model: Optional[Type[BaseModel]] = None):
        self.store = store
        self.collection_name = collection_name
        self.listen = listen
        self.model = model
        self.subscription_count = 0
        # classified form of ``error``, for callers that map it (e.g. to HTTP status)
        self.failure: Optional[SubscriptionError] = None
        self._state: BinderState = BinderState(data=self._empty(), loading=True, error=None)
        self._unsubscribe: Optional[Unsubscribe] = None
        self._generation = 0
        self._listeners: List[StateListener] = []
        self._closed = False

    # ── state ────────────────────────────────────────────────────────────────

    @property
    def state(self) -> BinderState:
        return self._state

    @property
    def data(self):
        return self._state.data

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> Optional[str]:
        return self._state.error

    @property
    def is_subscribed(self) -> bool:
        return self._unsubscribe is not None

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener(state)`` after every state change; returns a remover."""
        self._listeners.append(listener)

        def _remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _set_state(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.error(f"[Binder] State listener failed for {self.collection_name}: {e}")

    def _empty(self):
        return []

    # ── lifecycle ────────────────────────────────────────────────────────────

    async def bind(self) -> BinderState:
        """(Re)open with the current inputs; returns the state once the bind settles."""
        self._closed = False
        self._teardown()
        self._generation += 1
        generation = self._generation
        self.failure = None
        self._set_state(loading=True, error=None)
        await self._open(generation)
        return self._state

    async def refresh(self) -> BinderState:
        """Re-run the bind. One-shot binders need this to see writes made after their fetch."""
        return await self.bind()

    def close(self) -> None:
        """Tear down (unmount); later pushes and fetch results are ignored."""
        self._generation += 1
        self._teardown()
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self):
        await self.bind()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()

    def _teardown(self) -> None:
        if self._unsubscribe is not None:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            try:
                unsubscribe()
            except Exception as e:
                logger.error(f"[Binder] Unsubscribe failed for {self.collection_name}: {e}")
            logger.debug(f"[Binder] Closed subscription on {self.collection_name}")

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _not_ready(self) -> None:
        self._set_state(data=self._empty(), loading=False, error=None)

    def _fail(self, generation: int, error: BaseException, stage: str) -> None:
        if not self._is_current(generation):
            return
        self.failure = SubscriptionError(self.collection_name, error)
        logger.error(f"[Binder] {stage} error on {self.collection_name}: {error_message(error)}")
        self._set_state(loading=False, error=error_message(error))

    def _subscribed(self, unsubscribe: Unsubscribe, generation: int) -> None:
        if not self._is_current(generation):
            # torn down while the listener was being opened
            unsubscribe()
            return
        self._unsubscribe = unsubscribe
        self.subscription_count += 1

    @abstractmethod
    async def _open(self, generation: int) -> None:
        """Open the listener or run the one-shot fetch for ``generation``."""


class LiveCollection(BaseBinder[T]):
    """
    Keeps ``data`` in step with a (possibly filtered) collection.

    ``query_builder`` may be a ``QueryBuilder``, a plain callable, or omitted
    for the whole collection. With ``listen=False`` exactly one fetch is made
    per bind.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection_name: str,
        query_builder: Optional[QueryBuilderLike] = None,
        listen: bool = True,
        model: Optional[Type[BaseModel]] = None,
    ):
        super().__init__(store, collection_name, listen=listen, model=model)
        self.query_builder = query_builder

    async def rebind(self, collection_name: str = UNSET, query_builder: Optional[QueryBuilderLike] = UNSET,
                     listen: bool = UNSET) -> bool:
        """
        Apply new inputs. Rebinds only when something changed: the collection
        name or listen flag by value, the query builder by identity.
        Returns True when the binder was reopened.
        """
        changed = False
        if collection_name is not UNSET and collection_name != self.collection_name:
            self.collection_name = collection_name
            changed = True
        if query_builder is not UNSET and query_builder is not self.query_builder:
            self.query_builder = query_builder
            changed = True
        if listen is not UNSET and listen != self.listen:
            self.listen = listen
            changed = True

        if changed or self._closed:
            await self.bind()
            return True
        return False

    def _build_query(self) -> Optional[Any]:
        collection = self.store.collection(self.collection_name)
        builder = self.query_builder
        if builder is None:
            return collection
        if isinstance(builder, QueryBuilder):
            return builder.build(collection)
        if callable(builder):
            return builder(collection)
        # a pre-built query object
        return builder

    async def _open(self, generation: int) -> None:
        try:
            query = self._build_query()
        except Exception as e:
            self._fail(generation, e, "Query build")
            return

        # not ready: no subscription, no fetch
        if not query:
            self._not_ready()
            return

        if self.listen:
            self._open_listener(query, generation)
        else:
            await self._fetch(query, generation)

    def _open_listener(self, query: Any, generation: int) -> None:
        def on_next(snapshots: List[StoredDocument]) -> None:
            if not self._is_current(generation):
                return
            self._set_state(data=to_records(snapshots, self.model), loading=False)

        def on_error(error: BaseException) -> None:
            self._fail(generation, error, "Snapshot")

        try:
            unsubscribe = self.store.subscribe(query, on_next, on_error)
        except Exception as e:
            self._fail(generation, e, "Subscribe")
            return
        self._subscribed(unsubscribe, generation)
        logger.debug(f"[Binder] Listening on {self.collection_name}")

    async def _fetch(self, query: Any, generation: int) -> None:
        try:
            snapshots = await self.store.get_once(query)
        except Exception as e:
            self._fail(generation, e, "Fetch")
            return

        if not self._is_current(generation):
            logger.debug(f"[Binder] Dropping late fetch result for {self.collection_name}")
            return
        self._set_state(data=to_records(snapshots, self.model), loading=False)
