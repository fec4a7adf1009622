"""Draft registry - one in-progress draft per operator (store, user)."""
import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional, Tuple

from pos_draft.models.operator import OperatorContext
from pos_draft.models.sale_draft import DraftStatus
from pos_draft.services.sale_draft_service import SaleDraft

logger = logging.getLogger(__name__)

DraftKey = Tuple[Optional[int], int]


class DraftRegistry:
    """
    In-process store of drafts.

    A draft is mutated by one request at a time: `checkout` holds the
    operator's lock for the whole edit, so the recompute after each
    mutation is never interleaved with another one.
    """

    def __init__(self, factory: Callable[[OperatorContext], SaleDraft]):
        self._factory = factory
        self._drafts: Dict[DraftKey, SaleDraft] = {}
        self._locks: Dict[DraftKey, threading.RLock] = {}
        self._guard = threading.Lock()

    @staticmethod
    def key_for(operator: OperatorContext) -> DraftKey:
        return (operator.store_id, operator.user_id)

    def _lock_for(self, key: DraftKey) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    def get_or_create(self, operator: OperatorContext) -> SaleDraft:
        """
        Get existing draft or create a new one for the operator.

        A submitted draft is terminal and is replaced by a fresh one.
        """
        key = self.key_for(operator)
        draft = self._drafts.get(key)
        if draft is None or draft.status is DraftStatus.SUBMITTED:
            draft = self._factory(operator)
            self._drafts[key] = draft
            logger.info(f"[DRAFT] Opened draft {draft.id} for user {operator.user_id} store {operator.store_id}")
        return draft

    @contextmanager
    def checkout(self, operator: OperatorContext) -> Iterator[SaleDraft]:
        key = self.key_for(operator)
        with self._lock_for(key):
            yield self.get_or_create(operator)

    def discard(self, operator: OperatorContext) -> bool:
        key = self.key_for(operator)
        with self._lock_for(key):
            draft = self._drafts.pop(key, None)
        if draft is not None:
            logger.info(f"[DRAFT] Discarded draft {draft.id}")
        return draft is not None

    def __len__(self) -> int:
        return len(self._drafts)
