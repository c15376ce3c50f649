"""Sparse storage of observed user-item votes.

The store maps external identifiers (user names, article names) to dense
zero-based indices in order of first appearance and keeps one rating per
(user, item) pair. A repeated vote for the same pair overwrites the earlier
rating in place, so the observation keeps its original position in the
iteration order.
"""

import logging
import math
from numbers import Real
from typing import Any, Dict, Hashable, Iterable, Iterator, List, Optional, Tuple

import numpy as np
from scipy.sparse import csc_matrix, csr_matrix

from geyser.recommender.errors import InvalidArgument, NotFound

# Configure module logger
logger = logging.getLogger(__name__)

UPVOTE = 1.0
DOWNVOTE = -1.0

Observation = Tuple[int, int, float]

_VOTE_SYMBOLS = {
    "+": UPVOTE,
    "-": DOWNVOTE,
    "up": UPVOTE,
    "down": DOWNVOTE,
}


def normalize_vote(raw_vote: Any) -> float:
    """Convert a raw vote to the centered numeric rating scale.

    Booleans and the wiki's ``"+"``/``"-"`` markers map to +1/-1. Numeric
    votes are already on a numeric scale and are taken as-is.

    Args:
        raw_vote: Vote as scraped or exported.

    Returns:
        Rating as a float.

    Raises:
        InvalidArgument: If the vote is NaN or not a recognised value.
    """
    if isinstance(raw_vote, (bool, np.bool_)):
        return UPVOTE if raw_vote else DOWNVOTE

    if isinstance(raw_vote, str):
        symbol = raw_vote.strip().lower()
        if symbol in _VOTE_SYMBOLS:
            return _VOTE_SYMBOLS[symbol]
        raise InvalidArgument(
            f"Unrecognised vote {raw_vote!r}", details={"vote": raw_vote}
        )

    if isinstance(raw_vote, Real):
        rating = float(raw_vote)
        if math.isnan(rating) or math.isinf(rating):
            raise InvalidArgument(
                f"Vote must be finite, got {raw_vote!r}",
                details={"vote": str(raw_vote)},
            )
        return rating

    raise InvalidArgument(
        f"Unsupported vote type {type(raw_vote).__name__}",
        details={"vote": repr(raw_vote)},
    )


def check_index(index: int, bound: int, kind: str) -> int:
    """Return ``index`` as an int, raising NotFound unless 0 <= index < bound."""
    if isinstance(index, (bool, np.bool_)) or not isinstance(index, (int, np.integer)):
        raise NotFound(kind, index)
    if not 0 <= index < bound:
        raise NotFound(kind, int(index))
    return int(index)


class RatingStore:
    """Observed (user, item, rating) triples with their index mappings."""

    def __init__(self) -> None:
        self._user_to_idx: Dict[Hashable, int] = {}
        self._item_to_idx: Dict[Hashable, int] = {}
        self._users: List[Hashable] = []
        self._items: List[Hashable] = []
        # dict keeps first-insertion order, which is the iteration order
        self._ratings: Dict[Tuple[int, int], float] = {}
        self._page_ids: Dict[Hashable, int] = {}
        # Sparse views of the ratings, rebuilt after the next add()
        self._csr: Optional[csr_matrix] = None
        self._csc: Optional[csc_matrix] = None

    @classmethod
    def from_records(
        cls, records: Iterable[Tuple[Hashable, Hashable, Any]]
    ) -> "RatingStore":
        """Build a store from raw ``(user, item, vote)`` records."""
        store = cls()
        for user, item, vote in records:
            store.add(user, item, vote)

        n_users, n_items, n_obs = store.size()
        logger.info(
            f"Built rating store: {n_users} users, {n_items} items, "
            f"{n_obs} observations"
        )
        return store

    def add(self, external_user_id: Hashable, external_item_id: Hashable, raw_vote: Any) -> None:
        """Record a vote, assigning internal indices on first occurrence.

        Args:
            external_user_id: Stable user identifier, e.g. the user name.
            external_item_id: Stable item identifier, e.g. the article name.
            raw_vote: Vote in any form accepted by :func:`normalize_vote`.

        Raises:
            InvalidArgument: If the vote cannot be normalized. Nothing is
                recorded in that case.
        """
        rating = normalize_vote(raw_vote)

        user_idx = self._user_to_idx.get(external_user_id)
        if user_idx is None:
            user_idx = len(self._users)
            self._user_to_idx[external_user_id] = user_idx
            self._users.append(external_user_id)

        item_idx = self._item_to_idx.get(external_item_id)
        if item_idx is None:
            item_idx = len(self._items)
            self._item_to_idx[external_item_id] = item_idx
            self._items.append(external_item_id)

        key = (user_idx, item_idx)
        if key in self._ratings:
            logger.debug(
                f"Overwriting vote of {external_user_id!r} on {external_item_id!r}"
            )
        self._ratings[key] = rating
        self._csr = None
        self._csc = None

    def set_page_id(self, external_item_id: Hashable, page_id: int) -> None:
        """Remember the wiki's numeric page id of a known article.

        Raises:
            NotFound: If the item has no votes in the store.
        """
        self.item_index(external_item_id)
        self._page_ids[external_item_id] = int(page_id)

    def page_id(self, external_item_id: Hashable) -> Optional[int]:
        """Return the article's wiki page id, or None if it was not recorded.

        Raises:
            NotFound: If the item is not in the store.
        """
        self.item_index(external_item_id)
        return self._page_ids.get(external_item_id)

    def size(self) -> Tuple[int, int, int]:
        """Return ``(num_users, num_items, num_observations)``."""
        return len(self._users), len(self._items), len(self._ratings)

    @property
    def num_users(self) -> int:
        return len(self._users)

    @property
    def num_items(self) -> int:
        return len(self._items)

    def __len__(self) -> int:
        return len(self._ratings)

    def observations(self) -> Iterator[Observation]:
        """Iterate over the stored ``(user_index, item_index, rating)`` triples.

        Each call returns a fresh iterator in the same stable order, so the
        observations can be walked once per training epoch.
        """
        return ((u, i, r) for (u, i), r in self._ratings.items())

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return users, items and ratings as aligned numpy arrays."""
        n_obs = len(self._ratings)
        users = np.empty(n_obs, dtype=np.int64)
        items = np.empty(n_obs, dtype=np.int64)
        ratings = np.empty(n_obs, dtype=np.float64)
        for pos, ((u, i), r) in enumerate(self._ratings.items()):
            users[pos] = u
            items[pos] = i
            ratings[pos] = r
        return users, items, ratings

    def mean_rating(self) -> float:
        """Return the dataset-wide mean rating.

        Raises:
            InvalidArgument: If the store holds no observations.
        """
        if not self._ratings:
            raise InvalidArgument("Cannot compute mean rating of an empty store")
        return float(np.mean(list(self._ratings.values())))

    def to_matrix(self) -> csr_matrix:
        """Return the ratings as a sparse matrix of shape (users, items).

        Every observation is an explicit entry, including numeric votes of
        0, so the row structure (``indptr``/``indices``) tells which items a
        user voted on. The matrix is cached until the next :meth:`add` and
        must be treated as read-only.

        Returns:
            CSR matrix with sorted column indices in each row.
        """
        if self._csr is None:
            users, items, ratings = self.as_arrays()

            # Sort by (user, item) and build the row pointers directly so
            # zero ratings are kept as stored entries
            order = np.lexsort((items, users))
            indptr = np.zeros(self.num_users + 1, dtype=np.int64)
            np.cumsum(np.bincount(users, minlength=self.num_users), out=indptr[1:])

            self._csr = csr_matrix(
                (ratings[order], items[order], indptr),
                shape=(self.num_users, self.num_items),
            )
        return self._csr

    def _column_matrix(self) -> csc_matrix:
        if self._csc is None:
            self._csc = self.to_matrix().tocsc()
        return self._csc

    def known_items(self, user_index: int) -> np.ndarray:
        """Return the sorted item indices the user has voted on.

        Raises:
            NotFound: If user_index is out of range.
        """
        u = check_index(user_index, self.num_users, "user index")
        matrix = self.to_matrix()
        return np.sort(matrix.indices[matrix.indptr[u] : matrix.indptr[u + 1]]).astype(
            np.int64
        )

    def known_users(self, item_index: int) -> np.ndarray:
        """Return the sorted user indices that voted on the item.

        Raises:
            NotFound: If item_index is out of range.
        """
        i = check_index(item_index, self.num_items, "item index")
        matrix = self._column_matrix()
        return np.sort(matrix.indices[matrix.indptr[i] : matrix.indptr[i + 1]]).astype(
            np.int64
        )

    def external_user(self, index: int) -> Hashable:
        """Map an internal user index back to the user's external id.

        Args:
            index: Internal user index.

        Returns:
            External user id, e.g. the user name.

        Raises:
            NotFound: If index is out of range.
        """
        check_index(index, self.num_users, "user index")
        return self._users[index]

    def external_item(self, index: int) -> Hashable:
        """Map an internal item index back to the item's external id.

        Raises:
            NotFound: If index is out of range.
        """
        check_index(index, self.num_items, "item index")
        return self._items[index]

    def user_index(self, external_user_id: Hashable) -> int:
        """Look up the internal index of a user.

        Args:
            external_user_id: External user id, e.g. the user name.

        Returns:
            Internal user index.

        Raises:
            NotFound: If the user has no votes in the store.
        """
        try:
            return self._user_to_idx[external_user_id]
        except KeyError:
            raise NotFound("user", external_user_id) from None

    def item_index(self, external_item_id: Hashable) -> int:
        """Look up the internal index of an item.

        Raises:
            NotFound: If the item has no votes in the store.
        """
        try:
            return self._item_to_idx[external_item_id]
        except KeyError:
            raise NotFound("item", external_item_id) from None

    def has_user(self, external_user_id: Hashable) -> bool:
        """Check whether the user has any vote in the store."""
        return external_user_id in self._user_to_idx

    def has_item(self, external_item_id: Hashable) -> bool:
        return external_item_id in self._item_to_idx

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the store to plain Python containers."""
        users, items, ratings = self.as_arrays()
        return {
            "users": list(self._users),
            "items": list(self._items),
            "user_indices": users,
            "item_indices": items,
            "ratings": ratings,
            "page_ids": dict(self._page_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RatingStore":
        """Rebuild a store serialized with :meth:`to_dict`.

        Indices are restored exactly as saved, including users or items that
        ended up without observations.
        """
        store = cls()
        store._users = list(data["users"])
        store._items = list(data["items"])
        store._user_to_idx = {user: idx for idx, user in enumerate(store._users)}
        store._item_to_idx = {item: idx for idx, item in enumerate(store._items)}

        for u, i, r in zip(data["user_indices"], data["item_indices"], data["ratings"]):
            u, i = int(u), int(i)
            check_index(u, store.num_users, "user index")
            check_index(i, store.num_items, "item index")
            store._ratings[(u, i)] = float(r)

        # Stores saved before page ids were recorded have none
        for item, page_id in data.get("page_ids", {}).items():
            store.set_page_id(item, page_id)

        return store

    def __repr__(self) -> str:
        n_users, n_items, n_obs = self.size()
        return f"RatingStore(users={n_users}, items={n_items}, observations={n_obs})"
