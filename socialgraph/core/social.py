"""Follow graph service - edges, counters, lookups and live views."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any, TypeVar

import structlog

from socialgraph.config import SocialConfig
from socialgraph.core.discovery import rank_discovery_feed
from socialgraph.core.normalizer import normalize_profile
from socialgraph.exceptions import (
    DocumentNotFoundError,
    InvalidOperation,
    OperationTimeout,
    ProfileNotFoundError,
    SubscriptionError,
)
from socialgraph.logging import get_logger
from socialgraph.models.edge import (
    USERS_COLLECTION,
    FollowDirection,
    edge_path,
    edges_path,
    user_path,
)
from socialgraph.models.profile import ProfileUpdate, UserProfile
from socialgraph.store.base import (
    MAX_IN_QUERY,
    SERVER_TIMESTAMP,
    DocumentStore,
    Increment,
    QuerySnapshot,
    Transaction,
    with_deadline,
)
from socialgraph.store.subscription import Subscription

T = TypeVar("T")

ErrorCallback = Callable[[SubscriptionError], Any]


class SocialGraphService:
    """
    Maintains the bidirectional follow relationship between profiles.

    A follow is two edge records (users/{a}/following/{b} and
    users/{b}/followers/{a}) plus one counter on each profile. Both edges and
    both counters change in a single transaction that first checks whether
    the edge exists, so repeated or out-of-order calls cannot push the
    counters away from the edge sets.

    Example:
        service = SocialGraphService(store)
        await service.follow("alice", "bob")
        sub = await service.subscribe_to_following("alice", print)
        ...
        sub.cancel()
    """

    def __init__(self, store: DocumentStore, config: SocialConfig | None = None):
        self._store = store
        self.config = config or SocialConfig()
        self._chunk_size = min(self.config.fetch_chunk_size, MAX_IN_QUERY)
        self._window = timedelta(seconds=self.config.online_window_seconds)
        self._timeout = self.config.operation_timeout_seconds or None
        self._log = get_logger("social_graph")

    @property
    def online_window(self) -> timedelta:
        """How recent lastSeenAt must be for a profile to count as online."""
        return self._window

    # Validation and plumbing

    def _check_pair(self, operation: str, actor_id: str, target_id: str) -> bool:
        """Return True when the pair is valid; reject or skip otherwise."""
        problem = None
        if not actor_id or not target_id:
            problem = "actor and target ids are required"
        elif "/" in actor_id or "/" in target_id:
            problem = "ids must not contain '/'"
        elif actor_id == target_id:
            problem = "a user cannot follow themselves"

        if problem is None:
            return True
        if self.config.strict_validation:
            raise InvalidOperation(f"{operation}: {problem}")
        self._log.info(f"{operation}_skipped", reason=problem, actor=actor_id, target=target_id)
        return False

    @staticmethod
    def _check_id(uid: str) -> None:
        if not uid or "/" in uid:
            raise InvalidOperation(f"Invalid user id: {uid!r}")

    async def _run(self, operation: str, awaitable: Awaitable[T], bounded: bool = True) -> T:
        """
        Await a one-shot store operation, reporting an expired deadline.

        Reads are bounded here. Writes are given the deadline themselves
        (bounded=False) so it covers the commit but not the delivery of the
        committed change to subscribers.
        """
        timeout = self._timeout
        with structlog.contextvars.bound_contextvars(operation=operation):
            try:
                if bounded:
                    return await with_deadline(awaitable, timeout)
                return await awaitable
            except asyncio.TimeoutError as exc:
                self._log.warning("operation_timeout", timeout=timeout)
                raise OperationTimeout(f"{operation} did not complete within {timeout}s") from exc

    # Follow / unfollow

    async def follow(self, actor_id: str, target_id: str) -> bool:
        """
        Make actor follow target.

        Returns:
            True if a new edge was created, False if it already existed
            (or the call was skipped with strict validation off)
        """
        if not self._check_pair("follow", actor_id, target_id):
            return False

        following = edge_path(actor_id, FollowDirection.FOLLOWING, target_id)
        followers = edge_path(target_id, FollowDirection.FOLLOWERS, actor_id)

        async def apply(txn: Transaction) -> bool:
            if await txn.get(following) is not None:
                return False
            txn.set(following, {"uid": target_id, "createdAt": SERVER_TIMESTAMP}, merge=True)
            txn.set(followers, {"uid": actor_id, "createdAt": SERVER_TIMESTAMP}, merge=True)
            txn.set(user_path(actor_id), {"followingCount": Increment(1)}, merge=True)
            txn.set(user_path(target_id), {"followersCount": Increment(1)}, merge=True)
            return True

        changed = await self._run(
            "follow", self._store.run_transaction(apply, self._timeout), bounded=False
        )
        self._log.info(
            "follow_committed" if changed else "follow_unchanged",
            actor=actor_id,
            target=target_id,
        )
        return changed

    async def unfollow(self, actor_id: str, target_id: str) -> bool:
        """
        Remove actor's follow of target.

        Returns:
            True if an edge was removed, False if there was none
        """
        if not self._check_pair("unfollow", actor_id, target_id):
            return False

        following = edge_path(actor_id, FollowDirection.FOLLOWING, target_id)
        followers = edge_path(target_id, FollowDirection.FOLLOWERS, actor_id)

        async def apply(txn: Transaction) -> bool:
            if await txn.get(following) is None:
                return False
            txn.delete(following)
            txn.delete(followers)
            await _decrement(txn, user_path(actor_id), "followingCount")
            await _decrement(txn, user_path(target_id), "followersCount")
            return True

        changed = await self._run(
            "unfollow", self._store.run_transaction(apply, self._timeout), bounded=False
        )
        self._log.info(
            "unfollow_committed" if changed else "unfollow_unchanged",
            actor=actor_id,
            target=target_id,
        )
        return changed

    async def is_following(self, actor_id: str, target_id: str) -> bool:
        self._check_id(actor_id)
        self._check_id(target_id)
        snapshot = await self._run(
            "is_following",
            self._store.get(edge_path(actor_id, FollowDirection.FOLLOWING, target_id)),
        )
        return snapshot is not None

    # Profiles

    async def fetch_profile(self, uid: str) -> UserProfile | None:
        """Fetch and normalize one profile, None if it does not exist."""
        self._check_id(uid)
        snapshot = await self._run("fetch_profile", self._store.get(user_path(uid)))
        if snapshot is None:
            return None
        return normalize_profile(snapshot.data, snapshot.id)

    async def fetch_profiles_by_ids(self, uids: list[str]) -> list[UserProfile]:
        """
        Fetch many profiles, chunking ids to the store's per-query cap.

        Every requested id that exists is returned exactly once; ids that do
        not exist are skipped. Results follow the order of first request.
        """
        unique = [uid for uid in dict.fromkeys(uids) if uid and "/" not in uid]
        if not unique:
            return []

        async def fetch_all() -> list[UserProfile]:
            profiles = []
            for start in range(0, len(unique), self._chunk_size):
                chunk = unique[start:start + self._chunk_size]
                for snapshot in await self._store.get_many(USERS_COLLECTION, chunk):
                    profiles.append(normalize_profile(snapshot.data, snapshot.id))
            return profiles

        return await self._run("fetch_profiles_by_ids", fetch_all())

    async def create_profile(
        self,
        uid: str,
        email: str | None = None,
        username: str | None = None,
    ) -> UserProfile:
        """
        Create the profile document written at registration.

        Optional fields start empty, counters at zero, and the new user is
        marked online.
        """
        self._check_id(uid)
        username = (username or "").strip() or None
        email = (email or "").strip().lower() or None

        async def apply(txn: Transaction) -> None:
            if await txn.get(user_path(uid)) is not None:
                raise InvalidOperation(f"Profile already exists: {uid}")
            txn.set(user_path(uid), {
                "uid": uid,
                "email": email,
                "username": username,
                "displayName": username,
                "createdAt": SERVER_TIMESTAMP,
                "bio": "",
                "gender": None,
                "age": None,
                "starSign": None,
                "location": "",
                "hobbies": [],
                "followersCount": 0,
                "followingCount": 0,
                "isOnline": True,
                "lastSeenAt": SERVER_TIMESTAMP,
            })

        await self._run(
            "create_profile", self._store.run_transaction(apply, self._timeout), bounded=False
        )
        self._log.info("profile_created", uid=uid)
        return await self._require_profile(uid)

    async def update_profile(self, uid: str, update: ProfileUpdate) -> UserProfile:
        """Apply a profile edit; the profile must already exist."""
        self._check_id(uid)
        try:
            await self._run(
                "update_profile",
                self._store.update(user_path(uid), update.to_fields(), self._timeout),
                bounded=False,
            )
        except DocumentNotFoundError as exc:
            raise ProfileNotFoundError(f"Profile not found: {uid}") from exc
        self._log.info("profile_updated", uid=uid)
        return await self._require_profile(uid)

    async def reconcile_counters(self, uid: str) -> UserProfile:
        """
        Recompute a profile's counters from its edge sets.

        Repairs drift left behind by writes made outside this service.
        """
        self._check_id(uid)

        async def apply(txn: Transaction) -> tuple[int, int, int, int]:
            current = await txn.get(user_path(uid))
            if current is None:
                raise ProfileNotFoundError(f"Profile not found: {uid}")
            following = await txn.list_documents(edges_path(uid, FollowDirection.FOLLOWING))
            followers = await txn.list_documents(edges_path(uid, FollowDirection.FOLLOWERS))
            txn.set(
                user_path(uid),
                {"followingCount": len(following), "followersCount": len(followers)},
                merge=True,
            )
            return (
                current.data.get("followingCount"),
                current.data.get("followersCount"),
                len(following),
                len(followers),
            )

        old_following, old_followers, following, followers = await self._run(
            "reconcile_counters",
            self._store.run_transaction(apply, self._timeout),
            bounded=False,
        )
        if (old_following, old_followers) != (following, followers):
            self._log.warning(
                "counters_reconciled",
                uid=uid,
                following=(old_following, following),
                followers=(old_followers, followers),
            )
        return await self._require_profile(uid)

    async def _require_profile(self, uid: str) -> UserProfile:
        profile = await self.fetch_profile(uid)
        if profile is None:
            raise ProfileNotFoundError(f"Profile not found: {uid}")
        return profile

    # Discovery

    async def list_profiles(self) -> list[UserProfile]:
        snapshot = await self._run("list_profiles", self._store.list_documents(USERS_COLLECTION))
        return _profiles_from(snapshot)

    async def discovery_feed(self, viewer_id: str | None) -> list[UserProfile]:
        """Ranked list of everyone except the viewer."""
        return rank_discovery_feed(await self.list_profiles(), viewer_id, window=self._window)

    # Live subscriptions

    async def subscribe_to_following(
        self,
        actor_id: str,
        on_change: Callable[[set[str]], Any] | None = None,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """
        Watch the set of ids actor follows.

        Delivers the current set first (possibly empty), then a fresh set
        after every follow or unfollow. Cancel the returned subscription to
        stop delivery.
        """
        return await self._subscribe_edge_ids(actor_id, FollowDirection.FOLLOWING, on_change, on_error)

    async def subscribe_to_followers(
        self,
        uid: str,
        on_change: Callable[[set[str]], Any] | None = None,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Watch the set of ids following uid."""
        return await self._subscribe_edge_ids(uid, FollowDirection.FOLLOWERS, on_change, on_error)

    async def _subscribe_edge_ids(
        self,
        uid: str,
        direction: FollowDirection,
        on_change,
        on_error,
    ) -> Subscription:
        self._check_id(uid)
        sub = await self._store.subscribe(
            edges_path(uid, direction),
            transform=lambda snapshot: set(snapshot.ids),
        )
        return _attach(sub, on_change, on_error)

    async def subscribe_to_follow_list(
        self,
        uid: str,
        direction: FollowDirection,
        on_change: Callable[[list[UserProfile]], Any] | None = None,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """
        Watch the profiles on one side of uid's follow edges.

        Profiles are delivered in edge order; edges whose profile no longer
        exists are dropped.
        """
        self._check_id(uid)

        async def materialize(snapshot: QuerySnapshot) -> list[UserProfile]:
            ids = snapshot.ids
            if not ids:
                return []
            order = {edge_id: index for index, edge_id in enumerate(ids)}
            profiles = await self.fetch_profiles_by_ids(ids)
            return sorted(profiles, key=lambda p: order.get(p.uid, len(order)))

        sub = await self._store.subscribe(edges_path(uid, direction), transform=materialize)
        return _attach(sub, on_change, on_error)

    async def subscribe_to_profile(
        self,
        uid: str,
        on_change: Callable[[UserProfile | None], Any] | None = None,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """
        Watch one profile, e.g. for a profile card's presence and counters.

        Delivers the normalized profile, or None while the document does
        not exist.
        """
        self._check_id(uid)

        def to_profile(snapshot) -> UserProfile | None:
            if snapshot is None:
                return None
            return normalize_profile(snapshot.data, snapshot.id)

        sub = await self._store.subscribe(user_path(uid), transform=to_profile)
        return _attach(sub, on_change, on_error)

    async def subscribe_to_all_profiles(
        self,
        on_change: Callable[[list[UserProfile]], Any] | None = None,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """
        Watch every profile document.

        Streams the whole collection on each change, so it only suits small
        user bases.
        """
        sub = await self._store.subscribe(USERS_COLLECTION, transform=_profiles_from)
        return _attach(sub, on_change, on_error)

    async def subscribe_to_discovery_feed(
        self,
        viewer_id: str | None,
        on_change: Callable[[list[UserProfile]], Any] | None = None,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Watch the ranked discovery feed for a viewer."""

        def rank(snapshot: QuerySnapshot) -> list[UserProfile]:
            return rank_discovery_feed(_profiles_from(snapshot), viewer_id, window=self._window)

        sub = await self._store.subscribe(USERS_COLLECTION, transform=rank)
        return _attach(sub, on_change, on_error)


async def _decrement(txn: Transaction, path: str, field: str) -> None:
    """Decrement a counter inside a transaction without going below zero."""
    snapshot = await txn.get(path)
    current = snapshot.data.get(field) if snapshot else None
    if isinstance(current, (int, float)) and not isinstance(current, bool) and current > 0:
        txn.set(path, {field: Increment(-1)}, merge=True)


def _profiles_from(snapshot: QuerySnapshot) -> list[UserProfile]:
    return [normalize_profile(doc.data, doc.id) for doc in snapshot.documents]


def _attach(sub: Subscription, on_change, on_error) -> Subscription:
    if on_change is not None:
        sub.listen(on_change, on_error)
    return sub
