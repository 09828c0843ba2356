"""
Challenge Store
===============
Persistence interface for challenges and an in-memory implementation.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Dict, Optional

from .models import Challenge


class ChallengeStore(ABC):
    """
    Storage for issued challenges.

    ``mark_verified`` is the only operation that needs a transactional
    guarantee: it must flip ``verified`` from false to true at most once
    per challenge id.
    """

    @abstractmethod
    async def insert(self, challenge: Challenge) -> None:
        """Persist a newly issued challenge."""

    @abstractmethod
    async def get(self, challenge_id: str) -> Optional[Challenge]:
        """Fetch a challenge by id."""

    @abstractmethod
    async def count_since(self, phone: str, since: datetime) -> int:
        """Count challenges created for a phone after ``since``."""

    @abstractmethod
    async def find_active(
        self,
        phone: str,
        now: datetime,
        challenge_id: Optional[str] = None,
    ) -> Optional[Challenge]:
        """Most recent unexpired, unverified challenge for a phone."""

    @abstractmethod
    async def increment_attempts(self, challenge_id: str) -> Optional[int]:
        """
        Count one failed verification against a challenge.

        The increment only happens while ``attempts < max_attempts``.

        Returns:
            The new attempt count, or None if no attempt was left to spend
        """

    @abstractmethod
    async def increment_active_attempts(self, phone: str, now: datetime) -> int:
        """Count one failed verification against every active challenge of a phone."""

    @abstractmethod
    async def mark_verified(self, challenge_id: str, now: datetime) -> bool:
        """
        Atomically flip an active challenge to verified.

        The challenge must be unexpired, unverified and still have attempts
        left at the moment of the transition.

        Returns:
            True if this call performed the transition
        """


class InMemoryChallengeStore(ChallengeStore):
    """
    Challenge store kept in process memory.

    For development and testing only.
    Use SQLChallengeStore in production.
    """

    def __init__(self):
        self._challenges: Dict[str, Challenge] = {}
        self._lock = asyncio.Lock()

    async def insert(self, challenge: Challenge) -> None:
        async with self._lock:
            self._challenges[challenge.id] = replace(challenge)

    async def get(self, challenge_id: str) -> Optional[Challenge]:
        challenge = self._challenges.get(challenge_id)
        return replace(challenge) if challenge else None

    async def count_since(self, phone: str, since: datetime) -> int:
        return sum(
            1 for c in self._challenges.values()
            if c.phone == phone and c.created_at > since
        )

    async def find_active(
        self,
        phone: str,
        now: datetime,
        challenge_id: Optional[str] = None,
    ) -> Optional[Challenge]:
        candidates = [
            c for c in self._challenges.values()
            if c.phone == phone
            and c.is_active(now)
            and (challenge_id is None or c.id == challenge_id)
        ]
        if not candidates:
            return None
        latest = max(candidates, key=lambda c: c.created_at)
        return replace(latest)

    async def increment_attempts(self, challenge_id: str) -> Optional[int]:
        async with self._lock:
            challenge = self._challenges.get(challenge_id)
            if challenge is None or challenge.attempts >= challenge.max_attempts:
                return None
            challenge.attempts += 1
            return challenge.attempts

    async def increment_active_attempts(self, phone: str, now: datetime) -> int:
        async with self._lock:
            updated = 0
            for challenge in self._challenges.values():
                if (
                    challenge.phone == phone
                    and challenge.is_active(now)
                    and challenge.attempts < challenge.max_attempts
                ):
                    challenge.attempts += 1
                    updated += 1
            return updated

    async def mark_verified(self, challenge_id: str, now: datetime) -> bool:
        async with self._lock:
            challenge = self._challenges.get(challenge_id)
            if (
                challenge is None
                or not challenge.is_active(now)
                or challenge.attempts >= challenge.max_attempts
            ):
                return False
            challenge.verified = True
            challenge.verified_at = now
            return True
