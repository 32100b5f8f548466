"""Meeting token generation.

Tokens double as the invitation link path segment and the signaling room name,
so they are short, upper case and free of look-alike characters."""
from __future__ import annotations

import logging
import secrets
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

# No 0/O or 1/I so the token survives being read aloud or retyped.
TOKEN_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
DEFAULT_TOKEN_LENGTH = 8
DEFAULT_MAX_ATTEMPTS = 16

ClaimCallable = Callable[[str], Awaitable[bool]]


class TokenExhaustedError(RuntimeError):
    """Raised when no unused token could be drawn within the retry budget."""


def normalize_token(value: str) -> str:
    """Return the canonical (upper case, trimmed) form of a token."""

    return value.strip().upper()


def is_well_formed(value: str, length: int = DEFAULT_TOKEN_LENGTH) -> bool:
    """Return True if ``value`` has the token length and alphabet."""

    return len(value) == length and all(char in TOKEN_ALPHABET for char in value)


class TokenGenerator:
    """Draw meeting tokens and retry on collision up to a fixed budget."""

    def __init__(
        self,
        length: int = DEFAULT_TOKEN_LENGTH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        *,
        choice: Callable[[str], str] = secrets.choice,
    ) -> None:
        if length < 1:
            raise ValueError("Token length must be positive")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.length = length
        self.max_attempts = max_attempts
        self._choice = choice

    def generate(self) -> str:
        """Return one random token. Uniqueness is not checked here."""

        return "".join(self._choice(TOKEN_ALPHABET) for _ in range(self.length))

    async def allocate(self, claim: ClaimCallable) -> str:
        """Draw tokens until ``claim`` accepts one.

        ``claim`` must atomically reserve the candidate and return False when it is
        already taken.
        """

        for attempt in range(1, self.max_attempts + 1):
            candidate = self.generate()
            if await claim(candidate):
                return candidate
            logger.warning("Token collision on attempt %d/%d", attempt, self.max_attempts)

        raise TokenExhaustedError(f"No free token after {self.max_attempts} attempts")
