import logging
import random
import secrets
import string
from typing import Awaitable, Callable, Optional

from .errors import TokenExhaustedError

logger = logging.getLogger(__name__)

ALPHABET = string.ascii_letters + string.digits


class TokenGenerator:
    """
    Draws fixed-length alphanumeric tokens and probes them for uniqueness.

    The randomness source is handed in by whoever owns the generator's
    lifecycle, so tests can pass a seeded ``random.Random`` or a scripted
    stand-in that forces collisions.
    """

    def __init__(
        self,
        length: int = 5,
        max_attempts: int = 10,
        alphabet: str = ALPHABET,
        rng: Optional[random.Random] = None,
    ):
        if length < 1:
            raise ValueError("token length must be positive")
        if max_attempts < 1:
            raise ValueError("max_attempts must be positive")
        if not alphabet:
            raise ValueError("alphabet must not be empty")
        self.length = length
        self.max_attempts = max_attempts
        self.alphabet = alphabet
        self.rng = rng or secrets.SystemRandom()

    def generate(self, length: Optional[int] = None) -> str:
        length = length or self.length
        return "".join(self.rng.choice(self.alphabet) for _ in range(length))

    async def generate_unique(
        self,
        exists: Callable[[str], Awaitable[bool]],
        length: Optional[int] = None,
    ) -> str:
        for attempt in range(1, self.max_attempts + 1):
            token = self.generate(length)
            if not await exists(token):
                return token
            logger.info("Token collision", extra={"attempt": attempt, "token": token})

        logger.error("Token space exhausted", extra={"attempts": self.max_attempts, "length": length or self.length})
        raise TokenExhaustedError(self.max_attempts)
