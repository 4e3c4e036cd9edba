"""Locally generated payment references.

Shape: ``<PREFIX>_<YYYYMMDD>_<16 hex chars>``. The suffix carries 64 bits
from the OS CSPRNG, so values stay unique across calls and restarts, need no
URL escaping, and can be read out over the phone by support.
"""

import re
import secrets
import threading
from datetime import datetime, timezone
from typing import Callable

from flavourhub.common.errors import GenerationError
from flavourhub.common.logging import logger

SUFFIX_BYTES = 8
_PREFIX_RE = re.compile(r"^[A-Za-z0-9]{1,12}$")


class ReferenceGenerator:
    """Issues payment references; remembers issued values to refuse repeats."""

    def __init__(
        self,
        prefix: str = "FH",
        token_source: Callable[[int], str] = secrets.token_hex,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        if not _PREFIX_RE.match(prefix):
            raise ValueError(f"invalid reference prefix: {prefix!r}")
        self.prefix = prefix
        self._token_source = token_source
        self._clock = clock
        self._issued: set[str] = set()
        self._lock = threading.Lock()

    def generate(self) -> str:
        """Return a fresh reference or raise ``GenerationError``."""

        try:
            suffix = self._token_source(SUFFIX_BYTES)
        except (OSError, NotImplementedError) as exc:
            logger.error("reference randomness source failed: %s", exc)
            raise GenerationError() from exc
        if not suffix:
            raise GenerationError()
        reference = f"{self.prefix}_{self._clock():%Y%m%d}_{suffix}"
        with self._lock:
            if reference in self._issued:
                # Only reachable with a broken randomness source.
                raise GenerationError()
            self._issued.add(reference)
        return reference

    def release(self, reference: str) -> None:
        """Forget a reference whose gateway transaction was never opened."""

        with self._lock:
            self._issued.discard(reference)
