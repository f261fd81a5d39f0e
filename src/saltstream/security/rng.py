"""Random source for salts and IVs, with a manual seeding fallback.

The OS CSPRNG (``os.urandom``) is the only source used for key material in
normal operation. On Linux the kernel can report whether its pool has been
initialized (non-blocking ``getrandom``); if it has not, we mix time, pid and
a sample of heap-address layout into the pool via ``/dev/urandom`` and check
once more before giving up with :class:`EntropyError`. Platforms that cannot
report entropy status are assumed to be seeded.

The process-wide default source returned by :func:`get_random_source` is not
locked. Callers sharing it between threads must serialize access themselves.
"""
from __future__ import annotations

import hashlib
import logging
import os
import random
import struct
import time
from typing import Callable, Optional

from saltstream.core.exceptions import EntropyError, RandomGenerationError


logger = logging.getLogger(__name__)

URANDOM_DEVICE = "/dev/urandom"
# upper bound on the heap-layout sample mixed into the seed
SEED_SAMPLE_OBJECTS = 64


def _kernel_reports_seeded() -> bool:
    getrandom = getattr(os, "getrandom", None)
    flag = getattr(os, "GRND_NONBLOCK", None)
    if getrandom is None or flag is None:
        # no way to ask; assume the platform seeds itself
        return True
    try:
        getrandom(1, flag)
    except BlockingIOError:
        return False
    except OSError:
        # ENOSYS and friends: getrandom exists in Python but not in the kernel
        return True
    return True


def _seed_material() -> bytes:
    h = hashlib.sha512()
    h.update(struct.pack(">q", time.time_ns()))
    h.update(struct.pack(">q", time.perf_counter_ns()))
    h.update(struct.pack(">q", os.getpid()))
    # fresh allocations land wherever the allocator puts them; their addresses are the sample
    sample = [object() for _ in range(SEED_SAMPLE_OBJECTS)]
    for obj in sample:
        h.update(id(obj).to_bytes(8, "little", signed=False))
    return h.digest()


class RandomSource:
    def __init__(
        self,
        urandom: Callable[[int], bytes] = os.urandom,
        entropy_probe: Callable[[], bool] = _kernel_reports_seeded,
        seed_device: Optional[str] = URANDOM_DEVICE,
    ):
        self._urandom = urandom
        self._entropy_probe = entropy_probe
        self._seed_device = seed_device
        self._fallback: Optional[random.Random] = None

    def ensure_seeded(self) -> None:
        """Make sure the PRNG reports enough entropy, re-seeding once if it does not."""
        if self._entropy_probe():
            return
        logger.warning("PRNG reports insufficient entropy; seeding manually")
        self._manual_seed()
        if not self._entropy_probe():
            raise EntropyError("PRNG still reports insufficient entropy after manual seeding")

    def _manual_seed(self) -> None:
        material = _seed_material()
        if self._seed_device is not None:
            try:
                # writes to /dev/urandom mix into the pool without crediting entropy
                with open(self._seed_device, "wb") as dev:
                    dev.write(material)
            except OSError as e:
                logger.debug("could not write seed material to %s: %s", self._seed_device, e)
        self._fallback = random.Random(material)

    def draw_bytes(self, n: int) -> bytes:
        """Return ``n`` bytes from the OS CSPRNG."""
        if n < 0:
            raise ValueError("cannot draw a negative number of bytes")
        try:
            data = self._urandom(n)
        except (OSError, NotImplementedError) as e:
            raise RandomGenerationError(f"OS random generator failed: {e}") from e
        if len(data) != n:
            raise RandomGenerationError(f"OS random generator returned {len(data)} of {n} bytes")
        return data

    def fallback_bytes(self, n: int) -> bytes:
        """
        Lower-quality bytes from a seeded ``random.Random``.

        Only for use after :meth:`draw_bytes` failed. Not suitable for keys.
        """
        if self._fallback is None:
            self._fallback = random.Random(_seed_material())
        return self._fallback.randbytes(n)


# module-level default random source
_default_source = RandomSource()


def get_random_source() -> RandomSource:
    return _default_source
