"""Random public identifiers and the bounded unique-code retry loop.

Candidates come from `secrets`; uniqueness is checked against the store by the
caller-supplied `exists_fn` and backed by database unique constraints.
"""

import secrets
from collections.abc import Callable
from datetime import datetime, timezone

from regpay.common.config import settings
from regpay.common.errors import CodeGenerationExhausted
from regpay.common.logging import logger
from regpay.common.metrics import code_collisions_total, code_generation_exhausted_total


GLOBAL_SCOPE = "global"
# Look-alike characters (0/O, 1/I/l) are left out of both alphabets.
REGISTRATION_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
DISPLAY_ALPHABET = "2345679ABCDEFGHJKLMNPQRSTUVWXYZ"
CODE_LENGTH = 6


def random_code(alphabet: str, length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def registration_number_candidate() -> str:
    """Private, globally unique registration number, e.g. `7KQ2MX`."""

    return random_code(REGISTRATION_ALPHABET)


def display_code_candidate(year: int) -> str:
    """Public anonymous entry code, e.g. `ARC2025-X7K9M2`."""

    return f"ARC{year}-{random_code(DISPLAY_ALPHABET)}"


def display_code_scope(competition_id: str, year: int) -> str:
    return f"{competition_id}:{year}"


def order_id_candidate(sequence: int, year: int | None = None) -> str:
    """Gateway order id, e.g. `ORDER-AC2025-00026-265305`."""

    year = year or datetime.now(timezone.utc).year
    suffix = "".join(secrets.choice("0123456789") for _ in range(6))
    return f"ORDER-AC{year}-{sequence:05d}-{suffix}"


def generate_unique_code(
    scope: str,
    candidate_fn: Callable[[], str],
    exists_fn: Callable[[str, str], bool],
    max_attempts: int = 10,
    kind: str = "code",
) -> str:
    """Return the first candidate that `exists_fn(scope, candidate)` reports unused.

    Raises `CodeGenerationExhausted` once `max_attempts` candidates have all
    collided; repeated exhaustion points at a too-small alphabet or a polluted
    code space and has to reach an operator.
    """

    for attempt in range(1, max_attempts + 1):
        candidate = candidate_fn()
        if not exists_fn(scope, candidate):
            return candidate
        code_collisions_total.labels(service=settings.service_name, kind=kind).inc()
        logger.warning(
            "code collision kind=%s scope=%s attempt=%s/%s",
            kind,
            scope,
            attempt,
            max_attempts,
        )
    code_generation_exhausted_total.labels(service=settings.service_name, kind=kind).inc()
    logger.error("code generation exhausted kind=%s scope=%s attempts=%s", kind, scope, max_attempts)
    raise CodeGenerationExhausted(scope, max_attempts)
