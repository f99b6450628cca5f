"""
Barcode Service - Unique, scannable box identifiers

Format: ``{PREFIX}-{SKU}-{SEQUENCE}-{SUFFIX}`` e.g. ``ELE-WID1-0001-7KQ2``.
Only ``A-Z``, ``0-9`` and ``-`` are used so every code prints as Code 128.
"""
import asyncio
import logging
import re
import secrets
import string
from typing import Awaitable, Callable, Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from stockin.core.config import settings
from stockin.core.exceptions import GenerationExhausted
from stockin.models import BatchItem, Inventory

logger = logging.getLogger(__name__)

BARCODE_ALPHABET = string.ascii_uppercase + string.digits
BARCODE_PATTERN = re.compile(r"^[A-Z0-9]+(-[A-Z0-9]+)*$")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")

# Async predicate: True when the code is already issued
BarcodeChecker = Callable[[str], Awaitable[bool]]

# In-process claims shared by every session generator
session_claims: Set[str] = set()


def clean_token(value: Optional[str]) -> str:
    """Upper-case and strip everything but letters and digits"""
    return _NON_ALNUM.sub("", value or "").upper()


def derive_prefix(category: Optional[str], name: Optional[str] = None, length: int = 3) -> str:
    """Short prefix from the product category, falling back to its name"""
    for source in (category, name):
        token = clean_token(source)
        if token:
            return token[:length]
    return "MISC"


def is_valid_barcode(code: str) -> bool:
    return bool(code) and len(code) >= 4 and bool(BARCODE_PATTERN.match(code))


def random_suffix(length: int) -> str:
    return "".join(secrets.choice(BARCODE_ALPHABET) for _ in range(length))


def compose_barcode(prefix: str, sku: str, sequence: int, suffix: str, sequence_width: int = 4) -> str:
    parts = [clean_token(prefix) or "MISC"]
    sku_token = clean_token(sku)
    if sku_token:
        parts.append(sku_token)
    parts.append(str(sequence).zfill(sequence_width))
    parts.append(clean_token(suffix))
    return "-".join(parts)


def make_db_checker(db: Session) -> BarcodeChecker:
    """Checker backed by the persisted batch_items and inventory barcodes"""
    async def is_taken(code: str) -> bool:
        if db.query(BatchItem.id).filter(BatchItem.barcode == code).first():
            return True
        return db.query(Inventory.id).filter(Inventory.barcode == code).first() is not None
    return is_taken


def find_existing_barcodes(db: Session, codes: Iterable[str]) -> Set[str]:
    """Return the subset of ``codes`` already persisted"""
    codes = list(codes)
    if not codes:
        return set()
    found = {row.barcode for row in db.query(BatchItem.barcode).filter(BatchItem.barcode.in_(codes))}
    found.update(row.barcode for row in db.query(Inventory.barcode).filter(Inventory.barcode.in_(codes)))
    return found


class BarcodeGenerator:
    """
    Issues barcodes with an optimistic check-then-claim discipline.

    The persisted check may suspend; after it returns, the candidate is
    re-checked against in-process claims and claimed with no await in
    between, so two concurrent calls can never both accept the same code.
    Claims are not persisted: the commit re-validates before insert.
    Generators handed the same ``claims`` set never issue the same code.
    """

    def __init__(
        self,
        is_taken: BarcodeChecker,
        max_attempts: Optional[int] = None,
        suffix_length: Optional[int] = None,
        sequence_width: Optional[int] = None,
        suffix_factory: Optional[Callable[[int], str]] = None,
        claims: Optional[Set[str]] = None,
    ):
        self.is_taken = is_taken
        self.max_attempts = max_attempts or settings.BARCODE_MAX_ATTEMPTS
        self.suffix_length = suffix_length or settings.BARCODE_SUFFIX_LENGTH
        self.sequence_width = sequence_width or settings.BARCODE_SEQUENCE_WIDTH
        self.suffix_factory = suffix_factory or random_suffix
        self._claimed: Set[str] = claims if claims is not None else set()

    @property
    def claimed(self) -> Set[str]:
        return set(self._claimed)

    async def generate(self, prefix: str, sku: str, sequence: int) -> str:
        """Issue one unique barcode or raise GenerationExhausted"""
        for attempt in range(1, self.max_attempts + 1):
            candidate = compose_barcode(
                prefix, sku, sequence,
                self.suffix_factory(self.suffix_length),
                self.sequence_width,
            )
            if candidate in self._claimed:
                logger.debug(f"Barcode {candidate} already claimed in-process (attempt {attempt})")
                continue

            taken = await self.is_taken(candidate)

            # Re-check after the suspension point, then claim
            if taken or candidate in self._claimed:
                logger.info(f"Barcode collision on {candidate} (attempt {attempt}/{self.max_attempts})")
                continue

            self._claimed.add(candidate)
            return candidate

        logger.error(f"Barcode generation exhausted for {prefix}/{sku} #{sequence}")
        raise GenerationExhausted(prefix, sku, sequence, self.max_attempts)

    async def generate_batch(self, prefix: str, sku: str, start_sequence: int, count: int) -> List[str]:
        """
        Issue ``count`` barcodes concurrently for sequences
        ``start_sequence .. start_sequence + count - 1``.

        All or nothing: if any unit fails, the codes claimed by the others
        are released and the first error is raised.
        """
        results = await asyncio.gather(
            *(self.generate(prefix, sku, start_sequence + i) for i in range(count)),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            self.release(r for r in results if isinstance(r, str))
            raise errors[0]
        return list(results)

    def release(self, codes: Iterable[str]) -> None:
        """Drop in-process claims (e.g. when a draft batch is discarded)"""
        for code in codes:
            self._claimed.discard(code)
