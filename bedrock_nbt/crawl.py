from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import islice
from typing import NamedTuple
import os

import psutil

from bedrock_nbt.config import config
from bedrock_nbt.errors import NbtError, EntryDecodeError
from bedrock_nbt.leveldb import decode, encode, KeyVariant, RawEntry
from bedrock_nbt.logger import logger as l
from bedrock_nbt.options import NbtOptions, BEDROCK_OPTIONS

logger = l.create_sub_logger("crawl")


def memory_usage() -> float:
    """Resident set size of this process in MiB."""
    process = psutil.Process(os.getpid())
    return process.memory_info().rss / 1024 / 1024


class CrawlFailure(NamedTuple):
    key: bytes
    variant: KeyVariant
    error: Exception


@dataclass
class CrawlReport:
    counts: Counter = field(default_factory=Counter)
    failures: list = field(default_factory=list)
    peak_memory_mb: float = 0.0

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def ok(self) -> bool:
        return not self.failures


def check_pair(key: bytes, value: bytes, verify: bool = True, options: NbtOptions = BEDROCK_OPTIONS):
    """
    Decodes one record and optionally re-encodes it. Returns (variant, failure or None).

    Unknown records must come back byte for byte; known ones only need to decode
    to an equal entry again.
    """
    key, value = bytes(key), bytes(value)
    try:
        entry = decode(key, value, options=options)
    except EntryDecodeError as e:
        return e.variant, CrawlFailure(key, e.variant, e)
    if not verify:
        return entry.variant, None

    try:
        round_trip = encode(entry, options)
        if isinstance(entry, RawEntry):
            same = round_trip == (key, value)
        else:
            same = decode(*round_trip, options=options) == entry
    except (NbtError, ValueError) as e:
        return entry.variant, CrawlFailure(key, entry.variant, e)
    if not same:
        error = ValueError(f"Re-encoded {entry.variant.value} record differs from the original")
        return entry.variant, CrawlFailure(key, entry.variant, error)
    return entry.variant, None


def crawl(pairs, workers: int = None, verify: bool = True, options: NbtOptions = BEDROCK_OPTIONS, batch_size: int = 1024) -> CrawlReport:
    """
    Decodes every (key, value) pair on a thread pool and reports failures per key.

    Pairs are pulled from the iterator in batches so a whole database never sits in memory.
    `workers` defaults to the `crawl-workers` setting.
    """
    if workers is None:
        workers = config.get_int("crawl-workers")
    report = CrawlReport(peak_memory_mb=memory_usage())
    pairs = iter(pairs)

    with ThreadPoolExecutor(max_workers=workers) as executor:
        while True:
            batch = list(islice(pairs, batch_size))
            if not batch:
                break
            keys = [key for key, _ in batch]
            values = [value for _, value in batch]
            for variant, failure in executor.map(check_pair, keys, values, [verify] * len(batch), [options] * len(batch)):
                report.counts[variant] += 1
                if failure is not None:
                    logger.warn(f"{variant.value} record {failure.key[:100]!r} failed: {failure.error}")
                    report.failures.append(failure)
            report.peak_memory_mb = max(report.peak_memory_mb, memory_usage())
            logger.debug(f"Checked {report.total} records, {len(report.failures)} failures")

    logger.info(f"Crawled {report.total} records with {len(report.failures)} failures, peak memory {report.peak_memory_mb:.1f} MB")
    return report
