import importlib
import struct

from bedrock_nbt import binary
from bedrock_nbt.config import config
from bedrock_nbt.crawl import crawl, check_pair, memory_usage, CrawlReport
from bedrock_nbt.errors import EntryDecodeError
from bedrock_nbt.leveldb import KeyVariant
from bedrock_nbt.options import BEDROCK_OPTIONS
from bedrock_nbt.tag import NbtTag

crawl_module = importlib.import_module("bedrock_nbt.crawl")


def version_key(x):
    return struct.pack("<ii", x, 0) + b","


def world():
    scoreboard = binary.write_named_root("", NbtTag.compound({"Objectives": NbtTag.list()}), BEDROCK_OPTIONS)
    pairs = [(version_key(x), b"\x28") for x in range(50)]
    pairs.append((b"scoreboard", scoreboard))
    pairs.append((b"some_plugin_data", b"\x01\x02"))
    pairs.append((version_key(99), b"\x63"))
    return pairs


def test_memory_usage():
    assert memory_usage() > 0


def test_check_pair():
    assert check_pair(version_key(1), b"\x28") == (KeyVariant.VERSION, None)
    assert check_pair(b"unknown", b"\x00") == (KeyVariant.UNKNOWN, None)

    variant, failure = check_pair(version_key(1), b"\x63")
    assert variant is KeyVariant.VERSION
    assert failure.key == version_key(1)
    assert isinstance(failure.error, EntryDecodeError)


def test_check_pair_detects_changed_bytes(monkeypatch):
    monkeypatch.setattr(crawl_module, "encode", lambda entry, options: (entry.key.to_bytes(), b"\x27"))
    variant, failure = check_pair(version_key(1), b"\x28")
    assert variant is KeyVariant.VERSION
    assert "differs" in str(failure.error)

    assert check_pair(version_key(1), b"\x28", verify=False) == (KeyVariant.VERSION, None)


def test_check_pair_accepts_equivalent_bytes(monkeypatch):
    def record(*names):
        return binary.write_named_root("", NbtTag.compound({name: NbtTag.byte(1) for name in names}), BEDROCK_OPTIONS)

    # Same compound with its keys in another order
    monkeypatch.setattr(crawl_module, "encode", lambda entry, options: (b"scoreboard", record("b", "a")))
    assert record("a", "b") != record("b", "a")
    assert check_pair(b"scoreboard", record("a", "b")) == (KeyVariant.SCOREBOARD, None)

    # Unknown records must come back byte for byte
    monkeypatch.setattr(crawl_module, "encode", lambda entry, options: (b"unknown", b"\x01"))
    variant, failure = check_pair(b"unknown", b"\x00")
    assert variant is KeyVariant.UNKNOWN
    assert "differs" in str(failure.error)


def test_crawl_counts_and_failures():
    report = crawl(world(), workers=3, batch_size=7)
    assert isinstance(report, CrawlReport)
    assert report.total == 53
    assert report.counts[KeyVariant.VERSION] == 51
    assert report.counts[KeyVariant.SCOREBOARD] == 1
    assert report.counts[KeyVariant.UNKNOWN] == 1
    assert not report.ok
    assert [failure.key for failure in report.failures] == [version_key(99)]
    assert report.failures[0].variant is KeyVariant.VERSION
    assert report.peak_memory_mb > 0


def test_crawl_reads_lazily():
    consumed = []

    def pairs():
        for x in range(10):
            consumed.append(x)
            yield version_key(x), b"\x01"

    report = crawl(pairs(), workers=1, batch_size=4)
    assert report.ok
    assert report.total == 10
    assert consumed == list(range(10))


def test_crawl_uses_configured_workers(monkeypatch):
    seen = []
    original = crawl_module.ThreadPoolExecutor

    def executor(max_workers):
        seen.append(max_workers)
        return original(max_workers=max_workers)

    monkeypatch.setattr(crawl_module, "ThreadPoolExecutor", executor)
    config.set("crawl-workers", 2)
    try:
        assert crawl([]).total == 0
    finally:
        config.load("does-not-exist.properties")
    assert seen == [2]
