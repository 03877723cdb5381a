import importlib
import sys

import pytest

from bedrock_nbt.config import Config
from bedrock_nbt.logger import Logger
from bedrock_nbt.options import NbtOptions, Flavor, RootPolicy, Compression
from bedrock_nbt.policy import FRAMES_PER_LEVEL


def test_defaults():
    config = Config()
    config.load("missing.properties")
    assert config.options() == NbtOptions()
    assert config.get_int("crawl-workers") == 4
    assert config.log_levels() == ("WARN", "ERROR")


def test_load_file(tmp_path):
    path = tmp_path / "nbt.properties"
    path.write_text(
        "# world tools\n"
        "flavor=Bedrock_Network\n"
        "root-policy = any_unnamed\n"
        "depth-limit=64\n"
        "preserve-order=no\n"
        "compression=gzip\n"
        "log-levels=info, warn,error\n",
        encoding="utf-8",
    )
    config = Config()
    config.load(str(path))

    options = config.options()
    assert options.flavor is Flavor.BEDROCK_NETWORK
    assert options.root_policy is RootPolicy.ANY_UNNAMED
    assert options.depth_limit == 64
    assert options.preserve_order is False
    assert options.compression is Compression.GZIP
    assert config.log_levels() == ("INFO", "WARN", "ERROR")


def test_save_writes_every_key(tmp_path):
    path = tmp_path / "nbt.properties"
    config = Config()
    config.set("depth-limit", 100)
    config.save(str(path))

    lines = path.read_text(encoding="utf-8").splitlines()
    assert "depth-limit=100" in lines
    assert "flavor=java" in lines

    reloaded = Config()
    reloaded.load(str(path))
    assert reloaded.options().depth_limit == 100


def test_invalid_values():
    config = Config()
    config.set("depth-limit", 0)
    with pytest.raises(ValueError):
        config.options()

    config.set("depth-limit", "deep")
    with pytest.raises(ValueError):
        config.get_int("depth-limit")

    config.set("preserve-order", "maybe")
    with pytest.raises(ValueError):
        config.get_bool("preserve-order")


def test_apply_logging(monkeypatch):
    root = Logger(thread_name="main")
    sub = root.create_sub_logger("leveldb")
    monkeypatch.setattr(importlib.import_module("bedrock_nbt.config"), "logger", root)

    config = Config()
    config.set("log-levels", "debug")
    config.apply_logging()
    assert root.output_levels == {"DEBUG"}
    assert sub.output_levels == {"DEBUG"}


def test_sub_logger_with_own_levels(capsys):
    root = Logger(thread_name="main", output_levels=("ERROR",))
    sub = root.create_sub_logger("crawl", output_levels=("INFO",))
    sub.info("scanned")
    root.info("hidden")
    out = capsys.readouterr().out
    assert "[crawl/INFO]: scanned" in out
    assert "hidden" not in out


def test_file_logging(tmp_path):
    root = Logger(thread_name="main", output_levels=())
    sub = root.create_sub_logger("leveldb")
    root.enable_file(str(tmp_path / "logs"))
    sub.warn("bad value")

    text = (tmp_path / "logs" / "latest.log").read_text(encoding="utf-8")
    assert "[leveldb/WARN]: bad value" in text


def test_options_reserve_recursion_for_deep_limits(monkeypatch):
    seen = []
    monkeypatch.setattr(sys, "getrecursionlimit", lambda: 1000)
    monkeypatch.setattr(sys, "setrecursionlimit", seen.append)

    config = Config()
    config.set("depth-limit", 5000)
    assert config.options().depth_limit == 5000
    assert seen == [5000 * FRAMES_PER_LEVEL + 200]


def test_allow_invalid_strings_setting():
    config = Config()
    assert config.options().allow_invalid_strings is False
    config.set("allow-invalid-strings", "yes")
    assert config.options().allow_invalid_strings is True
