"""Tests for Config validation and batch-size clamping."""

from __future__ import annotations

import argparse
import unittest

from benchtab.cli import register_bench_args
from benchtab.config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_PRESEED_CONCURRENCY,
    DEFAULT_SAMPLE_TARGET,
    Config,
    clamp_batch_size,
)
from benchtab.errors import ConfigError
from benchtab.workloads import Workload


class TestClampBatchSize(unittest.TestCase):
    def test_kept_when_every_worker_gets_a_batch(self):
        self.assertEqual(clamp_batch_size(100, 4, 25), 25)

    def test_shrunk_when_too_few_batches(self):
        self.assertEqual(clamp_batch_size(1000, 100, 256), 10)

    def test_never_below_one(self):
        self.assertEqual(clamp_batch_size(10, 64, 256), 1)


class TestConfig(unittest.TestCase):
    def test_defaults(self):
        cfg = Config.create()
        self.assertEqual(cfg.workload, Workload.MIXED)
        self.assertEqual(cfg.batch_size, DEFAULT_BATCH_SIZE)
        self.assertEqual(cfg.sample_target, 20_000)

    def test_nodes_split_on_comma(self):
        cfg = Config.create(nodes="a:1, b:2,c:3")
        self.assertEqual(cfg.nodes, ("a:1", "b:2", "c:3"))

    def test_workload_parsed(self):
        self.assertEqual(Config.create(workload="selects").workload, Workload.SELECTS)

    def test_invalid_workload(self):
        with self.assertRaises(ConfigError):
            Config.create(workload="updates")

    def test_batch_size_clamped(self):
        cfg = Config.create(tasks=100, concurrency=8, batch_size=256)
        self.assertEqual(cfg.batch_size, 12)

    def test_non_positive_values_rejected(self):
        for kwargs in ({"tasks": 0}, {"concurrency": 0}, {"batch_size": 0}, {"sample_target": -1}):
            with self.subTest(**kwargs):
                with self.assertRaises(ConfigError):
                    Config.create(**kwargs)

    def test_both_profiles_rejected(self):
        with self.assertRaises(ConfigError):
            Config.create(profile_cpu=True, profile_mem=True)

    def test_empty_nodes_rejected(self):
        with self.assertRaises(ConfigError):
            Config.create(nodes="")

    def test_preseed_workers(self):
        self.assertEqual(Config.create(concurrency=4, preseed_concurrency=2).preseed_workers, 4)
        self.assertEqual(Config.create(concurrency=4).preseed_workers, 1024)

    def test_describe_hides_password(self):
        self.assertNotIn("s3cret", Config.create(password="s3cret").describe())


class TestFromArgs(unittest.TestCase):
    def setUp(self):
        self.parser = argparse.ArgumentParser()
        register_bench_args(self.parser)

    def test_defaults(self):
        cfg = Config.from_args(self.parser.parse_args([]))
        self.assertEqual(cfg.preseed_concurrency, DEFAULT_PRESEED_CONCURRENCY)
        self.assertEqual(cfg.sample_target, DEFAULT_SAMPLE_TARGET)

    def test_preseed_concurrency_flag(self):
        args = self.parser.parse_args(["--preseed-concurrency", "16", "--concurrency", "8"])
        cfg = Config.from_args(args)
        self.assertEqual(cfg.preseed_concurrency, 16)
        self.assertEqual(cfg.preseed_workers, 16)

    def test_preseed_concurrency_never_below_concurrency(self):
        args = self.parser.parse_args(["--preseed-concurrency", "2", "--concurrency", "8"])
        self.assertEqual(Config.from_args(args).preseed_workers, 8)

    def test_non_positive_preseed_concurrency(self):
        with self.assertRaises(ConfigError):
            Config.from_args(self.parser.parse_args(["--preseed-concurrency", "0"]))


if __name__ == "__main__":
    unittest.main()
