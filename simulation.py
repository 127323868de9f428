import json
import logging
import os
import threading
import time
from dataclasses import dataclass, asdict

import numpy as np

from cache import CacheGeometry, CacheModel, ConfigurationError, Replacement

LOGGER = logging.getLogger("simulation")


@dataclass(frozen=True)
class CacheConfig:
    name: str
    geometry: CacheGeometry
    replacement: Replacement = Replacement.LRU

    @classmethod
    def from_dict(cls, entry):
        """Build a config from one entry of the `caches` section of config.json."""
        if not isinstance(entry, dict):
            raise ConfigurationError(f"cache entry must be an object, got {entry!r}")
        try:
            geometry = CacheGeometry(
                size_bytes=entry["size_bytes"],
                block_size_bytes=entry["block_size_bytes"],
                associativity=entry.get("associativity", 1),
            )
        except KeyError as e:
            raise ConfigurationError(f"cache entry {entry!r} is missing {e.args[0]!r}") from None
        replacement = Replacement.parse(entry.get("replacement", "lru"))
        name = entry.get("name") or f"{geometry.associativity}-way {replacement.value}"
        return cls(name, geometry, replacement)


@dataclass(frozen=True)
class ModelStats:
    name: str
    hits: int
    accesses: int

    @property
    def hit_rate(self):
        return self.hits / self.accesses if self.accesses else 0.0

    def to_dict(self):
        d = asdict(self)
        d["hit_rate"] = self.hit_rate
        return d


# The four organisations of a 32-byte cache with 4-byte blocks.
DEFAULT_CONFIGS = [
    CacheConfig("Direct-mapped", CacheGeometry(32, 4, 1)),
    CacheConfig("2-way", CacheGeometry(32, 4, 2)),
    CacheConfig("4-way", CacheGeometry(32, 4, 4)),
    CacheConfig("Fully associative", CacheGeometry.fully_associative(32, 4)),
]


class SimulationRunner:
    def __init__(self, configs, seed=None):
        configs = list(configs)
        if not configs:
            raise ConfigurationError("at least one cache configuration is required")
        # one generator per model, all derived from a single seed
        try:
            seeds = np.random.SeedSequence(seed).spawn(len(configs))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"invalid random seed {seed!r}: {e}") from None
        self.models = []
        for cfg, ss in zip(configs, seeds):
            if not isinstance(cfg, CacheConfig):
                try:
                    cfg = CacheConfig(*cfg)
                except TypeError:
                    raise ConfigurationError(f"expected (name, geometry, replacement), got {cfg!r}") from None
            self.models.append(
                CacheModel(cfg.geometry, cfg.replacement, rng=np.random.default_rng(ss), name=cfg.name)
            )
        self.results_lock = threading.Lock()
        self.results = {}
        self.duration_s = 0.0

    def _collect(self, index, model):
        with self.results_lock:
            self.results[index] = ModelStats(model.name, model.hits, model.accesses)

    def _ordered_results(self):
        return [self.results[i] for i in range(len(self.models))]

    def reset(self):
        """Forget all cache contents and results from a previous run."""
        for model in self.models:
            model.reset()
        self.results = {}
        self.duration_s = 0.0

    def run(self, addresses):
        """
        Feed every address to every model, in trace order.
        `addresses` may be any iterable, it is consumed once.
        """
        self.reset()
        start = time.time()
        for address in addresses:
            for model in self.models:
                model.access(address)
        self.duration_s = time.time() - start
        for i, model in enumerate(self.models):
            self._collect(i, model)
        LOGGER.info("simulated %d accesses in %.3fs", self.models[0].accesses, self.duration_s)
        return self._ordered_results()

    def _worker(self, index, model, trace):
        for address in trace:
            model.access(address)
        self._collect(index, model)

    def run_parallel(self, addresses):
        """Like run(), with each model on its own thread over a materialized trace."""
        trace = list(addresses)
        self.reset()
        threads = []
        start = time.time()
        for i, model in enumerate(self.models):
            t = threading.Thread(target=self._worker, args=(i, model, trace), name=model.name)
            t.start()
            threads.append(t)
        for t in threads:
            t.join()
        self.duration_s = time.time() - start
        LOGGER.info("simulated %d accesses on %d threads in %.3fs", len(trace), len(threads), self.duration_s)
        return self._ordered_results()

    def summary(self):
        return {
            "duration_s": self.duration_s,
            "models": [m.stats() for m in self.models],
        }

    def save_results(self, out_cfg):
        results_dir = out_cfg.get("results_dir", "results")
        os.makedirs(results_dir, exist_ok=True)
        path = os.path.join(results_dir, out_cfg.get("results_file", "results.json"))
        with open(path, "w") as f:
            json.dump(self.summary(), f, indent=2)
        return path
