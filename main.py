import argparse
import json
import logging
import sys

from cache import ConfigurationError
from simulation import DEFAULT_CONFIGS, CacheConfig, SimulationRunner
from tracefile import TraceError, read_trace

LOGGER = logging.getLogger("main")

DEFAULT_CONFIG_PATH = "config.json"


def load_config(path=None):
    """
    Load the JSON config at `path`. Without a path, config.json is read if it
    exists and the built-in caches are used otherwise.
    """
    try:
        with open(path or DEFAULT_CONFIG_PATH, "r") as f:
            cfg = json.load(f)
    except FileNotFoundError as e:
        if path is not None:
            raise ConfigurationError(f"cannot load config {path}: {e.strerror}") from e
        LOGGER.info("no config at %s, using defaults", DEFAULT_CONFIG_PATH)
        return {}
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"cannot load config {path or DEFAULT_CONFIG_PATH}: {e}") from e
    if not isinstance(cfg, dict):
        raise ConfigurationError("config must be a JSON object")
    return cfg


def section(cfg, name):
    value = cfg.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"config section {name!r} must be an object, got {value!r}")
    return value


def build_configs(cfg):
    entries = cfg.get("caches")
    if not entries:
        return list(DEFAULT_CONFIGS)
    if not isinstance(entries, list):
        raise ConfigurationError(f"config section 'caches' must be a list, got {entries!r}")
    return [CacheConfig.from_dict(entry) for entry in entries]


def print_stats(stats):
    print(f"{stats.name}:")
    print(f" Hits: {stats.hits}")
    print(f" Total accesses: {stats.accesses}")
    print(f" Hit rate: {stats.hit_rate * 100:.2f}%")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Simulate set-associative caches over an address trace.")
    parser.add_argument("-c", "--config", help="JSON configuration file (default: config.json if present)")
    parser.add_argument("-t", "--trace", help="Trace file (overrides trace.path from the config)")
    parser.add_argument("-p", "--parallel", action="store_true", help="Simulate each cache on its own thread")
    parser.add_argument("--no-plots", action="store_true", help="Do not write the hit rate plot")
    parser.add_argument("--log-level", default="WARNING", help="Level of messages to display.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    try:
        cfg = load_config(args.config)
        sim_cfg = section(cfg, "simulation")
        out_cfg = section(cfg, "output")
        trace_cfg = section(cfg, "trace")
        runner = SimulationRunner(build_configs(cfg), seed=sim_cfg.get("random_seed", None))
        trace_path = args.trace or trace_cfg.get("path", "traces.txt")
        addresses = read_trace(trace_path)
        if args.parallel or sim_cfg.get("parallel", False):
            results = runner.run_parallel(addresses)
        else:
            results = runner.run(addresses)
    except (ConfigurationError, TraceError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for stats in results:
        print_stats(stats)

    if out_cfg:
        results_path = runner.save_results(out_cfg)
        print("Results saved to:", results_path)
        if not args.no_plots and out_cfg.get("hitrate_plot"):
            import matplotlib
            matplotlib.use("Agg")
            from visualize import plot_hit_rates
            print("Plot saved to:", plot_hit_rates(results, out_cfg["hitrate_plot"]))
    return 0


if __name__ == "__main__":
    sys.exit(main())
