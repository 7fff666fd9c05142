"""
Huffman codec benchmark

Encodes synthetic datasets with two decode pipelines and records timing,
size and correctness for each run:
  - "tree":  decode with the in-memory Huffman tree built during encoding
  - "table": write the code table and payload through huffman_store, reload
             both, rebuild the tree from the table, then decode

Outputs (in --outdir):
  - metrics.csv     (raw row per run per pipeline)
  - summary.csv     (grouped mean/stdev)
  - *.png           (charts)

How to run:
  python experiments.py --outdir results --runs 5
  python experiments.py --config bench.yaml
  python experiments.py --generators uniform256,english_like --sizes_kb 4,64,1024
"""

from __future__ import annotations

import argparse
import csv
import logging
import random
import statistics
import time
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Callable, Dict, List, Tuple

import matplotlib.pyplot as plt

import huffman as huff
import huffman_store as store
from huffman_config import ExperimentConfig, load_experiment_config
from log_utils import setup_logging

logger = logging.getLogger(__name__)

PIPELINES = ("tree", "table")


# Utilities

def now_ns() -> int:
    return time.perf_counter_ns()

def ns_to_ms(ns: int) -> float:
    return ns / 1_000_000.0


# Synthetic dataset generators

def _sample_cdf(rng: random.Random, cdf: List[float]) -> int:
    r = rng.random()
    lo, hi = 0, len(cdf) - 1
    while lo < hi:
        mid = (lo + hi) // 2
        if r <= cdf[mid]:
            hi = mid
        else:
            lo = mid + 1
    return lo

def _cdf(weights: List[float]) -> List[float]:
    total = sum(weights)
    out, acc = [], 0.0
    for w in weights:
        acc += w / total
        out.append(acc)
    return out

def gen_uniform(size: int, alphabet: int = 256, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    return bytes(rng.randrange(0, alphabet) for _ in range(size))

def gen_repetitive(size: int, dominant: int = ord('A'), dom_frac: float = 0.90, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    others = [i for i in range(256) if i != dominant]
    return bytes(dominant if rng.random() < dom_frac else rng.choice(others) for _ in range(size))

def gen_zipf_like(size: int, alphabet: int = 128, s: float = 1.2, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    cdf = _cdf([1.0 / ((i + 1) ** s) for i in range(alphabet)])
    return bytes(_sample_cdf(rng, cdf) for _ in range(size))

def gen_english_like(size: int, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    chars = " etaoinshrdlcumwfgypbvkjxqETAOINSHRDLCUMWFGYPBVKJXQ\n"
    weights = []
    for ch in chars:
        if ch == ' ':
            weights.append(13.0)
        elif ch == '\n':
            weights.append(1.5)
        elif ch.lower() in "etaoinshrdlu":
            weights.append(6.0)
        elif ch.lower() in "cmfwgypbvk":
            weights.append(2.5)
        else:
            weights.append(1.2)
    cdf = _cdf(weights)
    return bytes(ord(chars[_sample_cdf(rng, cdf)]) for _ in range(size))

GENERATOR_REGISTRY: Dict[str, Callable[[int, int], bytes]] = {
    "uniform256": lambda size, seed: gen_uniform(size, alphabet=256, seed=seed),
    "uniform16": lambda size, seed: gen_uniform(size, alphabet=16, seed=seed),
    "zipf128": lambda size, seed: gen_zipf_like(size, alphabet=128, s=1.2, seed=seed),
    "repetitive90": lambda size, seed: gen_repetitive(size, dom_frac=0.90, seed=seed),
    "repetitive99": lambda size, seed: gen_repetitive(size, dom_frac=0.99, seed=seed),
    "single_symbol": lambda size, seed: bytes([ord('A')]) * size,
    "english_like": lambda size, seed: gen_english_like(size, seed=seed),
}

def generate_dataset(name: str, size_bytes: int, seed: int) -> bytes:
    fn = GENERATOR_REGISTRY.get(name)
    if fn is None:
        raise ValueError(f"unknown dataset generator {name!r}; choose from {', '.join(sorted(GENERATOR_REGISTRY))}")
    return fn(max(1, size_bytes), seed)


# Experiment runner

@dataclass
class MetricRow:
    exp_name: str
    dataset_name: str
    file_size_bytes: int
    run_id: int
    pipeline: str  # "tree" or "table"
    unique_symbols: int

    build_ms: float
    encode_ms: float
    persist_ms: float
    decode_ms: float
    total_ms: float

    payload_bits: int
    compressed_bytes: int  # packed payload container, header included
    table_bytes: int       # 0 for the in-memory pipeline
    compression_ratio: float
    avg_code_length: float
    correctness_ok: int  # 1 or 0


def run_one(data: bytes, pipeline: str) -> MetricRow:
    if pipeline not in PIPELINES:
        raise ValueError(f"pipeline must be one of {PIPELINES}")

    ft = huff.build_frequency_table(data)

    t0 = now_ns()
    root = huff.build_huffman_tree(ft)
    table = huff.generate_huffman_codes(root)
    t1 = now_ns()

    payload = huff.huffman_encode(data, table)
    t2 = now_ns()

    packed = store.pack_payload(payload)
    persist_ms = 0.0
    table_bytes = 0
    if pipeline == "tree":
        t3 = now_ns()
        decoded = huff.huffman_decode(payload, root)
        t4 = now_ns()
    else:
        t3a = now_ns()
        table_text = store.dump_code_table(table)
        reloaded_table = store.parse_code_table(table_text)
        reloaded_payload = store.unpack_payload(packed)
        t3 = now_ns()
        persist_ms = ns_to_ms(t3 - t3a)
        table_bytes = len(table_text.encode("utf-8"))
        decoded = huff.decode(reloaded_payload, reloaded_table)
        t4 = now_ns()

    build_ms = ns_to_ms(t1 - t0)
    encode_ms = ns_to_ms(t2 - t1)
    decode_ms = ns_to_ms(t4 - t3)
    compressed = len(packed) + table_bytes

    return MetricRow(
        exp_name="",
        dataset_name="",
        file_size_bytes=len(data),
        run_id=0,
        pipeline=pipeline,
        unique_symbols=len(ft),
        build_ms=build_ms,
        encode_ms=encode_ms,
        persist_ms=persist_ms,
        decode_ms=decode_ms,
        total_ms=build_ms + encode_ms + persist_ms + decode_ms,
        payload_bits=len(payload),
        compressed_bytes=len(packed),
        table_bytes=table_bytes,
        compression_ratio=compressed / max(1, len(data)),
        avg_code_length=table.average_code_length(ft),
        correctness_ok=1 if bytes(decoded) == data else 0,
    )


def write_csv(path: Path, rows: List[MetricRow]) -> None:
    names = [f.name for f in fields(MetricRow)]
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=names)
        w.writeheader()
        for r in rows:
            w.writerow({k: getattr(r, k) for k in names})


SUMMARY_METRICS = ("compression_ratio", "avg_code_length", "build_ms", "encode_ms", "decode_ms", "total_ms")

def mean_stdev(vals: List[float]) -> Tuple[float, float]:
    if len(vals) == 1:
        return vals[0], 0.0
    return statistics.mean(vals), statistics.stdev(vals)


def group_summary(rows: List[MetricRow], out_path: Path) -> None:
    """
    Group by exp_name, dataset_name, file_size_bytes, pipeline and compute mean/stdev
    """
    key_to: Dict[Tuple[str, str, int, str], List[MetricRow]] = {}
    for r in rows:
        key_to.setdefault((r.exp_name, r.dataset_name, r.file_size_bytes, r.pipeline), []).append(r)

    summary_fields = ["exp_name", "dataset_name", "file_size_bytes", "pipeline", "n_runs"]
    for m in SUMMARY_METRICS:
        summary_fields += [f"{m}_mean", f"{m}_stdev"]
    summary_fields.append("correctness_ok_rate")

    with out_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=summary_fields)
        w.writeheader()
        for key, items in sorted(key_to.items()):
            exp_name, dataset_name, size_b, pipeline = key
            row = {
                "exp_name": exp_name,
                "dataset_name": dataset_name,
                "file_size_bytes": size_b,
                "pipeline": pipeline,
                "n_runs": len(items),
                "correctness_ok_rate": sum(x.correctness_ok for x in items) / len(items),
            }
            for m in SUMMARY_METRICS:
                row[f"{m}_mean"], row[f"{m}_stdev"] = mean_stdev([getattr(x, m) for x in items])
            w.writerow(row)


# Plotting

def plot_distribution(rows: List[MetricRow], outdir: Path) -> None:
    exp_rows = [r for r in rows if r.exp_name == "distribution"]
    if not exp_rows:
        return

    datasets = sorted(set(r.dataset_name for r in exp_rows))
    x = list(range(len(datasets)))

    def mean_for(dataset: str, pipeline: str, field: str) -> float:
        vals = [getattr(r, field) for r in exp_rows if r.dataset_name == dataset and r.pipeline == pipeline]
        return statistics.mean(vals) if vals else float("nan")

    for field, ylabel, fname in (
        ("compression_ratio", "Compressed Bytes / Original Bytes", "distribution_compression_ratio.png"),
        ("decode_ms", "Decode Time (ms)", "distribution_decode_time.png"),
    ):
        plt.figure()
        for p in PIPELINES:
            plt.plot(x, [mean_for(d, p, field) for d in datasets], marker="o", label=p)
        plt.xticks(x, datasets, rotation=20, ha="right")
        plt.ylabel(ylabel)
        plt.title(f"{ylabel} by Distribution")
        plt.legend()
        plt.tight_layout()
        plt.savefig(outdir / fname, dpi=200)
        plt.close()

    plt.figure()
    plt.bar(x, [mean_for(d, "tree", "avg_code_length") for d in datasets])
    plt.xticks(x, datasets, rotation=20, ha="right")
    plt.ylabel("Average Code Length (bits/symbol)")
    plt.title("Average Code Length by Distribution")
    plt.tight_layout()
    plt.savefig(outdir / "distribution_code_length.png", dpi=200)
    plt.close()


def plot_size_scaling(rows: List[MetricRow], outdir: Path) -> None:
    exp_rows = [r for r in rows if r.exp_name == "size_scaling"]
    if not exp_rows:
        return

    for dist in sorted(set(r.dataset_name for r in exp_rows)):
        dist_rows = [r for r in exp_rows if r.dataset_name == dist]
        sizes = sorted(set(r.file_size_bytes for r in dist_rows))

        def mean_size(size: int, pipeline: str, field: str) -> float:
            vals = [getattr(r, field) for r in dist_rows if r.file_size_bytes == size and r.pipeline == pipeline]
            return statistics.mean(vals) if vals else float("nan")

        plt.figure()
        for p in PIPELINES:
            plt.plot(sizes, [mean_size(s, p, "total_ms") for s in sizes], marker="o", label=p)
        plt.xscale("log", base=2)
        plt.xlabel("File Size (bytes)")
        plt.ylabel("Total Time (ms) (build + encode + persist + decode)")
        plt.title(f"Total Runtime vs Size ({dist})")
        plt.legend()
        plt.tight_layout()
        plt.savefig(outdir / f"size_total_time_{dist}.png", dpi=200)
        plt.close()


# Main

def parse_csv_list(s: str) -> List[str]:
    return [x.strip() for x in s.split(",") if x.strip()]

def run_experiments(config: ExperimentConfig) -> List[MetricRow]:
    rows: List[MetricRow] = []

    # distributions at a fixed size
    for gen_name in config.generators:
        for run_id in range(1, config.runs + 1):
            data = generate_dataset(gen_name, config.size_kb * 1024, config.seed + run_id)
            for pipeline in PIPELINES:
                row = run_one(data, pipeline)
                row.exp_name = "distribution"
                row.dataset_name = gen_name
                row.run_id = run_id
                rows.append(row)
        logger.info("distribution: %s done", gen_name)

    # size scaling
    for gen_name in config.generators:
        for size_kb in config.sizes_kb:
            for run_id in range(1, config.runs + 1):
                data = generate_dataset(gen_name, size_kb * 1024, config.seed + 10_000 + size_kb + run_id)
                for pipeline in PIPELINES:
                    row = run_one(data, pipeline)
                    row.exp_name = "size_scaling"
                    row.dataset_name = gen_name
                    row.run_id = run_id
                    rows.append(row)
        logger.info("size scaling: %s done", gen_name)

    return rows


def main() -> int:
    ap = argparse.ArgumentParser(description="Benchmark the Huffman codec")
    ap.add_argument("--config", type=str, default=None, help="YAML config file")
    ap.add_argument("--outdir", type=str, default=None, help="Output directory for CSV and plots")
    ap.add_argument("--runs", type=int, default=None, help="Repetitions per configuration")
    ap.add_argument("--seed", type=int, default=None, help="Base random seed")
    ap.add_argument("--generators", type=str, default=None,
                    help=f"Comma-separated generator names ({', '.join(sorted(GENERATOR_REGISTRY))})")
    ap.add_argument("--size_kb", type=int, default=None, help="Fixed size in KB for the distribution experiment")
    ap.add_argument("--sizes_kb", type=str, default=None, help="Comma-separated sizes in KB for size scaling")
    args = ap.parse_args()

    config = load_experiment_config(args.config)
    if args.outdir is not None:
        config.outdir = args.outdir
    if args.runs is not None:
        config.runs = max(1, args.runs)
    if args.seed is not None:
        config.seed = args.seed
    if args.generators is not None:
        config.generators = parse_csv_list(args.generators)
    if args.size_kb is not None:
        config.size_kb = max(1, args.size_kb)
    if args.sizes_kb is not None:
        config.sizes_kb = [int(s) for s in parse_csv_list(args.sizes_kb)]

    setup_logging("experiments", level=config.log_level)

    outdir = config.get_outdir()
    outdir.mkdir(parents=True, exist_ok=True)

    rows = run_experiments(config)

    metrics_csv = outdir / "metrics.csv"
    summary_csv = outdir / "summary.csv"
    write_csv(metrics_csv, rows)
    group_summary(rows, summary_csv)

    plot_distribution(rows, outdir)
    plot_size_scaling(rows, outdir)

    ok_rate = sum(r.correctness_ok for r in rows) / max(1, len(rows))
    print(f"Wrote {len(rows)} rows to {metrics_csv}")
    print(f"Wrote grouped summary to {summary_csv}")
    print(f"Correctness rate across all runs: {ok_rate:.3f}")
    print("Charts saved in:", outdir.resolve())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
