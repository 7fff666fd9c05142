from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


@dataclass
class CodecConfig:
    table_path: str = "huffman_codes.json"
    text_mode: bool = False # treat input as UTF-8 characters instead of bytes
    log_level: str = "INFO"
    log_dir: Optional[str] = None


@dataclass
class ExperimentConfig:
    outdir: str = "results"
    runs: int = 5
    seed: int = 123
    generators: List[str] = field(default_factory=lambda: ["uniform256", "zipf128", "repetitive90", "english_like"])
    size_kb: int = 256
    sizes_kb: List[int] = field(default_factory=lambda: [4, 16, 64, 256])
    log_level: str = "INFO"

    def get_outdir(self) -> Path:
        return Path(self.outdir)


def load_config(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValueError(f"config file {path} is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def _as_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"config key {key!r} must be true or false, got {value!r}")
    return value


def load_codec_config(path: Optional[str] = None) -> CodecConfig:
    d = load_config(path) if path else {}
    defaults = CodecConfig()
    return CodecConfig(
        table_path=str(d.get("table_path", defaults.table_path)),
        text_mode=_as_bool("text_mode", d.get("text_mode", defaults.text_mode)),
        log_level=str(d.get("log_level", defaults.log_level)),
        log_dir=d.get("log_dir", defaults.log_dir),
    )


def load_experiment_config(path: Optional[str] = None) -> ExperimentConfig:
    d = load_config(path) if path else {}
    defaults = ExperimentConfig()
    return ExperimentConfig(
        outdir=str(d.get("outdir", defaults.outdir)),
        runs=int(d.get("runs", defaults.runs)),
        seed=int(d.get("seed", defaults.seed)),
        generators=list(d.get("generators", defaults.generators)),
        size_kb=int(d.get("size_kb", defaults.size_kb)),
        sizes_kb=[int(s) for s in d.get("sizes_kb", defaults.sizes_kb)],
        log_level=str(d.get("log_level", defaults.log_level)),
    )
