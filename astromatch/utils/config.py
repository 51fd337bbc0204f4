# astromatch/utils/config.py
import copy
import logging
import os
import yaml

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join("config", "defaults.yaml")

DEFAULTS = {
    "ephemeris": {"kernel_path": None, "allow_download": None, "data_dir": None},
    "geocoding": {
        "user_agent": "astromatch-geocoder",
        "timeout_seconds": 6,
        "min_delay_seconds": 1.0,
        "cache_size": 512,
        "cache_ttl_seconds": 604800,
        "lookups_enabled": True,
    },
    "scoring": {"overall": None, "categories": None},
}


class AttrDict(dict):
    """Dict that also supports attribute access: cfg.geocoding and cfg['geocoding'] both work."""
    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError as e:
            raise AttributeError(item) from e
    def __setattr__(self, key, value):
        self[key] = value

def _to_attr(obj):
    if isinstance(obj, dict):
        return AttrDict({k: _to_attr(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return [_to_attr(x) for x in obj]
    return obj

def _merge(base, over):
    out = dict(base)
    for k, v in (over or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out

def load_config(path: str = None):
    """
    Load YAML config from `path` (default: $ASTROMATCH_CONFIG or config/defaults.yaml)
    on top of the built-in defaults. A missing file means defaults only.
    Optional override:
      - ASTROMATCH_EPHEMERIS  (overrides ephemeris.kernel_path if set)
    Returns an AttrDict for convenient access.
    """
    path = path or os.getenv("ASTROMATCH_CONFIG") or DEFAULT_CONFIG_PATH
    data = {}
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"config root must be a mapping: {path}")
    else:
        log.info("config %s not found; using built-in defaults", path)

    merged = _merge(copy.deepcopy(DEFAULTS), data)

    kernel = os.getenv("ASTROMATCH_EPHEMERIS")
    if kernel:
        merged["ephemeris"]["kernel_path"] = kernel

    return _to_attr(merged)
