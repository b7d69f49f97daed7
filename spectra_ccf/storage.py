"""Persistence of CCF products in Zarr stores.

Each CCF lives in its own group ``ccf/<key>`` holding ``velocity``, ``ccf``
and (when present) ``ccf_var`` arrays, with metadata as group attributes.
`zarr` is only imported inside these functions.
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from pathlib import Path
from typing import Any, Dict

import numpy as np

from spectra_ccf.models import CCFResult

logger = logging.getLogger(__name__)

SCHEMA = "spectra_ccf.ccf.v1"

_KEY_SAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")
_ZARR_OPEN_LOCKS: Dict[str, threading.Lock] = {}
_LOCKS_GUARD = threading.Lock()


def _zarr_open_lock(save_path: str | os.PathLike[str]) -> threading.Lock:
    key = str(Path(save_path).resolve())
    with _LOCKS_GUARD:
        lock = _ZARR_OPEN_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _ZARR_OPEN_LOCKS[key] = lock
    return lock


def _safe_key(value: str, *, default: str = "ccf") -> str:
    value = (value or "").strip()
    if not value:
        return default
    value = value.replace("/", "_").replace("\\", "_")
    value = _KEY_SAFE_RE.sub("_", value)
    value = value.strip("._-")
    return value or default


def _json_sanitize(value: Any) -> Any:
    # Zarr attrs must be JSON-serializable; numpy scalars and the like become strings.
    return json.loads(json.dumps(value, default=str))


def _import_zarr() -> Any:
    try:
        import zarr  # type: ignore
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(
            "Zarr support requires the `zarr` package. Install it (e.g. `pip install zarr`)."
        ) from exc
    return zarr


def write_ccf_to_zarr(
    save_path: str | os.PathLike[str],
    key: str,
    result: CCFResult,
    *,
    overwrite: bool = False,
) -> str:
    """Write ``result`` under ``ccf/<key>`` and return the group path."""

    zarr = _import_zarr()
    save_path_str = str(save_path)
    safe = _safe_key(key)

    # Serialize opens per path so concurrent writers do not race on group creation.
    with _zarr_open_lock(save_path):
        root = zarr.open_group(save_path_str, mode="a")
        ccf_root = root.require_group("ccf")
        if safe in ccf_root:
            if not overwrite:
                raise FileExistsError(f"CCF {safe!r} already exists in {save_path_str}; set overwrite=True")
            del ccf_root[safe]
        g = ccf_root.require_group(safe)

        arrays = {"velocity": result.velocity, "ccf": result.ccf, "ccf_var": result.ccf_var}
        for name, array in arrays.items():
            if array is None:
                continue
            arr = np.asarray(array, dtype=np.float64)
            ds = g.create_array(name, shape=arr.shape, dtype="f8", overwrite=True)
            ds[...] = arr

        g.attrs["schema"] = SCHEMA
        g.attrs["product"] = "ccf"
        g.attrs["metadata"] = _json_sanitize(result.metadata)

    group_path = f"ccf/{safe}"
    logger.info("Wrote CCF to Zarr", extra={"save_path": save_path_str, "zarr_key": group_path})
    return group_path


def read_ccf_from_zarr(save_path: str | os.PathLike[str], key: str) -> CCFResult:
    """Load a CCF previously written by ``write_ccf_to_zarr``."""

    zarr = _import_zarr()
    root = zarr.open_group(str(save_path), mode="r")
    group_path = f"ccf/{_safe_key(key)}"
    if group_path not in root:
        raise KeyError(f"No CCF stored at {group_path!r} in {save_path}")
    g = root[group_path]
    ccf_var = np.asarray(g["ccf_var"][...]) if "ccf_var" in g else None
    return CCFResult(
        velocity=np.asarray(g["velocity"][...]),
        ccf=np.asarray(g["ccf"][...]),
        ccf_var=ccf_var,
        metadata=dict(g.attrs.get("metadata", {}) or {}),
    )
