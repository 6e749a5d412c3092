"""
Core layer: run bookkeeping and durable writes.

Roles:
- run ids, run logs (create/emit/complete/save/load/list)
- deterministic hashes of parameters and output
- atomic file writes (temp → rename + fsync)
"""

from .fsio import atomic_write_bytes, atomic_write_json
from .hashing import compute_output_hash, compute_parameters_hash
from .ids import generate_run_id
from .logging import (
    complete_run_log,
    create_run_log,
    emit_warning,
    list_run_logs,
    load_run_log,
    save_run_log,
)

__all__ = [
    # fsio
    "atomic_write_bytes",
    "atomic_write_json",
    # ids
    "generate_run_id",
    # hashing
    "compute_parameters_hash",
    "compute_output_hash",
    # logging
    "create_run_log",
    "emit_warning",
    "complete_run_log",
    "save_run_log",
    "load_run_log",
    "list_run_logs",
]
