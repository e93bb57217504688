# ============================================================================
#  File: telemetry.py
#  Version: 2.0
#  Purpose: Timing and resource telemetry for workflow steps and streams
#  Created: 02OCT26
# ============================================================================
# SECTION 1: Global Variables
# ============================================================================

import csv
import functools
import inspect
import os
import time
from datetime import datetime
from typing import Optional

import psutil
from loguru import logger

_telemetry_state = {
    "enabled": True,
    "csv_path": None,
}

# ============================================================================
# SECTION 2: Configuration
# ============================================================================
# Function 2.1: configure_telemetry
# ============================================================================
def configure_telemetry(enabled: bool = True, csv_path: Optional[str] = None) -> None:
    """Switch telemetry on/off and optionally persist rows to a CSV file."""
    _telemetry_state["enabled"] = enabled
    _telemetry_state["csv_path"] = csv_path
    if csv_path:
        directory = os.path.dirname(csv_path)
        if directory and not os.path.exists(directory):
            os.makedirs(directory)

# ============================================================================
# SECTION 3: Timing Decorator
# ============================================================================
# Function 3.1: record_telemetry
# ============================================================================
def record_telemetry(component, action):
    """
    Decorator to record timing and memory usage for coroutine functions and
    plain functions. Async generators are not wrapped.
    """
    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                if not _telemetry_state["enabled"]:
                    return await func(*args, **kwargs)
                start, mem_before = _sample()
                try:
                    return await func(*args, **kwargs)
                finally:
                    _write_row(component, action, start, mem_before)
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            if not _telemetry_state["enabled"]:
                return func(*args, **kwargs)
            start, mem_before = _sample()
            try:
                return func(*args, **kwargs)
            finally:
                _write_row(component, action, start, mem_before)
        return wrapper
    return decorator


def _sample():
    try:
        process = psutil.Process(os.getpid())
        return time.perf_counter(), process.memory_info().rss
    except Exception as e:
        logger.warning(f"[Telemetry] Failed to sample process memory: {e}")
        return time.perf_counter(), None


def _write_row(component, action, start, mem_before):
    try:
        elapsed = time.perf_counter() - start
        mem_after = psutil.Process(os.getpid()).memory_info().rss
        mem_delta = None if mem_before is None else round((mem_after - mem_before) / 1048576, 3)
        row = {
            'datetime': datetime.now().isoformat(),
            'component': component,
            'action': action,
            'elapsed_sec': round(elapsed, 3),
            'mem_mb': mem_delta,
        }
        logger.debug(
            f"[Telemetry] {component}.{action} took {row['elapsed_sec']}s (mem {row['mem_mb']} MB)"
        )
        csv_path = _telemetry_state["csv_path"]
        if csv_path:
            with open(csv_path, 'a', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=row.keys())
                if f.tell() == 0:
                    writer.writeheader()
                writer.writerow(row)
    except Exception as e:
        logger.warning(f"[Telemetry] Failed to record {component}.{action}: {e}")
#
#
## End of Script
