"""Per-TF partitioned execution of the MI estimator.

Each TF is an independent unit of work: it reads the shared, read-only
InferenceInputs and writes exactly one partial edge file,
`{output_dir}/{TF}_MI.txt`. Partial files are written atomically and
replaced on retry, so an abandoned or failed unit never leaves a half
written file behind and never affects other TFs.

Units may run sequentially, in a local process pool (run_partitions), or
one per cluster job (python -m mr_grn.mi_inference). The merged result
does not depend on which.
"""

import logging
import os
from concurrent.futures import ProcessPoolExecutor, TimeoutError, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .errors import MalformedInputError
from .mi_inference import InferenceInputs, infer_tf_edges
from .utils.io import save_edges_atomic

log = logging.getLogger(__name__)

PARTIAL_SUFFIX = "_MI.txt"


@dataclass
class PartitionReport:
    """Outcome of one run_partitions() invocation."""

    completed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def partial_path(output_dir: str | Path, tf: str) -> Path:
    """Location of the partial edge file of a TF.

    Raises:
        MalformedInputError: If the TF identifier cannot be used as a file name.
    """
    if not tf or "/" in tf or os.sep in tf or tf in (".", ".."):
        raise MalformedInputError(f"TF identifier {tf!r} cannot name a partial file")
    return Path(output_dir) / f"{tf}{PARTIAL_SUFFIX}"


def pending_tfs(tfs: Iterable[str], output_dir: str | Path) -> list[str]:
    """TFs whose partial edge file does not exist yet, in input order."""
    return [tf for tf in tfs if not partial_path(output_dir, tf).exists()]


def run_tf_unit(tf: str, inputs: InferenceInputs, output_dir: str | Path) -> Path:
    """Infer one TF's edges and write them as its partial file.

    Args:
        tf: TF identifier.
        inputs: Shared read-only inputs.
        output_dir: Directory holding the partial files.

    Returns:
        Path to the written partial file.
    """
    path = partial_path(output_dir, tf)
    edges = infer_tf_edges(tf, inputs)
    save_edges_atomic(edges, path)
    log.info(
        "TF %s: %d edges",
        tf, len(edges),
        extra={"event": "tf_unit_complete", "tf": tf, "n_edges": len(edges)},
    )
    return path


# ── Process-pool workers ──────────────────────────────────────────────────────

_worker_inputs: Optional[InferenceInputs] = None


def _init_worker(inputs: InferenceInputs) -> None:
    global _worker_inputs
    _worker_inputs = inputs


def _run_worker(tf: str, output_dir: str) -> str:
    return str(run_tf_unit(tf, _worker_inputs, output_dir))


def _record_failure(report: PartitionReport, tf: str, exc: BaseException) -> None:
    message = f"{type(exc).__name__}: {exc}"
    report.failed[tf] = message
    log.error(
        "TF %s failed: %s",
        tf, message,
        extra={"event": "tf_unit_failed", "tf": tf, "error": message},
    )


def _collect(report: PartitionReport, tf: str, future) -> None:
    try:
        future.result()
        report.completed.append(tf)
    except Exception as exc:
        _record_failure(report, tf, exc)


def run_partitions(
    tfs: Iterable[str],
    inputs: InferenceInputs,
    output_dir: str | Path,
    n_workers: int = 1,
    skip_existing: bool = True,
    timeout: Optional[float] = None,
) -> PartitionReport:
    """Run the per-TF unit for every TF.

    A failing TF is recorded and does not stop the others. Calling again
    with skip_existing=True recomputes only the TFs without a partial file,
    i.e. exactly the ones that failed or never ran.

    Args:
        tfs: TF identifiers.
        inputs: Shared read-only inputs.
        output_dir: Directory for partial files.
        n_workers: Number of worker processes; 1 runs sequentially in-process.
        skip_existing: Skip TFs whose partial file already exists.
        timeout: Seconds to wait for the whole pool. When it expires, queued
            TFs are cancelled, running ones are abandoned without waiting,
            and both are recorded as failed. An abandoned unit may still
            finish afterwards and leave a complete partial file, so
            pending_tfs() remains the authority on what is left to run.
            Ignored when sequential.

    Returns:
        PartitionReport listing completed, skipped and failed TFs.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    report = PartitionReport()

    todo = []
    for tf in dict.fromkeys(tfs):
        if skip_existing and partial_path(output_dir, tf).exists():
            report.skipped.append(tf)
        else:
            todo.append(tf)
    log.info("Running %d TF units (%d already complete) with %d worker(s)",
             len(todo), len(report.skipped), n_workers)

    if n_workers <= 1:
        for tf in todo:
            try:
                run_tf_unit(tf, inputs, output_dir)
                report.completed.append(tf)
            except Exception as exc:
                _record_failure(report, tf, exc)
        return report

    executor = ProcessPoolExecutor(
        max_workers=n_workers,
        initializer=_init_worker,
        initargs=(inputs,),
    )
    futures = {executor.submit(_run_worker, tf, str(output_dir)): tf for tf in todo}
    try:
        for future in as_completed(futures, timeout=timeout):
            _collect(report, futures[future], future)
    except TimeoutError:
        # do not join the pool: queued units are cancelled, running ones are
        # abandoned and may still write their partial file later
        executor.shutdown(wait=False, cancel_futures=True)
        for future, tf in futures.items():
            if tf in report.failed or tf in report.completed:
                continue
            if future.done() and not future.cancelled():
                _collect(report, tf, future)
            else:
                _record_failure(report, tf, TimeoutError(
                    f"unit did not finish within {timeout}s"
                ))
    else:
        executor.shutdown(wait=True)

    # keep the report in submission order regardless of completion order
    order = {tf: i for i, tf in enumerate(todo)}
    report.completed.sort(key=order.__getitem__)
    report.failed = dict(sorted(report.failed.items(), key=lambda kv: order[kv[0]]))
    return report
