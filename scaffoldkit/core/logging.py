"""
Run logging: run log schema, warnings, completion.

Rules:
- One RunLog per pipeline run
- Warning context: level, code, path, subject, message (+ line/column)
- Run logs are written atomically as logs/run_<run_id>.json
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from scaffoldkit.core.fsio import atomic_write_json
from scaffoldkit.core.ids import generate_run_id
from scaffoldkit.domain.constants import RUN_LOG_GLOB
from scaffoldkit.domain.schemas import RenderWarning, RunLog, WarningLog

# =============================================================================
# Run Log Management
# =============================================================================


def create_run_log(template_name: str, template_version: str | None = None) -> RunLog:
    """
    Create a new RunLog.

    Args:
        template_name: manifest name ("<unknown>" if the manifest was rejected)
        template_version: manifest version

    Returns:
        RunLog in the "pending" state
    """
    now = datetime.now(UTC).isoformat()
    run_id = generate_run_id()

    return RunLog(
        run_id=run_id,
        template_name=template_name,
        template_version=template_version,
        started_at=now,
        result="pending",
    )


def emit_warning(
    run_log: RunLog,
    code: str,
    path: str,
    subject: str,
    message: str,
    line: int | None = None,
    column: int | None = None,
) -> None:
    """
    Record a warning event.

    Args:
        run_log: RunLog instance
        code: warning code (e.g. UNDEFINED_VARIABLE)
        path: template file the warning belongs to
        subject: variable/filter name
        message: human-readable message
        line: 1-based line in the template file
        column: 1-based column in the template file
    """
    warning = WarningLog(
        level="warning",
        code=code,
        path=path,
        subject=subject,
        message=message,
        line=line,
        column=column,
    )
    run_log.warnings.append(warning)


def emit_render_warning(run_log: RunLog, warning: RenderWarning) -> None:
    """Record a renderer warning."""
    emit_warning(
        run_log,
        code=warning.code,
        path=warning.filename,
        subject=warning.subject,
        message=warning.message,
        line=warning.line,
        column=warning.column,
    )


def complete_run_log(
    run_log: RunLog,
    result: str,
    parameters_hash: str | None = None,
    output_hash: str | None = None,
    file_count: int = 0,
    failed_files: list[str] | None = None,
    error_code: str | None = None,
    error_context: dict[str, Any] | None = None,
) -> None:
    """
    Finish a RunLog.

    Args:
        run_log: RunLog instance
        result: complete, partial, aborted or rejected
        parameters_hash: hash of resolved parameters
        output_hash: hash of the rendered tree
        file_count: number of rendered files
        failed_files: paths that failed to render
        error_code: first error code (on failure)
        error_context: error details (on failure)
    """
    now = datetime.now(UTC).isoformat()
    run_log.finished_at = now
    run_log.result = result
    run_log.parameters_hash = parameters_hash
    run_log.output_hash = output_hash
    run_log.file_count = file_count
    run_log.failed_files = list(failed_files or [])

    if result != "complete":
        run_log.error_code = error_code
        run_log.error_context = error_context


def save_run_log(run_log: RunLog, logs_dir: Path) -> Path:
    """
    Write a RunLog to disk.

    Args:
        run_log: RunLog instance
        logs_dir: logs/ directory

    Returns:
        written file path
    """
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"run_{run_log.run_id}.json"
    atomic_write_json(log_path, run_log.to_dict())
    return log_path


def load_run_log(log_path: Path) -> dict[str, Any]:
    """
    Load a RunLog file.

    Args:
        log_path: log file path

    Returns:
        RunLog data (dict)
    """
    data: dict[str, Any] = json.loads(log_path.read_text(encoding="utf-8"))
    return data


def list_run_logs(logs_dir: Path) -> list[Path]:
    """
    Every run log file in logs/.

    Args:
        logs_dir: logs/ directory

    Returns:
        log paths, newest first
    """
    if not logs_dir.exists():
        return []

    logs = list(logs_dir.glob(RUN_LOG_GLOB))
    logs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return logs
