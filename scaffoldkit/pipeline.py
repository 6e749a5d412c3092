"""
Render pipeline: manifest text + file map + user values → rendered tree.

Stages:
1. Manifest parse/validate (+ minimum version check)   → REJECTED on failure
2. Parameter resolution                                 → REJECTED on failure
3. File filter (include/exclude, binary sniffing)
4. Per-file render (text) or passthrough (binary)       → PARTIAL / ABORTED on failure

Rules:
- Nothing is rendered unless stages 1-2 succeed
- A file-level failure never stops sibling files unless abort_on_error is set
- Every run produces a RunLog; it is written to disk only when logs_dir is given
- Output is held in memory; writing it is the caller's decision (see scaffoldkit.output)
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from scaffoldkit.config import EngineConfig
from scaffoldkit.core.hashing import compute_output_hash, compute_parameters_hash
from scaffoldkit.core.logging import (
    complete_run_log,
    create_run_log,
    emit_render_warning,
    save_run_log,
)
from scaffoldkit.domain.errors import (
    ErrorCodes,
    FieldIssue,
    FileFilterError,
    ManifestValidationError,
    ParameterError,
    RenderError,
    ScaffoldError,
)
from scaffoldkit.domain.schemas import (
    Manifest,
    PipelineResult,
    PipelineStatus,
    RenderedFile,
    RunLog,
)
from scaffoldkit.output.tree import load_template_tree
from scaffoldkit.render.engine import TemplateRenderer
from scaffoldkit.templates.file_filter import normalize_path, select_files
from scaffoldkit.templates.manifest import check_compatibility, parse_manifest
from scaffoldkit.templates.parameters import BuildContext, resolve_parameters

logger = logging.getLogger(__name__)

UNKNOWN_TEMPLATE = "<unknown>"


class RenderPipeline:
    """
    Orchestrates manifest → parameters → file filter → renderer.

    Usage:
        pipeline = RenderPipeline(load_config())
        result = pipeline.run(manifest_text, files, {"db": "postgres"}, BuildContext(project_name="demo"))
        if result.is_complete:
            write_project(Path("demo"), result.files)
    """

    def __init__(self, config: EngineConfig | None = None, logs_dir: Path | None = None) -> None:
        """
        Args:
            config: engine configuration (default: built-in defaults)
            logs_dir: directory for run_<run_id>.json files (None → not persisted)
        """
        self.config = config or EngineConfig()
        self.logs_dir = logs_dir
        self.renderer = TemplateRenderer(self.config)

    # =========================================================================
    # Entry Points
    # =========================================================================

    def run(
        self,
        manifest_text: str | bytes,
        files: Mapping[str, bytes],
        user_values: Mapping[str, Any] | None = None,
        context: BuildContext | None = None,
        now: datetime | None = None,
    ) -> PipelineResult:
        """
        Render one template instantiation.

        Args:
            manifest_text: raw template.toml
            files: template-relative path → content (the manifest may be included)
            user_values: name → raw value
            context: project_name/author/version from the caller
            now: clock for date/timestamp built-ins

        Returns:
            PipelineResult (status complete, partial, aborted or rejected)
        """
        run_log = create_run_log(UNKNOWN_TEMPLATE)

        # === 1. Manifest ===
        try:
            manifest = parse_manifest(manifest_text, self.config)
        except ManifestValidationError as e:
            return self._reject(run_log, e)

        run_log.template_name = manifest.name
        run_log.template_version = manifest.version

        issues = check_compatibility(manifest, self.config.tool_version, self.config.runtime_version)
        if issues:
            return self._reject(
                run_log,
                ManifestValidationError(issues, code=ErrorCodes.INCOMPATIBLE_VERSION),
                manifest=manifest,
            )

        # === 2. Parameters ===
        try:
            parameters = resolve_parameters(manifest, user_values, context, now)
        except ParameterError as e:
            return self._reject(run_log, e, manifest=manifest)

        # === 3. File filter ===
        errors: list[ScaffoldError] = []
        contents: dict[str, bytes] = {}
        sources: dict[str, str] = {}
        duplicates: set[str] = set()
        for raw_path, content in files.items():
            try:
                path = normalize_path(raw_path)
            except FileFilterError as e:
                logger.warning("Rejected template path %r: %s", raw_path, e.message)
                errors.append(e)
                continue

            if path in sources:
                logger.warning("Template paths %r and %r both map to %s", sources[path], raw_path, path)
                errors.append(FileFilterError(
                    ErrorCodes.DUPLICATE_PATH,
                    f"'{raw_path}' and '{sources[path]}' both normalise to '{path}'",
                    suggestion="Keep a single copy of the file in the template",
                    path=path,
                ))
                duplicates.add(path)
                continue
            sources[path] = raw_path
            contents[path] = content

        # ambiguous content is never rendered
        for path in duplicates:
            del contents[path]

        selection = select_files(manifest.file_rules, contents, contents=contents, config=self.config)

        # === 4. Render ===
        result = PipelineResult(
            status=PipelineStatus.COMPLETE,
            errors=errors,
            manifest=manifest,
            parameters=parameters,
            run_log=run_log,
        )
        failed_files = [str(e.context.get("path", "")) for e in errors]
        aborted = self.config.abort_on_error and bool(errors)

        for entry in selection.included if not aborted else ():
            content = contents[entry.path]
            if entry.is_binary:
                result.files.append(RenderedFile(entry.path, content, is_binary=True, rendered=False))
                continue

            try:
                output = self.renderer.render(content.decode("utf-8"), parameters, filename=entry.path)
            except RenderError as e:
                logger.warning("Render failed: %s", e)
                result.errors.append(e)
                failed_files.append(entry.path)
                if self.config.abort_on_error:
                    aborted = True
                    break
                continue

            result.files.append(
                RenderedFile(entry.path, output.text.encode("utf-8"), is_binary=False, rendered=True)
            )
            result.warnings.extend(output.warnings)

        if aborted:
            result.status = PipelineStatus.ABORTED
        elif result.errors:
            result.status = PipelineStatus.PARTIAL

        # === 5. Run log ===
        for warning in result.warnings:
            emit_render_warning(run_log, warning)

        first_error = result.errors[0] if result.errors else None
        complete_run_log(
            run_log,
            result.status.value,
            parameters_hash=compute_parameters_hash(parameters),
            output_hash=compute_output_hash(result.files),
            file_count=len(result.files),
            failed_files=failed_files,
            error_code=first_error.code if first_error else None,
            error_context=first_error.to_dict() if first_error else None,
        )
        self._persist(run_log)

        logger.info(
            "Rendered %s %s: %s (%d file(s), %d error(s), %d warning(s))",
            manifest.name, manifest.version, result.status.value,
            len(result.files), len(result.errors), len(result.warnings),
        )
        return result

    def run_directory(
        self,
        root: Path,
        user_values: Mapping[str, Any] | None = None,
        context: BuildContext | None = None,
        now: datetime | None = None,
    ) -> PipelineResult:
        """
        Render an extracted template directory.

        Raises:
            OutputError: TEMPLATE_TREE_MISSING
        """
        files = load_template_tree(root)
        manifest_text = files.get(self.config.manifest_filename)
        if manifest_text is None:
            error = ManifestValidationError([FieldIssue(
                "<document>",
                f"{self.config.manifest_filename} not found in {root}",
                f"Add a {self.config.manifest_filename} at the template root",
            )])
            return self._reject(create_run_log(UNKNOWN_TEMPLATE), error)
        return self.run(manifest_text, files, user_values, context, now)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _reject(
        self,
        run_log: RunLog,
        error: ScaffoldError,
        manifest: Manifest | None = None,
    ) -> PipelineResult:
        logger.info("Template rejected: %s", error)
        complete_run_log(
            run_log,
            PipelineStatus.REJECTED.value,
            error_code=error.code,
            error_context=error.to_dict(),
        )
        self._persist(run_log)
        return PipelineResult(
            status=PipelineStatus.REJECTED,
            errors=[error],
            manifest=manifest,
            run_log=run_log,
        )

    def _persist(self, run_log: RunLog) -> None:
        if self.logs_dir is not None:
            save_run_log(run_log, self.logs_dir)
