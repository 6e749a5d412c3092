"""
Templates Routes: manifest validation, parameter descriptors, render preview.

- POST /api/templates/validate   → {valid, manifest, issues}
- POST /api/templates/parameters → prompt descriptors (422 on invalid manifest)
- POST /api/templates/render     → rendered files as base64 (nothing written to disk)
"""

import base64
import binascii
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from scaffoldkit.config import EngineConfig
from scaffoldkit.domain.errors import ErrorCodes, ManifestValidationError
from scaffoldkit.pipeline import RenderPipeline
from scaffoldkit.templates.manifest import check_compatibility, parse_manifest
from scaffoldkit.templates.parameters import BuildContext, describe_parameters

# Routers
api_router = APIRouter()  # API endpoints


# =============================================================================
# Request Models
# =============================================================================

class ManifestRequest(BaseModel):
    manifest: str


class BuildContextModel(BaseModel):
    project_name: str | None = None
    author: str | None = None
    version: str | None = None


class RenderRequest(BaseModel):
    manifest: str
    files: dict[str, str] = Field(default_factory=dict)  # path → base64
    parameters: dict[str, str | bool] = Field(default_factory=dict)
    context: BuildContextModel | None = None


def _config(request: Request) -> EngineConfig:
    config = getattr(request.app.state, "config", None)
    return config if isinstance(config, EngineConfig) else EngineConfig()


# =============================================================================
# API Routes
# =============================================================================

@api_router.post("/validate")
async def validate_manifest(request: Request, body: ManifestRequest) -> dict[str, Any]:
    """
    Validate a manifest.

    Always 200; `valid` tells the outcome and `issues` lists every problem.
    """
    config = _config(request)
    try:
        manifest = parse_manifest(body.manifest, config)
    except ManifestValidationError as e:
        return {"valid": False, "code": e.code, "manifest": None, "issues": [i.to_dict() for i in e.issues]}

    issues = check_compatibility(manifest, config.tool_version, config.runtime_version)
    return {
        "valid": not issues,
        "code": None if not issues else ErrorCodes.INCOMPATIBLE_VERSION,
        "manifest": manifest.to_dict(),
        "issues": [i.to_dict() for i in issues],
    }


@api_router.post("/parameters")
async def list_parameters(request: Request, body: ManifestRequest) -> dict[str, Any]:
    """Parameter descriptors for a prompter (422 if the manifest is invalid)."""
    try:
        manifest = parse_manifest(body.manifest, _config(request))
    except ManifestValidationError as e:
        raise HTTPException(status_code=422, detail=e.to_dict()) from e

    return {
        "template": manifest.name,
        "version": manifest.version,
        "parameters": [d.to_dict() for d in describe_parameters(manifest)],
    }


@api_router.post("/render")
async def render_template(request: Request, body: RenderRequest) -> dict[str, Any]:
    """
    Render a template held entirely in the request.

    Status codes:
    - 200: pipeline ran (check `status`: complete, partial, aborted, rejected)
    - 400: a file is not valid base64
    """
    files: dict[str, bytes] = {}
    for path, encoded in body.files.items():
        try:
            files[path] = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise HTTPException(
                status_code=400,
                detail={"code": "INVALID_BASE64", "message": f"file '{path}' is not valid base64"},
            ) from e

    context = BuildContext(**body.context.model_dump()) if body.context else None
    result = RenderPipeline(_config(request)).run(body.manifest, files, body.parameters, context)

    response = result.to_dict()
    response["files"] = [
        {
            "path": f.path,
            "content_base64": base64.b64encode(f.content).decode("ascii"),
            "is_binary": f.is_binary,
            "rendered": f.rendered,
        }
        for f in result.files
    ]
    return response
