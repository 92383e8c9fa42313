from __future__ import annotations

from mediashelf.application.services.project_service import ProjectService
from mediashelf.cli.context import CLIContext
from mediashelf.core.errors import ProjectNotInitializedError


def require_initialized(ctx: CLIContext) -> ProjectService:
    project_service = ProjectService(ctx.config)
    if not project_service.is_initialized():
        raise ProjectNotInitializedError(
            f"Project is not initialized. Run 'mediashelf init' first in {ctx.config.project_root}"
        )
    # picks up schema additions on existing databases
    project_service.init_project()
    return project_service
