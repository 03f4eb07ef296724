"""
Privileges service.

Thin HTTP surface over ``PrivilegeEngine``. Route handlers are plain
functions so that blocking storage adapters run in the worker threadpool.
"""

from typing import Any, Dict, Optional

from fastapi import Body, Query
from starlette.concurrency import run_in_threadpool

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.logging import set_user_context

from .privileges.engine import PrivilegeEngine
from .privileges.models import (
    GrantRequest, GrantResponse, PrivilegeCheckRequest, PrivilegeCheckResponse,
    PrivilegeSelector, RoleAssignRequest, RoleCreateRequest
)
from .storage import RedisStorage, create_storage
from .storage.base import PrivilegeStorage


class PrivilegesService(BaseService):
    """Privileges service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, storage: Optional[PrivilegeStorage] = None):
        super().__init__("privileges", 8011, config=config)

        self.storage = storage if storage is not None else create_storage(self.config)
        self.engine = PrivilegeEngine(
            self.storage,
            metrics=self.metrics if self.config.enable_metrics else None
        )

        self._setup_privilege_routes()

    def _setup_privilege_routes(self):
        """Set up privilege-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "privileges",
                "message": "Privileges - wildcard-aware access control",
                "version": "1.0.0",
                "storage": self.config.storage_backend
            }

        @self.app.post("/privileges/check", response_model=PrivilegeCheckResponse)
        def check_privilege(request: PrivilegeCheckRequest):
            """Check whether a user holds a privilege (any of several names)."""
            set_user_context(request.user_id, request.group)
            if isinstance(request.name, list):
                allowed = self.engine.has_any(request.user_id, request.name, request.component, request.group)
            else:
                allowed = self.engine.has(request.user_id, request.name, request.component, request.group)
            return PrivilegeCheckResponse(allowed=allowed)

        @self.app.post("/privileges/grants", response_model=GrantResponse, status_code=201)
        def grant_privileges(request: GrantRequest):
            """Grant one or more privileges to a user."""
            set_user_context(request.user_id, request.group)
            if isinstance(request.name, list):
                ids = self.engine.grant_many(
                    request.user_id, request.name, request.component, request.group, request.role
                )
            else:
                ids = [self.engine.grant(
                    request.user_id, request.name, request.component, request.group, request.role
                )]
            return GrantResponse(privilege_ids=ids)

        @self.app.delete("/privileges/grants/{user_id}/{privilege_id}")
        def revoke_privilege(user_id: str, privilege_id: str):
            """Revoke a grant; unknown ids are a no-op."""
            self.engine.revoke(user_id, privilege_id)
            return {"success": True}

        @self.app.get("/privileges/users/{user_id}")
        def list_user_privileges(user_id: str):
            """List a user's grants with their identifiers."""
            grants = self.engine.grants(user_id)
            return {"user_id": user_id, "grants": [grant.to_dict() for grant in grants]}

        @self.app.post("/privileges/register", status_code=201)
        def register_privilege(request: PrivilegeSelector):
            """Register a privilege without granting it."""
            privilege_id = self.engine.register(request.model_dump())
            return {"privilege_id": privilege_id}

        @self.app.post("/privileges/exists")
        def privilege_exists(selector: Dict[str, Any] = Body(...)):
            """Exact-match lookup among registered privileges."""
            return {"exists": self.engine.exists(selector)}

        @self.app.get("/privileges/pluck")
        def pluck_privileges(
            property: str = Query(..., description="Field to project: name, component or group"),
            name: Optional[str] = Query(None, description="Filter by name"),
            component: Optional[str] = Query(None, description="Filter by component"),
            group: Optional[str] = Query(None, description="Filter by group")
        ):
            """Unique values of one field across registered privileges."""
            selector = {
                key: value
                for key, value in (("name", name), ("component", component), ("group", group))
                if value is not None
            }
            return {"property": property, "values": self.engine.pluck(property, selector)}

        @self.app.post("/roles", status_code=201)
        def register_role(request: RoleCreateRequest):
            """Register a role, optionally with privilege templates."""
            if request.privileges:
                templates = [p.model_dump() for p in request.privileges]
                role_ids = self.engine.register_role_many(request.name, request.group, templates)
            else:
                role_ids = [self.engine.register_role(request.name, request.group)]
            return {"role_ids": role_ids}

        @self.app.post("/roles/assign", status_code=201)
        def assign_role(request: RoleAssignRequest):
            """Assign one or more roles to a user."""
            if isinstance(request.role, list):
                ids = self.engine.assign_roles(request.user_id, request.role, request.group)
            else:
                ids = [self.engine.assign_role(request.user_id, request.role, request.group)]
            return {"assignment_ids": ids}

        @self.app.get("/roles/check")
        def check_role(
            user_id: str = Query(..., description="User ID"),
            role: str = Query(..., description="Role name"),
            group: Optional[str] = Query(None, description="Group")
        ):
            """Check whether a user was assigned a role in the given scope."""
            return {"assigned": self.engine.has_role(user_id, role, group)}

    async def _check_dependencies(self):
        """Check privileges service dependencies."""
        dependencies = {}

        if isinstance(self.storage, RedisStorage):
            try:
                dependencies["redis"] = "ok" if await run_in_threadpool(self.storage.health_check) else "error"
            except Exception:
                dependencies["redis"] = "error"
        else:
            dependencies["storage"] = "ok"

        return dependencies


def create_app(config: Optional[ServiceConfig] = None, storage: Optional[PrivilegeStorage] = None):
    """Create privileges service application."""
    service = PrivilegesService(config=config, storage=storage)
    return service.app


if __name__ == "__main__":
    service = PrivilegesService()
    service.run()
