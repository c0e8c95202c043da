"""Role service: the "who" axis of every mapping and the swimlane owner."""

import logging
from typing import List, Optional, Sequence

from .constants import DEFAULT_LANE_HEIGHT
from .exceptions import EntityAlreadyExistsError, EntityNotFoundError
from .models import Role
from .repositories.base import RoleRepository
from .schemas import RoleType

logger = logging.getLogger(__name__)


class RoleService:
    def __init__(self, roles: RoleRepository):
        self.roles = roles

    async def get_role(self, role_id: str) -> Role:
        role = await self.roles.find_by_id(role_id)
        if role is None:
            raise EntityNotFoundError("Role", role_id)
        return role

    async def list_roles(self, project_id: str) -> List[Role]:
        """Roles in display order."""
        return await self.roles.find_by_project_id(project_id)

    async def create_role(
        self,
        project_id: str,
        name: str,
        type=RoleType.HUMAN,
        description: Optional[str] = None,
        color: Optional[str] = None,
        order: Optional[int] = None,
        lane_height: int = DEFAULT_LANE_HEIGHT,
    ) -> Role:
        """Create a role; without an explicit order it is placed last."""
        name = (name or "").strip()
        if name and await self.roles.exists_by_name(project_id, name):
            raise EntityAlreadyExistsError("Role", "name", name)
        if order is None:
            existing = await self.roles.find_by_project_id(project_id)
            order = max((r.order for r in existing), default=-1) + 1
        role = Role.create(
            project_id=project_id,
            name=name,
            type=type,
            description=description,
            color=color,
            order=order,
            lane_height=lane_height,
            id=self.roles.generate_id(),
        )
        return await self.roles.save(role)

    async def update_role(
        self,
        role_id: str,
        name: Optional[str] = None,
        type=None,
        description: Optional[str] = None,
        color: Optional[str] = None,
        lane_height: Optional[int] = None,
    ) -> Role:
        role = await self.get_role(role_id)
        if name is not None and name.strip() != role.name:
            if await self.roles.exists_by_name(role.project_id, name.strip()):
                raise EntityAlreadyExistsError("Role", "name", name.strip())
        with role.atomic_update():
            if name is not None:
                role.change_name(name)
            if type is not None:
                role.change_type(type)
            if description is not None:
                role.change_description(description)
            if color is not None:
                role.change_color(color)
            if lane_height is not None:
                role.change_lane_height(lane_height)
        return await self.roles.save(role)

    async def set_lane_height(self, role_id: str, lane_height: int) -> Role:
        role = await self.get_role(role_id)
        role.change_lane_height(lane_height)
        return await self.roles.save(role)

    async def delete_role(self, role_id: str) -> bool:
        """Delete a role. Nodes and CRUD facts that reference it are left as they are."""
        return await self.roles.delete(role_id)

    async def reorder(self, project_id: str, ordered_ids: Sequence[str]) -> List[Role]:
        """Apply a full ordering of the project's roles atomically."""
        roles = await self.roles.reorder(project_id, ordered_ids)
        logger.info(f"Reordered {len(roles)} roles in project {project_id}")
        return roles
