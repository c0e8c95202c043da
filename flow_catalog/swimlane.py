"""Swimlane geometry: mapping a node's vertical position to a role.

Each role owns a horizontal band of ``lane_height`` pixels, stacked in display
order from y=0. A node's lane decides its ``role_id``; ``apply_position`` is
the one place where a position change recomputes that role, and it is used
both by interactive moves and by bulk writes.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .constants import DEFAULT_LANE_HEIGHT
from .models import FlowNode, Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LaneOffset:
    role_id: str
    top: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center(self) -> float:
        return self.top + self.height / 2


def lane_offsets(roles: Iterable[Role]) -> List[LaneOffset]:
    """Stack lanes in the given order; roles are expected sorted by ``order``."""
    offsets = []
    current_top = 0
    for role in roles:
        height = role.lane_height or DEFAULT_LANE_HEIGHT
        offsets.append(LaneOffset(role_id=role.id, top=current_top, height=height))
        current_top += height
    return offsets


def role_for_y(roles: Iterable[Role], y: float) -> Optional[str]:
    """Role id of the lane containing ``y``.

    Positions above the first lane clamp to the first role and positions below
    the last lane clamp to the last role. Returns None when there are no roles.
    """
    offsets = lane_offsets(roles)
    if not offsets:
        return None
    for offset in offsets:
        if offset.top <= y < offset.bottom:
            return offset.role_id
    if y >= offsets[-1].top:
        return offsets[-1].role_id
    return offsets[0].role_id


def lane_center(roles: Iterable[Role], role_id: Optional[str]) -> float:
    """Vertical center of a role's lane; unknown roles fall back to the default lane center."""
    if role_id:
        for offset in lane_offsets(roles):
            if offset.role_id == role_id:
                return offset.center
    return DEFAULT_LANE_HEIGHT / 2


def apply_position(node: FlowNode, x: float, y: float, roles: Iterable[Role]) -> FlowNode:
    """Move ``node`` and reassign its role from the lane it lands in.

    With no roles defined the position still changes and the role is kept.
    """
    roles = list(roles)
    node.update_position(x, y)
    role_id = role_for_y(roles, y)
    if role_id is not None and role_id != node.role_id:
        logger.debug(f"Node {node.id} moved into lane of role {role_id}")
        node.assign_role(role_id)
    return node
