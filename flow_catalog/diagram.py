"""Mermaid export of a business flow.

Nodes and edges are emitted in the order given (creation order), one line
each. No topological sorting is done, so cycles and disconnected nodes come
out as they are stored.
"""

from typing import Dict, Iterable, Optional

from .models import BusinessFlow, FlowEdge, FlowNode, Role
from .schemas import DiagramExport, FlowNodeType

MERMAID_HEADER = "flowchart TD\n"


def mm_label(text: Optional[str]) -> str:
    """Escape double quotes for a quoted Mermaid label."""
    return (text or "").replace('"', '\\"')


def node_line(node: FlowNode, role_name: Optional[str] = None) -> str:
    """Render one node with the shape keyed by its type.

    START/END are rounded, DECISION is a diamond, DATA_STORE a cylinder and
    everything else a rectangle. The role name is appended in brackets to
    diamonds and rectangles.
    """
    label = mm_label(node.label)
    role_label = f" [{mm_label(role_name)}]" if role_name else ""

    if node.type in (FlowNodeType.START, FlowNodeType.END):
        return f'  {node.id}(("{label}"))\n'
    if node.type == FlowNodeType.DECISION:
        return f'  {node.id}{{"{label}{role_label}"}}\n'
    if node.type == FlowNodeType.DATA_STORE:
        return f'  {node.id}[("{label}")]\n'
    return f'  {node.id}["{label}{role_label}"]\n'


def edge_line(edge: FlowEdge) -> str:
    if edge.label:
        return f'  {edge.source_node_id} -->|"{mm_label(edge.label)}"| {edge.target_node_id}\n'
    return f"  {edge.source_node_id} --> {edge.target_node_id}\n"


def to_diagram_text(
    flow: BusinessFlow,
    nodes: Iterable[FlowNode],
    edges: Iterable[FlowEdge],
    roles: Optional[Iterable[Role]] = None,
) -> str:
    """Serialize a flow as a Mermaid ``flowchart TD`` document.

    Args:
        flow: The flow being exported (kept for symmetry with the export
            projection; its contents are carried by ``nodes`` and ``edges``).
        nodes: Nodes of the flow in emission order.
        edges: Edges of the flow in emission order.
        roles: Roles used to label nodes; a node whose role is missing is
            rendered without a role label.

    Returns:
        Mermaid source: header, node lines, a blank line, edge lines.
    """
    role_names: Dict[str, str] = {role.id: role.name for role in roles or []}

    text = MERMAID_HEADER
    for node in nodes:
        text += node_line(node, role_names.get(node.role_id) if node.role_id else None)
    text += "\n"
    for edge in edges:
        text += edge_line(edge)
    return text


def export_flow(
    flow: BusinessFlow,
    nodes: Iterable[FlowNode],
    edges: Iterable[FlowEdge],
    roles: Optional[Iterable[Role]] = None,
) -> DiagramExport:
    return DiagramExport(
        flow_id=flow.id,
        flow_name=flow.name,
        mermaid=to_diagram_text(flow, nodes, edges, roles),
    )
