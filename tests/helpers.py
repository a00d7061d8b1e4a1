"""Graph builders shared by the test modules."""

from relayflow.types import WorkflowEdge, WorkflowNode


def trigger(node_id: str = "t1", label: str = "Start", **config) -> WorkflowNode:
    return WorkflowNode(id=node_id, type="trigger", label=label, config={"triggerType": "Manual", **config})


def action(node_id: str, action_type: str = None, label: str = None, enabled: bool = True, **config) -> WorkflowNode:
    cfg = dict(config)
    if action_type is not None:
        cfg["actionType"] = action_type
    return WorkflowNode(
        id=node_id, type="action", label=label if label is not None else node_id.upper(),
        enabled=enabled, config=cfg,
    )


def edge(source: str, target: str) -> WorkflowEdge:
    return WorkflowEdge(id=f"{source}->{target}", source=source, target=target)


def chain(*node_ids: str) -> list[WorkflowEdge]:
    return [edge(a, b) for a, b in zip(node_ids, node_ids[1:])]
