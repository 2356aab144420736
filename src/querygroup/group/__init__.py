"""Query group lifecycle: state container, configuration bridge and extra actions."""
from querygroup.group.actions import GroupActionContext, GroupActionRegistry, group_actions
from querygroup.group.bridge import ConfigurationBridge
from querygroup.group.state import GroupPhase, GroupState, GroupStateContainer

__all__ = [
    "GroupActionContext",
    "GroupActionRegistry",
    "group_actions",
    "ConfigurationBridge",
    "GroupPhase",
    "GroupState",
    "GroupStateContainer",
]
