"""The registered command set.

Entry point: ``directory_ops.commands.build_registry()``
"""

from typing import Any

from ..dispatcher import CommandRegistry
from . import groups, onboarding, users


def build_registry(directory: Any) -> CommandRegistry:
    """Create a registry with every command, bound to ``directory``."""
    registry = CommandRegistry(directory)
    for module in (users, groups, onboarding):
        for command in module.COMMANDS:
            registry.register(command)
    return registry
