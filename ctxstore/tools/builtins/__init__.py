from __future__ import annotations

from typing import TYPE_CHECKING

from ctxstore.tools.builtins.activity import GetActivityLogsTool, LogActivityTool
from ctxstore.tools.builtins.builds import (
    GetBuildHistoryTool,
    StoreBuildTool,
    UpdateBuildStatusTool,
)
from ctxstore.tools.builtins.components import (
    GetComponentRelationshipsTool,
    GetProjectComponentsTool,
    StoreComponentRelationshipTool,
    StoreProjectComponentTool,
)
from ctxstore.tools.builtins.context import GetContextTool, StoreContextTool
from ctxstore.tools.builtins.conversation import (
    GetConversationHistoryTool,
    StoreConversationTool,
)
from ctxstore.tools.builtins.dependencies import (
    GetProjectDependenciesTool,
    StoreProjectDependencyTool,
)
from ctxstore.tools.builtins.documentation import GetDocumentationTool, StoreDocumentationTool
from ctxstore.tools.builtins.environments import (
    GetEnvironmentConfigsTool,
    StoreEnvironmentConfigTool,
)
from ctxstore.tools.builtins.file_history import GetFileHistoryTool, StoreFileHistoryTool
from ctxstore.tools.builtins.file_metadata import GetFileMetadataTool, StoreFileMetadataTool
from ctxstore.tools.builtins.tasks import GetProjectTasksTool, StoreProjectTaskTool
from ctxstore.tools.builtins.users import GetProjectUsersTool, StoreProjectUserTool

if TYPE_CHECKING:
    from ctxstore.storage.persistence import PersistenceManager
    from ctxstore.tools.registry import ToolRegistry

# Catalog order as advertised to clients.
BUILTIN_TOOLS = (
    StoreContextTool,
    GetContextTool,
    StoreConversationTool,
    GetConversationHistoryTool,
    StoreFileHistoryTool,
    GetFileHistoryTool,
    StoreProjectUserTool,
    GetProjectUsersTool,
    StoreProjectTaskTool,
    GetProjectTasksTool,
    StoreProjectDependencyTool,
    GetProjectDependenciesTool,
    StoreEnvironmentConfigTool,
    GetEnvironmentConfigsTool,
    LogActivityTool,
    GetActivityLogsTool,
    StoreBuildTool,
    UpdateBuildStatusTool,
    GetBuildHistoryTool,
    StoreDocumentationTool,
    GetDocumentationTool,
    StoreProjectComponentTool,
    StoreComponentRelationshipTool,
    GetProjectComponentsTool,
    GetComponentRelationshipsTool,
    StoreFileMetadataTool,
    GetFileMetadataTool,
)


def register_builtins(registry: ToolRegistry, store: PersistenceManager) -> None:
    """Register every built-in tool, each bound to the given PersistenceManager."""
    for tool_cls in BUILTIN_TOOLS:
        registry.register(tool_cls(store))
