from .discovery import (
    AdtProject,
    EnvProjectDiscovery,
    NO_PROJECT,
    ProjectDiscovery,
    WorkspaceError,
    WorkspaceFileDiscovery,
    build_project_discovery,
)

__all__ = [
    "AdtProject",
    "EnvProjectDiscovery",
    "NO_PROJECT",
    "ProjectDiscovery",
    "WorkspaceError",
    "WorkspaceFileDiscovery",
    "build_project_discovery",
]
