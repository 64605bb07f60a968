from .file_repo import FileGraphRepository
from .interfaces import GraphRepository, GraphSnapshot, GraphUnitOfWork, TaskDependencies
from .memory import InMemoryGraphRepository, InMemoryUnitOfWork

__all__ = [
    "FileGraphRepository",
    "GraphRepository",
    "GraphSnapshot",
    "GraphUnitOfWork",
    "InMemoryGraphRepository",
    "InMemoryUnitOfWork",
    "TaskDependencies",
]
