"""Data access objects over the artifact store schema."""

from .artifact_dao import ArtifactDAO, ArtifactRow
from .maintenance_dao import MaintenanceDAO

__all__ = ["ArtifactDAO", "ArtifactRow", "MaintenanceDAO"]
