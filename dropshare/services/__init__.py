from dropshare.services.connections import ConnectionService
from dropshare.services.drops import DropService
from dropshare.services.establishment import ConnectionEstablishmentService
from dropshare.services.groups import GroupService
from dropshare.services.viewer_index import RebuildReport, ViewerIndex
from dropshare.services.visibility import VisibilityResolver

__all__ = [
    "ConnectionEstablishmentService",
    "ConnectionService",
    "DropService",
    "GroupService",
    "RebuildReport",
    "ViewerIndex",
    "VisibilityResolver",
]
