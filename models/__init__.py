# Models package - Import all models for Flask-SQLAlchemy

from models.activity_log import ActivityLog
from models.broadcasts import Broadcast, BroadcastRecipient
from models.images import PendingImage, MemberPhoto
from models.invites import Invite, BranchEntryLink
from models.members import FamilyMember
from models.pending import PendingMember
from models.snapshots import Snapshot, BackupConfig
from models.update_requests import MemberUpdateRequest
from models.users import User, Session

__all__ = [
    'ActivityLog',
    'Broadcast',
    'BroadcastRecipient',
    'PendingImage',
    'MemberPhoto',
    'Invite',
    'BranchEntryLink',
    'FamilyMember',
    'PendingMember',
    'Snapshot',
    'BackupConfig',
    'MemberUpdateRequest',
    'User',
    'Session',
]
