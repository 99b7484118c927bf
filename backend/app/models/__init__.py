"""SQLAlchemy ORM models for the Opptym bookmarklet backend.

All models are exported from this module for convenient imports:
    from app.models import User, Project, DirectoryLink, Submission

Models are organized by domain:
- user.py: User (plan drives bookmarklet quotas)
- project.py: Project (source of the embedded project snapshot)
- directory_link.py: DirectoryLink (requirement set)
- submission.py: Submission (recorded form fills)
"""

from app.models.base import Base, TimestampMixin
from app.models.directory_link import DirectoryLink
from app.models.project import Project
from app.models.submission import Submission
from app.models.user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "Project",
    "DirectoryLink",
    "Submission",
]
