"""ORM models package.

Importing this module ensures every model is registered with the
SQLAlchemy ``Base.metadata`` so that Alembic autogenerate can detect
all tables.
"""

from repowatch.models.activity_record import ActivityRecord
from repowatch.models.project import Project
from repowatch.models.report import Report
from repowatch.models.repository_stats import RepositoryStats
from repowatch.models.setting import Setting

__all__ = [
    "ActivityRecord",
    "Project",
    "Report",
    "RepositoryStats",
    "Setting",
]
