# SQLAlchemy models
from .base import Base
from .profiles import ActivityEventRecord, LearnerProfileRecord

__all__ = [
    "Base",
    "LearnerProfileRecord",
    "ActivityEventRecord",
]
