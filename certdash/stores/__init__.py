"""
Client-side state containers.
"""

from .courses import create_course_store
from .learners import LearnerStore, create_learner_store, create_sop_learner_store
from .logs import create_activity_log_store
from .organizations import create_organization_store
from .preferences import PreferencesStore
from .resource_store import ResourceStore
from .search import SearchDebouncer

__all__ = [
    'ResourceStore',
    'LearnerStore',
    'SearchDebouncer',
    'PreferencesStore',
    'create_course_store',
    'create_organization_store',
    'create_learner_store',
    'create_sop_learner_store',
    'create_activity_log_store',
]
