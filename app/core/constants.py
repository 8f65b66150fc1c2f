from enum import Enum


MAX_PROGRESS = 100
MIN_PROGRESS = 0
FAVORITE_CATEGORIES_LIMIT = 5
RECENT_ENROLLMENTS_LIMIT = 100
RECENT_ACTIVITY_LIMIT = 50

class RoleEnum(str, Enum):
    LEARNER = "learner"
    ADMIN = "admin"

class ProgressSourceEnum(str, Enum):
    CALCULATED = "calculated"
    MANUAL = "manual"

class EnrollmentStatusFilterEnum(str, Enum):
    ENROLLED = "enrolled"
    COMPLETED = "completed"
    ALL = "all"

class StreakSourceEnum(str, Enum):
    LESSONS = "lessons"
    ROADMAPS = "roadmaps"
