from app.models.absence import AbsenceRecord, AbsenceRole, AbsenceStatus  # noqa: F401
from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.notification import Notification, NotificationEvent  # noqa: F401
from app.models.schedule_entry import ScheduleEntry  # noqa: F401
from app.models.school_class import ClassEnrollment, SchoolClass  # noqa: F401
from app.models.substitute_assignment import SubstituteAssignment  # noqa: F401
from app.models.user import User, UserRole  # noqa: F401
