# Import all the models, so that Base has them before being
# imported by Alembic
from app.db.base_class import Base  # noqa

from app.models.company import Company, UserRoleAssignment  # noqa
from app.models.user import User  # noqa
from app.models.employee import Department, JobRole, ExposureGroup, Employee, EmployeeNote  # noqa
from app.models.task import Task  # noqa
from app.models.health import HealthCheckup  # noqa
from app.models.document import Document  # noqa
from app.models.activity_log import ActivityLogEntry  # noqa
from app.models.notification import Notification  # noqa
from app.models.hse import (  # noqa
    Audit, RiskAssessment, Incident, Investigation, Measure,
    TrainingType, TrainingRecord, ActivityGroup,
    EmployeeActivityAssignment, ActivityTrainingRequirement,
    AuditCategory, RiskCategory, AuditChecklistItem, Course, CourseLesson,
)
