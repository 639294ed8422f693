from app.models.audit_event import AuditEvent
from app.models.evaluation import Evaluation
from app.models.evaluation_submission import EvaluationSubmission
from app.models.notification import Notification
from app.models.placement import Placement
from app.models.site import Site
from app.models.timesheet_entry import TimesheetEntry
from app.models.user import User

__all__ = [ "AuditEvent", "Evaluation", "EvaluationSubmission",
           "Notification", "Placement", "Site",
           "TimesheetEntry", "User" ]
