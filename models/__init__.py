from .audit_log import AuditLog, AuditAction
from .employee_document import EmployeeDocument
from .location import Location
from .notification import Notification
from .shift import Shift, ClockRequest
from .shift_correction import ShiftCorrectionRequest, CorrectionType, CorrectionStatus
from .shift_template import ShiftTemplate
from .time_off import TimeOffRequest, TimeOffType, TimeOffStatus
from .user import User, Role
