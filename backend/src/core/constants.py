"""Application constants and configuration values."""

from core.config import FRONTEND_URL


# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

_CORS_ORIGINS_RAW = [
    "http://localhost:3000",
    "http://localhost:5173",
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Roles
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_SECRETARY = "secretary"
ROLE_PATIENT = "patient"
ALL_ROLES = [ROLE_ADMIN, ROLE_MANAGER, ROLE_SECRETARY, ROLE_PATIENT]
STAFF_ROLES = [ROLE_ADMIN, ROLE_MANAGER, ROLE_SECRETARY]

# Appointment statuses
APPOINTMENT_STATUSES = [
    "TO_CONFIRM",
    "CONFIRMED",
    "IN_WAITING",
    "IN_PROGRESS",
    "COMPLETED",
    "CANCELLED",
    "NO_SHOW",
]
# Appointments that still need a reminder
REMINDABLE_APPOINTMENT_STATUSES = ["TO_CONFIRM", "CONFIRMED", "IN_WAITING", "IN_PROGRESS"]
# Appointments that no longer need a reminder
CLOSED_APPOINTMENT_STATUSES = ["CANCELLED", "NO_SHOW", "COMPLETED"]

# Notification channels
NOTIFICATION_CHANNELS = ["EMAIL", "SMS", "BOTH"]

# Recall and reminder dispatch
RECALL_HORIZON_DAYS = 30  # Only enqueue items due within the next 30 days
MAX_RECALL_BATCH = 50  # Due recalls/reminders processed per run
DEFAULT_REMINDER_TIME_MINUTES = 540  # 09:00
RECALL_ANY_SERVICE = "ANY"

# Recurring messages
MAX_RECURRING_SEND = 200  # Emails sent per run
RECURRING_SEND_HOUR = 9  # Holiday/closure/birthday emails go out from 09:00
CLOSURE_LOOKBACK_DAYS = 30

# GDPR retention (days)
GDPR_RETENTION_DAYS = {
    "audit_logs": 730,
    "sms_logs": 365,
    "recurring_message_logs": 365,
    "appointment_reminders": 365,
}

# Email rendering
DEFAULT_BUTTON_COLOR = "#059669"

# Audit log viewer
AUDIT_LOG_PAGE_SIZE = 200

# Scheduler settings
SCHEDULER_MAX_INSTANCES = 1  # Prevent overlapping scheduler runs
