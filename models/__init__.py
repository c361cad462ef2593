from .db import db
from .audit_log import AuditLog
from .resource import Resource
from .availability_template import AvailabilityTemplate
from .slot import Slot
from .booking import Booking
from .cancellation_policy import CancellationPolicy
from .waitlist_entry import WaitlistEntry
from .daily_analytics import DailyAnalyticsRecord
