from remixhub.entities.profile import Profile
from remixhub.entities.remix_history import RemixHistory, RemixStatus
from remixhub.entities.audit_log import AuditLog
from remixhub.entities.payment import Payment, PaymentStatus

__all__ = [
    "Profile", "RemixHistory", "RemixStatus",
    "AuditLog", "Payment", "PaymentStatus",
]
