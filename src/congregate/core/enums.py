from __future__ import annotations

from enum import Enum


class SubscriptionTier(str, Enum):
    """Gói thuê bao của một tenant (nhà thờ / tổ chức)."""

    TRIAL = "trial"
    STARTER = "starter"
    GROWTH = "growth"
    ENTERPRISE = "enterprise"
    SUSPENDED = "suspended"


class Capability(str, Enum):
    """Feature gates checked by the tenant policy evaluator."""

    BASIC_CHECKIN = "basic_checkin"
    MEMBER_MANAGEMENT = "member_management"
    BASIC_REPORTS = "basic_reports"

    BIOMETRIC_CHECKIN = "biometric_checkin"
    FAMILY_CHECKIN = "family_checkin"
    VISITOR_MANAGEMENT = "visitor_management"
    HISTORY_TRACKING = "history_tracking"
    FOLLOW_UP_QUEUE = "follow_up_queue"
    EMAIL_NOTIFICATIONS = "email_notifications"

    FULL_ANALYTICS = "full_analytics"
    SMS_NOTIFICATIONS = "sms_notifications"
    BULK_UPLOAD = "bulk_upload"
    ADVANCED_ROLES = "advanced_roles"
    MULTI_LOCATION = "multi_location"
    API_ACCESS = "api_access"
    CUSTOM_BRANDING = "custom_branding"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class AgeGroup(str, Enum):
    CHILD = "child"
    ADOLESCENT = "adolescent"
    ADULT = "adult"


class RelationshipToHead(str, Enum):
    HEAD = "head"
    SPOUSE = "spouse"
    CHILD = "child"
    PARENT = "parent"
    SIBLING = "sibling"
    OTHER = "other"


class CheckInMethod(str, Enum):
    FINGERPRINT = "fingerprint"
    MANUAL = "manual"
    FAMILY = "family"
    VISITOR = "visitor"
    EXTERNAL = "external"


class CheckInStatus(str, Enum):
    """Kết quả cuối của một lần check-in (không phải lỗi)."""

    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"


class VisitorFollowUpStatus(str, Enum):
    PENDING = "pending"
    CONTACTED = "contacted"
    MEMBER = "member"


class ContactMethod(str, Enum):
    SMS = "sms"
    EMAIL = "email"
    CALL = "call"


class NotificationChannel(str, Enum):
    SMS = "sms"
    EMAIL = "email"


class StaffRole(str, Enum):
    """Vai trò tài khoản nhân sự của tenant dùng cho phân quyền."""

    ADMIN = "admin"
    STAFF = "staff"
