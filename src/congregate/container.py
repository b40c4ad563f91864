from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import CheckInService
from .core import constants
from .database.connection import DBConfig, DatabaseConnection
from .external.gateway import ExternalCheckInGateway
from .external.mysql_rate_limit_repository import MySQLRateLimitRepository
from .external.rate_limit import RateLimiter, RateLimitRepository
from .followup.mysql_follow_up_repository import MySQLFollowUpRepository
from .followup.repository import FollowUpRepository
from .followup.service import FollowUpTracker
from .gatherings.mysql_gathering_repository import MySQLGatheringRepository
from .gatherings.repository import GatheringRepository
from .gatherings.service import GatheringService
from .members.identity import IdentityResolver
from .members.mysql_member_repository import MySQLMemberRepository
from .members.mysql_visitor_repository import MySQLVisitorRepository
from .members.repository import MemberRepository, VisitorRepository
from .members.service import MemberService
from .notifications.dispatcher import HttpNotificationDispatcher, NotificationDispatcher
from .staff.mysql_staff_repository import MySQLStaffRepository
from .staff.repository import StaffRepository
from .staff.service import AuthService
from .tenants.mysql_tenant_repository import MySQLTenantRepository
from .tenants.policy import TenantPolicyEvaluator
from .tenants.repository import TenantRepository
from .tenants.service import TenantService


@dataclass(frozen=True)
class Container:
    tenants_repo: TenantRepository
    staff_repo: StaffRepository
    members_repo: MemberRepository
    visitors_repo: VisitorRepository
    gatherings_repo: GatheringRepository
    attendance_repo: AttendanceRepository
    follow_up_repo: FollowUpRepository
    rate_limit_repo: RateLimitRepository

    policy: TenantPolicyEvaluator
    identity: IdentityResolver
    auth_service: AuthService
    tenant_service: TenantService
    member_service: MemberService
    gathering_service: GatheringService
    check_in_service: CheckInService
    external_gateway: ExternalCheckInGateway
    follow_up_tracker: FollowUpTracker
    dispatcher: NotificationDispatcher


def _setting(settings: Any, name: str, default):
    return getattr(settings, name, default) if settings is not None else default


def wire_container(
    *,
    tenants_repo: TenantRepository,
    staff_repo: StaffRepository,
    members_repo: MemberRepository,
    visitors_repo: VisitorRepository,
    gatherings_repo: GatheringRepository,
    attendance_repo: AttendanceRepository,
    follow_up_repo: FollowUpRepository,
    rate_limit_repo: RateLimitRepository,
    dispatcher: NotificationDispatcher,
    settings: Optional[Any] = None,
) -> Container:
    """Build services on top of any repository implementations (MySQL or in-memory)."""
    policy = TenantPolicyEvaluator(tenants_repo)
    identity = IdentityResolver(members_repo)

    follow_up_tracker = FollowUpTracker(
        follow_up_repo,
        members_repo,
        attendance_repo,
        tenants_repo,
        policy,
        dispatcher,
        threshold=int(_setting(settings, "FOLLOW_UP_THRESHOLD", constants.DEFAULT_FOLLOW_UP_THRESHOLD)),
        cycle_days=int(_setting(settings, "FOLLOW_UP_CYCLE_DAYS", constants.DEFAULT_FOLLOW_UP_CYCLE_DAYS)),
    )
    check_in_service = CheckInService(
        attendance_repo,
        members_repo,
        visitors_repo,
        gatherings_repo,
        tenants_repo,
        policy,
        identity,
        follow_up_tracker,
    )
    limiter = RateLimiter(
        rate_limit_repo,
        max_attempts=int(_setting(settings, "EXTERNAL_CHECKIN_MAX_ATTEMPTS", constants.DEFAULT_EXTERNAL_MAX_ATTEMPTS)),
        window_minutes=int(
            _setting(settings, "EXTERNAL_CHECKIN_WINDOW_MINUTES", constants.DEFAULT_EXTERNAL_WINDOW_MINUTES)
        ),
    )
    external_gateway = ExternalCheckInGateway(
        gatherings_repo,
        tenants_repo,
        members_repo,
        check_in_service,
        limiter,
        public_base_url=str(_setting(settings, "PUBLIC_BASE_URL", "")),
    )

    return Container(
        tenants_repo=tenants_repo,
        staff_repo=staff_repo,
        members_repo=members_repo,
        visitors_repo=visitors_repo,
        gatherings_repo=gatherings_repo,
        attendance_repo=attendance_repo,
        follow_up_repo=follow_up_repo,
        rate_limit_repo=rate_limit_repo,
        policy=policy,
        identity=identity,
        auth_service=AuthService(staff_repo),
        tenant_service=TenantService(
            tenants_repo,
            staff_repo,
            members_repo,
            trial_days=int(_setting(settings, "TRIAL_DAYS", constants.DEFAULT_TRIAL_DAYS)),
        ),
        member_service=MemberService(members_repo, visitors_repo, policy),
        gathering_service=GatheringService(gatherings_repo),
        check_in_service=check_in_service,
        external_gateway=external_gateway,
        follow_up_tracker=follow_up_tracker,
        dispatcher=dispatcher,
    )


def build_container(*, db_config: dict, settings: Optional[Any] = None) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    dispatcher = HttpNotificationDispatcher(
        sms_api_url=str(_setting(settings, "SMS_API_URL", "")),
        sms_api_key=str(_setting(settings, "SMS_API_KEY", "")),
        sms_sender_name=str(_setting(settings, "SMS_SENDER_NAME", "")),
        email_api_url=str(_setting(settings, "EMAIL_API_URL", "")),
        email_api_key=str(_setting(settings, "EMAIL_API_KEY", "")),
        email_from=str(_setting(settings, "EMAIL_FROM", "")),
    )

    return wire_container(
        tenants_repo=MySQLTenantRepository(conn),
        staff_repo=MySQLStaffRepository(conn),
        members_repo=MySQLMemberRepository(conn),
        visitors_repo=MySQLVisitorRepository(conn),
        gatherings_repo=MySQLGatheringRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        follow_up_repo=MySQLFollowUpRepository(conn),
        rate_limit_repo=MySQLRateLimitRepository(conn),
        dispatcher=dispatcher,
        settings=settings,
    )
