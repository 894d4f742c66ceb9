# carelink/services/audit_service.py
import logging

from carelink.core.events import AuthStateChanged, EventBus, RolesChanged, Subscription

audit_logger = logging.getLogger("carelink.audit")


def log_auth_event(event: AuthStateChanged) -> None:
    audit_logger.info("auth.%s user=%s", event.kind.value.lower(), event.user_id)


def log_roles_changed(event: RolesChanged) -> None:
    audit_logger.info(
        "roles.%s user=%s role=%s by=%s",
        "granted" if event.granted else "revoked",
        event.user_id,
        event.role,
        event.changed_by_id,
    )


def register_audit_log(bus: EventBus) -> list[Subscription]:
    return [
        bus.subscribe(AuthStateChanged, log_auth_event),
        bus.subscribe(RolesChanged, log_roles_changed),
    ]
