"""Activity log entries that feed the broker's notification inbox."""

from typing import Any

from cropbroker.models import ActorType, EntityType, Log, LogType, User, UserRole
from cropbroker.repositories import Repositories
from cropbroker.utils import new_id

_ACTOR_TYPES = {
    UserRole.SUPPLIER: ActorType.SUPPLIER,
    UserRole.BROKER: ActorType.BROKER,
    UserRole.FINANCER: ActorType.FINANCER,
}


def actor_type_for(user: User) -> ActorType:
    # Farmers act on the supplier side of a trade
    return _ACTOR_TYPES.get(user.role, ActorType.SUPPLIER)


async def record(
    repos: Repositories,
    *,
    broker_id: str,
    log_type: LogType,
    message: str,
    entity_type: EntityType,
    entity_id: str,
    actor: User,
    details: dict[str, Any] | None = None,
    commit: bool = True,
) -> Log:
    """Append a log entry addressed to ``broker_id``.

    Args:
        commit: Commit immediately; pass False to join the caller's transaction
    """
    log = Log(
        id=new_id(),
        broker_id=broker_id,
        type=log_type,
        message=message,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor.id,
        actor_type=actor_type_for(actor),
        read=False,
        details=details,
    )
    repos.logs.add(log)
    if commit:
        await repos.commit()
    return log
