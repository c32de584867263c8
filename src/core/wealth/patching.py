from typing import Iterable, TypeVar

from pydantic import BaseModel

from src.core.wealth.errors import WealthValidationError

EntityT = TypeVar("EntityT", bound=BaseModel)


def reject_null_fields(patch: BaseModel, *, nullable: Iterable[str] = ()) -> None:
    """Raise when a provided patch key carries null for a field that cannot be cleared."""
    allowed = set(nullable)
    for name in sorted(patch.model_fields_set):
        if name not in allowed and getattr(patch, name) is None:
            raise WealthValidationError(f"{name} cannot be null", field=name)


def merge_patch(
    entity: EntityT, patch: BaseModel, *, exclude: Iterable[str] = ()
) -> EntityT:
    """Overwrite only the keys the caller provided; absent keys keep stored values."""
    skipped = set(exclude)
    changes = {
        name: getattr(patch, name)
        for name in patch.model_fields_set
        if name not in skipped
    }
    return entity.model_copy(update=changes)
