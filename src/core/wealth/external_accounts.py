from datetime import datetime

from src.core.wealth.models import (
    ExternalAccount,
    ExternalAccountCreateRequest,
    ExternalAccountListQuery,
    ExternalAccountPatch,
)
from src.core.wealth.patching import merge_patch

NULLABLE_PATCH_FIELDS = {"institution", "notes"}


def build_external_account(
    *,
    external_account_id: str,
    account_id: str,
    request: ExternalAccountCreateRequest,
    now: datetime,
) -> ExternalAccount:
    return ExternalAccount(
        external_account_id=external_account_id,
        account_id=account_id,
        name=request.name,
        account_type=request.account_type,
        is_asset=request.is_asset,
        balance=request.balance,
        currency=request.currency,
        institution=request.institution,
        notes=request.notes,
        status="active",
        created_at=now,
        updated_at=now,
    )


def apply_external_account_patch(
    account: ExternalAccount, patch: ExternalAccountPatch, *, now: datetime
) -> ExternalAccount:
    return merge_patch(account, patch).model_copy(update={"updated_at": now})


def archive_external_account(
    account: ExternalAccount, *, now: datetime
) -> tuple[ExternalAccount, bool]:
    if account.status == "archived":
        return account, False
    return account.model_copy(update={"status": "archived", "updated_at": now}), True


def matches_external_account_query(
    account: ExternalAccount, query: ExternalAccountListQuery
) -> bool:
    if query.status is not None and account.status != query.status:
        return False
    if query.is_asset is not None and account.is_asset != query.is_asset:
        return False
    if query.account_type is not None and account.account_type != query.account_type:
        return False
    return True
