"""Account repository - Document store operations for tenant accounts"""

import logging
from datetime import datetime, timezone
from typing import Optional, TypeVar

from ...document_store import DocumentReference, DocumentSnapshot, DocumentStore
from ...schemas import Account, AccountBrief, AdminAction, Record

logger = logging.getLogger(__name__)

ACCOUNTS = "accounts"
ADMIN_ACTIONS = "admin_actions"

# Flat collections holding records keyed by accountId
DEPENDENT_COLLECTIONS = ("patients", "appointments", "users", "invoices", "files")


R = TypeVar("R", bound=Record)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def account_id_from_path(collection_path: str) -> Optional[str]:
    segments = collection_path.strip("/").split("/")
    if len(segments) >= 3 and segments[0] == ACCOUNTS:
        return segments[1]
    return None


class AccountRepository:
    """Repository for account document operations"""

    @staticmethod
    def get_all_accounts(store: DocumentStore) -> list[Account]:
        """All accounts, newest first"""
        snapshots = store.collection(ACCOUNTS).order_by("createdAt", "desc").stream()
        return Account.from_snapshots(snapshots)

    @staticmethod
    def get_account(store: DocumentStore, account_id: str) -> Optional[Account]:
        snapshot = store.collection(ACCOUNTS).document(account_id).get()
        if not snapshot.exists:
            return None
        return Account.from_snapshot(snapshot)

    @staticmethod
    def get_accounts_by_id(store: DocumentStore) -> dict[str, Account]:
        return {a.id: a for a in Account.from_snapshots(store.collection(ACCOUNTS).stream())}

    @staticmethod
    def get_account_briefs(store: DocumentStore) -> dict[str, AccountBrief]:
        accounts = AccountRepository.get_accounts_by_id(store)
        return {account_id: AccountBrief.from_account(a) for account_id, a in accounts.items()}

    @staticmethod
    def find_by_subscription_id(store: DocumentStore, subscription_id: str) -> Optional[Account]:
        snapshots = (
            store.collection(ACCOUNTS)
            .where("billingInfo.paypalSubscriptionId", "==", subscription_id)
            .limit(1)
            .stream()
        )
        return Account.from_snapshot(snapshots[0]) if snapshots else None

    @staticmethod
    def create_account(store: DocumentStore, data: dict) -> str:
        now = utcnow()
        ref = store.collection(ACCOUNTS).document()
        ref.set({**data, "createdAt": now, "updatedAt": now, "isActive": True})
        logger.info(f"🆕 Account created: {ref.id}")
        return ref.id

    @staticmethod
    def update_account(store: DocumentStore, account_id: str, updates: dict) -> None:
        """Apply dotted-path updates; raises DocumentNotFoundError for unknown accounts"""
        store.collection(ACCOUNTS).document(account_id).update({**updates, "updatedAt": utcnow()})

    # ===== Child records =====

    @staticmethod
    def get_scoped_records(
        store: DocumentStore,
        account_id: str,
        kind: str,
        order_by: str = "createdAt",
        limit: Optional[int] = None,
    ) -> list[DocumentSnapshot]:
        """
        Records of one account: the accounts/{id}/<kind> sub-collection when it
        has any, otherwise the legacy flat <kind> collection filtered by accountId.
        """
        query = store.collection(f"{ACCOUNTS}/{account_id}/{kind}").order_by(order_by, "desc")
        if limit:
            query = query.limit(limit)
        snapshots = query.stream()
        if snapshots:
            return snapshots

        query = store.collection(kind).where("accountId", "==", account_id).order_by(order_by, "desc")
        if limit:
            query = query.limit(limit)
        return query.stream()

    @staticmethod
    def get_all_records(store: DocumentStore, kind: str, model: type[R], order_by: str = "createdAt") -> list[R]:
        """
        Every record of one kind across the flat collection and all
        accounts/{id}/<kind> sub-collections, newest first. Records stored
        under an account without an accountId field get it from their path.
        """
        records = []
        for snapshot in store.collection_group(kind).order_by(order_by, "desc").stream():
            parsed = model.from_snapshots([snapshot])
            if not parsed:
                continue
            record = parsed[0]
            if not getattr(record, "accountId", None):
                record.accountId = account_id_from_path(snapshot.reference.collection_path)
            records.append(record)
        return records

    @staticmethod
    def collect_dependent_refs(store: DocumentStore, account_id: str) -> dict[str, list[DocumentReference]]:
        """Every document that belongs to an account, grouped by collection kind"""
        refs: dict[str, list[DocumentReference]] = {}
        seen: set[str] = set()

        def add(kind: str, snapshots: list[DocumentSnapshot]) -> None:
            bucket = refs.setdefault(kind, [])
            for snapshot in snapshots:
                if snapshot.reference.path not in seen:
                    seen.add(snapshot.reference.path)
                    bucket.append(snapshot.reference)

        for kind in DEPENDENT_COLLECTIONS:
            add(kind, store.collection(kind).where("accountId", "==", account_id).stream())
        # Sub-collections at any depth, grouped by their own name
        for snapshot in store.descendants(f"{ACCOUNTS}/{account_id}"):
            kind = snapshot.reference.collection_path.rsplit("/", 1)[-1]
            add(kind, [snapshot])

        return refs

    # ===== Admin actions =====

    @staticmethod
    def log_admin_action(
        store: DocumentStore,
        action: str,
        account_id: Optional[str],
        details: dict,
        admin_id: str = "system",
    ) -> Optional[str]:
        """Append to the admin action log; failures are logged and never raised"""
        now = utcnow()
        try:
            ref = store.collection(ADMIN_ACTIONS).add(
                {
                    "action": action,
                    "accountId": account_id,
                    "details": details,
                    "adminId": admin_id,
                    "timestamp": now,
                    "createdAt": now,
                }
            )
            return ref.id
        except Exception as e:
            logger.error(f"❌ Error logging admin action {action} for {account_id}: {e}")
            return None

    @staticmethod
    def get_admin_actions(store: DocumentStore, account_id: str) -> list[AdminAction]:
        snapshots = (
            store.collection(ADMIN_ACTIONS)
            .where("accountId", "==", account_id)
            .order_by("timestamp", "desc")
            .stream()
        )
        return AdminAction.from_snapshots(snapshots)
