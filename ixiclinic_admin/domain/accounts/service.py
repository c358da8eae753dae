"""Account service - Business logic for tenant account administration"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import HTTPException

from ...auth import AdminUser
from ...document_store import DocumentNotFoundError, DocumentStore, comparable
from ...identity_provider import IdentityProvider, IdentityProviderUnavailable
from ...schemas import Account, AdminAction, Appointment, CurrencySettings, Invoice, Patient, User
from ...shared.table import sort_and_paginate
from ...shared.validators import split_full_name
from ..plans.store import PlansStore
from .repository import ACCOUNTS, AccountRepository, utcnow
from .schemas import (
    AccountCounts,
    AccountCreate,
    AccountInfoResponse,
    AccountListResponse,
    AccountStats,
    AccountSummaryResponse,
    AccountSummaryStats,
    AccountUpdate,
    DeleteAccountResponse,
    MembershipActionRequest,
    UsageLimit,
)

logger = logging.getLogger(__name__)

RECENT_APPOINTMENT_DAYS = 30
SCOPED_READ_LIMIT = 100

# Initial status of a new account per membership type
MEMBERSHIP_STATUS = {"trial": "trial", "free": "active", "paid": "pending"}


class AccountService:
    """Service layer for account operations"""

    def __init__(self, store: DocumentStore, identity: IdentityProvider, plans: PlansStore):
        self.store = store
        self.identity = identity
        self.plans = plans

    def _get_account_or_404(self, account_id: str) -> Account:
        account = AccountRepository.get_account(self.store, account_id)
        if not account:
            raise HTTPException(status_code=404, detail="Account not found")
        return account

    def _update_or_404(self, account_id: str, updates: dict) -> None:
        try:
            AccountRepository.update_account(self.store, account_id, updates)
        except DocumentNotFoundError as e:
            raise HTTPException(status_code=404, detail="Account not found") from e

    # ===== Listing =====

    def list_accounts(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        account_type: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_dir: str = "asc",
        page: int = 1,
        page_size: int = 10,
    ) -> AccountListResponse:
        accounts = AccountRepository.get_all_accounts(self.store)
        counts = AccountCounts(
            total=len(accounts),
            active=sum(1 for a in accounts if a.billingInfo.subscriptionStatus == "active"),
            trial=sum(1 for a in accounts if a.billingInfo.subscriptionStatus == "trial"),
        )

        if search:
            term = search.lower()
            accounts = [
                a
                for a in accounts
                if term in (a.email or "").lower()
                or term in (a.settings.centerName or "").lower()
                or term in (a.settings.doctorName or "").lower()
            ]
        if status:
            accounts = [a for a in accounts if a.billingInfo.subscriptionStatus == status]
        if account_type:
            accounts = [a for a in accounts if a.type == account_type]

        items, meta = sort_and_paginate(accounts, sort_by, sort_dir, page, page_size)
        return AccountListResponse(items=items, pagination=meta, counts=counts)

    # ===== Details =====

    def get_account(self, account_id: str) -> Account:
        return self._get_account_or_404(account_id)

    def get_account_patients(self, account_id: str) -> list[Patient]:
        snapshots = AccountRepository.get_scoped_records(self.store, account_id, "patients")
        return Patient.from_snapshots(snapshots)

    def get_account_users(self, account_id: str) -> list[User]:
        snapshots = AccountRepository.get_scoped_records(self.store, account_id, "users")
        return User.from_snapshots(snapshots)

    def get_account_appointments(self, account_id: str) -> list[Appointment]:
        snapshots = AccountRepository.get_scoped_records(
            self.store, account_id, "appointments", order_by="date", limit=SCOPED_READ_LIMIT
        )
        return Appointment.from_snapshots(snapshots)

    def get_account_info(self, account_id: str) -> AccountInfoResponse:
        account = self._get_account_or_404(account_id)
        patients = self.get_account_patients(account_id)
        appointments = self.get_account_appointments(account_id)
        users = self.get_account_users(account_id)

        since = utcnow() - timedelta(days=RECENT_APPOINTMENT_DAYS)
        recent = sum(1 for a in appointments if a.date and comparable(a.date) >= since)

        return AccountInfoResponse(
            account=account,
            patients=patients,
            appointments=appointments,
            users=users,
            stats=AccountStats(
                totalPatients=len(patients),
                totalAppointments=len(appointments),
                totalUsers=len(users),
                recentAppointments=recent,
            ),
        )

    def get_account_summary(self, account_id: str) -> AccountSummaryResponse:
        """Totals and plan usage against the limits of the account's plan"""
        account = self._get_account_or_404(account_id)
        patients = self.get_account_patients(account_id)
        users = self.get_account_users(account_id)
        appointments = self.get_account_appointments(account_id)
        invoices = Invoice.from_snapshots(
            self.store.collection("invoices").where("accountId", "==", account_id).stream()
        )

        activity = [r.createdAt for r in [*patients, *appointments, *invoices] if r.createdAt]
        limits = account.billingInfo.plan.limits if account.billingInfo.plan else None

        return AccountSummaryResponse(
            account=account,
            stats=AccountSummaryStats(
                totalPatients=len(patients),
                totalAppointments=len(appointments),
                totalRevenue=round(sum(i.amount for i in invoices if i.status == "paid"), 2),
                lastActivity=max(activity, key=comparable) if activity else None,
                planUsage={
                    "patients": UsageLimit(used=len(patients), limit=limits.patients if limits else 0),
                    "users": UsageLimit(used=len(users), limit=limits.users if limits else 0),
                    "storage": UsageLimit(used=0, limit=limits.storage if limits else 0),
                },
            ),
        )

    def get_admin_actions(self, account_id: str) -> list[AdminAction]:
        return AccountRepository.get_admin_actions(self.store, account_id)

    # ===== Mutations =====

    def update_account(self, account_id: str, data: AccountUpdate, admin: AdminUser) -> Account:
        fields = data.model_dump(exclude_unset=True)
        updates: dict = {}

        for key in ("email", "type", "isActive", "adminNotes"):
            if key in fields:
                updates[key] = fields[key]
        for key, value in (fields.get("settings") or {}).items():
            updates[f"settings.{key}"] = value
        if "subscriptionStatus" in fields:
            updates["billingInfo.subscriptionStatus"] = fields["subscriptionStatus"]
        if "paypalSubscriptionId" in fields:
            updates["billingInfo.paypalSubscriptionId"] = fields["paypalSubscriptionId"]

        if not updates:
            raise HTTPException(status_code=400, detail="No fields to update")

        self._update_or_404(account_id, updates)
        AccountRepository.log_admin_action(
            self.store, "update_account", account_id, {"fields": sorted(updates)}, admin.uid
        )
        logger.info(f"✏️ Account {account_id} updated by {admin.email}")
        return self._get_account_or_404(account_id)

    def apply_membership_action(self, account_id: str, body: MembershipActionRequest, admin: AdminUser) -> Account:
        account = self._get_account_or_404(account_id)
        now = utcnow()

        if body.action == "assign_free":
            updates = {
                "billingInfo.subscriptionStatus": "active",
                "billingInfo.membershipType": "free",
                "billingInfo.plan.name": body.planName,
                "billingInfo.nextPaymentDate": None,
                "billingInfo.trialEndDate": now + timedelta(days=body.days),
                "billingInfo.adminNotes": f"Membresía gratuita asignada: {body.reason}",
            }
            action = "assign_free_membership"
            details = {"planName": body.planName, "durationDays": body.days, "reason": body.reason}
        elif body.action == "extend_trial":
            current_end = account.billingInfo.trialEndDate or now
            new_end = current_end + timedelta(days=body.days)
            updates = {
                "billingInfo.trialEndDate": new_end,
                "billingInfo.adminNotes": f"Trial extendido {body.days} días: {body.reason}",
            }
            action = "extend_trial"
            details = {"extensionDays": body.days, "newEndDate": new_end, "reason": body.reason}
        elif body.action == "extend_membership":
            current_end = account.billingInfo.nextPaymentDate or now
            new_end = current_end + timedelta(days=body.days)
            updates = {
                "billingInfo.nextPaymentDate": new_end,
                "billingInfo.adminNotes": f"Membresía extendida {body.days} días: {body.reason}",
            }
            action = "extend_membership"
            details = {"extensionDays": body.days, "newEndDate": new_end, "reason": body.reason}
        else:
            updates = {
                "billingInfo.plan.name": body.planName,
                "billingInfo.adminNotes": f"Plan cambiado a {body.planName}: {body.reason}",
            }
            action = "change_plan"
            details = {"newPlanName": body.planName, "reason": body.reason}

        self._update_or_404(account_id, updates)
        AccountRepository.log_admin_action(self.store, action, account_id, details, admin.uid)
        logger.info(f"🎫 {action} applied to account {account_id} by {admin.email}")
        return self._get_account_or_404(account_id)

    # ===== Identity link =====

    def _resolve_identity_uid(self, email: str) -> str:
        try:
            user = self.identity.get_user_by_email(email)
        except IdentityProviderUnavailable as e:
            logger.error(f"❌ Identity provider unavailable: {e}")
            raise HTTPException(status_code=503, detail="Identity provider is not configured") from e
        if not user:
            raise HTTPException(status_code=404, detail=f"No identity user with email {email}")
        return user["uid"]

    def link_identity(self, account_id: str, email: str, admin: AdminUser) -> Account:
        self._get_account_or_404(account_id)
        uid = self._resolve_identity_uid(email)

        self._update_or_404(account_id, {"ownerId": uid, "firebaseAuthEmail": email})
        AccountRepository.log_admin_action(
            self.store, "assign_firebase_auth", account_id, {"firebaseEmail": email, "uid": uid}, admin.uid
        )
        logger.info(f"🔗 Identity {email} linked to account {account_id}")
        return self._get_account_or_404(account_id)

    def unlink_identity(self, account_id: str, reason: str, admin: AdminUser) -> Account:
        account = self._get_account_or_404(account_id)
        self._update_or_404(
            account_id,
            {
                "ownerId": None,
                "firebaseAuthEmail": None,
                "adminNotes": f"Firebase Auth desasignado: {reason}",
            },
        )
        AccountRepository.log_admin_action(
            self.store,
            "unassign_firebase_auth",
            account_id,
            {"previousEmail": account.firebaseAuthEmail, "reason": reason},
            admin.uid,
        )
        logger.info(f"🔓 Identity unlinked from account {account_id}")
        return self._get_account_or_404(account_id)

    # ===== Creation =====

    def create_account_with_setup(self, form: AccountCreate, admin: AdminUser) -> Account:
        """
        Create an account from the admin form.

        The identity user (when requested) is resolved before anything is
        written, so a bad e-mail never leaves a half-created account behind.
        """
        plan = None
        if form.membershipType == "paid":
            plan = self.plans.get_plan(form.selectedPlan)
            if plan is None:
                raise HTTPException(status_code=400, detail=f"Unknown plan: {form.selectedPlan}")

        owner_uid = self._resolve_identity_uid(form.firebaseEmail) if form.assignFirebaseAuth else None

        now = utcnow()
        billing_info = {
            "subscriptionStatus": MEMBERSHIP_STATUS[form.membershipType],
            "membershipType": form.membershipType,
            "plan": plan.model_dump(exclude_none=True) if plan else None,
            "nextPaymentDate": None,
            "adminNotes": form.adminNotes,
        }
        if form.membershipType == "trial":
            billing_info["trialStartDate"] = now
            billing_info["trialEndDate"] = now + timedelta(days=form.trialDays)
        elif form.membershipType == "free":
            billing_info["trialEndDate"] = now + timedelta(days=form.freeDays)

        account_id = AccountRepository.create_account(
            self.store,
            {
                "email": form.email,
                "type": form.accountType,
                "settings": {
                    "centerName": form.centerName,
                    "doctorName": form.doctorName,
                    "phone": form.phone,
                    "address": form.address,
                    "city": form.city,
                    "country": form.country,
                    "rnc_cedula": form.rnc_cedula,
                    "currency": CurrencySettings().model_dump(),
                },
                "billingInfo": billing_info,
                "ownerId": owner_uid,
                "firebaseAuthEmail": form.firebaseEmail if owner_uid else None,
                "adminNotes": form.adminNotes,
            },
        )

        if form.createInitialUser:
            first_name, last_name = split_full_name(form.initialUserName)
            self.store.collection(f"{ACCOUNTS}/{account_id}/users").add(
                {
                    "accountId": account_id,
                    "firstName": first_name,
                    "lastName": last_name,
                    "email": form.initialUserEmail,
                    "role": "admin",
                    "isActive": True,
                    "permissions": ["full_access"],
                    "createdAt": now,
                    "updatedAt": now,
                }
            )

        AccountRepository.log_admin_action(
            self.store,
            "create_account",
            account_id,
            {
                "email": form.email,
                "membershipType": form.membershipType,
                "selectedPlan": form.selectedPlan,
                "firebaseEmail": form.firebaseEmail if owner_uid else None,
                "initialUser": form.initialUserEmail if form.createInitialUser else None,
            },
            admin.uid,
        )
        logger.info(f"✅ Account {account_id} created by {admin.email} ({form.membershipType})")
        return self._get_account_or_404(account_id)

    # ===== Cascade deletion =====

    def delete_account_completely(
        self, account_id: str, acknowledged: bool, admin: AdminUser
    ) -> DeleteAccountResponse:
        """
        Remove an account and everything that belongs to it.

        All documents go in one batch: either every one of them is deleted or
        none is. The identity user and the audit entry are handled afterwards
        and never undo a committed deletion.
        """
        if not acknowledged:
            raise HTTPException(status_code=400, detail="Deletion must be explicitly confirmed")

        # Raw read so a document that no longer fits the model can still be removed
        snapshot = self.store.collection(ACCOUNTS).document(account_id).get()
        if not snapshot.exists:
            raise HTTPException(status_code=404, detail="Account not found")
        email = snapshot.get("email")
        owner_id = snapshot.get("ownerId")
        logger.info(f"🗑️ Deleting account {account_id} ({email}) requested by {admin.email}")

        refs = AccountRepository.collect_dependent_refs(self.store, account_id)
        batch = self.store.batch()
        deleted_by_collection: dict[str, int] = {}
        for kind, kind_refs in refs.items():
            for ref in kind_refs:
                batch.delete(ref)
            deleted_by_collection[kind] = len(kind_refs)
        batch.delete(self.store.collection(ACCOUNTS).document(account_id))
        deleted_by_collection[ACCOUNTS] = 1

        try:
            deleted = batch.commit()
        except Exception as e:
            logger.error(f"❌ Error deleting account {account_id}: {e}")
            raise HTTPException(status_code=500, detail="Error deleting account data") from e

        identity_deleted = False
        if owner_id:
            try:
                self.identity.delete_user_by_uid(owner_id)
                identity_deleted = True
            except Exception as e:
                logger.warning(f"⚠️ Could not delete identity user {owner_id}: {e}")

        AccountRepository.log_admin_action(
            self.store,
            "delete_account_complete",
            account_id,
            {"email": email, "deletedItems": deleted_by_collection, "ownerId": owner_id},
            admin.uid,
        )
        logger.info(f"✅ Account {account_id} deleted: {deleted} documents")

        return DeleteAccountResponse(
            account_id=account_id,
            deleted_documents=deleted,
            deleted_by_collection=deleted_by_collection,
            identity_user_deleted=identity_deleted,
        )
