"""High level registry coordinating MailClub accounts, children and tasks."""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from dataclasses import dataclass, fields
from datetime import date, datetime
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple
from uuid import uuid4

from .admin import AuditLog
from .clock import Clock, SystemClock
from .emailing import is_valid_email
from .exceptions import (
    AccountNotFoundError,
    ChildNotFoundError,
    DuplicateAccountError,
    InvalidPasscode,
    InvalidTransition,
    NotOwned,
    QuotaExceeded,
    TaskNotFoundError,
)
from .generator import DailyRefresh, DailyTaskGenerator, Regeneration
from .lifecycle import ApprovalReceipt, TaskEvent, TransitionError, TransitionResult, transition
from .models import (
    MAX_CHILD_AGE,
    MIN_CHILD_AGE,
    Account,
    AuditEvent,
    Badge,
    BadgeType,
    Child,
    DailyProgress,
    Proof,
    ShippingAddress,
    SubscriptionTier,
    Task,
    TaskCategory,
    TaskOrigin,
    TaskStatus,
    VerificationResult,
)
from .ops import HealthMonitor, StructuredLogger
from .progression import new_badges
from .proofs import NeutralProofVerifier, ProofVerificationRequest, ProofVerifier, fallback_result
from .quotas import (
    CUSTOM_TASK_DAILY_QUOTA,
    PlanLimits,
    can_add_child,
    child_limit_message,
    custom_task_rewarded,
    limits_for,
    next_shipping_date,
)
from .security import DEFAULT_PASSCODE, hash_passcode, validate_passcode, verify_passcode

NO_POINTS_REASON = (
    f"Daily limit of {CUSTOM_TASK_DAILY_QUOTA} point-earning custom tasks reached; "
    "this task earns no points."
)


class AccountStore(Protocol):
    """Durable storage for accounts and everything they own."""

    def save(self, account: Account) -> None:
        ...

    def load_all(self) -> Iterable[Account]:
        ...


class InMemoryAccountStore:
    """Store that keeps accounts in a dictionary for the life of the process."""

    def __init__(self) -> None:
        self._accounts: Dict[str, Account] = {}
        self.saves = 0

    def save(self, account: Account) -> None:
        self._accounts[account.account_id] = account
        self.saves += 1

    def load_all(self) -> Iterable[Account]:
        return tuple(self._accounts.values())


@dataclass(frozen=True, slots=True)
class CustomTaskResult:
    """A newly created custom task and whether it carries its requested points."""

    task: Task
    rewarded: bool


@dataclass(frozen=True, slots=True)
class BatchApproval:
    approved: Tuple[ApprovalReceipt, ...]
    skipped: Tuple[str, ...]

    @property
    def total_awarded(self) -> int:
        return sum(receipt.awarded_points for receipt in self.approved)


_ERRORS = {
    TransitionError.WRONG_STATE: InvalidTransition,
    TransitionError.NOT_DUE: InvalidTransition,
    TransitionError.NOT_OWNED: NotOwned,
}


def _copy_fields(source: object, target: object, *, skip: Tuple[str, ...] = ()) -> None:
    for item in fields(source):
        if item.name not in skip:
            setattr(target, item.name, getattr(source, item.name))


def _restore_account(account: Account, snapshot: Account) -> None:
    live_children = {child.child_id: child for child in account.children}
    children: List[Child] = []
    for saved in snapshot.children:
        child = live_children.get(saved.child_id)
        if child is None:
            children.append(saved)
            continue
        live_tasks = {task.task_id: task for task in child.tasks}
        tasks: List[Task] = []
        for saved_task in saved.tasks:
            task = live_tasks.get(saved_task.task_id)
            if task is None:
                tasks.append(saved_task)
                continue
            _copy_fields(saved_task, task)
            tasks.append(task)
        _copy_fields(saved, child, skip=("tasks",))
        child.tasks[:] = tasks
        children.append(child)
    _copy_fields(snapshot, account, skip=("children",))
    account.children[:] = children


class MailClub:
    """Own parent accounts, their children and tasks, and expose the engine operations.

    Every mutation of an account's children or tasks runs under that account's
    lock and ends with ``store.save(account)``. If the save or any step before
    it raises, the account is rolled back to its state before the call.
    """

    __slots__ = (
        "_accounts",
        "_emails",
        "_child_owners",
        "_locks",
        "_registry_lock",
        "_store",
        "_clock",
        "_generator",
        "_verifier",
        "_audit_log",
        "_logger",
        "_health",
    )

    def __init__(
        self,
        *,
        store: AccountStore | None = None,
        clock: Clock | None = None,
        generator: DailyTaskGenerator | None = None,
        verifier: ProofVerifier | None = None,
        logger: StructuredLogger | None = None,
        audit_log: AuditLog | None = None,
    ) -> None:
        self._accounts: Dict[str, Account] = {}
        self._emails: Dict[str, str] = {}
        self._child_owners: Dict[str, str] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()
        self._store: AccountStore = store if store is not None else InMemoryAccountStore()
        self._clock: Clock = clock or SystemClock()
        self._generator = generator or DailyTaskGenerator()
        self._verifier: ProofVerifier = verifier or NeutralProofVerifier()
        self._audit_log = audit_log or AuditLog()
        self._logger = logger or StructuredLogger()
        self._health = HealthMonitor()
        for account in self._store.load_all():
            self._index(account)
        if self._accounts:
            self._logger.log("accounts_loaded", count=len(self._accounts))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _index(self, account: Account) -> None:
        self._accounts[account.account_id] = account
        self._emails[account.email] = account.account_id
        self._locks.setdefault(account.account_id, threading.RLock())
        for child in account.children:
            self._child_owners[child.child_id] = account.account_id

    def _lock_for(self, account_id: str) -> threading.RLock:
        with self._registry_lock:
            if account_id not in self._accounts:
                raise AccountNotFoundError(f"Account '{account_id}' does not exist.")
            return self._locks[account_id]

    def _save(self, account: Account) -> None:
        try:
            self._store.save(account)
        except Exception as exc:
            self._health.record_error(f"store save failed: {exc}")
            self._logger.log("store_save_failed", account=account.account_id, error=str(exc))
            raise
        self._health.record_success()

    @contextmanager
    def _atomic(self, account: Account) -> Iterator[None]:
        """Undo in-memory changes to ``account`` if the block raises.

        Live child and task objects are restored in place so references held
        by callers see the rolled-back state.
        """

        today = self._clock.today()
        snapshot = copy.deepcopy(account)
        checkpoints = {child.child_id: self._generator.checkpoint(child.child_id, today) for child in account.children}
        try:
            yield
        except Exception:
            added = {child.child_id for child in account.children} - set(checkpoints)
            for child in account.children:
                self._generator.restore(child.child_id, today, checkpoints.get(child.child_id, (None, 0)))
            _restore_account(account, snapshot)
            with self._registry_lock:
                for child_id in added:
                    self._child_owners.pop(child_id, None)
            raise

    def _record(self, account: Account, actor: str, action: str, target: str, **details: object) -> AuditEvent:
        return self._audit_log.record(
            actor,
            action,
            target,
            account_id=account.account_id,
            details=details,
            timestamp=self._clock.now(),
        )

    def _require_passcode(self, account: Account, passcode: str) -> None:
        if not verify_passcode(passcode, account.passcode_hash):
            self._logger.log("passcode_rejected", account=account.account_id)
            raise InvalidPasscode("Incorrect passcode.")

    def _locate_child(self, child_id: str) -> Tuple[Account, Child]:
        account_id = self._child_owners.get(child_id)
        if account_id is None:
            raise ChildNotFoundError(f"Child '{child_id}' does not exist.")
        account = self.get_account(account_id)
        child = account.child(child_id)
        if child is None:  # pragma: no cover - index out of sync
            raise ChildNotFoundError(f"Child '{child_id}' does not exist.")
        return account, child

    def _locate_task(self, task_id: str) -> Tuple[Account, Child, Task]:
        for account in tuple(self._accounts.values()):
            for child in account.children:
                for task in child.tasks:
                    if task.task_id == task_id:
                        return account, child, task
        raise TaskNotFoundError(f"Task '{task_id}' does not exist.")

    def _task_in_account(self, account: Account, task_id: str) -> Tuple[Child, Task]:
        owner, child, task = self._locate_task(task_id)
        if owner.account_id != account.account_id:
            raise NotOwned("Task does not belong to this account.")
        return child, task

    def _apply(self, result: TransitionResult) -> TransitionResult:
        if not result.ok:
            assert result.error is not None
            raise _ERRORS[result.error](result.message)
        return result

    def _created_today(self, child: Child, today: date) -> List[Task]:
        return [task for task in child.tasks if task.is_custom and task.created_at.date() == today]

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def audit_log(self) -> AuditLog:
        return self._audit_log

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    @property
    def health(self) -> HealthMonitor:
        return self._health

    @property
    def generator(self) -> DailyTaskGenerator:
        return self._generator

    def register_account(self, email: str, name: str, passcode: str | None = None) -> Account:
        email = (email or "").strip().lower()
        if not is_valid_email(email):
            raise ValueError("A valid email address is required.")
        name = (name or "").strip()
        if not name:
            raise ValueError("Account name cannot be empty.")
        passcode_hash = hash_passcode(validate_passcode(passcode or DEFAULT_PASSCODE))
        with self._registry_lock:
            if email in self._emails:
                raise DuplicateAccountError(f"An account for '{email}' already exists.")
            account = Account(
                account_id=str(uuid4()),
                email=email,
                name=name,
                passcode_hash=passcode_hash,
                created_at=self._clock.now(),
            )
            self._index(account)
        try:
            self._save(account)
        except Exception:
            with self._registry_lock:
                self._accounts.pop(account.account_id, None)
                self._emails.pop(email, None)
                self._locks.pop(account.account_id, None)
            raise
        self._record(account, "system", "register_account", account.account_id, email=email)
        self._logger.log("account_registered", account=account.account_id)
        return account

    def list_accounts(self) -> Tuple[Account, ...]:
        return tuple(self._accounts.values())

    def get_account(self, account_id: str) -> Account:
        try:
            return self._accounts[account_id]
        except KeyError as exc:
            raise AccountNotFoundError(f"Account '{account_id}' does not exist.") from exc

    def find_account_by_email(self, email: str) -> Optional[Account]:
        account_id = self._emails.get((email or "").strip().lower())
        return self._accounts.get(account_id) if account_id else None

    def verify_passcode(self, account_id: str, passcode: str) -> bool:
        return verify_passcode(passcode, self.get_account(account_id).passcode_hash)

    def set_passcode(self, account_id: str, current: str, new: str) -> None:
        account = self.get_account(account_id)
        with self._lock_for(account_id), self._atomic(account):
            self._require_passcode(account, current)
            account.passcode_hash = hash_passcode(validate_passcode(new))
            self._save(account)
        self._record(account, "parent", "change_passcode", account_id)
        self._logger.log("passcode_changed", account=account_id)

    def reset_passcode(self, account_id: str, new: str) -> None:
        """Replace the passcode once the caller has verified the parent's identity elsewhere."""

        account = self.get_account(account_id)
        with self._lock_for(account_id), self._atomic(account):
            account.passcode_hash = hash_passcode(validate_passcode(new))
            self._save(account)
        self._record(account, "system", "reset_passcode", account_id)
        self._logger.log("passcode_reset", account=account_id)

    def set_subscription(self, account_id: str, tier: SubscriptionTier | str) -> Account:
        tier = SubscriptionTier(tier)
        account = self.get_account(account_id)
        with self._lock_for(account_id), self._atomic(account):
            previous = account.tier
            account.tier = tier
            self._save(account)
        self._record(account, "system", "set_subscription", account_id, previous=previous.value, tier=tier.value)
        self._logger.log("subscription_changed", account=account_id, tier=tier.value)
        return account

    def plan_limits(self, account_id: str) -> PlanLimits:
        return limits_for(self.get_account(account_id).tier)

    def set_shipping_address(self, account_id: str, address: ShippingAddress) -> Account:
        for label, value in (("street", address.street), ("city", address.city), ("state", address.state), ("zip_code", address.zip_code)):
            if not value.strip():
                raise ValueError(f"Shipping address {label} cannot be empty.")
        account = self.get_account(account_id)
        with self._lock_for(account_id), self._atomic(account):
            account.shipping_address = address
            self._save(account)
        self._record(account, "parent", "set_shipping_address", account_id)
        return account

    def next_shipping_date(self, account_id: str) -> date:
        account = self.get_account(account_id)
        return next_shipping_date(account.created_at.date(), self._clock.today())

    def mark_email_verified(self, account_id: str, verified: bool = True) -> bool:
        """React to the email verification service's verdict."""

        account = self.get_account(account_id)
        with self._lock_for(account_id), self._atomic(account):
            if verified and not account.email_verified:
                account.email_verified = True
                self._save(account)
                self._record(account, "system", "email_verified", account_id)
                self._logger.log("email_verified", account=account_id)
            return account.email_verified

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------
    def add_child(self, account_id: str, name: str, age: int, *, avatar: str = "dog") -> Child:
        name = (name or "").strip()
        if not name:
            raise ValueError("Child name cannot be empty.")
        if not MIN_CHILD_AGE <= int(age) <= MAX_CHILD_AGE:
            raise ValueError(f"Child age must be between {MIN_CHILD_AGE} and {MAX_CHILD_AGE}.")
        account = self.get_account(account_id)
        with self._lock_for(account_id), self._atomic(account):
            if not can_add_child(account.tier, len(account.children)):
                raise QuotaExceeded(
                    f"The {account.tier.value} plan allows {child_limit_message(account.tier).lower()}."
                )
            now = self._clock.now()
            child = Child(
                child_id=str(uuid4()),
                account_id=account_id,
                name=name,
                age=int(age),
                avatar=avatar or "dog",
                created_at=now,
            )
            for badge in new_badges(child):
                badge.earned_at = now
                child.badges.append(badge)
            account.children.append(child)
            with self._registry_lock:
                self._child_owners[child.child_id] = account_id
            self._generator.refresh(child, self._clock.today(), now=now)
            self._save(account)
        self._record(account, "parent", "add_child", child.child_id, name=name, age=child.age)
        self._logger.log("child_added", account=account_id, child=child.child_id, age_group=child.age_group.value)
        return child

    def get_child(self, child_id: str) -> Child:
        return self._locate_child(child_id)[1]

    def children(self, account_id: str) -> Tuple[Child, ...]:
        return tuple(self.get_account(account_id).children)

    def update_child_profile(
        self,
        child_id: str,
        *,
        name: str | None = None,
        avatar: str | None = None,
    ) -> Child:
        account, _ = self._locate_child(child_id)
        with self._lock_for(account.account_id), self._atomic(account):
            child = self.get_child(child_id)
            if name is not None:
                if not name.strip():
                    raise ValueError("Child name cannot be empty.")
                child.name = name.strip()
            if avatar is not None:
                child.avatar = avatar
            self._save(account)
        self._record(account, "parent", "update_child", child_id, name=child.name, avatar=child.avatar)
        return child

    def award_badge(
        self,
        child_id: str,
        badge_id: str,
        name: str,
        *,
        badge_type: BadgeType = BadgeType.ACHIEVEMENT,
        description: str = "",
    ) -> Badge:
        """Give ``child_id`` a badge, returning the held one if already earned."""

        account, _ = self._locate_child(child_id)
        with self._lock_for(account.account_id), self._atomic(account):
            child = self.get_child(child_id)
            for badge in child.badges:
                if badge.badge_id == badge_id:
                    return badge
            badge = Badge(
                badge_id=badge_id,
                name=name,
                type=BadgeType(badge_type),
                description=description,
                earned_at=self._clock.now(),
            )
            child.badges.append(badge)
            self._save(account)
        self._record(account, "parent", "award_badge", child_id, badge=badge_id)
        self._logger.log("badge_awarded", child=child_id, badge=badge_id)
        return badge

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------
    def custom_tasks_today(self, child_id: str) -> int:
        _, child = self._locate_child(child_id)
        return len(self._created_today(child, self._clock.today()))

    def can_add_custom_task(self, child_id: str) -> bool:
        """Whether the next custom task for ``child_id`` today would earn points."""

        return custom_task_rewarded(self.custom_tasks_today(child_id))

    def add_custom_task(
        self,
        child_id: str,
        title: str,
        *,
        points: int,
        description: str = "",
        category: TaskCategory | str = TaskCategory.GENERAL,
        due_date: date | None = None,
    ) -> CustomTaskResult:
        if int(points) < 0:
            raise ValueError("Task points cannot be negative.")
        account, _ = self._locate_child(child_id)
        with self._lock_for(account.account_id), self._atomic(account):
            child = self.get_child(child_id)
            now = self._clock.now()
            today = self._clock.today()
            rewarded = custom_task_rewarded(len(self._created_today(child, today)))
            task = Task(
                task_id=str(uuid4()),
                child_id=child_id,
                title=title.strip(),
                description=description.strip(),
                category=TaskCategory(category),
                points=int(points) if rewarded else 0,
                due_date=due_date or today,
                origin=TaskOrigin.CUSTOM,
                no_points_reason=None if rewarded else NO_POINTS_REASON,
                created_at=now,
            )
            child.tasks.append(task)
            self._save(account)
        self._record(
            account,
            "parent",
            "add_custom_task",
            task.task_id,
            child=child_id,
            points=task.points,
            rewarded=rewarded,
        )
        self._logger.log("custom_task_added", child=child_id, task=task.task_id, rewarded=rewarded)
        return CustomTaskResult(task=task, rewarded=rewarded)

    def refresh_daily_tasks(self, child_id: str) -> DailyRefresh:
        account, _ = self._locate_child(child_id)
        with self._lock_for(account.account_id), self._atomic(account):
            child = self.get_child(child_id)
            refresh = self._generator.refresh(child, self._clock.today(), now=self._clock.now())
            if refresh.created:
                self._save(account)
        if refresh.created:
            self._logger.log("daily_tasks_generated", child=child_id, day=refresh.day.isoformat(), count=len(refresh.tasks))
        return refresh

    def regenerate_daily_tasks(self, child_id: str) -> Regeneration:
        """Replace today's pending generated tasks with a new set.

        The first three regenerations of a day keep their points; later ones
        produce 0-point tasks carrying a ``no_points_reason``.
        """

        account, _ = self._locate_child(child_id)
        with self._lock_for(account.account_id), self._atomic(account):
            child = self.get_child(child_id)
            regeneration = self._generator.regenerate(child, self._clock.today(), now=self._clock.now())
            self._save(account)
        self._record(
            account,
            "parent",
            "regenerate_tasks",
            child_id,
            attempt=regeneration.attempt,
            replaced=len(regeneration.replaced),
            rewarded=regeneration.rewarded,
        )
        self._logger.log(
            "daily_tasks_regenerated",
            child=child_id,
            attempt=regeneration.attempt,
            rewarded=regeneration.rewarded,
        )
        return regeneration

    def regenerations_today(self, child_id: str) -> int:
        self._locate_child(child_id)
        return self._generator.regenerations(child_id, self._clock.today())

    def can_regenerate_with_points(self, child_id: str) -> bool:
        self._locate_child(child_id)
        return self._generator.can_regenerate_with_points(child_id, self._clock.today())

    def todays_tasks(self, child_id: str) -> Tuple[Task, ...]:
        return tuple(self.get_child(child_id).tasks_due(self._clock.today()))

    def get_task(self, task_id: str) -> Task:
        return self._locate_task(task_id)[2]

    def submit_task(
        self,
        child_id: str,
        task_id: str,
        *,
        proof: Proof | None = None,
        verification: VerificationResult | None = None,
    ) -> Task:
        """Mark a task completed on behalf of the child who owns it."""

        actor_account, _ = self._locate_child(child_id)
        owner, child, task = self._locate_task(task_id)
        if owner.account_id != actor_account.account_id or task.child_id != child_id:
            raise NotOwned("Only the child who owns a task can submit it.")
        if verification is None and proof is not None and proof.photo_ref:
            verification = self._advise(owner, child, task, proof.photo_ref)
        with self._lock_for(owner.account_id), self._atomic(owner):
            self._apply(
                transition(
                    task,
                    child,
                    TaskEvent.SUBMIT,
                    now=self._clock.now(),
                    today=self._clock.today(),
                    actor_child_id=child_id,
                    proof=proof,
                    verification=verification,
                )
            )
            self._save(owner)
        self._record(owner, f"child:{child_id}", "submit_task", task_id, has_proof=task.proof is not None)
        self._logger.log("task_submitted", child=child_id, task=task_id)
        return task

    def _advise(self, account: Account, child: Child, task: Task, photo_ref: str) -> Optional[VerificationResult]:
        if not limits_for(account.tier).has_ai_verification:
            return None
        request = ProofVerificationRequest.for_task(task, child_age=child.age, photo_ref=photo_ref)
        try:
            return self._verifier.verify(request)
        except Exception as exc:  # verifier is a remote service; its verdict is advisory
            self._logger.log("proof_verification_failed", task=task.task_id, error=str(exc))
            return fallback_result()

    def approve_task(self, account_id: str, task_id: str, passcode: str) -> ApprovalReceipt:
        account = self.get_account(account_id)
        self._require_passcode(account, passcode)
        return self._approve(account, task_id)

    def _approve(self, account: Account, task_id: str) -> ApprovalReceipt:
        with self._lock_for(account.account_id), self._atomic(account):
            child, task = self._task_in_account(account, task_id)
            result = self._apply(
                transition(task, child, TaskEvent.APPROVE, now=self._clock.now(), today=self._clock.today())
            )
            self._save(account)
        receipt = result.receipt
        assert receipt is not None
        self._record(
            account,
            "parent",
            "approve_task",
            task_id,
            child=child.child_id,
            awarded=receipt.awarded_points,
            multiplier=receipt.multiplier,
        )
        self._logger.log(
            "task_approved",
            child=child.child_id,
            task=task_id,
            awarded=receipt.awarded_points,
            total_points=receipt.total_points,
        )
        if receipt.mail_rewards_unlocked:
            self._record(account, "system", "mail_reward_unlocked", child.child_id, count=receipt.mail_rewards_unlocked)
            self._logger.log("mail_reward_unlocked", child=child.child_id, count=receipt.mail_rewards_unlocked)
        if receipt.leveled_up:
            self._logger.log("level_up", child=child.child_id, level=receipt.level)
        for badge in receipt.badges:
            self._logger.log("badge_awarded", child=child.child_id, badge=badge.badge_id)
        return receipt

    def reject_task(self, account_id: str, task_id: str, *, reason: str = "") -> Task:
        """Send a completed task back to the child; no passcode, no credit."""

        account = self.get_account(account_id)
        with self._lock_for(account_id), self._atomic(account):
            child, task = self._task_in_account(account, task_id)
            now = self._clock.now()
            self._apply(transition(task, child, TaskEvent.REJECT, now=now))
            self._apply(transition(task, child, TaskEvent.REOPEN, now=now))
            self._save(account)
        self._record(account, "parent", "reject_task", task_id, child=child.child_id, reason=reason)
        self._logger.log("task_rejected", child=child.child_id, task=task_id, rejections=task.rejection_count)
        return task

    def pending_approvals(self, account_id: str) -> Tuple[Task, ...]:
        return tuple(self.get_account(account_id).completed_tasks())

    def approve_all(self, account_id: str, passcode: str) -> BatchApproval:
        """Approve every completed task after a single passcode check.

        Each task is approved under its own lock acquisition; a task that moved
        on in the meantime is skipped and does not undo the others.
        """

        account = self.get_account(account_id)
        self._require_passcode(account, passcode)
        approved: List[ApprovalReceipt] = []
        skipped: List[str] = []
        for task in self.pending_approvals(account_id):
            try:
                approved.append(self._approve(account, task.task_id))
            except (InvalidTransition, NotOwned, TaskNotFoundError):
                skipped.append(task.task_id)
        self._logger.log("batch_approved", account=account_id, approved=len(approved), skipped=len(skipped))
        return BatchApproval(approved=tuple(approved), skipped=tuple(skipped))

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def daily_progress(self, child_id: str, day: date | None = None) -> DailyProgress:
        day = day or self._clock.today()
        tasks = self.get_child(child_id).tasks_due(day)
        done = [task for task in tasks if task.status in (TaskStatus.COMPLETED, TaskStatus.APPROVED)]
        approved = [task for task in tasks if task.status is TaskStatus.APPROVED]
        return DailyProgress(
            day=day,
            total_tasks=len(tasks),
            completed_tasks=len(done),
            approved_tasks=len(approved),
            points_earned=sum(task.awarded_points or 0 for task in approved),
        )

    def activity(self, account_id: str, *, limit: int | None = None) -> Tuple[AuditEvent, ...]:
        self.get_account(account_id)
        events = self._audit_log.entries(account_id=account_id)
        if limit is not None:
            events = events[-limit:]
        return events


__all__ = [
    "AccountStore",
    "BatchApproval",
    "CustomTaskResult",
    "InMemoryAccountStore",
    "MailClub",
    "NO_POINTS_REASON",
]
