"""FastAPI service for MailClub.

Exposes the verification email transport used during sign-up, a health probe,
and JSON endpoints over the :class:`~mailclub.service.MailClub` registry. The
app is built by :func:`create_app`; ``mailclub.webapp.application:app`` builds
one from the environment on first access for ``uvicorn`` deployments.
"""

from __future__ import annotations

import json
import math
from datetime import date
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ..clock import Clock, SystemClock
from ..emailing import EmailClient, EmailVerificationCodes, is_valid_email, send_verification_email
from ..exceptions import EmailDeliveryError, MailClubError, RateLimited
from ..lifecycle import ApprovalReceipt
from ..models import Account, Badge, Child, Proof, ShippingAddress, Task
from ..ops import StructuredLogger
from ..generator import REWARDED_REGENERATIONS
from ..proofs import result_from_payload, result_to_payload
from ..quotas import CUSTOM_TASK_DAILY_QUOTA, limits_for
from ..security import EmailRateLimiter
from ..service import AccountStore, MailClub
from .config import Settings
from .persistence import SqlAccountStore, make_engine

STATUS_CODES: Dict[str, int] = {
    "invalid_passcode": 401,
    "not_owned": 403,
    "quota_exceeded": 402,
    "not_found": 404,
    "invalid_transition": 409,
    "duplicate_account": 409,
    "rate_limited": 429,
    "delivery_failed": 500,
}


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------
def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if value is not None else None


def badge_payload(badge: Badge) -> dict:
    return {
        "id": badge.badge_id,
        "name": badge.name,
        "type": badge.type.value,
        "description": badge.description,
        "earned_at": _iso(badge.earned_at),
    }


def task_payload(task: Task) -> dict:
    return {
        "id": task.task_id,
        "child_id": task.child_id,
        "title": task.title,
        "description": task.description,
        "category": task.category.value,
        "points": task.points,
        "status": task.status.value,
        "due_date": task.due_date.isoformat(),
        "origin": task.origin.value,
        "completed_at": _iso(task.completed_at),
        "approved_at": _iso(task.approved_at),
        "rejected_at": _iso(task.rejected_at),
        "proof": (
            {"photo_ref": task.proof.photo_ref, "timer_seconds": task.proof.timer_seconds}
            if task.proof
            else None
        ),
        "verification": result_to_payload(task.verification) if task.verification else None,
        "awarded_points": task.awarded_points,
        "rejection_count": task.rejection_count,
        "no_points_reason": task.no_points_reason,
    }


def child_payload(child: Child) -> dict:
    return {
        "id": child.child_id,
        "account_id": child.account_id,
        "name": child.name,
        "age": child.age,
        "age_group": child.age_group.value,
        "avatar": child.avatar,
        "points": child.points,
        "total_points": child.total_points,
        "level": child.level,
        "streak_days": child.streak_days,
        "last_completed_date": _iso(child.last_completed_date),
        "mail_meter_progress": child.mail_meter_progress,
        "mail_rewards_unlocked": child.mail_rewards_unlocked,
        "badges": [badge_payload(badge) for badge in child.badges],
    }


def account_payload(account: Account) -> dict:
    limits = limits_for(account.tier)
    address = account.shipping_address
    return {
        "id": account.account_id,
        "email": account.email,
        "name": account.name,
        "tier": account.tier.value,
        "email_verified": account.email_verified,
        "max_children": None if limits.unlimited_children else int(limits.max_children),
        "shipping_address": (
            {
                "street": address.street,
                "city": address.city,
                "state": address.state,
                "zip_code": address.zip_code,
                "country": address.country,
            }
            if address
            else None
        ),
        "children": [child_payload(child) for child in account.children],
    }


def receipt_payload(receipt: ApprovalReceipt) -> dict:
    return {
        "task_id": receipt.task_id,
        "child_id": receipt.child_id,
        "base_points": receipt.base_points,
        "multiplier": receipt.multiplier,
        "awarded_points": receipt.awarded_points,
        "total_points": receipt.total_points,
        "level": receipt.level,
        "leveled_up": receipt.leveled_up,
        "streak_days": receipt.streak_days,
        "mail_meter_progress": receipt.mail_meter_progress,
        "mail_rewards_unlocked": receipt.mail_rewards_unlocked,
        "badges": [badge_payload(badge) for badge in receipt.badges],
    }


def _error(status_code: int, message: str, *, headers: Optional[Dict[str, str]] = None, **extra: Any) -> JSONResponse:
    return JSONResponse({"success": False, "error": message, **extra}, status_code=status_code, headers=headers)


def _retry_headers(exc: RateLimited) -> Optional[Dict[str, str]]:
    if not exc.retry_after:
        return None
    return {"Retry-After": str(math.ceil(exc.retry_after))}


async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValueError("Request body must be valid JSON.") from exc
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object.")
    return payload


def _require(payload: Dict[str, Any], *fields: str) -> None:
    missing = [name for name in fields if payload.get(name) in (None, "")]
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(missing)}")


def _club(request: Request) -> MailClub:
    return request.app.state.club


def _logger(request: Request) -> StructuredLogger:
    return request.app.state.club.logger


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
def create_app(
    settings: Settings | None = None,
    *,
    club: MailClub | None = None,
    store: AccountStore | None = None,
    clock: Clock | None = None,
    email_client: EmailClient | None = None,
    rate_limiter: EmailRateLimiter | None = None,
) -> FastAPI:
    settings = settings or Settings()
    clock = clock or (club.clock if club is not None else SystemClock(settings.timezone))
    if club is None:
        if store is None and settings.sqlite_file:
            store = SqlAccountStore(make_engine(settings.sqlite_file))
        club = MailClub(store=store, clock=clock, logger=StructuredLogger(path=settings.log_path))

    app = FastAPI(title="Posty Magic Mail Club")
    app.state.settings = settings
    app.state.club = club
    app.state.email_client = email_client or EmailClient(
        settings.smtp_host,
        settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        sender=settings.email_from,
    )
    app.state.rate_limiter = rate_limiter or EmailRateLimiter(
        max_requests=settings.email_rate_limit_max,
        window=settings.email_rate_limit_window,
        clock=clock,
    )
    app.state.verification_codes = EmailVerificationCodes(clock=clock)

    @app.exception_handler(MailClubError)
    async def _mailclub_error(request: Request, exc: MailClubError) -> JSONResponse:
        status_code = STATUS_CODES.get(exc.kind, 400)
        headers = _retry_headers(exc) if isinstance(exc, RateLimited) else None
        return _error(status_code, str(exc), headers=headers, kind=exc.kind, retryable=exc.retryable)

    @app.exception_handler(ValueError)
    async def _value_error(request: Request, exc: ValueError) -> JSONResponse:
        return _error(400, str(exc))

    _register_routes(app)
    return app


async def _deliver_verification(request: Request, email: str, code: str, user_name: str) -> JSONResponse:
    logger = _logger(request)
    try:
        request.app.state.rate_limiter.hit(email)
    except RateLimited as exc:
        logger.log("verification_email_rate_limited", email=email.lower())
        return _error(429, "Too many email requests. Please try again later.", headers=_retry_headers(exc))
    try:
        message_id = await run_in_threadpool(
            send_verification_email, request.app.state.email_client, email, code, user_name
        )
    except EmailDeliveryError as exc:
        logger.log("verification_email_failed", email=email.lower(), error=str(exc))
        return _error(500, str(exc) or "Failed to send verification email")
    logger.log("verification_email_sent", email=email.lower(), message_id=message_id)
    return JSONResponse({"success": True, "messageId": message_id})


def _register_routes(app: FastAPI) -> None:
    @app.get("/api/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/api/status")
    def status(request: Request) -> dict:
        return _club(request).health.status()

    @app.post("/api/send-verification-email")
    async def send_verification(request: Request) -> JSONResponse:
        try:
            payload = await _json_body(request)
        except ValueError as exc:
            return _error(400, str(exc))
        if not all(payload.get(name) for name in ("email", "code", "userName")):
            return _error(400, "Missing required fields: email, code, userName")
        email = str(payload["email"]).strip()
        if not is_valid_email(email):
            return _error(400, "Invalid email format")
        return await _deliver_verification(request, email, str(payload["code"]), str(payload["userName"]))

    # -- accounts -----------------------------------------------------------
    @app.post("/api/accounts", status_code=201)
    async def register_account(request: Request) -> dict:
        payload = await _json_body(request)
        _require(payload, "email", "name")
        account = await run_in_threadpool(
            _club(request).register_account, payload["email"], payload["name"], passcode=payload.get("passcode")
        )
        return account_payload(account)

    @app.get("/api/accounts/{account_id}")
    def get_account(account_id: str, request: Request) -> dict:
        return account_payload(_club(request).get_account(account_id))

    @app.put("/api/accounts/{account_id}/passcode")
    async def change_passcode(account_id: str, request: Request) -> dict:
        payload = await _json_body(request)
        _require(payload, "current", "new")
        await run_in_threadpool(_club(request).set_passcode, account_id, str(payload["current"]), str(payload["new"]))
        return {"success": True}

    @app.put("/api/accounts/{account_id}/subscription")
    async def change_subscription(account_id: str, request: Request) -> dict:
        payload = await _json_body(request)
        _require(payload, "tier")
        account = await run_in_threadpool(_club(request).set_subscription, account_id, payload["tier"])
        return account_payload(account)

    @app.put("/api/accounts/{account_id}/shipping")
    async def change_shipping(account_id: str, request: Request) -> dict:
        payload = await _json_body(request)
        _require(payload, "street", "city", "state", "zip_code")
        address = ShippingAddress(
            street=str(payload["street"]),
            city=str(payload["city"]),
            state=str(payload["state"]),
            zip_code=str(payload["zip_code"]),
            country=str(payload.get("country") or "US"),
        )
        club = _club(request)
        account = await run_in_threadpool(club.set_shipping_address, account_id, address)
        return {
            **account_payload(account),
            "next_shipping_date": club.next_shipping_date(account_id).isoformat(),
        }

    @app.post("/api/accounts/{account_id}/verification-code")
    async def issue_verification_code(account_id: str, request: Request) -> JSONResponse:
        account = _club(request).get_account(account_id)
        code = request.app.state.verification_codes.issue(account.email)
        return await _deliver_verification(request, account.email, code, account.name)

    @app.post("/api/accounts/{account_id}/verify-email")
    async def verify_email(account_id: str, request: Request) -> dict:
        payload = await _json_body(request)
        _require(payload, "code")
        club = _club(request)
        account = club.get_account(account_id)
        verified = request.app.state.verification_codes.check(account.email, str(payload["code"]))
        email_verified = await run_in_threadpool(club.mark_email_verified, account_id, verified)
        return {"success": verified, "email_verified": email_verified}

    @app.get("/api/accounts/{account_id}/pending")
    def pending(account_id: str, request: Request) -> dict:
        return {"tasks": [task_payload(task) for task in _club(request).pending_approvals(account_id)]}

    @app.get("/api/accounts/{account_id}/activity")
    def activity(account_id: str, request: Request, limit: Optional[int] = None) -> dict:
        events = _club(request).activity(account_id, limit=limit)
        return {
            "events": [
                {
                    "actor": event.actor,
                    "action": event.action,
                    "target": event.target,
                    "timestamp": _iso(event.timestamp),
                    "details": event.details,
                }
                for event in events
            ]
        }

    # -- children -----------------------------------------------------------
    @app.post("/api/accounts/{account_id}/children", status_code=201)
    async def add_child(account_id: str, request: Request) -> dict:
        payload = await _json_body(request)
        _require(payload, "name", "age")
        child = await run_in_threadpool(
            _club(request).add_child,
            account_id,
            str(payload["name"]),
            int(payload["age"]),
            avatar=str(payload.get("avatar") or "dog"),
        )
        return child_payload(child)

    @app.get("/api/accounts/{account_id}/children")
    def list_children(account_id: str, request: Request) -> dict:
        return {"children": [child_payload(child) for child in _club(request).children(account_id)]}

    @app.get("/api/children/{child_id}")
    def get_child(child_id: str, request: Request) -> dict:
        return child_payload(_club(request).get_child(child_id))

    @app.patch("/api/children/{child_id}")
    async def update_child(child_id: str, request: Request) -> dict:
        payload = await _json_body(request)
        child = await run_in_threadpool(
            _club(request).update_child_profile, child_id, name=payload.get("name"), avatar=payload.get("avatar")
        )
        return child_payload(child)

    @app.get("/api/children/{child_id}/progress")
    def progress(child_id: str, request: Request) -> dict:
        summary = _club(request).daily_progress(child_id)
        return {
            "day": summary.day.isoformat(),
            "total_tasks": summary.total_tasks,
            "completed_tasks": summary.completed_tasks,
            "approved_tasks": summary.approved_tasks,
            "points_earned": summary.points_earned,
        }

    # -- tasks --------------------------------------------------------------
    @app.post("/api/children/{child_id}/refresh")
    def refresh(child_id: str, request: Request) -> dict:
        result = _club(request).refresh_daily_tasks(child_id)
        return {"created": result.created, "tasks": [task_payload(task) for task in result.tasks]}

    @app.post("/api/children/{child_id}/regenerate")
    def regenerate(child_id: str, request: Request) -> dict:
        result = _club(request).regenerate_daily_tasks(child_id)
        return {
            "attempt": result.attempt,
            "rewarded": result.rewarded,
            "replaced": list(result.replaced),
            "tasks": [task_payload(task) for task in result.tasks],
        }

    @app.get("/api/children/{child_id}/regenerate/quota")
    def regenerate_quota(child_id: str, request: Request) -> dict:
        club = _club(request)
        return {
            "used": club.regenerations_today(child_id),
            "limit": REWARDED_REGENERATIONS,
            "can_regenerate_with_points": club.can_regenerate_with_points(child_id),
        }

    @app.get("/api/children/{child_id}/tasks")
    def todays_tasks(child_id: str, request: Request) -> dict:
        return {"tasks": [task_payload(task) for task in _club(request).todays_tasks(child_id)]}

    @app.get("/api/children/{child_id}/custom-tasks/quota")
    def custom_quota(child_id: str, request: Request) -> dict:
        club = _club(request)
        return {
            "used": club.custom_tasks_today(child_id),
            "limit": CUSTOM_TASK_DAILY_QUOTA,
            "can_add": club.can_add_custom_task(child_id),
        }

    @app.post("/api/children/{child_id}/custom-tasks", status_code=201)
    async def add_custom_task(child_id: str, request: Request) -> dict:
        payload = await _json_body(request)
        _require(payload, "title", "points")
        due = payload.get("due_date")
        result = await run_in_threadpool(
            _club(request).add_custom_task,
            child_id,
            str(payload["title"]),
            points=int(payload["points"]),
            description=str(payload.get("description") or ""),
            category=payload.get("category") or "general",
            due_date=date.fromisoformat(due) if due else None,
        )
        return {"task": task_payload(result.task), "rewarded": result.rewarded}

    @app.post("/api/children/{child_id}/tasks/{task_id}/submit")
    async def submit_task(child_id: str, task_id: str, request: Request) -> dict:
        payload = await _json_body(request)
        timer = payload.get("timer_seconds")
        proof = Proof(photo_ref=payload.get("photo_ref"), timer_seconds=int(timer) if timer is not None else None)
        verification = payload.get("verification")
        if verification is not None and not isinstance(verification, dict):
            raise ValueError("verification must be a JSON object.")
        task = await run_in_threadpool(
            _club(request).submit_task,
            child_id,
            task_id,
            proof=proof,
            verification=result_from_payload(verification) if verification else None,
        )
        return task_payload(task)

    @app.post("/api/accounts/{account_id}/tasks/{task_id}/approve")
    async def approve_task(account_id: str, task_id: str, request: Request) -> dict:
        payload = await _json_body(request)
        _require(payload, "passcode")
        receipt = await run_in_threadpool(_club(request).approve_task, account_id, task_id, str(payload["passcode"]))
        return receipt_payload(receipt)

    @app.post("/api/accounts/{account_id}/tasks/{task_id}/reject")
    async def reject_task(account_id: str, task_id: str, request: Request) -> dict:
        payload = await _json_body(request)
        task = await run_in_threadpool(
            _club(request).reject_task, account_id, task_id, reason=str(payload.get("reason") or "")
        )
        return task_payload(task)

    @app.post("/api/accounts/{account_id}/approve-all")
    async def approve_all(account_id: str, request: Request) -> dict:
        payload = await _json_body(request)
        _require(payload, "passcode")
        batch = await run_in_threadpool(_club(request).approve_all, account_id, str(payload["passcode"]))
        return {
            "approved": [receipt_payload(receipt) for receipt in batch.approved],
            "skipped": list(batch.skipped),
            "total_awarded": batch.total_awarded,
        }


_APP: FastAPI | None = None


def __getattr__(name: str) -> Any:
    global _APP
    if name == "app":
        if _APP is None:
            _APP = create_app()
        return _APP
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "STATUS_CODES",
    "account_payload",
    "child_payload",
    "create_app",
    "receipt_payload",
    "task_payload",
]
