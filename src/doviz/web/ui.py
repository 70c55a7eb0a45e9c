from __future__ import annotations

import uuid
from pathlib import Path
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy import func, select
from sqlalchemy.orm import Session, object_session

from doviz.api.deps import resolve_user
from doviz.core.currencies import currency_name, flag_code, normalize_currency
from doviz.core.db import db_session
from doviz.core.errors import UnknownBaseCurrency, UpstreamUnavailable
from doviz.core.security import SESSION_COOKIE, invalidate_session
from doviz.modules.conversions.models import ConversionHistory
from doviz.modules.conversions.service import convert_amount, list_conversions, record_conversion
from doviz.modules.currencies.models import Currency
from doviz.modules.currencies.service import (
    create_currency,
    delete_currency,
    list_currencies_with_latest,
    record_snapshots,
    rename_currency,
)
from doviz.modules.identity.api import issue_session
from doviz.modules.identity.models import User, UserRole
from doviz.modules.identity.service import (
    authenticate_user,
    create_user,
    list_users_with_counts,
    set_user_role,
    update_profile,
)
from doviz.modules.messages.models import Message
from doviz.modules.messages.service import (
    list_messages_for_user,
    list_recipients,
    mark_received_as_read,
    send_message,
    unread_count,
)
from doviz.modules.rates.conversion import PIVOT_CURRENCY, cross_rate
from doviz.modules.rates.service import RatesService
from doviz.modules.rates.synthetic import MAX_DETAILED_DAYS

WEB_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(WEB_DIR / "templates"))

router = APIRouter(include_in_schema=False)

# Static files path for mounting in main.py
STATIC_DIR = WEB_DIR / "static"

HISTORY_RANGES = (7, 30, 90, 180)


def _get_optional_user(request: Request, session: Session) -> User | None:
    token = getattr(request.state, "session_token", None) or request.cookies.get(SESSION_COOKIE)
    return resolve_user(session, token)


def _rates_service(request: Request) -> RatesService:
    return request.app.state.rates_service


def _safe_callback(url: str | None) -> str:
    if not url or not url.startswith("/") or url.startswith("//"):
        return "/"
    return url


def _sparkline(values: list[float], *, width: int = 600, height: int = 160) -> str:
    if len(values) < 2:
        return ""
    low, high = min(values), max(values)
    span = (high - low) or 1.0
    step = width / (len(values) - 1)
    return " ".join(
        f"{i * step:.1f},{height - (v - low) / span * height:.1f}" for i, v in enumerate(values)
    )


def _page(request: Request, name: str, context: dict, *, status_code: int = 200) -> HTMLResponse:
    user = context.get("user")
    session = object_session(user) if user is not None else None
    if session is not None:
        context.setdefault("unread", unread_count(session, user=user))
    return templates.TemplateResponse(request, name, context, status_code=status_code)


@router.get("/", response_class=HTMLResponse)
def index(
    request: Request,
    base: str = PIVOT_CURRENCY,
    from_currency: str | None = Query(None, alias="from"),
    to_currency: str | None = Query(None, alias="to"),
    amount: float | None = None,
    session: Session = Depends(db_session),
) -> HTMLResponse:
    user = _get_optional_user(request, session)
    base_code = normalize_currency(base) or PIVOT_CURRENCY
    rates_service = _rates_service(request)

    error: str | None = request.query_params.get("error")
    currencies = []
    quote_out = None
    try:
        currencies = rates_service.get_latest_rates(base_code)
    except UnknownBaseCurrency:
        error = f"Unknown base currency {base_code}"
    except UpstreamUnavailable:
        error = "Exchange rates are currently unavailable"

    if not error and from_currency and to_currency and amount is not None:
        try:
            quote_out = convert_amount(
                rates_service.get_latest_table(),
                from_currency=from_currency,
                to_currency=to_currency,
                amount=amount,
            )
        except HTTPException as e:
            error = str(e.detail)
        except UpstreamUnavailable:
            error = "Exchange rates are currently unavailable"

    codes = sorted({base_code, *(c.code for c in currencies)})
    return _page(
        request,
        "index.html",
        {
            "user": user,
            "base": base_code,
            "codes": codes,
            "currencies": currencies,
            "quote": quote_out,
            "error": error,
            "conversions": list_conversions(session, user=user, limit=10) if user else [],
        },
    )


@router.post("/conversions", response_class=RedirectResponse)
def save_conversion_ui(
    request: Request,
    from_currency: str = Form(""),
    to_currency: str = Form(""),
    amount: float = Form(0.0),
    converted_amount: float = Form(0.0),
    rate: float = Form(0.0),
    session: Session = Depends(db_session),
) -> RedirectResponse:
    user = _get_optional_user(request, session)
    if not user:
        return RedirectResponse(url="/login?callbackUrl=/", status_code=303)
    try:
        record_conversion(
            session,
            user=user,
            from_currency=from_currency,
            to_currency=to_currency,
            amount=amount,
            converted_amount=converted_amount,
            rate=rate,
        )
    except HTTPException as e:
        return RedirectResponse(url=f"/?error={quote(str(e.detail))}", status_code=303)
    return RedirectResponse(url="/", status_code=303)


@router.get("/currency/{code}", response_class=HTMLResponse)
def currency_detail(
    request: Request,
    code: str,
    base: str = PIVOT_CURRENCY,
    days: int = Query(30, ge=0, le=MAX_DETAILED_DAYS),
    session: Session = Depends(db_session),
) -> HTMLResponse:
    user = _get_optional_user(request, session)
    code_norm = normalize_currency(code)
    base_code = normalize_currency(base) or PIVOT_CURRENCY
    if not code_norm:
        raise HTTPException(status_code=404, detail="Unknown currency")

    rates_service = _rates_service(request)
    current: float | None = None
    error: str | None = None
    try:
        table = rates_service.get_latest_table()
        current = (
            1.0 if code_norm == base_code else cross_rate(table, code=code_norm, base=base_code)
        )
    except UpstreamUnavailable:
        error = "Exchange rates are currently unavailable"

    samples = rates_service.get_historical_data(code_norm, base_code, days)
    values = [s.value for s in samples]
    return _page(
        request,
        "currency_detail.html",
        {
            "user": user,
            "code": code_norm,
            "name": currency_name(code_norm),
            "flag": flag_code(code_norm),
            "base": base_code,
            "days": days,
            "ranges": HISTORY_RANGES,
            "current": current,
            "samples": samples,
            "low": min(values) if values else None,
            "high": max(values) if values else None,
            "sparkline": _sparkline(values),
            "error": error,
        },
    )


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request, callbackUrl: str | None = None) -> HTMLResponse:  # noqa: N803
    return _page(
        request, "login.html", {"error": None, "callback_url": _safe_callback(callbackUrl)}
    )


@router.post("/login", response_class=RedirectResponse)
def login_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    callback_url: str = Form("/"),
    session: Session = Depends(db_session),
) -> RedirectResponse:
    try:
        user = authenticate_user(session, email=email, password=password)
    except HTTPException:
        return _page(
            request,
            "login.html",
            {"error": "Invalid credentials", "callback_url": _safe_callback(callback_url)},
            status_code=401,
        )

    resp = RedirectResponse(url=_safe_callback(callback_url), status_code=303)
    issue_session(resp, user)
    return resp


@router.get("/register", response_class=HTMLResponse)
def register_page(request: Request) -> HTMLResponse:
    return _page(request, "register.html", {"error": None})


@router.post("/register", response_class=RedirectResponse)
def register_submit(
    request: Request,
    name: str = Form(""),
    email: str = Form(...),
    password: str = Form(...),
    session: Session = Depends(db_session),
) -> RedirectResponse:
    try:
        user = create_user(session, email=email, password=password, name=name or None)
    except HTTPException as e:
        return _page(request, "register.html", {"error": e.detail}, status_code=e.status_code)

    resp = RedirectResponse(url="/", status_code=303)
    issue_session(resp, user)
    return resp


@router.api_route("/logout", methods=["GET", "POST"], response_class=RedirectResponse)
def logout() -> RedirectResponse:
    resp = RedirectResponse(url="/login", status_code=303)
    if not invalidate_session(resp):
        raise HTTPException(status_code=500, detail="Could not clear session")
    return resp


@router.get("/unauthorized", response_class=HTMLResponse)
def unauthorized_page(request: Request, session: Session = Depends(db_session)) -> HTMLResponse:
    user = _get_optional_user(request, session)
    return _page(request, "unauthorized.html", {"user": user}, status_code=403)


@router.get("/profile", response_class=HTMLResponse)
def profile_page(request: Request, session: Session = Depends(db_session)) -> HTMLResponse:
    user = _get_optional_user(request, session)
    if not user:
        return RedirectResponse(url="/login?callbackUrl=/profile", status_code=303)
    return _page(
        request,
        "profile.html",
        {
            "user": user,
            "error": None,
            "saved": request.query_params.get("saved") == "1",
            "conversions": list_conversions(session, user=user),
        },
    )


@router.post("/profile", response_class=RedirectResponse)
def profile_submit(
    request: Request,
    name: str = Form(""),
    email: str = Form(...),
    current_password: str = Form(""),
    new_password: str = Form(""),
    session: Session = Depends(db_session),
) -> RedirectResponse:
    user = _get_optional_user(request, session)
    if not user:
        return RedirectResponse(url="/login?callbackUrl=/profile", status_code=303)
    try:
        updated = update_profile(
            session,
            user=user,
            name=name or None,
            email=email,
            current_password=current_password or None,
            new_password=new_password or None,
        )
    except HTTPException as e:
        return _page(
            request,
            "profile.html",
            {
                "user": user,
                "error": e.detail,
                "saved": False,
                "conversions": list_conversions(session, user=user),
            },
            status_code=e.status_code,
        )

    resp = RedirectResponse(url="/profile?saved=1", status_code=303)
    # The email is part of the session claims.
    issue_session(resp, updated)
    return resp


@router.get("/messages", response_class=HTMLResponse)
def messages_page(request: Request, session: Session = Depends(db_session)) -> HTMLResponse:
    user = _get_optional_user(request, session)
    if not user:
        return RedirectResponse(url="/login?callbackUrl=/messages", status_code=303)
    resp = _page(
        request,
        "messages.html",
        {
            "user": user,
            "messages": list_messages_for_user(session, user=user),
            "recipients": list_recipients(session, user=user),
            "error": request.query_params.get("error"),
        },
    )
    # Rendered above, so unread messages are still highlighted this once.
    mark_received_as_read(session, user=user)
    return resp


@router.post("/messages", response_class=RedirectResponse)
def send_message_ui(
    request: Request,
    receiver_id: str = Form(""),
    content: str = Form(""),
    session: Session = Depends(db_session),
) -> RedirectResponse:
    user = _get_optional_user(request, session)
    if not user:
        return RedirectResponse(url="/login?callbackUrl=/messages", status_code=303)
    try:
        receiver_uuid = uuid.UUID(receiver_id) if receiver_id else None
    except ValueError:
        receiver_uuid = None
    try:
        send_message(session, sender=user, receiver_id=receiver_uuid, content=content)
    except HTTPException as e:
        return RedirectResponse(url=f"/messages?error={quote(str(e.detail))}", status_code=303)
    return RedirectResponse(url="/messages", status_code=303)


def _admin_or_redirect(request: Request, session: Session) -> User | RedirectResponse:
    user = _get_optional_user(request, session)
    if not user:
        return RedirectResponse(url="/login?callbackUrl=/admin", status_code=303)
    if user.role != UserRole.ADMIN:
        return RedirectResponse(url="/unauthorized", status_code=303)
    return user


@router.get("/admin", response_class=HTMLResponse)
def admin_page(request: Request, session: Session = Depends(db_session)) -> HTMLResponse:
    user = _admin_or_redirect(request, session)
    if isinstance(user, RedirectResponse):
        return user
    counts = {
        "users": session.scalar(select(func.count(User.id))) or 0,
        "currencies": session.scalar(select(func.count(Currency.id))) or 0,
        "messages": session.scalar(select(func.count(Message.id))) or 0,
        "conversions": session.scalar(select(func.count(ConversionHistory.id))) or 0,
    }
    return _page(request, "admin.html", {"user": user, "counts": counts})


@router.get("/admin/currencies", response_class=HTMLResponse)
def admin_currencies_page(
    request: Request, session: Session = Depends(db_session)
) -> HTMLResponse:
    user = _admin_or_redirect(request, session)
    if isinstance(user, RedirectResponse):
        return user
    return _page(
        request,
        "admin_currencies.html",
        {
            "user": user,
            "rows": list_currencies_with_latest(session),
            "error": request.query_params.get("error"),
        },
    )


def _admin_currencies_redirect(error: str | None = None) -> RedirectResponse:
    url = "/admin/currencies"
    if error:
        url = f"{url}?error={quote(error)}"
    return RedirectResponse(url=url, status_code=303)


@router.post("/admin/currencies", response_class=RedirectResponse)
def admin_create_currency(
    request: Request,
    code: str = Form(""),
    name: str = Form(""),
    session: Session = Depends(db_session),
) -> RedirectResponse:
    user = _admin_or_redirect(request, session)
    if isinstance(user, RedirectResponse):
        return user
    try:
        create_currency(session, code=code, name=name or currency_name(code.strip().upper()))
    except HTTPException as e:
        return _admin_currencies_redirect(str(e.detail))
    return _admin_currencies_redirect()


@router.post("/admin/currencies/snapshots", response_class=RedirectResponse)
def admin_record_snapshots(
    request: Request,
    base: str = Form(PIVOT_CURRENCY),
    session: Session = Depends(db_session),
) -> RedirectResponse:
    user = _admin_or_redirect(request, session)
    if isinstance(user, RedirectResponse):
        return user
    base_code = normalize_currency(base) or PIVOT_CURRENCY
    try:
        latest = _rates_service(request).get_latest_rates(base_code)
    except (UnknownBaseCurrency, UpstreamUnavailable) as e:
        return _admin_currencies_redirect(str(e))
    record_snapshots(session, rates=latest, base_code=base_code)
    return _admin_currencies_redirect()


@router.post("/admin/currencies/{code}/update", response_class=RedirectResponse)
def admin_rename_currency(
    request: Request,
    code: str,
    name: str = Form(""),
    session: Session = Depends(db_session),
) -> RedirectResponse:
    user = _admin_or_redirect(request, session)
    if isinstance(user, RedirectResponse):
        return user
    try:
        rename_currency(session, code=code, name=name)
    except HTTPException as e:
        return _admin_currencies_redirect(str(e.detail))
    return _admin_currencies_redirect()


@router.post("/admin/currencies/{code}/delete", response_class=RedirectResponse)
def admin_delete_currency(
    request: Request, code: str, session: Session = Depends(db_session)
) -> RedirectResponse:
    user = _admin_or_redirect(request, session)
    if isinstance(user, RedirectResponse):
        return user
    try:
        delete_currency(session, code=code)
    except HTTPException as e:
        return _admin_currencies_redirect(str(e.detail))
    return _admin_currencies_redirect()


@router.get("/admin/users", response_class=HTMLResponse)
def admin_users_page(request: Request, session: Session = Depends(db_session)) -> HTMLResponse:
    user = _admin_or_redirect(request, session)
    if isinstance(user, RedirectResponse):
        return user
    return _page(
        request,
        "admin_users.html",
        {
            "user": user,
            "rows": list_users_with_counts(session),
            "roles": [r.value for r in UserRole],
            "error": request.query_params.get("error"),
        },
    )


@router.post("/admin/users/{user_id}/role", response_class=RedirectResponse)
def admin_set_role(
    request: Request,
    user_id: uuid.UUID,
    role: str = Form(...),
    session: Session = Depends(db_session),
) -> RedirectResponse:
    admin = _admin_or_redirect(request, session)
    if isinstance(admin, RedirectResponse):
        return admin
    try:
        set_user_role(session, user_id=user_id, role=UserRole(role), actor=admin)
    except ValueError:
        return RedirectResponse(url=f"/admin/users?error={quote('Invalid role')}", status_code=303)
    except HTTPException as e:
        return RedirectResponse(url=f"/admin/users?error={quote(str(e.detail))}", status_code=303)
    return RedirectResponse(url="/admin/users", status_code=303)
