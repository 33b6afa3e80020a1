import logging

from core.extensions import db, bcrypt
from core.imports import create_access_token, IntegrityError, or_
from core.auth import CUSTOMER, STAFF
from core.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from models.userModel import Account

logger = logging.getLogger(__name__)


def _create_account(data, role):
    data = data or {}
    username = (data.get("username") or "").strip()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not username or not email or not password:
        raise ValidationError("username, email and password are required")
    if len(password) < 6:
        raise ValidationError("Password must be at least 6 characters")

    if Account.query.filter_by(username=username).first():
        raise ConflictError("Username already exists", status_code=400)
    if Account.query.filter_by(email=email).first():
        raise ConflictError("Email already exists", status_code=400)

    account = Account(
        username=username,
        email=email,
        password=bcrypt.generate_password_hash(password).decode("utf-8"),
        role=role,
        name=data.get("name") or username,
        phone=data.get("phone"),
    )
    db.session.add(account)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Username or email already exists", status_code=400)
    logger.info("created %s account %s", role, account.id)
    return account


def register_customer(data):
    return _create_account(data, CUSTOMER)


def create_staff(data):
    return _create_account(data, STAFF)


def issue_token(account):
    return create_access_token(identity=str(account.id), additional_claims={"role": account.role})


def login(data):
    data = data or {}
    login_name = (data.get("username") or data.get("email") or "").strip()
    password = data.get("password") or ""
    if not login_name or not password:
        raise ValidationError("username and password are required")

    account = Account.query.filter(
        or_(Account.username == login_name, Account.email == login_name.lower())
    ).first()
    if not account or not bcrypt.check_password_hash(account.password, password):
        raise UnauthorizedError("Invalid credentials")
    if account.status != "active":
        raise UnauthorizedError("Account is disabled")
    return account, issue_token(account)


ACCOUNT_STATUSES = ("active", "locked")


def list_accounts(role=None, status=None, search=None, page=1, limit=20):
    query = Account.query
    if role:
        query = query.filter(Account.role == role)
    if status:
        query = query.filter(Account.status == status)
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Account.username.ilike(like), Account.email.ilike(like),
                                 Account.name.ilike(like)))
    total = query.count()
    accounts = query.order_by(Account.id.asc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "accounts": [a.to_dict() for a in accounts],
        "total": total,
        "currentPage": page,
        "totalPages": (total + limit - 1) // limit if limit else 0,
    }


def set_account_status(account_id, status, actor_id):
    """Lock or unlock an account. Locked accounts cannot log in."""
    if status not in ACCOUNT_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(ACCOUNT_STATUSES)}")
    account = db.session.get(Account, account_id)
    if not account:
        raise NotFoundError("Account not found")
    if account.id == actor_id:
        raise ValidationError("You cannot change the status of your own account")
    account.status = status
    db.session.commit()
    logger.info("account %s set to %s by %s", account.id, status, actor_id)
    return account
