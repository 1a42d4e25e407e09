from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User, Role
from security.csrf import issue_csrf_token
from security.password import hash_password, verify_password, password_problems
from security.session import create_session, revoke_session
from utils.audit import log_event
from utils.auth_context import login_required


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _user_json(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "phone": user.phone,
        "location": user.location,
        "favorite_sports": list(user.favorite_sports or []),
        "roles": sorted(user.role_names),
    }


def _set_session_cookie(resp, token: str):
    resp.set_cookie(
        current_app.config.get("AUTH_COOKIE_NAME", "quickcourt_session"),
        token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 28800),
        path="/",
    )
    return issue_csrf_token(resp)


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    problems = password_problems(password, current_app.config.get("PASSWORD_MIN_LEN", 8))
    if problems:
        return jsonify(error="Password does not meet policy", details=problems), 400

    if User.query.filter_by(email=email).first():
        return jsonify(error="Email already registered"), 409

    user = User(
        email=email,
        password_hash=hash_password(password),
        full_name=(data.get("full_name") or "").strip() or None,
        phone=(data.get("phone") or "").strip() or None,
    )
    role = Role.query.filter_by(name="USER").first()
    if role:
        user.roles.append(role)
    db.session.add(user)
    db.session.commit()

    log_event("REGISTER", user_id=user.id, entity="user", entity_id=user.id)
    return jsonify(_user_json(user)), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first() if email else None
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", metadata={"email": email})
        return jsonify(error="Invalid email or password"), 401

    token = create_session(user.id)
    log_event("LOGIN_SUCCESS", user_id=user.id, entity="user", entity_id=user.id)

    resp = jsonify(_user_json(user))
    return _set_session_cookie(resp, token), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "quickcourt_session")
    revoke_session(request.cookies.get(cookie_name))
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(_user_json(g.user)), 200


PROFILE_TEXT_FIELDS = {"full_name": 120, "phone": 30, "location": 160}

# roles a user may pick for themselves; anything else is granted by an admin
SELECTABLE_ROLES = {"user": "USER", "owner": "OWNER"}


@auth_bp.patch("/me")
@login_required
def update_profile():
    data = request.get_json(silent=True) or {}
    user = g.user
    changed = []

    for field, max_len in PROFILE_TEXT_FIELDS.items():
        if field not in data:
            continue
        value = data[field]
        if value is not None and not isinstance(value, str):
            return jsonify(error=f"{field} must be text"), 400
        value = (value or "").strip() or None
        if value and len(value) > max_len:
            return jsonify(error=f"{field} must be at most {max_len} characters"), 400
        setattr(user, field, value)
        changed.append(field)

    if "favorite_sports" in data:
        sports = data["favorite_sports"]
        if not isinstance(sports, list) or not all(isinstance(s, str) for s in sports):
            return jsonify(error="favorite_sports must be a list of sport names"), 400
        cleaned = []
        for s in sports:
            s = s.strip()
            if s and s.lower() not in {c.lower() for c in cleaned}:
                cleaned.append(s)
        user.favorite_sports = cleaned
        changed.append("favorite_sports")

    if not changed:
        return jsonify(error="Nothing to update"), 400

    db.session.commit()
    log_event("PROFILE_UPDATE", user_id=user.id, entity="user", entity_id=user.id, metadata={"fields": changed})
    return jsonify(_user_json(user)), 200


@auth_bp.post("/me/role")
@login_required
def select_role():
    """
    One-time account type choice after sign-up: stay a player or become a
    venue owner. Owners cannot switch back and admins are not affected.
    """
    data = request.get_json(silent=True) or {}
    choice = data.get("role")
    role_name = SELECTABLE_ROLES.get(choice.strip().lower()) if isinstance(choice, str) else None
    if not role_name:
        return jsonify(error="role must be 'user' or 'owner'"), 400

    user = g.user
    if user.role_names - {"USER"}:
        return jsonify(error="Account type already selected"), 409

    if role_name == "OWNER":
        owner = Role.query.filter_by(name="OWNER").first()
        if not owner:
            owner = Role(name="OWNER")
            db.session.add(owner)
        user.roles.append(owner)
        db.session.commit()

    log_event("ROLE_SELECT", user_id=user.id, entity="user", entity_id=user.id, metadata={"role": role_name})
    return jsonify(_user_json(user)), 200
