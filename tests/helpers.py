from datetime import date, timedelta

from models import db
from models.user import Role, User
from security.csrf import CSRF_COOKIE, CSRF_HEADER

TODAY = date(2026, 10, 19)
PLAY_DAY = TODAY + timedelta(days=3)


def future_day(days: int = 7) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def register_and_login(client, email, password="court1234", full_name=None):
    client.post("/auth/register", json={"email": email, "password": password, "full_name": full_name})
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200
    return resp.get_json()


def csrf_headers(client) -> dict:
    cookie = client.get_cookie(CSRF_COOKIE)
    return {CSRF_HEADER: cookie.value} if cookie else {}


def grant_role(app, email, role_name):
    with app.app_context():
        user = User.query.filter_by(email=email).first()
        user.roles.append(Role.query.filter_by(name=role_name).first())
        db.session.commit()
