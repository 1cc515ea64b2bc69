import pytest
from rest_framework.test import APIClient

from hms_core.conftest import make_user

pytestmark = pytest.mark.django_db


def test_me_requires_auth():
    # fresh client: the api_client fixture is already authenticated
    res = APIClient().get("/api/v1/me/")
    assert res.status_code in (401, 403)


def test_login_sets_cookies_and_cookie_auth_works(settings):
    user = make_user("cookie-user", "NURSE")
    user.set_password("Pass@12345")
    user.save(update_fields=["password"])

    c = APIClient()
    res = c.post("/api/v1/auth/login/", {"username": "cookie-user", "password": "Pass@12345"}, format="json")
    assert res.status_code == 200

    access_cookie = settings.SIMPLE_JWT["AUTH_COOKIE"]
    refresh_cookie = settings.SIMPLE_JWT["AUTH_COOKIE_REFRESH"]
    assert access_cookie in res.cookies
    assert refresh_cookie in res.cookies

    # the test client keeps cookies, so /me/ authenticates through the access cookie
    res = c.get("/api/v1/me/")
    assert res.status_code == 200
    assert res.json()["user"]["username"] == "cookie-user"
    assert res.json()["roles"] == ["NURSE"]


def test_login_with_bad_password_fails():
    make_user("someone", "NURSE")
    res = APIClient().post("/api/v1/auth/login/", {"username": "someone", "password": "wrong"}, format="json")
    assert res.status_code == 401


def test_refresh_from_cookie(settings):
    user = make_user("refresher")
    user.set_password("Pass@12345")
    user.save(update_fields=["password"])

    c = APIClient()
    c.post("/api/v1/auth/login/", {"username": "refresher", "password": "Pass@12345"}, format="json")

    res = c.post("/api/v1/auth/refresh/", {}, format="json")
    assert res.status_code == 200
    assert settings.SIMPLE_JWT["AUTH_COOKIE"] in res.cookies


def test_user_without_groups_is_readonly(db):
    user = make_user("plain")
    c = APIClient()
    c.force_authenticate(user=user)

    res = c.get("/api/v1/me/")
    assert res.json()["roles"] == ["READONLY"]


def test_logout_clears_cookies(api_client, settings):
    res = api_client.post("/api/v1/auth/logout/", {}, format="json")
    assert res.status_code == 200
    assert res.cookies[settings.SIMPLE_JWT["AUTH_COOKIE"]].value == ""
