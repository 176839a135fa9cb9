"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- POST /auth/logout-all

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and long-lived refresh tokens through the
  SessionEngine, which records every refresh token so it can be rotated once
  and revoked
- Carries both tokens in httpOnly cookies (utils.cookies) and echoes them in
  the response body
- Authentication failures raise AuthError subclasses; api/errors.py turns
  them into one uniform 401 shape
"""
from __future__ import annotations

import logging

from flask import Blueprint, request, jsonify, g, abort, make_response

from models.user import User
from models.schemas.user import UserCreateSchema, UserOutSchema, UserLoginSchema, TokensOutSchema

from api.deps import get_storage, get_engine, get_cookie_policy
from utils.decorators import jwt_required
from utils.exceptions import InvalidCredentials, InvalidRefreshToken
from utils.cookies import read_refresh_token
from utils.security import hash_password, verify_password, needs_rehash

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__, url_prefix="/auth")

user_create_schema = UserCreateSchema()
user_out_schema = UserOutSchema()
user_login_schema = UserLoginSchema()
tokens_out_schema = TokensOutSchema()


def _session_response(pair, status: int):
    """Body with user + tokens, and both auth cookies set."""
    body = {
        "data": {
            "user": user_out_schema.dump(pair.principal),
            "tokens": tokens_out_schema.dump(pair),
        }
    }
    response = make_response(jsonify(body), status)
    get_cookie_policy().set_auth_cookies(response, pair.access_token, pair.refresh_token)
    return response


@bp.post("/register")
def register():
    """
    Register a new user and start a session.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
            password: { type: string }
            name: { type: string }
    responses:
      201:
        description: Created (sets accessToken and refreshToken cookies)
      409:
        description: Email already registered
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = user_create_schema.load(payload)

    storage = get_storage()
    session = storage.get_session()
    if session.query(User).filter(User.email == data["email"]).first():
        abort(409, description="Email already registered")

    user = User(
        email=data["email"],
        name=data["name"],
        password_hash=hash_password(data["password"]),
    )
    storage.new(user)
    storage.save()
    logger.info("registered user %s", user.id)

    pair = get_engine().issue(user)
    return _session_response(pair, 201)


@bp.post("/login")
def login():
    """
    Login: start a session, returns and sets access and refresh tokens
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (sets accessToken and refreshToken cookies)
      401:
        description: Invalid email or password
    """
    payload = request.get_json(silent=True) or {}
    data = user_login_schema.load(payload)

    storage = get_storage()
    session = storage.get_session()
    user: User | None = session.query(User).filter(User.email == data["email"]).first()
    # verify_password runs even for unknown emails so both failures take as long
    password_ok = verify_password(data["password"], user.password_hash if user else None)
    if not user or not password_ok:
        raise InvalidCredentials(f"login failed for {data['email']}")

    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(data["password"])
        storage.new(user)
        storage.save()

    pair = get_engine().issue(user)
    return _session_response(pair, 200)


@bp.post("/refresh")
def refresh():
    """
    Rotate the refresh token: the presented one is retired, a new pair is issued.
    Reads the refreshToken cookie, or { "refresh_token": "<token>" } in the body.
    ---
    tags:
      - Auth
    responses:
      200:
        description: OK (sets new accessToken and refreshToken cookies)
      401:
        description: Invalid or expired token
    """
    token = read_refresh_token(request)
    if not token:
        raise InvalidRefreshToken("no refresh token presented")
    pair = get_engine().rotate(token)
    return _session_response(pair, 200)


@bp.post("/logout")
def logout():
    """
    Logout: revoke the refresh token's session and clear both cookies.
    Always succeeds, even for a missing, malformed or expired token.
    ---
    tags:
      - Auth
    responses:
      200:
        description: Logged out
    """
    get_engine().revoke_by_refresh_token(read_refresh_token(request))
    response = make_response(jsonify({"data": {"message": "Successfully logged out"}}), 200)
    get_cookie_policy().clear_auth_cookies(response)
    return response


@bp.post("/logout-all")
@jwt_required()
def logout_all():
    """
    Revoke every session of the current user and clear both cookies.
    Access tokens already issued stay valid until they expire.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Sessions revoked
      401:
        description: Invalid or expired token
    """
    count = get_engine().revoke_all_for_principal(g.current_user.id)
    response = make_response(jsonify({"data": {"revoked": count}}), 200)
    get_cookie_policy().clear_auth_cookies(response)
    return response
