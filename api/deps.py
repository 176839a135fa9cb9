"""Accessors for the collaborators create_app() wires into app.extensions."""
from flask import current_app

from models.db_storage import DBStorage
from utils.cookies import CookiePolicy
from utils.sessions import SessionEngine


def get_storage() -> DBStorage:
    return current_app.extensions["storage"]


def get_engine() -> SessionEngine:
    return current_app.extensions["session_engine"]


def get_cookie_policy() -> CookiePolicy:
    return current_app.extensions["cookie_policy"]
