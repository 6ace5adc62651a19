"""
Optional sign-in using streamlit-authenticator.

Design: Simple secrets-based auth, replaceable with OAuth2/LDAP.
- The demo page is public: anonymous visitors get a demo session and quota
- Signed-in users are not subject to the demo quota and own their history
- The History page requires sign-in

SECURITY:
- Passwords stored as bcrypt hashes in .streamlit/secrets.toml
  (see create_user.py)
- Cookie-based session persistence
- Audit logging for all auth events
"""

from __future__ import annotations

import streamlit as st
import streamlit_authenticator as stauth

from insights.audit_log import generate_request_id, log_auth
from insights.settings import settings


def get_authenticator() -> stauth.Authenticate:
    """Get or create authenticator, stored in session_state to persist across pages.

    Storing in session_state prevents DuplicateWidgetId errors and preserves login state.
    """
    if "authenticator" in st.session_state:
        return st.session_state["authenticator"]

    config = st.secrets["auth"]

    # Deep copy: streamlit-authenticator mutates credentials to track failed logins,
    # st.secrets does not support item assignment
    credentials = {"usernames": {}}
    for username, user_data in config["credentials"]["usernames"].items():
        credentials["usernames"][username] = {
            "email": user_data.get("email", ""),
            "name": user_data["name"],
            "password": user_data["password"],
        }

    authenticator = stauth.Authenticate(
        credentials=credentials,
        cookie_name=config["cookie_name"],
        cookie_key=config["cookie_key"],
        cookie_expiry_days=config["cookie_expiry_days"],
    )

    st.session_state["authenticator"] = authenticator
    return authenticator


def _audit_session() -> str:
    return st.session_state.get("demo_session_id", "unknown")


def current_username() -> str | None:
    """
    Username of the signed-in visitor, or None for anonymous visitors.

    Never renders a form and never stops the script: the demo page calls this
    to decide between user-owned and demo-session-owned analyses.
    """
    if not settings.auth_enabled:
        return None
    if st.session_state.get("authentication_status") is True:
        return st.session_state.get("username")
    return None


def require_auth() -> str:
    """
    Require authentication. Returns username if authenticated.
    Displays login form and stops execution if not.
    """
    if not settings.auth_enabled:
        return "anonymous"

    authenticator = get_authenticator()

    # Renders the form AND checks cookies
    authenticator.login(location="main")

    status = st.session_state.get("authentication_status")
    username = st.session_state.get("username")

    request_id = generate_request_id()

    if status is False:
        log_auth(request_id, _audit_session(), "login_failed")
        st.error("Incorrect username or password")
        st.stop()
    elif status is None:
        st.info("Please sign in to see your saved analyses")
        st.stop()

    # Log only on fresh login (not cookie restore)
    if "auth_logged" not in st.session_state:
        log_auth(request_id, _audit_session(), "login_success")
        st.session_state["auth_logged"] = True

    return username


def render_logout() -> None:
    """Render logout button in sidebar."""
    if not settings.auth_enabled or current_username() is None:
        return
    authenticator = get_authenticator()
    authenticator.logout(
        "Sign out",
        location="sidebar",
        callback=lambda _: log_auth(generate_request_id(), _audit_session(), "logout"),
    )
