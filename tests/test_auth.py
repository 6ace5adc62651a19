"""
Tests for authentication module.

Tests cover:
- Auth bypass when disabled
- Login flow (mocked streamlit components)
- Non-blocking username lookup used by the demo page
- Audit logging for auth events

Note: These tests mock streamlit components since they require browser context.
"""

from unittest.mock import MagicMock, patch

import pytest


class MockSessionState(dict):
    """Dict subclass that allows attribute assignment for mocking st.session_state."""
    pass


class StopExecution(Exception):
    """Exception to simulate st.stop() behavior."""
    pass


# ============================================================================
# AUTH DISABLED TESTS
# ============================================================================


def test_require_auth_returns_anonymous_when_disabled():
    """Test that require_auth returns 'anonymous' when auth is disabled."""
    with patch("insights.auth.settings") as mock_settings:
        mock_settings.auth_enabled = False

        from insights.auth import require_auth

        assert require_auth() == "anonymous"


def test_current_username_none_when_disabled():
    """Test that the demo page sees an anonymous visitor when auth is disabled."""
    with patch("insights.auth.settings") as mock_settings:
        mock_settings.auth_enabled = False

        from insights.auth import current_username

        assert current_username() is None


def test_render_logout_does_nothing_when_disabled():
    """Test that render_logout is a no-op when auth is disabled."""
    with patch("insights.auth.settings") as mock_settings, patch(
        "insights.auth.get_authenticator"
    ) as mock_get_auth:
        mock_settings.auth_enabled = False

        from insights.auth import render_logout

        render_logout()

        mock_get_auth.assert_not_called()


# ============================================================================
# AUTH ENABLED TESTS (with mocked streamlit)
# ============================================================================


@pytest.fixture
def mock_streamlit():
    """Mock streamlit components for testing."""
    with patch("insights.auth.st") as mock_st:
        mock_st.session_state = MockSessionState()
        mock_st.secrets = {
            "auth": {
                "cookie_name": "test_cookie",
                "cookie_key": "test_key_32_chars_for_testing!!",
                "cookie_expiry_days": 1,
                "credentials": {
                    "usernames": {
                        "testuser": {
                            "name": "Test User",
                            "password": "$2b$12$hashedpassword",
                        }
                    }
                },
            }
        }
        # Make st.stop() raise an exception to actually stop execution
        mock_st.stop.side_effect = StopExecution()
        yield mock_st


@pytest.fixture
def mock_settings_enabled():
    """Mock settings with auth enabled."""
    with patch("insights.auth.settings") as mock_settings:
        mock_settings.auth_enabled = True
        yield mock_settings


def test_get_authenticator_creates_instance_once(mock_streamlit):
    """Test that get_authenticator builds one Authenticate per session."""
    with patch("insights.auth.stauth.Authenticate") as MockAuth:
        MockAuth.return_value = MagicMock()

        from insights.auth import get_authenticator

        first = get_authenticator()
        second = get_authenticator()

        MockAuth.assert_called_once()
        assert first is second
        credentials = MockAuth.call_args.kwargs["credentials"]
        assert credentials["usernames"]["testuser"]["email"] == ""


def test_require_auth_stops_when_not_attempted(mock_streamlit, mock_settings_enabled):
    """Test that require_auth stops when no login was attempted yet."""
    with patch("insights.auth.stauth.Authenticate") as MockAuth:
        MockAuth.return_value = MagicMock()

        from insights.auth import require_auth

        with pytest.raises(StopExecution):
            require_auth()

        mock_streamlit.info.assert_called()


def test_require_auth_behavior_on_failed_login(mock_streamlit, mock_settings_enabled):
    """Test behavior when authentication_status is False (failed login)."""
    with patch("insights.auth.get_authenticator"), patch("insights.auth.log_auth") as mock_log:
        mock_streamlit.session_state["demo_session_id"] = "demo_1"
        mock_streamlit.session_state["authentication_status"] = False

        from insights.auth import require_auth

        with pytest.raises(StopExecution):
            require_auth()

        mock_streamlit.error.assert_called()
        mock_log.assert_called_once()
        assert mock_log.call_args[0][1] == "demo_1"
        assert mock_log.call_args[0][2] == "login_failed"


def test_require_auth_behavior_on_successful_login(mock_streamlit, mock_settings_enabled):
    """Test behavior when authentication_status is True (successful login)."""
    with patch("insights.auth.get_authenticator"), patch("insights.auth.log_auth") as mock_log:
        mock_streamlit.session_state["authentication_status"] = True
        mock_streamlit.session_state["username"] = "testuser"

        from insights.auth import require_auth

        assert require_auth() == "testuser"
        mock_log.assert_called_once()
        assert mock_log.call_args[0][2] == "login_success"


def test_require_auth_skips_log_when_already_logged(mock_streamlit, mock_settings_enabled):
    """Test that repeated auth checks don't re-log (cookie restore scenario)."""
    with patch("insights.auth.get_authenticator"), patch("insights.auth.log_auth") as mock_log:
        mock_streamlit.session_state["authentication_status"] = True
        mock_streamlit.session_state["username"] = "testuser"
        mock_streamlit.session_state["auth_logged"] = True

        from insights.auth import require_auth

        assert require_auth() == "testuser"
        mock_log.assert_not_called()


def test_current_username_when_signed_in(mock_streamlit, mock_settings_enabled):
    """Test that current_username reads the authenticated username without a form."""
    with patch("insights.auth.get_authenticator") as mock_get_auth:
        mock_streamlit.session_state["authentication_status"] = True
        mock_streamlit.session_state["username"] = "testuser"

        from insights.auth import current_username

        assert current_username() == "testuser"
        mock_get_auth.assert_not_called()


def test_current_username_none_when_not_signed_in(mock_streamlit, mock_settings_enabled):
    """Test that anonymous visitors get None."""
    from insights.auth import current_username

    assert current_username() is None


def test_render_logout_when_signed_in(mock_streamlit, mock_settings_enabled):
    """Test that a signed-in user gets the sidebar logout button."""
    with patch("insights.auth.get_authenticator") as mock_get_auth:
        mock_streamlit.session_state["authentication_status"] = True
        mock_streamlit.session_state["username"] = "testuser"

        from insights.auth import render_logout

        render_logout()

        mock_get_auth.return_value.logout.assert_called_once()
        assert mock_get_auth.return_value.logout.call_args.kwargs["location"] == "sidebar"


def test_logout_callback_logs_event(mock_streamlit, mock_settings_enabled):
    """Test that the logout callback emits an auth audit event."""
    with patch("insights.auth.get_authenticator") as mock_get_auth, patch(
        "insights.auth.log_auth"
    ) as mock_log:
        mock_streamlit.session_state["authentication_status"] = True
        mock_streamlit.session_state["username"] = "testuser"

        from insights.auth import render_logout

        render_logout()
        callback = mock_get_auth.return_value.logout.call_args.kwargs["callback"]
        callback({})

        assert mock_log.call_args[0][2] == "logout"
