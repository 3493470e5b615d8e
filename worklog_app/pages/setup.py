"""Connection setup page: collect Jira credentials and initialize WorklogService."""

from __future__ import annotations

import logging

import streamlit as st

from worklog_app.app import register_page
from worklog_app.core.config import AppSettings
from worklog_app.core.errors import ExternalServiceError
from worklog_app.core.models import Credentials
from worklog_app.core.service import WorklogService
from worklog_app.visual.progress import describe_error

logger = logging.getLogger(__name__)


def jira_secrets() -> tuple[str | None, str | None, str | None]:
    """Server, email and token from a ``[jira]`` secrets section or top level."""
    section = st.secrets.get("jira", {})
    server = section.get("JIRA_SERVER") or st.secrets.get("JIRA_SERVER")
    email = section.get("JIRA_EMAIL") or st.secrets.get("JIRA_EMAIL")
    token = (
        section.get("JIRA_API_TOKEN")
        or st.secrets.get("JIRA_API_TOKEN")
        or section.get("JIRA_TOKEN")
        or st.secrets.get("JIRA_TOKEN")
    )
    return server, email, token


def secret_settings() -> AppSettings:
    return AppSettings.from_mapping(st.secrets.get("worklog", {}))


def connect(credentials: Credentials, settings: AppSettings) -> WorklogService:
    """Create a service, verify the credentials and store both in the session."""
    service = WorklogService(settings)
    user = service.get_current_user(credentials)
    st.session_state["credentials"] = credentials
    st.session_state["jira_server"] = credentials.server
    st.session_state["jira_email"] = credentials.email
    st.session_state["current_user"] = user
    st.session_state["worklog_service"] = service
    logger.info("Connected to %s as %s", credentials.server, user.display_name)
    return service


@register_page("Setup / Connection")
def setup_page():
    st.title("Jira Connection Setup")
    st.caption("Enter credentials (use secrets manager in production).")

    secret_server, secret_email, secret_token = jira_secrets()
    settings = secret_settings()

    server = st.text_input(
        "Jira Server URL",
        value=st.session_state.get("jira_server") or secret_server or "",
        placeholder="https://your-site.atlassian.net",
    )
    email = st.text_input(
        "Email",
        value=st.session_state.get("jira_email") or secret_email or "",
    )
    token = st.text_input(
        "API Token",
        type="password",
        value=secret_token or "",
    )
    ttl = st.number_input(
        "Cache TTL (seconds)",
        min_value=0,
        max_value=3600,
        value=int(settings.cache_ttl),
    )
    init_btn = st.button("Initialize Connection", type="primary")

    if init_btn:
        if not (server and email and token):
            st.error("All fields required.")
            return
        settings.cache_ttl = float(ttl)
        try:
            connect(Credentials(server, email, token), settings)
        except ExternalServiceError as exc:
            logger.warning("Connection check failed for %s: %s", server, exc)
            st.session_state.pop("worklog_service", None)
            st.error(f"Failed to connect to Jira: {describe_error(exc)}")
            return
        st.success("Connection initialized.")

    service = st.session_state.get("worklog_service")
    user = st.session_state.get("current_user")
    if service is not None and user is not None:
        st.info(f"Connected as {user.display_name} ({st.session_state.get('jira_server')}).")
        if st.button("Clear cached data"):
            service.caches.clear()
            st.success("Caches cleared.")
