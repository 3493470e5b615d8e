"""Convenience launcher for the Streamlit app.

Usage:
  streamlit run run_dashboard.py

Automatically imports every module in ``worklog_app/pages`` so each page
decorated with ``@register_page`` registers itself without manual edits here.
Optional ``[worklog]`` secrets tune caching, concurrency, timezone and logging.
"""

import logging
from importlib import import_module
from pathlib import Path

import streamlit as st

from worklog_app.app import main
from worklog_app.core.errors import ExternalServiceError
from worklog_app.core.models import Credentials
from worklog_app.pages.setup import connect, jira_secrets, secret_settings

st.set_page_config(layout="wide")

logger = logging.getLogger("worklog_app")


def _configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _auto_init_worklog_service():
    """Initialize the Jira service from Streamlit secrets if available."""
    if "worklog_service" in st.session_state:
        return

    server, email, token = jira_secrets()
    if server and email and token:
        st.sidebar.info("Secrets found, attempting to connect to Jira...")
        try:
            connect(Credentials(server, email, token), secret_settings())
            st.sidebar.success("Jira connection successful!")
        except ExternalServiceError as e:
            logger.warning("Automatic Jira connection failed: %s", e)
            st.sidebar.error(f"Jira connection failed: {e}")
            # Clear any partial state to ensure user is directed to setup
            st.session_state.pop("worklog_service", None)
            st.session_state.pop("credentials", None)
    else:
        st.sidebar.warning("Jira secrets not found. Please use the Setup page.")


_configure_logging(secret_settings().log_level)
_auto_init_worklog_service()

PAGES_DIR = Path(__file__).parent / "worklog_app" / "pages"
for py in sorted(PAGES_DIR.glob("[!_]*.py")):
    mod_name = f"worklog_app.pages.{py.stem}"
    try:
        import_module(mod_name)
    except ImportError as e:  # pragma: no cover
        logger.error("Failed importing page %s: %s", mod_name, e)

if __name__ == "__main__":
    main()
