"""Reusable table helpers for Streamlit rendering."""

from __future__ import annotations

import pandas as pd
import streamlit as st


def add_issue_link(df: pd.DataFrame, server: str, key_col: str = "Issue Key", label: str = "Link"):
    """Append a browse URL column for ``key_col`` and the matching column config."""
    if df.empty or key_col not in df.columns:
        return df, {}
    out = df.copy()
    base = server.rstrip("/")
    out[label] = out[key_col].astype(str).apply(lambda k: f"{base}/browse/{k}" if k and k != "nan" else "")
    cfg = {
        label: st.column_config.LinkColumn(
            label,
            display_text=r"browse/(.*)$",
            help="Open in Jira",
            width="small",
        )
    }
    return out, cfg


def render_linked_table(df: pd.DataFrame, server: str | None, key_col: str = "Issue Key"):
    if server:
        df, cfg = add_issue_link(df, server, key_col=key_col)
    else:
        cfg = {}
    st.dataframe(df, hide_index=True, column_config=cfg, use_container_width=True)
