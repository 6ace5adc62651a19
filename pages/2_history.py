"""
History page - saved websites, analyses and reports of the signed-in user.

SECURITY:
- Sign-in required (demo sessions have no history view)
- Only the user's own rows are listed
"""

import logging

import pandas as pd
import streamlit as st
from dotenv import load_dotenv

from insights import db
from insights.audit_log import generate_request_id, log_error
from insights.auth import render_logout, require_auth
from insights.logging_config import setup_logging
from insights.reports import build_report, report_to_markdown

load_dotenv()
setup_logging()
db.init_db()

logger = logging.getLogger(__name__)

# st.set_page_config() lives in main.py (st.navigation)
username = require_auth()
st.title("🗂️ My analyses")

with st.sidebar:
    render_logout()
    st.caption(f"Signed in: {username}")

websites = db.list_websites(user_id=username)
if not websites:
    st.info("No analyses yet. Run one from the **Demo** page while signed in.")
    st.stop()

df = pd.DataFrame(
    [
        {
            "URL": w["url"],
            "Product type": w["product_type"] or "",
            "Analyses": len(db.list_analysis_sessions(w["id"])),
            "Added": w["created_at"][:16].replace("T", " "),
        }
        for w in websites
    ]
)
st.dataframe(df, use_container_width=True, hide_index=True)

labels = {w["id"]: w["url"] for w in websites}
website_id = st.selectbox("Website", list(labels), format_func=lambda wid: labels[wid])

col_a, col_b = st.columns([4, 1])
with col_b:
    if st.button("🗑️ Delete website", use_container_width=True):
        db.delete_website(website_id)
        st.rerun()

for analysis in db.list_analysis_sessions(website_id):
    created = analysis["created_at"][:16].replace("T", " ")
    with st.expander(f"{analysis['current_page'] or 'Page'} · {created}"):
        for m in db.get_conversation_history(analysis["id"]):
            with st.chat_message(m["role"]):
                st.markdown(m["content"])
                if m.get("suggestions"):
                    st.caption(" · ".join(m["suggestions"]))

        if st.button("📋 Create report", key=f"report_{analysis['id']}"):
            try:
                report_id = build_report(analysis["id"])
            except Exception:
                logger.exception("Report creation failed", extra={"error_code": "REPORT_ERROR"})
                log_error(generate_request_id(), f"user:{username}", "REPORT_ERROR")
                st.error("Could not create the report. Please try again.")
            else:
                if report_id is None:
                    st.warning("Nothing to report yet for this analysis.")
                else:
                    st.success("Report created.")

st.divider()
st.subheader("Reports")

reports = db.list_analysis_reports(user_id=username)
if not reports:
    st.caption("No reports yet.")
for report in reports:
    with st.container(border=True):
        st.markdown(f"**{report['title']}**")
        if report.get("summary"):
            st.caption(report["summary"])
        st.download_button(
            "⬇️ Download (Markdown)",
            data=report_to_markdown(report),
            file_name=f"report-{report['id'][:8]}.md",
            mime="text/markdown",
            key=f"dl_{report['id']}",
        )
