import streamlit as st
from dotenv import load_dotenv

from insights.db import init_db
from insights.logging_config import setup_logging

load_dotenv()
setup_logging()
init_db()

st.set_page_config(page_title="Website Insights", page_icon="📈", layout="wide")


def home() -> None:
    st.title("📈 Website Insights")
    st.subheader("Understand what's really happening on your site, by chatting.")

    st.markdown(
        """
Paste your website URL, tell us which page you're looking at, and ask a question.
You get concrete optimization insights and next steps in seconds.

- 💬 **Chat about your pages**: pricing, product, homepage, any page
- 🧪 **Get experiment ideas**: headline tests, CTA placement, social proof
- 📋 **Save a report** of the recommendations (signed-in users)
"""
    )

    col_a, col_b = st.columns(2)
    with col_a:
        st.page_link(demo_page, label="Try the demo", icon="🚀")
    with col_b:
        st.page_link(history_page, label="My analyses", icon="🗂️")

    st.caption(
        "The demo is free and anonymous, limited to a few analyses per day. "
        "No API key needed on your side."
    )


demo_page = st.Page("pages/1_demo.py", title="Demo", icon="💬")
history_page = st.Page("pages/2_history.py", title="My analyses", icon="🗂️")

nav = st.navigation([st.Page(home, title="Home", icon="🏠", default=True), demo_page, history_page])
nav.run()
