import logging

import streamlit as st

st.set_page_config(page_title="Looma – Leaderboards", page_icon="🏆", layout="wide")

from src.leaderboard_ui import render_page

logging.basicConfig(level=logging.INFO)

st.title("🏆 Leaderboards")
render_page()
