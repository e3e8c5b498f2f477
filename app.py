import streamlit as st

from collector import build_collector
from ui.display import draw_result, inject_card_styles
from utils.errors import ScanError

st.set_page_config(page_title="Contract Buyer Address Scanner", layout="wide")
st.title("Contract Buyer Address Scanner")

inject_card_styles()

with st.form("scan"):
    contract = st.text_input("Contract address", placeholder="0x...")
    submitted = st.form_submit_button("Get Buyer Addresses")

if submitted:
    if not contract.strip():
        st.error("Enter a contract address")
        st.stop()

    try:
        with st.spinner("Scanning transactions..."):
            result = build_collector().collect(contract.strip())
    except ScanError as e:
        st.error(str(e))
    else:
        draw_result(result)
