import streamlit as st

from collector import ScanResult, ScanState


def inject_card_styles():
    st.markdown(
        """
        <style>
        .card {
            background-color: #1e1e1e;
            border-radius: 12px;
            padding: 18px;
            box-shadow: 0 0 12px rgba(255,255,255,0.05);
            text-align: center;
            color: white;
            margin: 6px 0;
        }
        .card-label {
            font-size: 13px;
            color: #bbbbbb;
        }
        .card-value {
            font-size: 26px;
            font-weight: 600;
            color: #fdfdfd;
        }
        </style>
        """,
        unsafe_allow_html=True,
    )


def metric_card(label: str, value: str, tooltip: str = "") -> str:
    return f"""
    <div class="card">
        <div class="card-label" title="{tooltip}">{label}</div>
        <div class="card-value">{value}</div>
    </div>
    """


def result_metrics(result: ScanResult) -> dict:
    return {
        "Unique Buyers": (f"{len(result.buyer_addresses):,}", "Distinct senders of buy()"),
        "Status": ("Complete" if result.is_complete else "Paused", "Paused scans resume from the checkpoint"),
        "Last Page": (str(result.last_processed_page or "-"), "Last logical page processed"),
        "Resume From": (str(result.next_page or "-"), "Page the next run starts at"),
    }


def draw_result(result: ScanResult):
    cols = st.columns(4)
    for col, (label, (value, tooltip)) in zip(cols, result_metrics(result).items()):
        col.markdown(metric_card(label, value, tooltip), unsafe_allow_html=True)

    if result.is_complete:
        st.success("Scan complete!")
    else:
        reason = "daily API limit" if result.state == ScanState.QUOTA_PAUSED else "batch limit"
        st.warning(f"Scan paused ({reason}). Run it again later to resume from page {result.next_page}.")

    st.text_area("Buyer addresses", "\n".join(result.buyer_addresses), height=300)
    st.download_button(
        "Download addresses",
        data="\n".join(result.buyer_addresses),
        file_name="unique_buyers.txt",
        mime="text/plain",
    )
