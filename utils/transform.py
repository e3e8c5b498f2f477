from typing import Dict, List

import pandas as pd

from utils.fetch_base import BUY_SELECTOR

COLUMNS = ["tx_hash", "timestamp", "block", "from", "to", "value", "type", "is_buy", "data"]


def transform_raw_base(raw_txs: List[Dict], contract_addr: str) -> pd.DataFrame:
    rows = []
    contract_addr = contract_addr.lower()

    for tx in raw_txs:
        try:
            data = tx.get("input") or ""
            rows.append(
                {
                    "tx_hash": tx.get("hash"),
                    "timestamp": int(tx["timeStamp"]) if tx.get("timeStamp") else None,
                    "block": int(tx["blockNumber"]),
                    "from": tx["from"].lower(),
                    "to": (tx.get("to") or contract_addr).lower(),
                    "value": int(tx.get("value") or 0) / 1e18,
                    "type": (tx.get("functionName") or data[:10]).split("(")[0],
                    "is_buy": data.lower().startswith(BUY_SELECTOR),
                    "data": data,
                }
            )
        except (KeyError, TypeError, ValueError):
            continue

    return pd.DataFrame(rows, columns=COLUMNS)


def unique_buyers(df: pd.DataFrame) -> List[str]:
    if df.empty:
        return []
    return sorted(df.loc[df["is_buy"], "from"].str.lower().unique().tolist())
