# database/models.py
import json
from sqlalchemy.types import TypeDecorator
from sqlalchemy import (
    DateTime,
    String,
    Integer,
    Text,
)

PROGRESS_TABLE = "progress"


class JSONEncodedList(TypeDecorator):
    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return json.dumps(list(value)) if value is not None else None

    def process_result_value(self, value, dialect):
        return json.loads(value) if value is not None else []


tables = {
    PROGRESS_TABLE: {
        "contract": {"type": String, "kwargs": {"primary_key": True}},
        "total_buyers": {"type": Integer, "kwargs": {"nullable": False, "default": 0}},
        "addresses": {
            "type": JSONEncodedList,
            "kwargs": {"nullable": False},
        },
        "last_processed_page": {"type": Integer, "kwargs": {"nullable": True}},
        "last_processed_block": {"type": Integer, "kwargs": {"nullable": True}},
        "updated_at": {"type": DateTime, "kwargs": {"nullable": True}},
    },
}
