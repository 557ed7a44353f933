"""Identifier generation and validation"""

import re
import uuid

TRANSACTION_ID_PATTERN = r"^txn_[A-Za-z0-9-]{20,}$"


def generate_transaction_id() -> str:
    return f"txn_{uuid.uuid4()}"


def is_valid_transaction_id(value: str) -> bool:
    return re.match(TRANSACTION_ID_PATTERN, value) is not None
