from .helpers import normalize_account_number, parse_br_number, parse_spreadsheet_date
from .row import REVIEW_PENDING_TAG, birthday_policy, make_row_id, normalize_row

__all__ = [
    "normalize_row",
    "normalize_account_number",
    "parse_br_number",
    "parse_spreadsheet_date",
    "birthday_policy",
    "make_row_id",
    "REVIEW_PENDING_TAG",
]
