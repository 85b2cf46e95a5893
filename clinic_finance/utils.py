# clinic_finance/utils.py
import time
from datetime import date


def today_iso():
    return date.today().isoformat()


def next_transaction_id(existing_ids, clock=time.time):
    """
    Return a timestamp-derived id (milliseconds) not already in ``existing_ids``.
    Collisions within the same millisecond are resolved by counting upwards.
    """
    candidate = int(clock() * 1000)
    taken = set(existing_ids)
    while str(candidate) in taken:
        candidate += 1
    return str(candidate)
