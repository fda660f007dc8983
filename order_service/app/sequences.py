from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .errors import TransientError, translate_db_error
from .logging_config import get_logger
from .models import Counter

log = get_logger(__name__)

ORDER_PREFIX = "VITA-"
INVOICE_PREFIX = "INV-VITA-"


def next_value(session_factory, counter_type: str, default_base: int = 10000) -> int:
    """
    Hands out the next value of a named counter.

    The counter row is read with a row lock, so concurrent callers for the
    same type queue up behind each other and never see the same value. A
    missing row is created at default_base, which makes the first value
    default_base + 1.

    Raises:
        TransientError: Lock wait timed out or the connection dropped.
        StorageError: Any other database failure. Nothing is consumed.
    """
    db = session_factory()
    try:
        counter = (
            db.query(Counter)
            .filter(Counter.type == counter_type)
            .with_for_update()
            .first()
        )
        if counter is None:
            counter = Counter(type=counter_type, value=default_base)
            db.add(counter)

        counter.value = counter.value + 1
        allocated = counter.value
        db.commit()
        return allocated
    except SQLAlchemyError as e:
        db.rollback()
        log.error("counter allocation failed", counter_type=counter_type, error=str(e))
        if isinstance(e, IntegrityError):
            # Lost the race to create the row; it exists now.
            raise TransientError(f"counter {counter_type} was created concurrently") from e
        raise translate_db_error(e) from e
    finally:
        db.close()


def generate_order_no(session_factory) -> str:
    return f"{ORDER_PREFIX}{next_value(session_factory, 'ORDER', 10000)}"


def generate_invoice_no_from_order(order_no: str) -> str:
    # e.g. VITA-10030 -> INV-VITA-10030
    return order_no.replace(ORDER_PREFIX, INVOICE_PREFIX, 1)
