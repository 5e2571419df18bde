from loguru import logger

from db_module.connect_sqlalchemy_engine import get_engine
from models import Base, ErrorLog


def ensure_error_log_table():
    logger.info("[INIT] Ensuring error_logs table...")
    Base.metadata.create_all(get_engine(), tables=[ErrorLog.__table__])
    logger.info("[INIT] error_logs table ready.")


if __name__ == "__main__":
    ensure_error_log_table()
