from sqlmodel import SQLModel, create_engine

from lockchime.config import DB_CONNECT_ARGS, DB_URL
from lockchime.models import StatsRecord  # noqa: F401  registers the table

engine = create_engine(
    DB_URL,
    connect_args=DB_CONNECT_ARGS,
    pool_pre_ping=True,  # Verify connections before use
    pool_recycle=3600,
    echo=False,
)


def init_db() -> None:
    SQLModel.metadata.create_all(engine)
