"""Database engine and session factory for the sql document store."""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker


def create_db_engine(database_url: str, echo: bool = False, **kwargs) -> Engine:
    """Create an engine - handle SQLite specially for check_same_thread."""
    connect_args = kwargs.pop("connect_args", {})
    pool_config = {}

    if database_url.startswith("sqlite"):
        connect_args.setdefault("check_same_thread", False)
        pool_config = {"pool_pre_ping": True}
    else:
        # PostgreSQL/MySQL connection pooling configuration
        pool_config = {
            "pool_size": 10,
            "max_overflow": 20,
            "pool_pre_ping": True,    # Test connections before using them
            "pool_recycle": 3600,     # Recycle connections after 1 hour
        }
    pool_config.update(kwargs)

    return create_engine(
        database_url,
        connect_args=connect_args,
        echo=echo,
        **pool_config,
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
