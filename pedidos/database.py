import os
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from dotenv import load_dotenv

load_dotenv()

Base = declarative_base()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./pedidos.db")
DB_ECHO = os.getenv("DB_ECHO", "false").lower() in ("1", "true", "yes")


def engine_options(url: str) -> dict:
    """
    Opciones del engine segun el driver. El pool solo se configura fuera de SQLite;
    los tiempos llegan en milisegundos desde el entorno.
    """
    if url.startswith("sqlite"):
        return {"echo": DB_ECHO}

    pool_max = int(os.getenv("DB_POOL_MAX", "5"))
    pool_min = int(os.getenv("DB_POOL_MIN", "0"))
    options = {
        "echo": DB_ECHO,
        "pool_size": max(pool_min, 1),
        "max_overflow": max(pool_max - max(pool_min, 1), 0),
        "pool_timeout": int(os.getenv("DB_POOL_ACQUIRE", "30000")) / 1000,
        "pool_recycle": int(os.getenv("DB_POOL_IDLE", "10000")) // 1000,
        "pool_pre_ping": True,
    }
    if url.startswith("postgresql+asyncpg"):
        options["connect_args"] = {"statement_cache_size": 0}
    return options


engine = create_async_engine(DATABASE_URL, **engine_options(DATABASE_URL))
SessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False
)

async def get_db():
    async with SessionLocal() as session:
        yield session

async def create_tables(bind=None):
    # importar modelos para registrarlos en Base.metadata
    from pedidos.models import orders, product, user  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
