from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from app.core.config import settings

engine = create_async_engine(settings.DATABASE_URL, echo=False)

# Talk to the DB through async sessions without refreshes after closed conn to avoid errors in async programming
AsyncSessionLocal = async_sessionmaker(
    bind=engine, class_=AsyncSession, expire_on_commit=False
)


# This is the "Bridge" that gives my routes access to postgres
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


def create_execution_engine(url: str = None) -> AsyncEngine:
    """
    Engine for the SQL tool. It runs with elevated privileges, so it is kept
    apart from the app engine and handed to the executor explicitly.
    """
    return create_async_engine(url or settings.execution_database_url, echo=False)


# All the models are "stored" in the Base class will be processed by the Engine
class Base(DeclarativeBase):
    pass
