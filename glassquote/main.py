from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os

from .config import settings
from .database import engine, Base
from .routers import glass

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("glassquote")

# Create tables (handles new tables but won't add columns to existing ones)
Base.metadata.create_all(bind=engine)


def _run_migrations():
    """Run pending Alembic migrations on startup.

    If the catalog table was created by Base.metadata.create_all() before
    Alembic ran, stamps the base migration as applied first.
    """
    try:
        from alembic.config import Config
        from alembic import command
        from sqlalchemy import inspect

        alembic_ini = os.path.join(os.path.dirname(__file__), "..", "alembic.ini")
        if not os.path.exists(alembic_ini):
            logger.info("alembic.ini not found, skipping migrations")
            return

        alembic_cfg = Config(alembic_ini)
        alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

        insp = inspect(engine)
        tables = insp.get_table_names()
        if "alembic_version" not in tables and "catalog_entries" in tables:
            logger.info("Stamping base migration 3f2a9c1d7b10 (tables already exist)")
            command.stamp(alembic_cfg, "3f2a9c1d7b10")

        logger.info("Running pending Alembic migrations...")
        command.upgrade(alembic_cfg, "head")
        logger.info("Migrations complete")

    except Exception as e:
        # Never let migration errors prevent app startup
        logger.warning(f"Alembic migration warning: {e}")


app = FastAPI(
    title="Glass Quoting",
    description="Glass catalog administration and line-item price calculation",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(glass.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok", "app": "glass-quoting"}


@app.on_event("startup")
def auto_migrate():
    """Run pending Alembic migrations on startup."""
    _run_migrations()


@app.on_event("startup")
def auto_seed():
    """Load the starter catalog into an empty store when SEED_ON_STARTUP is set."""
    if not settings.SEED_ON_STARTUP:
        return
    from .database import SessionLocal
    from .catalog_store import CatalogStore, DatabaseStore
    from .seed import seed_catalog
    db = SessionLocal()
    try:
        seed_catalog(CatalogStore(DatabaseStore(db)))
    except Exception as e:
        logger.warning(f"Auto-seed warning: {e}")
    finally:
        db.close()
