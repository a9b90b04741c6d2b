"""FastAPI application for the employee state service."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from repo root so DATABASE_URL etc. work when set locally
load_dotenv(Path(__file__).resolve().parent / ".env")

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import telemetry
from database import check_connection, engine
from employees import router as employees_router
from models import Base


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create tables and subscribe telemetry sinks."""
    telemetry.configure()
    if check_connection():
        try:
            Base.metadata.create_all(bind=engine)
            logger.info("Database connected: tables ready")
        except Exception as e:
            logger.warning("Database initialization failed: %s. Will retry on requests.", e)
    else:
        logger.warning("Database unavailable at startup. /health will report status.")

    yield

    try:
        engine.dispose()
        logger.info("Database connection pool disposed")
    except Exception as e:
        logger.warning(f"Error disposing database connection pool: {e}")


app = FastAPI(title="Employee State Service", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(employees_router, prefix="/api/employees", tags=["employees"])


@app.get("/health")
def health():
    """Health check."""
    return {
        "status": "healthy",
        "database": "connected" if check_connection(retry_count=1) else "disconnected",
    }


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run("server:app", host="0.0.0.0", port=8000)
