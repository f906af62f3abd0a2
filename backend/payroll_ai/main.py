import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .routers import agents, compliance, expenses, tax
from .services.storage import get_store
from .services.tax_tables import load_tax_tables

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("[App] Server starting... loading tax tables.")
    load_tax_tables(await asyncio.to_thread(get_store().load_tax_rate_rows))
    yield
    logger.info("[App] Server shutting down.")

app = FastAPI(title="Payroll AI API", lifespan=lifespan)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register Routers
app.include_router(agents.router)
app.include_router(tax.router)
app.include_router(compliance.router)
app.include_router(expenses.router)


@app.get("/")
def read_root():
    return {"status": "API is running"}
