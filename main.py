import logging
from contextlib import asynccontextmanager
import os
import time
import anyio
from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from pedidos.routers import orders as orders_router
from pedidos.database import engine, get_db, create_tables
from pedidos.errors import OrderWorkflowError
from pedidos.services.mailer import mailer
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if os.getenv("DB_AUTO_CREATE", "false").lower() in ("1", "true", "yes"):
        await create_tables()
    await anyio.to_thread.run_sync(mailer.initialize)
    yield
    mailer.close()
    await engine.dispose()


app = FastAPI(
    lifespan=lifespan,
    title="Saturnina Pedidos API",
    description="Pedidos, albaranes en PDF y envío por email",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "https://saturnina.vercel.app,http://localhost:5173").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"]
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    if response.status_code < 400:
        level = logging.INFO
    elif response.status_code < 500:
        level = logging.WARNING
    else:
        level = logging.ERROR
    logger.log(level, f"{request.method} {request.url.path} [{response.status_code}] ({duration:.3f}s)")
    return response


@app.exception_handler(OrderWorkflowError)
async def order_workflow_exception_handler(request: Request, exc: OrderWorkflowError):
    if exc.status_code >= 500:
        logger.error(f"Error en {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "detail": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"success": False, "detail": str(exc)})


app.include_router(orders_router.router, tags=["Pedidos"])


@app.get("/", tags=["General"])
def root():
    return {"message": "Saturnina Pedidos API"}

@app.get("/test-db", tags=["General"])
async def test_db_connection(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
        return {"success": True, "message": "Conexión exitosa a la base de datos"}
    except SQLAlchemyError as e:
        return {"success": False, "error": str(e)}
