from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from database import Base, engine, SessionLocal, settings
from services.state_service import init_state
from api import rounds, admin, ledger

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 建立資料庫表，並建立唯一的回合 / 管理員資料列（已存在則保留）
    from models import ClaimPolicy  # 同時確保所有 model 都已註冊到 Base.metadata
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        init_state(db, settings)
    finally:
        db.close()

    logger.info(f"Pot game ready (claim_policy={ClaimPolicy(settings.claim_policy).value})")
    yield


app = FastAPI(
    title="Pot Round API",
    description="Last-bettor-wins pot rounds backed by an external value ledger",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(rounds.router)
app.include_router(admin.router)
app.include_router(ledger.router)


@app.get("/")
def root():
    return {"message": "Pot Round API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
