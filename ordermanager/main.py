import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session, select

from .database import create_db_and_tables, engine
from .logger import get_logger
from .models import User
from .routers import auth, dispatches, master_data, orders, payments, stats
from .routers.auth import get_password_hash

logger = get_logger("main")

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")


def seed_defaults(session: Session):
    if session.exec(select(User)).first() is None:
        logger.info("Creating default admin...")
        admin = User(
            username=ADMIN_USERNAME,
            password_hash=get_password_hash(ADMIN_PASSWORD),
            role="admin",
            token_version=1,
        )
        session.add(admin)
        session.commit()
        logger.info(f"Default admin created: {ADMIN_USERNAME}")

    master_data.seed_product_types(session)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    with Session(engine) as session:
        seed_defaults(session)
    yield


app = FastAPI(lifespan=lifespan, title="Order Manager API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(orders.router)
app.include_router(dispatches.router)
app.include_router(payments.router)
app.include_router(master_data.router)
app.include_router(stats.router)


@app.get("/")
def read_root():
    return {"message": "Welcome to Order Manager API"}
