"""
HMIS 主应用入口
医院管理信息系统：患者、医生、病理报告、病房占用与账单
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from hmis.config import settings
from hmis.database import init_db
from hmis.routers import auth, patients, doctors, pathology, rooms, bills, users, events
from hmis_core.engine.event_bus import event_bus

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    # 初始化数据库
    init_db()

    event_bus.resize_history(settings.EVENT_HISTORY_SIZE)

    # 注册事件处理器
    from hmis.services.event_handlers import register_event_handlers
    register_event_handlers()

    logger.info(f"{settings.APP_NAME} started")
    yield


app = FastAPI(
    title="HMIS - 医院管理信息系统",
    description="患者、医生、病理报告、病房占用与账单管理",
    version="0.1.0",
    debug=settings.DEBUG,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(patients.router)
app.include_router(doctors.router)
app.include_router(pathology.router)
app.include_router(rooms.router)
app.include_router(bills.router)
app.include_router(users.router)
app.include_router(events.router)


@app.get("/")
def root():
    return {"name": settings.APP_NAME, "version": "0.1.0"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}
