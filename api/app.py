"""
api/app.py — FastAPI 앱 인스턴스 + 세션 미들웨어 + 저장소 구성
"""

import asyncio
import logging
import threading
import time

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from config import BACKUP_DIR, QUESTIONS_DIR, SESSION_TTL, STORE_DIR
from api.routes import router
import api.session as session
from timed_cbt.services.persistence import BackupStore, FileBackupStore, JsonFileStore, SessionStore
from timed_cbt.services.question_source import JsonQuestionSource

SESSION_COOKIE = "cbt_session"

logger = logging.getLogger(__name__)


def create_app(
    store: SessionStore | None = None,
    backup: BackupStore | None = None,
    question_source: JsonQuestionSource | None = None,
    cleanup_interval: float = 300,
) -> FastAPI:
    app = FastAPI(title="Timed CBT", docs_url=None, redoc_url=None)

    app.state.store = store or JsonFileStore(STORE_DIR)
    app.state.backup = backup or FileBackupStore(BACKUP_DIR)
    app.state.question_source = question_source or JsonQuestionSource(QUESTIONS_DIR)

    # CORS (모바일 브라우저 등 다양한 출처 허용)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 세션 미들웨어: 쿠키에서 세션 ID를 읽고, 없으면 새로 발급
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if not sid or await asyncio.to_thread(session.get_session, sid) is None:
            sid = session.create_session()

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=SESSION_TTL,
        )
        return response

    app.include_router(router)

    # 만료 세션 주기적 정리 (기본 5분마다)
    def _cleanup_loop():
        while True:
            time.sleep(cleanup_interval)
            removed = session.cleanup_expired()
            if removed:
                logger.info(f"만료 세션 {removed}개 정리")

    t = threading.Thread(target=_cleanup_loop, daemon=True)
    t.start()

    return app
