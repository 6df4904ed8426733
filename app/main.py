from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from app.api.schemas import (
    AnalyzeKifuRequest,
    AnalyzeKifuResponse,
    AnalyzeRequest,
    AnalyzeResponse,
    HealthResponse,
    KifuMoveResult,
)
from app.application.services.analyze_kifu_service import AnalyzeKifuService
from app.application.services.analyze_position_service import AnalyzePositionService
from app.config import Settings
from app.domain.errors import (
    EngineDegradedError,
    EngineError,
    EngineNotReadyError,
    RequestTimeoutError,
)
from app.infrastructure.engine.usi_engine_session import UsiEngineSession
from app.logging_config import setup_logging


async def start_engine(engine: UsiEngineSession, require_engine: bool) -> None:
    """Start the engine, falling back to degraded serving unless it is required."""
    try:
        await engine.start()
    except EngineError as exc:
        if require_engine:
            raise
        logger.error(f"Engine startup failed, serving in degraded mode: {exc}")
        logger.info("Place the engine binary at ENGINE_PATH, make it executable and restart.")


def create_app(settings: Settings, engine: Optional[UsiEngineSession] = None) -> FastAPI:
    setup_logging(settings.log_level, settings.log_file)

    if engine is None:
        engine = UsiEngineSession(
            settings.engine_path,
            options=settings.engine_options,
            startup_timeout=settings.startup_timeout,
        )
    analyze_position = AnalyzePositionService(
        engine,
        timeout=settings.analysis_timeout,
        default_depth=settings.default_depth,
    )
    analyze_kifu = AnalyzeKifuService(analyze_position, default_depth=settings.kifu_default_depth)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await start_engine(engine, settings.require_engine)
        try:
            yield
        finally:
            engine.shutdown()

    app = FastAPI(title="USI Analysis API", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    router = APIRouter(prefix="/api")

    @router.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        status = engine.health()
        return HealthResponse(
            status="ok",
            engine="ready" if status.is_ready else "not ready",
            state=status.state.value,
            hasEvaluationData=status.has_evaluation_data,
            queue=status.queue_depth,
        )

    @router.post("/analyze", response_model=AnalyzeResponse)
    async def analyze(request: AnalyzeRequest) -> AnalyzeResponse:
        logger.info(f"Analysis request: {request.sfen[:50]}")
        try:
            result = await analyze_position.execute(request.sfen, request.depth)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except RequestTimeoutError as exc:
            raise HTTPException(status_code=504, detail=str(exc)) from exc
        except (EngineNotReadyError, EngineDegradedError) as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc

        return AnalyzeResponse(score=result.score, bestmove=result.best_move, depth=result.depth)

    @router.post("/analyze-kifu", response_model=AnalyzeKifuResponse, response_model_exclude_none=True)
    async def analyze_kifu_route(request: AnalyzeKifuRequest) -> AnalyzeKifuResponse:
        entries = await analyze_kifu.execute(request.moves, request.depth)
        results = []
        for entry in entries:
            if entry.result is None:
                results.append(KifuMoveResult(moveNum=entry.move_num, error=entry.error))
            else:
                results.append(
                    KifuMoveResult(
                        moveNum=entry.move_num,
                        score=entry.result.score,
                        bestmove=entry.result.best_move,
                        depth=entry.result.depth,
                    )
                )
        return AnalyzeKifuResponse(results=results)

    app.include_router(router)
    return app


settings = Settings.from_env()
app = create_app(settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=False)
