from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    engine: str
    state: str
    hasEvaluationData: bool = Field(..., alias="hasEvaluationData")
    queue: int

    class Config:
        populate_by_name = True


class AnalyzeRequest(BaseModel):
    sfen: str = Field(..., min_length=1)
    depth: Optional[int] = Field(None, ge=1)


class AnalyzeResponse(BaseModel):
    success: bool = True
    score: int
    bestmove: str
    depth: int


class AnalyzeKifuRequest(BaseModel):
    moves: List[str]
    depth: Optional[int] = Field(None, ge=1)


class KifuMoveResult(BaseModel):
    moveNum: int = Field(..., alias="moveNum")
    score: Optional[int] = None
    bestmove: Optional[str] = None
    depth: Optional[int] = None
    error: Optional[str] = None

    class Config:
        populate_by_name = True


class AnalyzeKifuResponse(BaseModel):
    success: bool = True
    results: List[KifuMoveResult]
