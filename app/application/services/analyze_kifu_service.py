from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from loguru import logger

from app.application.services.analyze_position_service import AnalyzePositionService
from app.domain.entities.analysis import AnalysisResult
from app.domain.errors import EngineError

DEFAULT_KIFU_DEPTH = 12
PROGRESS_EVERY = 10


@dataclass
class KifuEntry:
    move_num: int
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None


class AnalyzeKifuService:
    """Analyzes every position of a game record in order.

    A failed position is recorded and the walk continues with the next one.
    """

    def __init__(
        self,
        analyze_position: AnalyzePositionService,
        default_depth: int = DEFAULT_KIFU_DEPTH,
    ) -> None:
        self._analyze_position = analyze_position
        self._default_depth = default_depth

    async def execute(self, positions: Sequence[str], depth: Optional[int] = None) -> List[KifuEntry]:
        if depth is None:
            depth = self._default_depth
        total = len(positions)
        logger.info(f"Kifu analysis started: {total} positions")

        entries: List[KifuEntry] = []
        for move_num, position in enumerate(positions, start=1):
            try:
                result = await self._analyze_position.execute(position, depth)
            except (EngineError, ValueError) as exc:
                logger.error(f"Analysis of move {move_num} failed: {exc}")
                entries.append(KifuEntry(move_num=move_num, error=str(exc)))
                continue
            entries.append(KifuEntry(move_num=move_num, result=result))
            if move_num % PROGRESS_EVERY == 0:
                logger.info(f"Kifu progress: {move_num}/{total}")

        logger.info("Kifu analysis finished")
        return entries
