"""Persistence of test-taker responses."""

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from adaptive_sat.db.models import ResponseDB
from adaptive_sat.models.session import Response

logger = logging.getLogger(__name__)


class ResponseStore:
    """One response row per (session, question)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def upsert(
        self,
        session_id: str,
        question_id: str,
        user_answer: str | None,
        time_spent: int = 0,
        sequence_number: int = 0,
        is_flagged: bool = False,
    ) -> Response:
        """Create or update the response for a question.

        Time spent accumulates across saves; answer, position and flag take
        the latest value. Losing an insert race to a concurrent save rolls
        back the current transaction and retries as an update, so nothing
        else should be pending when this is called.
        """
        db_response = await self._find(session_id, question_id)
        if db_response is None:
            db_response = ResponseDB(
                session_id=session_id,
                question_id=question_id,
                user_answer=user_answer,
                time_spent=max(time_spent, 0),
                sequence_number=sequence_number,
                is_flagged=is_flagged,
            )
            self.db.add(db_response)
            try:
                await self.db.flush()
                return self._db_to_model(db_response)
            except IntegrityError:
                # another save inserted the row between our select and insert
                await self.db.rollback()
                logger.info(
                    "Response to %s in session %s already exists; updating it",
                    question_id, session_id,
                )
                db_response = await self._find(session_id, question_id)
                if db_response is None:
                    raise

        db_response.user_answer = user_answer
        db_response.time_spent += max(time_spent, 0)
        db_response.sequence_number = sequence_number
        db_response.is_flagged = is_flagged
        await self.db.flush()
        return self._db_to_model(db_response)

    async def _find(self, session_id: str, question_id: str) -> ResponseDB | None:
        result = await self.db.execute(
            select(ResponseDB).where(
                ResponseDB.session_id == session_id,
                ResponseDB.question_id == question_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_for_session(self, session_id: str) -> list[Response]:
        """All responses of a session in answering order."""
        result = await self.db.execute(
            select(ResponseDB)
            .where(ResponseDB.session_id == session_id)
            .order_by(ResponseDB.sequence_number, ResponseDB.created_at)
        )
        return [self._db_to_model(r) for r in result.scalars().all()]

    async def delete_for_session(self, session_id: str) -> int:
        result = await self.db.execute(
            delete(ResponseDB).where(ResponseDB.session_id == session_id)
        )
        logger.info("Deleted %d responses for session %s", result.rowcount, session_id)
        return result.rowcount

    def _db_to_model(self, db_response: ResponseDB) -> Response:
        return Response(
            id=db_response.id,
            session_id=db_response.session_id,
            question_id=db_response.question_id,
            user_answer=db_response.user_answer,
            time_spent=db_response.time_spent,
            sequence_number=db_response.sequence_number,
            is_flagged=db_response.is_flagged,
            created_at=db_response.created_at,
            updated_at=db_response.updated_at,
        )
