"""Adaptive exam session service.

Drives a test session through the four modules in order. Completing a module
grades it, stores its percentage, routes the section's second module to a
difficulty tier and moves the cursor on. Section scaling and the total score
follow from the stored module scores as soon as they are available.

Stored scores and routing decisions are write-once: a repeated completion
re-grades for the caller but never changes what is already stored.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adaptive_sat.config import settings
from adaptive_sat.db.models import ExamDB, TestSessionDB
from adaptive_sat.models.exam import (
    MODULE_CONFIGS,
    MODULE_SEQUENCE,
    Difficulty,
    Exam,
    ModuleTag,
    PublicQuestion,
    Section,
    module_position,
    next_module,
)
from adaptive_sat.models.session import (
    CompleteModuleResult,
    FinalResults,
    Response,
    ReviewItem,
    ReviewSummary,
    SectionGrade,
    SessionMeta,
    SessionStatus,
    SessionStatusView,
    StartSessionResult,
    TestSession,
)

from .exceptions import (
    AnswerValidationError,
    ExamNotFoundError,
    InvalidTransitionError,
    QuestionNotFoundError,
    SessionNotFoundError,
    SessionStateError,
)
from .grading import MODULE2_DIFFICULTY_FIELDS, GradingEngine, answers_match
from .question_repository import QuestionRepository
from .response_store import ResponseStore
from .scoring import percent_to_score, scale_linear, scale_section, select_difficulty
from .session_locks import SessionLockRegistry, session_locks

logger = logging.getLogger(__name__)

MODULE_SCORE_FIELDS = {
    ModuleTag.READING_WRITING_1: "module1_score",
    ModuleTag.READING_WRITING_2: "rw2_score",
    ModuleTag.MATH_1: "math1_score",
    ModuleTag.MATH_2: "math2_score",
}

# Completing these modules decides the tier of the section's second module
ROUTING_FIELDS = {
    ModuleTag.READING_WRITING_1: "module2_difficulty",
    ModuleTag.MATH_1: "math2_difficulty",
}


@dataclass(frozen=True)
class SectionFields:
    """Session columns that make up one section's scoring."""
    module1_score: str
    module2_score: str
    difficulty: str
    scaled_score: str


SECTION_FIELDS = {
    Section.READING_WRITING: SectionFields(
        "module1_score", "rw2_score", "module2_difficulty", "rw_score"
    ),
    Section.MATH: SectionFields(
        "math1_score", "math2_score", "math2_difficulty", "math_score"
    ),
}

ACTIVE_STATUSES = (SessionStatus.IN_PROGRESS.value, SessionStatus.PAUSED.value)


def start_lock_key(user_id: str, exam_id: str) -> str:
    """Lock key for starting a session; never collides with a session id."""
    return f"start:{user_id}:{exam_id}"


class ExamSessionService:
    """Service for running adaptive exam sessions."""

    def __init__(
        self,
        db: AsyncSession,
        locks: SessionLockRegistry | None = None,
        legacy_linear_finalize: bool | None = None,
    ):
        self.db = db
        self.locks = locks or session_locks
        self.questions = QuestionRepository(db)
        self.responses = ResponseStore(db)
        self.grading = GradingEngine(db, self.questions, self.responses)
        if legacy_linear_finalize is None:
            legacy_linear_finalize = settings.legacy_linear_finalize
        self.legacy_linear_finalize = legacy_linear_finalize

    # -- lookups --------------------------------------------------------

    async def _get_session_row(self, session_id: str) -> TestSessionDB | None:
        result = await self.db.execute(
            select(TestSessionDB)
            .where(TestSessionDB.id == session_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _get_owned_session(self, session_id: str, user_id: str) -> TestSessionDB:
        """Fetch a session for its owner.

        Another user's session is reported exactly like a missing one.
        """
        db_session = await self._get_session_row(session_id)
        if not db_session or db_session.user_id != user_id:
            if db_session:
                logger.debug("User %s denied access to session %s", user_id, session_id)
            raise SessionNotFoundError("Test session not found")
        return db_session

    async def _find_active_session(self, user_id: str, exam_id: str) -> TestSessionDB | None:
        result = await self.db.execute(
            select(TestSessionDB)
            .where(
                TestSessionDB.user_id == user_id,
                TestSessionDB.exam_id == exam_id,
                TestSessionDB.status.in_(ACTIVE_STATUSES),
            )
            .order_by(TestSessionDB.started_at.desc())
        )
        return result.scalars().first()

    def _to_model(self, db_session: TestSessionDB) -> TestSession:
        return TestSession.model_validate(db_session, from_attributes=True)

    # -- exams ----------------------------------------------------------

    async def list_exams(self) -> list[Exam]:
        return await self.questions.list_active_exams()

    # -- lifecycle ------------------------------------------------------

    async def start_session(
        self,
        user_id: str,
        exam_id: str,
        force_new: bool = False,
        resume: bool = False,
    ) -> StartSessionResult:
        """Start a session, or surface the unfinished one for confirmation.

        `force_new` discards an unfinished session (and its responses) and
        starts over; `resume` reactivates it. With neither, the caller gets
        the existing session back and must choose.

        Starts for the same user and exam are serialized, so at most one
        unfinished session exists per pair.
        """
        async with self.locks.hold(start_lock_key(user_id, exam_id)):
            exam = await self.questions.get_exam(exam_id)
            if not exam:
                raise ExamNotFoundError(f"Exam {exam_id} not found")

            existing = await self._find_active_session(user_id, exam_id)
            if existing:
                if force_new:
                    await self._discard_session(existing)
                elif resume:
                    session = await self.resume_session(existing.id, user_id)
                    return StartSessionResult(session=session, resumed=True)
                else:
                    return StartSessionResult(
                        existing_session=self._to_model(existing),
                        requires_confirmation=True,
                    )

            first = MODULE_SEQUENCE[0]
            db_session = TestSessionDB(
                user_id=user_id,
                exam_id=exam_id,
                status=SessionStatus.IN_PROGRESS.value,
                current_module=first.value,
                time_remaining=MODULE_CONFIGS[first].time_seconds,
                started_at=datetime.utcnow(),
            )
            self.db.add(db_session)
            await self.db.commit()
            await self.db.refresh(db_session)

        logger.info("Started session %s for user %s on exam %s", db_session.id, user_id, exam_id)
        return StartSessionResult(session=self._to_model(db_session))

    async def _discard_session(self, db_session: TestSessionDB) -> None:
        """Hard-delete an unfinished session ahead of a restart.

        Not committed here; the restart commits the delete together with the
        new session.
        """
        async with self.locks.hold(db_session.id):
            logger.warning(
                "Discarding unfinished session %s (user %s, exam %s) for a restart",
                db_session.id, db_session.user_id, db_session.exam_id,
            )
            await self.responses.delete_for_session(db_session.id)
            await self.db.delete(db_session)
            await self.db.flush()

    async def resume_session(self, session_id: str, user_id: str) -> TestSession:
        """Reactivate a paused session where it left off."""
        async with self.locks.hold(session_id):
            db_session = await self._get_owned_session(session_id, user_id)
            if db_session.status == SessionStatus.COMPLETED.value:
                raise InvalidTransitionError("Test session is already completed")
            if db_session.status == SessionStatus.PAUSED.value:
                db_session.status = SessionStatus.IN_PROGRESS.value
                await self.db.commit()
                logger.info(
                    "Resumed session %s at %s with %ss left",
                    session_id, db_session.current_module, db_session.time_remaining,
                )
            return self._to_model(db_session)

    async def pause_session(
        self,
        session_id: str,
        user_id: str,
        time_remaining: int | None = None,
        current_module: ModuleTag | None = None,
    ) -> TestSession:
        """Pause a session, saving the clock.

        Omitted values keep what is stored. Pausing never moves the module
        cursor, so a `current_module` other than the stored one is rejected.
        """
        async with self.locks.hold(session_id):
            db_session = await self._get_owned_session(session_id, user_id)
            if db_session.status == SessionStatus.COMPLETED.value:
                raise InvalidTransitionError("Cannot pause a completed test session")
            if current_module is not None and current_module.value != db_session.current_module:
                raise InvalidTransitionError(
                    f"Session is on {db_session.current_module}, not {current_module.value}"
                )

            if time_remaining is not None:
                db_session.time_remaining = max(time_remaining, 0)
            db_session.status = SessionStatus.PAUSED.value
            await self.db.commit()

            logger.info(
                "Paused session %s at %s with %ss left",
                session_id, db_session.current_module, db_session.time_remaining,
            )
            return self._to_model(db_session)

    # -- reads ----------------------------------------------------------

    async def get_session_status(self, session_id: str, user_id: str) -> SessionStatusView:
        db_session = await self._get_owned_session(session_id, user_id)
        responses = await self.responses.get_for_session(session_id)
        session = self._to_model(db_session)
        return SessionStatusView(
            session=session,
            responses=responses,
            current_module=session.current_module,
        )

    async def get_session_meta(self, session_id: str, user_id: str) -> SessionMeta:
        db_session = await self._get_owned_session(session_id, user_id)
        exam = await self.questions.get_exam(db_session.exam_id, active_only=False)
        if not exam:
            raise ExamNotFoundError(f"Exam {db_session.exam_id} not found")
        return SessionMeta(
            exam=exam,
            current_module=db_session.current_module,
            modules=[MODULE_CONFIGS[m] for m in MODULE_SEQUENCE],
        )

    async def get_module_questions(
        self, session_id: str, user_id: str, module: ModuleTag
    ) -> list[PublicQuestion]:
        """Questions of a reached module, without answer keys.

        Second modules are served from the tier the session was routed to.
        """
        db_session = await self._get_owned_session(session_id, user_id)
        if db_session.current_module is not None and (
            module_position(module) > module_position(ModuleTag(db_session.current_module))
        ):
            raise InvalidTransitionError(f"Module {module.value} is not available yet")

        band = None
        difficulty_field = MODULE2_DIFFICULTY_FIELDS.get(module)
        if difficulty_field and getattr(db_session, difficulty_field):
            band = Difficulty(getattr(db_session, difficulty_field))

        questions = await self.questions.find_questions_by_module(
            db_session.exam_id, module, band
        )
        return [PublicQuestion.from_question(q) for q in questions]

    # -- answers --------------------------------------------------------

    async def save_answer(
        self,
        session_id: str,
        user_id: str,
        question_id: str | None,
        user_answer: str | None,
        time_spent: int = 0,
        sequence_number: int = 0,
        is_flagged: bool = False,
    ) -> Response:
        """Save (or re-save) the answer to one question.

        An empty answer is allowed, e.g. to flag a question without answering.
        """
        if not question_id:
            raise AnswerValidationError("question_id is required")
        if user_answer is None:
            raise AnswerValidationError("user_answer is required")

        db_session = await self._get_owned_session(session_id, user_id)
        if db_session.status == SessionStatus.COMPLETED.value:
            raise InvalidTransitionError("Answers cannot change after the test is completed")

        questions = await self.questions.find_questions_by_ids([question_id])
        question = questions.get(question_id)
        if question is None or question.exam_id != db_session.exam_id:
            raise QuestionNotFoundError(f"Question {question_id} not found")

        response = await self.responses.upsert(
            session_id=session_id,
            question_id=question_id,
            user_answer=user_answer,
            time_spent=time_spent,
            sequence_number=sequence_number,
            is_flagged=is_flagged,
        )
        await self.db.commit()
        return response

    # -- module transitions ---------------------------------------------

    async def complete_module(
        self, session_id: str, user_id: str, module: ModuleTag
    ) -> CompleteModuleResult:
        """Grade a module and advance the session.

        Completing the current module stores its score, routes the next
        module where applicable and moves the cursor. Completing a module
        that is already graded only re-grades it for the caller.
        """
        async with self.locks.hold(session_id):
            db_session = await self._get_owned_session(session_id, user_id)
            score_field = MODULE_SCORE_FIELDS[module]
            already_graded = getattr(db_session, score_field) is not None
            if not already_graded and db_session.current_module != module.value:
                raise InvalidTransitionError(
                    f"Cannot complete {module.value}: session is on "
                    f"{db_session.current_module or 'no module'}"
                )

            grade = await self.grading.grade_module(session_id, module)
            if already_graded:
                logger.warning(
                    "Module %s of session %s is already graded; keeping stored score %s",
                    module.value, session_id, getattr(db_session, score_field),
                )
            else:
                self._record_module(db_session, module, grade.percent)

            await self.db.flush()
            db_session = await self._get_session_row(session_id)
            if db_session is None:
                await self.db.rollback()
                raise SessionStateError(
                    f"Session {session_id} disappeared while completing {module.value}"
                )
            self._apply_section_scaling(db_session)
            await self.db.commit()

        section = MODULE_CONFIGS[module].section
        difficulty = getattr(db_session, SECTION_FIELDS[section].difficulty)
        session = self._to_model(db_session)
        return CompleteModuleResult(
            module=module,
            correct_count=grade.correct_count,
            total_questions=grade.total_questions,
            percent=grade.percent,
            score=getattr(db_session, score_field),
            next_module=session.current_module,
            difficulty=Difficulty(difficulty) if difficulty else None,
            session=session,
        )

    def _record_module(self, db_session: TestSessionDB, module: ModuleTag, percent: float) -> None:
        setattr(db_session, MODULE_SCORE_FIELDS[module], percent_to_score(percent))

        routing_field = ROUTING_FIELDS.get(module)
        if routing_field and getattr(db_session, routing_field) is None:
            difficulty = select_difficulty(percent)
            setattr(db_session, routing_field, difficulty.value)
            logger.info(
                "Session %s scored %.2f%% on %s; routing to %s",
                db_session.id, percent * 100, module.value, difficulty.value,
            )

        following = next_module(module)
        if following:
            db_session.current_module = following.value
            db_session.time_remaining = MODULE_CONFIGS[following].time_seconds
            db_session.status = SessionStatus.IN_PROGRESS.value
        else:
            db_session.current_module = None
            db_session.time_remaining = 0
            db_session.status = SessionStatus.COMPLETED.value
            db_session.completed_at = datetime.utcnow()
        logger.info(
            "Session %s completed %s; next module %s",
            db_session.id, module.value, following.value if following else "none",
        )

    def _apply_section_scaling(self, db_session: TestSessionDB) -> None:
        """Scale any section whose module scores are in, then total once."""
        for section, fields in SECTION_FIELDS.items():
            module1 = getattr(db_session, fields.module1_score)
            module2 = getattr(db_session, fields.module2_score)
            if module1 is None or module2 is None:
                continue
            if getattr(db_session, fields.scaled_score) is not None:
                continue
            stored = getattr(db_session, fields.difficulty)
            difficulty = Difficulty(stored) if stored else Difficulty.MEDIUM
            scaled = scale_section(module1 / 100, module2 / 100, difficulty)
            setattr(db_session, fields.scaled_score, scaled)
            logger.info(
                "Session %s %s section scaled to %d (%s tier)",
                db_session.id, section.value, scaled, difficulty.value,
            )

        if (
            db_session.total_score is None
            and db_session.rw_score is not None
            and db_session.math_score is not None
        ):
            db_session.total_score = db_session.rw_score + db_session.math_score
            db_session.status = SessionStatus.COMPLETED.value
            if db_session.completed_at is None:
                db_session.completed_at = datetime.utcnow()
            logger.info("Session %s finished with total %d", db_session.id, db_session.total_score)

    # -- results --------------------------------------------------------

    async def complete_exam(self, session_id: str, user_id: str) -> FinalResults:
        """Final grading of a finished session."""
        async with self.locks.hold(session_id):
            db_session = await self._get_owned_session(session_id, user_id)
            rw = await self.grading.grade_section(session_id, Section.READING_WRITING)
            math = await self.grading.grade_section(session_id, Section.MATH)

            if db_session.status != SessionStatus.COMPLETED.value:
                if not self.legacy_linear_finalize:
                    raise InvalidTransitionError(
                        f"Test session still has modules to complete "
                        f"(current: {db_session.current_module})"
                    )
                self._finalize_linear(db_session, rw, math)
                await self.db.commit()

            overall = await self.grading.grade_session_overall(session_id)

        return FinalResults(
            session_id=db_session.id,
            exam_id=db_session.exam_id,
            user_id=db_session.user_id,
            module_scores={
                module.value: getattr(db_session, field)
                for module, field in MODULE_SCORE_FIELDS.items()
            },
            module2_difficulty=db_session.module2_difficulty,
            math2_difficulty=db_session.math2_difficulty,
            rw_score=db_session.rw_score,
            math_score=db_session.math_score,
            total_score=db_session.total_score,
            reading_writing=rw,
            math=math,
            overall=overall,
            completed_at=db_session.completed_at,
        )

    def _finalize_linear(
        self, db_session: TestSessionDB, rw: SectionGrade, math: SectionGrade
    ) -> None:
        """Old finalize flow: linear section scaling, no adaptive weighting."""
        logger.warning("Finalizing session %s with legacy linear scaling", db_session.id)
        if db_session.rw_score is None:
            db_session.rw_score = scale_linear(rw.percent)
        if db_session.math_score is None:
            db_session.math_score = scale_linear(math.percent)
        if db_session.total_score is None:
            db_session.total_score = db_session.rw_score + db_session.math_score
        db_session.status = SessionStatus.COMPLETED.value
        db_session.current_module = None
        db_session.time_remaining = 0
        if db_session.completed_at is None:
            db_session.completed_at = datetime.utcnow()

    async def get_review(self, session_id: str, user_id: str) -> list[ReviewItem]:
        """Answered questions with answer keys, once the test is over."""
        db_session = await self._get_owned_session(session_id, user_id)
        if db_session.status != SessionStatus.COMPLETED.value:
            raise InvalidTransitionError("Review is available once the test is completed")

        return [
            ReviewItem(
                question_id=question.id,
                module=question.module,
                difficulty=question.band,
                skill_category=question.skill_category,
                question_text=question.question_text,
                options=question.options,
                user_answer=response.user_answer,
                correct_answer=question.correct_answer,
                is_correct=answers_match(response.user_answer, question.correct_answer),
                is_flagged=response.is_flagged,
                time_spent=response.time_spent,
                explanation=question.explanation,
            )
            for response, question in await self.grading.review_items(session_id)
        ]

    async def list_reviews(self, user_id: str) -> list[ReviewSummary]:
        """The user's sessions with exam name and total, newest completion first.

        Unfinished sessions follow the completed ones, newest start first.
        """
        result = await self.db.execute(
            select(TestSessionDB, ExamDB.name)
            .join(ExamDB, TestSessionDB.exam_id == ExamDB.id)
            .where(TestSessionDB.user_id == user_id)
            .order_by(
                TestSessionDB.completed_at.is_(None),
                TestSessionDB.completed_at.desc(),
                TestSessionDB.started_at.desc(),
            )
            .execution_options(populate_existing=True)
        )
        return [
            ReviewSummary(
                session_id=db_session.id,
                exam_id=db_session.exam_id,
                exam_name=exam_name,
                status=db_session.status,
                total_score=db_session.total_score,
                started_at=db_session.started_at,
                completed_at=db_session.completed_at,
            )
            for db_session, exam_name in result.all()
        ]
