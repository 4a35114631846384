"""Adaptive SAT Practice - FastAPI Application."""

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func, select

from adaptive_sat import __version__
from adaptive_sat.config import settings
from adaptive_sat.db import init_db
from adaptive_sat.db.database import async_session
from adaptive_sat.db.models import ExamDB, QuestionDB
from adaptive_sat.models.exam import MAX_DIFFICULTY, MIN_DIFFICULTY, ModuleTag
from adaptive_sat.routers import exams_router

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def seed_exams(exams_dir: Path | None = None) -> int:
    """Seed the database with exams from JSON files if it has none."""
    exams_dir = exams_dir or settings.exams_dir
    async with async_session() as session:
        if settings.skip_seeding:
            logger.info("skip_seeding is set. Skipping database seed.")
            return 0

        count = await session.scalar(select(func.count()).select_from(ExamDB))
        if count and count > 0:
            logger.info(f"Database already has {count} exams. Skipping seed.")
            return 0

        if not exams_dir.exists():
            logger.warning(f"Exams directory not found: {exams_dir}")
            return 0

        total_imported = 0
        for json_file in sorted(exams_dir.glob("*.json")):
            logger.info(f"Loading {json_file.name}...")
            with open(json_file) as f:
                data = json.load(f)

            questions = data.get("questions", [])
            exam = ExamDB(
                name=data["name"],
                description=data.get("description"),
                total_questions=data.get("total_questions", len(questions)),
                is_active=data.get("is_active", True),
            )
            session.add(exam)
            await session.flush()

            for q in questions:
                try:
                    difficulty = int(q.get("difficulty", 3))
                    if not MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY:
                        raise ValueError(f"difficulty {difficulty} out of range")
                    session.add(QuestionDB(
                        exam_id=exam.id,
                        module=ModuleTag(q["module"]).value,
                        difficulty=difficulty,
                        skill_category=q["skill_category"],
                        question_text=q["question_text"],
                        question_data=json.dumps(q.get("question_data", {})),
                        options=json.dumps(q.get("options", [])),
                        correct_answer=q["correct_answer"],
                        explanation=q.get("explanation"),
                    ))
                    total_imported += 1
                except (KeyError, TypeError, ValueError) as e:
                    logger.error(f"Skipping malformed question in {json_file.name}: {e}")

            await session.commit()

        logger.info(f"Imported {total_imported} questions.")
        return total_imported


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    configure_logging()

    # Startup
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Initializing database...")
    await init_db()
    logger.info("Database initialized.")

    await seed_exams()

    logger.info("Startup complete.")
    yield

    logger.info("Shutting down...")


app = FastAPI(
    title=settings.app_name,
    description="Adaptive digital SAT practice: sessions, module routing and scoring",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(exams_router)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "modules": [m.value for m in ModuleTag],
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
