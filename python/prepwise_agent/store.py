"""
Interview Document Store.

Persists interview and feedback records as one JSON file per document,
grouped by collection directory:

    {data_dir}/interviews/{interview_id}.json
    {data_dir}/feedback/{feedback_id}.json

Thread Safety:
    Writes are atomic at the file level only. Concurrent read-modify-write
    of the same document requires external locking.

Last Grunted: 10/15/2026
"""

import json
import logging
import random
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from .models import FeedbackAssessment, FeedbackRecord, InterviewRecord


__all__ = [
    "InterviewStore",
    "StoreWriteError",
    "StoreReadError",
    "COVER_IMAGES",
    "get_random_interview_cover",
]


logger = logging.getLogger(__name__)


INTERVIEWS_COLLECTION = "interviews"
FEEDBACK_COLLECTION = "feedback"

COVER_IMAGES = tuple(
    f"/covers/{name}.png"
    for name in (
        "adobe",
        "amazon",
        "facebook",
        "hostinger",
        "pinterest",
        "quora",
        "reddit",
        "skype",
        "spotify",
        "telegram",
        "tiktok",
        "yahoo",
    )
)


def get_random_interview_cover() -> str:
    """Pick a cover image path for a new interview card."""
    return random.choice(COVER_IMAGES)


class StoreWriteError(Exception):
    """Raised when writing a document fails."""

    def __init__(self, path: Path, cause: Exception) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to write to {path}: {cause}")


class StoreReadError(Exception):
    """Raised when reading a document fails."""

    def __init__(self, path: Path, cause: Exception) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to read from {path}: {cause}")


def _format_utc_timestamp() -> str:
    """Return current UTC timestamp as ISO 8601 string with 'Z' suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _new_document_id() -> str:
    return uuid.uuid4().hex[:20]


class InterviewStore:
    """
    JSON-file document store for interviews and feedback.

    Example:
        >>> store = InterviewStore(Path("./data"))
        >>> record = store.add_interview(
        ...     role="Backend Engineer", type="Technical", level="Senior",
        ...     techstack=["python", "postgresql"],
        ...     questions=["Explain MVCC."], user_id="user_1",
        ... )
        >>> store.get_interview(record.id).role
        'Backend Engineer'
    """

    def __init__(self, data_dir: Path) -> None:
        """
        Initialize the store.

        Args:
            data_dir: Root directory for collections. Created if missing.
        """
        self.data_dir = Path(data_dir)
        for collection in (INTERVIEWS_COLLECTION, FEEDBACK_COLLECTION):
            self._ensure_collection(collection)

    def _ensure_collection(self, collection: str) -> Path:
        """
        Create a collection directory if it doesn't exist.

        Raises:
            StoreWriteError: If directory creation fails.
        """
        path = self.data_dir / collection
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreWriteError(path, e) from e
        return path

    def _get_path(self, collection: str, document_id: str) -> Path:
        return self.data_dir / collection / f"{document_id}.json"

    def _write(self, collection: str, document_id: str, document: BaseModel) -> Path:
        path = self._get_path(collection, document_id)
        data = document.model_dump(by_alias=True)
        data["_meta"] = {
            "written_at": _format_utc_timestamp(),
            "version": "1.0",
        }
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise StoreWriteError(path, e) from e
        return path

    def _read(self, collection: str, document_id: str) -> Optional[dict[str, Any]]:
        path = self._get_path(collection, document_id)
        if not path.exists():
            logger.debug("No %s document %s", collection, document_id)
            return None
        return self._read_path(path)

    @staticmethod
    def _read_path(path: Path) -> dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StoreReadError(path, e) from e
        except OSError as e:
            raise StoreReadError(path, e) from e
        if not isinstance(data, dict):
            raise StoreReadError(path, ValueError("document is not a JSON object"))
        data.pop("_meta", None)
        return data

    # -------------------------------------------------------------------------
    # Interviews
    # -------------------------------------------------------------------------

    def add_interview(
        self,
        *,
        role: str,
        type: str,
        level: str,
        techstack: list[str],
        questions: list[str],
        user_id: Optional[str],
        cover_image: Optional[str] = None,
    ) -> InterviewRecord:
        """
        Store a finalized interview with a fresh id and cover image.

        Returns:
            The stored InterviewRecord.

        Raises:
            StoreWriteError: If the file write fails.
        """
        record = InterviewRecord(
            id=_new_document_id(),
            role=role,
            type=type,
            level=level,
            techstack=techstack,
            questions=questions,
            user_id=user_id,
            finalized=True,
            cover_image=cover_image or get_random_interview_cover(),
        )
        path = self._write(INTERVIEWS_COLLECTION, record.id, record)
        logger.info(
            "Stored interview %s (%d questions) to %s",
            record.id,
            len(record.questions),
            path,
        )
        return record

    def get_interview(self, interview_id: str) -> Optional[InterviewRecord]:
        """
        Load an interview by id.

        Raises:
            StoreReadError: If the file is unreadable or fails validation.
        """
        data = self._read(INTERVIEWS_COLLECTION, interview_id)
        if data is None:
            return None
        try:
            return InterviewRecord.model_validate(data)
        except ValidationError as e:
            raise StoreReadError(self._get_path(INTERVIEWS_COLLECTION, interview_id), e) from e

    def list_interviews(self, user_id: Optional[str] = None) -> list[InterviewRecord]:
        """All interviews, newest first, optionally limited to one user."""
        records = []
        for path in self._ensure_collection(INTERVIEWS_COLLECTION).glob("*.json"):
            try:
                record = InterviewRecord.model_validate(self._read_path(path))
            except (StoreReadError, ValidationError) as e:
                logger.warning("Skipping unreadable interview %s: %s", path.name, e)
                continue
            if user_id is None or record.user_id == user_id:
                records.append(record)
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    # -------------------------------------------------------------------------
    # Feedback
    # -------------------------------------------------------------------------

    def save_feedback(
        self,
        assessment: FeedbackAssessment,
        *,
        interview_id: str,
        user_id: Optional[str],
        feedback_id: Optional[str] = None,
    ) -> FeedbackRecord:
        """
        Store feedback for an interview attempt.

        Args:
            assessment: Scores and commentary from the feedback model.
            interview_id: Interview the feedback belongs to.
            user_id: Candidate the feedback belongs to.
            feedback_id: Existing feedback id to overwrite; a new id otherwise.

        Returns:
            The stored FeedbackRecord.
        """
        record = FeedbackRecord(
            id=feedback_id or _new_document_id(),
            interview_id=interview_id,
            user_id=user_id,
            **assessment.model_dump(),
        )
        path = self._write(FEEDBACK_COLLECTION, record.id, record)
        logger.info(
            "Stored feedback %s for interview %s (score=%d) to %s",
            record.id,
            interview_id,
            record.total_score,
            path,
        )
        return record

    def get_feedback(self, feedback_id: str) -> Optional[FeedbackRecord]:
        data = self._read(FEEDBACK_COLLECTION, feedback_id)
        if data is None:
            return None
        try:
            return FeedbackRecord.model_validate(data)
        except ValidationError as e:
            raise StoreReadError(self._get_path(FEEDBACK_COLLECTION, feedback_id), e) from e

    def get_feedback_by_interview(
        self, interview_id: str, user_id: Optional[str] = None
    ) -> Optional[FeedbackRecord]:
        """Most recent feedback for an interview (and user, if given)."""
        matches = []
        for path in self._ensure_collection(FEEDBACK_COLLECTION).glob("*.json"):
            try:
                record = FeedbackRecord.model_validate(self._read_path(path))
            except (StoreReadError, ValidationError) as e:
                logger.warning("Skipping unreadable feedback %s: %s", path.name, e)
                continue
            if record.interview_id != interview_id:
                continue
            if user_id is not None and record.user_id != user_id:
                continue
            matches.append(record)
        if not matches:
            return None
        return max(matches, key=lambda r: r.created_at)
