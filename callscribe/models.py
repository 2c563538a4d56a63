"""
Data model shared by the pipeline stages.

A :class:`Job` is the lifecycle record of one audio item.  It is owned by the
pipeline while ``pending`` or ``processing`` and becomes read-only once it
reaches ``completed`` or ``failed`` (apart from a fresh analysis being
attached).  :class:`LogEntry` rows form the append-only audit trail of a job.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class LogLevel(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AnalysisSource(str, enum.Enum):
    REMOTE = "remote"
    LOCAL = "local"


@dataclass
class Analysis:
    """Structured result of the analysis pass.

    ``temperature`` is the 1-10 conversational warmth score, not the decoding
    temperature of the model request.  ``partial`` is set when some chunks of
    a long transcript could not be analysed and the result was merged from
    the remaining ones.
    """

    problems: List[str] = field(default_factory=list)
    solutions: List[str] = field(default_factory=list)
    temperature: int = 5
    summary: str = ""
    temperature_defaulted: bool = False
    partial: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Analysis":
        return cls(
            problems=list(data.get("problems") or []),
            solutions=list(data.get("solutions") or []),
            temperature=int(data.get("temperature", 5)),
            summary=data.get("summary") or "",
            temperature_defaulted=bool(data.get("temperature_defaulted", False)),
            partial=bool(data.get("partial", False)),
        )


@dataclass
class Job:
    name: str
    size_bytes: int = 0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    language: Optional[str] = None
    transcript: Optional[str] = None
    analysis: Optional[Analysis] = None
    analysis_source: Optional[AnalysisSource] = None
    error: Optional[str] = None
    processing_time_seconds: Optional[float] = None
    duration_seconds: Optional[float] = None
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "size_bytes": self.size_bytes,
            "status": self.status.value,
            "progress": self.progress,
            "language": self.language,
            "transcript": self.transcript,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "analysis_source": self.analysis_source.value if self.analysis_source else None,
            "error": self.error,
            "processing_time_seconds": self.processing_time_seconds,
            "duration_seconds": self.duration_seconds,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        analysis = data.get("analysis")
        source = data.get("analysis_source")
        return cls(
            id=data["id"],
            name=data["name"],
            size_bytes=int(data.get("size_bytes") or 0),
            status=JobStatus(data.get("status", JobStatus.PENDING.value)),
            progress=int(data.get("progress") or 0),
            language=data.get("language"),
            transcript=data.get("transcript"),
            analysis=Analysis.from_dict(analysis) if analysis else None,
            analysis_source=AnalysisSource(source) if source else None,
            error=data.get("error"),
            processing_time_seconds=data.get("processing_time_seconds"),
            duration_seconds=data.get("duration_seconds"),
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else _utcnow(),
        )


@dataclass(frozen=True)
class LogEntry:
    job_id: str
    level: LogLevel
    message: str
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "level": self.level.value,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        return cls(
            job_id=data["job_id"],
            level=LogLevel(data["level"]),
            message=data["message"],
            created_at=datetime.fromisoformat(data["created_at"]),
        )
