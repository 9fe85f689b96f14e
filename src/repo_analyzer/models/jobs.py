"""Analysis job data models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from repo_analyzer.services.jobs import Job, JobStatus


class AnalyzeResponse(BaseModel):
    """Response model for a queued analysis."""

    status: Literal["queued"] = "queued"
    job_id: str
    message: str = "Analysis has been queued"


class JobStatusResponse(BaseModel):
    """Response model for job status polling."""

    status: JobStatus
    job_id: str
    progress: int
    message: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_job(cls, job: Job) -> "JobStatusResponse":
        return cls(
            status=job.status,
            job_id=job.job_id,
            progress=job.progress,
            message=job.message,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )
