from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class PhaseResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    skipped: bool = False
    message: Optional[str] = None
    job_id: Optional[str] = None
    batch_index: Optional[int] = None
    next_phase: Optional[str] = None

    # Discover / Fetch
    processed: int = 0
    new_items: int = 0
    queued_fetches: int = 0
    failed: int = 0

    # Finalize
    total_items: Optional[int] = None
    notification_sent: Optional[bool] = None
    notification_error: Optional[str] = None


class TriggerResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    started: bool
    message: str
    job_id: Optional[str] = None
    status: Optional[str] = None
    discovery_targets: Optional[int] = None
    reaped_job_id: Optional[str] = None
