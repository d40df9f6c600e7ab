from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PhaseRequest(BaseModel):
    """Continuation payload. Serialized with camelCase names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str = Field(min_length=1)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class DiscoverBatchRequest(PhaseRequest):
    batch_index: int = Field(default=0, ge=0)


class FetchBatchRequest(PhaseRequest):
    batch_index: int = Field(default=0, ge=0)


class FinalizeRequest(PhaseRequest):
    pass
