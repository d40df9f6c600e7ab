from pydantic import BaseModel


class GeneralError(BaseModel):
    message: str
    pagewatch_error_code: int


class VersionResponse(BaseModel):
    version: str
