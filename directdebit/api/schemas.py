from typing import Literal, Optional
from pydantic import BaseModel

FormVariant = Literal["user", "advisor"]
Status = Literal["pending", "approved", "failed"]

class HandoffResponse(BaseModel):
    success: bool = True
    submissionId: str
    redirectUrl: str
    encryptedData: str
    formVariant: FormVariant
    organization: str

class CallbackResponse(BaseModel):
    success: bool = True
    submissionId: str
    status: Status
    message: str = ""

class ExportResponse(BaseModel):
    success: bool = True
    recordsExported: int
    fileName: Optional[str] = None
    fileSize: int = 0
    duration: str = "0 seconds"
    message: Optional[str] = None

class EnqueueResponse(BaseModel):
    success: bool = True
    jobId: str

class CustomerCheckResponse(BaseModel):
    message: str

class ErrorResponse(BaseModel):
    error: str
