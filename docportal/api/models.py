"""API request/response models."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from docportal.analysis.client import DEFAULT_MODEL_ID
from docportal.search.models import DEFAULT_MAX_RESULTS


class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Storage models
class StorageDocument(_FromAttributes):
    name: str
    uri: str
    size_bytes: int
    content_type: str
    last_modified: datetime
    container_name: str


class ListContainersResponse(BaseModel):
    success: bool = True
    containers: List[str]


class ListDocumentsResponse(BaseModel):
    success: bool = True
    documents: List[StorageDocument]


class SearchDocumentsResponse(BaseModel):
    success: bool = True
    documents: List[StorageDocument]
    search_term: str
    total_matches: int
    max_results: int = DEFAULT_MAX_RESULTS
    has_more_results: bool
    examined_count: int


class BlobExistsResponse(BaseModel):
    container_name: str
    blob_name: str
    exists: bool


# Analysis models
class AnalyzeFromStorageRequest(BaseModel):
    container_name: str = Field(..., description="Container holding the document")
    blob_name: str = Field(..., description="Blob name (e.g., invoices/2024/inv-001.pdf)")
    model_id: str = Field(default=DEFAULT_MODEL_ID, description="Analysis model id")
    include_field_elements: bool = Field(default=True, description="Request high resolution OCR")


class DocumentLine(_FromAttributes):
    content: str
    polygon: List[float] = Field(default_factory=list)


class DocumentPage(_FromAttributes):
    page_number: int
    width: float
    height: float
    unit: str
    angle: float
    lines: List[DocumentLine] = Field(default_factory=list)


class DocumentTableCell(_FromAttributes):
    row_index: int
    column_index: int
    content: str
    row_span: int = 1
    column_span: int = 1


class DocumentTable(_FromAttributes):
    row_count: int
    column_count: int
    cells: List[DocumentTableCell] = Field(default_factory=list)


class DocumentKeyValuePair(_FromAttributes):
    key: str
    value: str
    confidence: float


class DocumentAnalysisResult(_FromAttributes):
    document_id: str
    model_id: str
    status: str
    analyzed_at: datetime
    content: str = ""
    pages: List[DocumentPage] = Field(default_factory=list)
    tables: List[DocumentTable] = Field(default_factory=list)
    key_value_pairs: List[DocumentKeyValuePair] = Field(default_factory=list)


class AnalyzeDocumentResponse(BaseModel):
    success: bool = True
    attempts: int
    message: Optional[str] = None
    result: DocumentAnalysisResult


class ModelsResponse(BaseModel):
    models: List[str]
