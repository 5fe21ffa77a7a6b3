"""Convert azure-ai-formrecognizer AnalyzeResult objects to NormalizedAnalysisResult."""
from typing import Any, Iterable, List, Optional

from docportal.analysis.models import (
    DocumentKeyValuePair,
    DocumentLine,
    DocumentPage,
    DocumentTable,
    DocumentTableCell,
    NormalizedAnalysisResult,
)


def flatten_polygon(points: Optional[Iterable[Any]]) -> List[float]:
    """[Point(x, y), ...] -> [x0, y0, x1, y1, ...]"""
    flat: List[float] = []
    for point in points or []:
        flat.append(float(point.x))
        flat.append(float(point.y))
    return flat


def _map_page(page: Any) -> DocumentPage:
    return DocumentPage(
        page_number=page.page_number,
        width=page.width or 0.0,
        height=page.height or 0.0,
        unit=str(page.unit) if page.unit else "pixel",
        angle=page.angle or 0.0,
        lines=[
            DocumentLine(content=line.content, polygon=flatten_polygon(line.polygon))
            for line in page.lines or []
        ],
    )


def _map_table(table: Any) -> DocumentTable:
    return DocumentTable(
        row_count=table.row_count,
        column_count=table.column_count,
        cells=[
            DocumentTableCell(
                row_index=cell.row_index,
                column_index=cell.column_index,
                content=cell.content or "",
                row_span=cell.row_span or 1,
                column_span=cell.column_span or 1,
            )
            for cell in table.cells or []
        ],
    )


def _map_key_value_pair(pair: Any) -> DocumentKeyValuePair:
    return DocumentKeyValuePair(
        key=pair.key.content if pair.key else "",
        value=pair.value.content if pair.value else "",
        confidence=pair.confidence or 0.0,
    )


def map_analyze_result(result: Any, document_id: str, model_id: str) -> NormalizedAnalysisResult:
    """
    Map an SDK AnalyzeResult to the service-independent result shape.

    Only attributes are read, so any object with the same shape works
    (the tests use SimpleNamespace).
    """
    return NormalizedAnalysisResult(
        document_id=document_id,
        model_id=model_id,
        content=result.content or "",
        pages=[_map_page(page) for page in result.pages or []],
        tables=[_map_table(table) for table in result.tables or []],
        key_value_pairs=[_map_key_value_pair(pair) for pair in result.key_value_pairs or []],
    )
