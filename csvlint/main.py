from fastapi import FastAPI, File, HTTPException, Query, UploadFile

from .models import HealthResponse, Mode, ValidateResponse
from .rules import DEFAULT_DELIMITER, SUPPORTED_SUFFIXES, parse_delimiter
from .validate import Validator, build_report

app = FastAPI(
    title="csvlint",
    description="Streaming RFC 4180 structural validation for delimited text",
    version="0.1.0",
)

@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}

@app.post("/validate", response_model=ValidateResponse)
def validate_csv(
    file: UploadFile = File(...),
    delimiter: str = Query(DEFAULT_DELIMITER),
    lazy_quotes: bool = Query(False),
    rfc4180: bool = Query(False),
    require_final_crlf: bool = Query(False),
):
    if not (file.filename or "").lower().endswith(SUPPORTED_SUFFIXES):
        raise HTTPException(status_code=422, detail="Only CSV, TSV or TXT files are supported")

    try:
        mode = Mode(
            delimiter=parse_delimiter(delimiter),
            lazy_quotes=lazy_quotes,
            strict_rfc4180=rfc4180,
            require_final_crlf=require_final_crlf,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    result = Validator(mode).validate(file.file)
    return build_report(result, mode)
