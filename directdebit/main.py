from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from directdebit.api.routes import router
from directdebit.api.admin_routes import router as admin_router
from directdebit.core.errors import GatewayError
from directdebit.observability.logging import log, log_error
from directdebit.settings import settings

app = FastAPI(title="Direct Debit Enrollment Gateway")

# Browser forms on the council sites call /validate-customer and /handoff directly.
origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With"],
)

app.include_router(router)
app.include_router(admin_router)


@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "Direct debit gateway is running. Use POST /handoff, POST /webhook/verification and POST /export.",
    }


@app.get("/health")
def health():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Every error leaves as {"error": "<short message>"}; detail stays in the log.
# ---------------------------------------------------------------------------
@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    log(
        event="request_failed",
        path=request.url.path,
        errorType=type(exc).__name__,
        error=exc.message,
        statusCode=exc.status_code,
        retryable=bool(exc.retryable),
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid request parameters"})


@app.exception_handler(Exception)
async def universal_exception_handler(request: Request, exc: Exception):
    log_error("request_exception", exc, limit=500, path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})
