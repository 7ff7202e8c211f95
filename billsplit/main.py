import os, logging
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from .db import init_db
from .errors import SplitError
from .auth import router as auth_router
from .routes.split import router as split_router
from .routes.item import router as item_router
from .routes.payment import router as payment_router

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper(),
                    format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(title="Bill Splitter")

# Session middleware
app.add_middleware(SessionMiddleware, secret_key=os.environ.get("SECRET_KEY", "change-me"))

# include routers
app.include_router(auth_router)
app.include_router(split_router)
app.include_router(item_router)
app.include_router(payment_router)


@app.exception_handler(SplitError)
async def split_error_handler(request: Request, exc: SplitError):
    if exc.retryable:
        logging.getLogger(__name__).warning("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
def on_startup():
    init_db()
