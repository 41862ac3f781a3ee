import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from image_delivery.config import Settings
from image_delivery.normalizer import normalize_request
from image_delivery.pipeline import TransformationPipeline
from image_delivery.s3 import StoreClients
from image_delivery.schemas import ImageRequest

logger = logging.getLogger(__name__)


_DESCRIPTION = """
## Image Delivery Service

On-demand image transformation behind a CDN.

* **Transform** — `GET /<original key>/<descriptor>`, e.g.
  `/images/rio/1.jpeg/format=webp,width=300`; resize, auto-orient,
  re-encode (jpeg, webp, avif, png, gif).
* **Cache** — results are written to the transformed bucket under
  `<original key>/<descriptor>` so the CDN serves them directly next time.
* **Edge emulation** — with `EMULATE_EDGE=true` query parameters
  (`?width=300&format=auto`) are normalized here instead of at the CDN.

### Authentication
Every image request must carry the CDN shared secret:
```
x-origin-secret-header: <secret>
```

### Response shape
```json
{ "bucket": "...", "key": "...", "transformed": true, "error": "only on failure" }
```
"""

_IMAGE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


class HealthResponse(BaseModel):
    status: str
    service: str


def get_settings() -> Settings:
    return Settings()


def create_app(
    settings: Settings | None = None,
    stores: StoreClients | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(levelname)s:%(name)s: %(message)s",
    )
    app = FastAPI(
        title="Image Delivery Service",
        version="1.0.0",
        description=_DESCRIPTION,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.stores = stores or StoreClients(settings)

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service="image-delivery")

    # Sync handler: FastAPI runs it in the threadpool
    @app.api_route("/{resource_path:path}", methods=_IMAGE_METHODS, tags=["images"])
    def transform_image(resource_path: str, request: Request) -> JSONResponse:
        path = f"/{resource_path}"
        if settings.emulate_edge:
            path = normalize_request(
                path, dict(request.query_params), request.headers.get("accept"),
            ).uri

        pipeline = TransformationPipeline(settings, request.app.state.stores)
        envelope = pipeline.run(
            ImageRequest(
                method=request.method,
                path=path,
                headers={k.lower(): v for k, v in request.headers.items()},
            )
        )
        logger.info("%s %s -> %d (%s)", request.method, path, envelope.status_code, pipeline.state.value)
        return JSONResponse(
            status_code=envelope.status_code,
            content=envelope.body,
            headers=envelope.headers,
        )

    return app


app = create_app()
