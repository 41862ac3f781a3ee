import io
from collections.abc import Callable

import pytest
from botocore.exceptions import ClientError
from PIL import Image

from image_delivery.config import Settings
from image_delivery.constants import BucketMode
from image_delivery.s3 import StoreClients

SECRET = "test-secret"
ORIGINAL_BUCKET = "originals"
TRANSFORMED_BUCKET = "transformed"


class FakeS3Client:
    """In-memory stand-in for a boto3 S3 client."""

    def __init__(self, region: str | None = None) -> None:
        self.region = region
        self.objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self.gets: list[tuple[str, str]] = []
        self.puts: list[dict] = []
        self.fail_puts = False

    def add(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        self.objects[(bucket, key)] = (body, content_type)

    def get_object(self, *, Bucket: str, Key: str) -> dict:
        self.gets.append((Bucket, Key))
        if (Bucket, Key) not in self.objects:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "Not Found"}}, "GetObject",
            )
        body, content_type = self.objects[(Bucket, Key)]
        return {"Body": io.BytesIO(body), "ContentType": content_type}

    def put_object(self, **kwargs) -> dict:
        if self.fail_puts:
            raise ClientError(
                {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject",
            )
        self.puts.append(kwargs)
        self.objects[(kwargs["Bucket"], kwargs["Key"])] = (kwargs["Body"], kwargs["ContentType"])
        return {"ETag": '"fake"'}


class FakeStores(StoreClients):
    """StoreClients whose factory hands out FakeS3Client instances."""

    def __init__(self, settings: Settings) -> None:
        self.created: dict[str | None, FakeS3Client] = {}
        super().__init__(settings, client_factory=self._create)

    def _create(self, region: str | None) -> FakeS3Client:
        client = FakeS3Client(region)
        self.created[region] = client
        return client


def make_image(
    fmt: str = "JPEG",
    size: tuple[int, int] = (1000, 1000),
    mode: str = "RGB",
    color: object = (200, 30, 30),
    orientation: int | None = None,
) -> bytes:
    img = Image.new(mode, size, color)
    buf = io.BytesIO()
    kwargs: dict = {}
    if orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = orientation
        kwargs["exif"] = exif.tobytes()
    img.save(buf, format=fmt, **kwargs)
    return buf.getvalue()


def make_animated_gif(
    frames: int = 3,
    size: tuple[int, int] = (120, 80),
    durations: list[int] | int = 100,
) -> bytes:
    colors = [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0)]
    images = [Image.new("RGB", size, colors[i % len(colors)]) for i in range(frames)]
    buf = io.BytesIO()
    images[0].save(
        buf, format="GIF", save_all=True, append_images=images[1:], duration=durations, loop=0,
    )
    return buf.getvalue()


def open_image(body: bytes) -> Image.Image:
    return Image.open(io.BytesIO(body))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        bucket_mode=BucketMode.SINGLE,
        original_image_bucket_name=ORIGINAL_BUCKET,
        transformed_image_bucket_name=TRANSFORMED_BUCKET,
        transformed_image_cache_ttl="max-age=31622400",
        secret_key=SECRET,
        max_image_size=4_700_000,
    )


@pytest.fixture
def settings_factory(settings: Settings) -> Callable[..., Settings]:
    def _factory(**overrides) -> Settings:
        return settings.model_copy(update=overrides)
    return _factory


@pytest.fixture
def stores(settings: Settings) -> FakeStores:
    return FakeStores(settings)


@pytest.fixture
def s3(stores: FakeStores) -> FakeS3Client:
    """The default client, preloaded with images/a.jpg (1000x1000 JPEG)."""
    client = stores.default
    client.add(ORIGINAL_BUCKET, "images/a.jpg", make_image(), "image/jpeg")
    return client
