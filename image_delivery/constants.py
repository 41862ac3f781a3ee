"""
Image delivery — static constants and enum types.
"""
import enum


class ImageFormat(str, enum.Enum):
    AUTO = "auto"
    JPEG = "jpeg"
    WEBP = "webp"
    AVIF = "avif"
    PNG = "png"
    SVG = "svg"
    GIF = "gif"


# Values the edge accepts for ?format=
SUPPORTED_FORMATS: frozenset[str] = frozenset(f.value for f in ImageFormat)


class BucketMode(str, enum.Enum):
    """Where the pipeline takes its buckets from."""
    SINGLE = "single"  # fixed buckets from configuration
    MULTI = "multi"    # fromBucket / toBucket carried in the descriptor


# ── Descriptor keys ─────────────────────────────────────────────────────────

FROM_BUCKET = "fromBucket"
TO_BUCKET = "toBucket"
TO_BUCKET_REGION = "toBucketRegion"
TO_BUCKET_PATH = "toBucketPath"
RATIO = "ratio"
FORMAT = "format"
QUALITY = "quality"
WIDTH = "width"
HEIGHT = "height"

ROUTING_KEYS: tuple[str, ...] = (FROM_BUCKET, TO_BUCKET, TO_BUCKET_REGION)
TRANSFORM_KEYS: tuple[str, ...] = (RATIO, FORMAT, QUALITY, WIDTH, HEIGHT)

# Order of keys in a canonical descriptor. Changing it invalidates every
# cached object at the edge and in the transformed bucket.
CANONICAL_ORDER: tuple[str, ...] = (
    FROM_BUCKET,
    TO_BUCKET,
    TO_BUCKET_REGION,
    RATIO,
    FORMAT,
    QUALITY,
    WIDTH,
    HEIGHT,
    TO_BUCKET_PATH,
)

# Query parameter (lower-cased) -> descriptor key, for pass-through values
ROUTING_QUERY_PARAMS: dict[str, str] = {
    "from_bucket": FROM_BUCKET,
    "to_bucket": TO_BUCKET,
    "to_bucket_region": TO_BUCKET_REGION,
    "to_bucket_path": TO_BUCKET_PATH,
}

# Path suffix for "serve the original, no transform"
ORIGINAL_MARKER = "original"


# ── Encoding ────────────────────────────────────────────────────────────────

# Requested format -> (Pillow encoder, content type, lossy)
FORMAT_ENCODINGS: dict[str, tuple[str, str, bool]] = {
    ImageFormat.JPEG.value: ("JPEG", "image/jpeg", True),
    ImageFormat.GIF.value: ("GIF", "image/gif", False),
    ImageFormat.WEBP.value: ("WEBP", "image/webp", True),
    ImageFormat.PNG.value: ("PNG", "image/png", False),
    ImageFormat.AVIF.value: ("AVIF", "image/avif", True),
}

# Anything else is treated as a lossy JPEG-typed output
FALLBACK_CONTENT_TYPE = "image/jpeg"

# Pillow encoders that can write every frame of an animated source
ANIMATED_ENCODERS: frozenset[str] = frozenset({"GIF", "WEBP", "PNG"})

DEFAULT_CONTENT_TYPE = "application/octet-stream"


# ── HTTP ────────────────────────────────────────────────────────────────────

SECRET_HEADER = "x-origin-secret-header"
JSON_CONTENT_TYPE = "application/json"
PUBLIC_READ_ACL = "public-read"


class TimingPhase(str, enum.Enum):
    DOWNLOAD = "img-download"
    TRANSFORM = "img-transform"
    UPLOAD = "img-upload"
