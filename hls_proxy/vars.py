import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "hls-cors-proxy")
HOST = os.environ.get("HOSTNAME", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))

PROXY_PATH = "/" + os.environ.get("PROXY_PATH", "/proxy").strip("/")
# Public-facing base URL used when building proxied URLs (e.g. behind a TLS terminator)
PUBLIC_URL = os.environ.get("PUBLIC_URL", "").rstrip("/")

UPSTREAM_USER_AGENT = os.getenv("UPSTREAM_USER_AGENT", "Mozilla/5.0")
UPSTREAM_CONNECT_TIMEOUT = float(os.getenv("UPSTREAM_CONNECT_TIMEOUT", "10"))
UPSTREAM_READ_TIMEOUT = float(os.getenv("UPSTREAM_READ_TIMEOUT", "30"))
MANIFEST_FETCH_TIMEOUT = float(os.getenv("MANIFEST_FETCH_TIMEOUT", "60"))
UPSTREAM_MAX_REDIRECTS = int(os.getenv("UPSTREAM_MAX_REDIRECTS", "5"))
STREAM_CHUNK_SIZE = int(os.getenv("STREAM_CHUNK_SIZE", "65536"))
UPSTREAM_PROXY = os.getenv("UPSTREAM_PROXY", "")

UPSTREAM_ALLOW_UNSAFE_CERT = (
    os.getenv("UPSTREAM_ALLOW_UNSAFE_CERT", "false").lower() == "true"
)
RESOLVE_HOSTS_BEFORE_CONNECT = (
    os.getenv("RESOLVE_HOSTS_BEFORE_CONNECT", "false").lower() == "true"
)
DETECT_MANIFEST_CONTENT_TYPE = (
    os.getenv("DETECT_MANIFEST_CONTENT_TYPE", "false").lower() == "true"
)

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
