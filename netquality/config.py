"""Constants and configuration for netquality."""

# Latency probing
PING_TARGET = "8.8.8.8"
PING_FALLBACK_TARGET = "1.1.1.1"
PING_COUNT = 20
PING_INTERVAL = 1.0
PING_TIMEOUT = 2.0

# Latency color thresholds (milliseconds)
FAST_LATENCY_MS = 30.0    # Green: < 30ms
MEDIUM_LATENCY_MS = 100.0  # Yellow: < 100ms
# Red: >= 100ms

# Quality labels, best first
EXCELLENT = "EXCELLENT"
GOOD = "GOOD"
FAIR = "FAIR"
POOR = "POOR"

# (label, max loss percent, max avg latency ms), evaluated in order.
# Limits are exclusive, except that a loss limit of 0 demands no loss at all.
QUALITY_RULES = [
    (EXCELLENT, 0, 50.0),
    (GOOD, 3, 100.0),
    (FAIR, 5, 150.0),
]

QUALITY_COLORS = {
    EXCELLENT: "green",
    GOOD: "green",
    FAIR: "yellow",
    POOR: "red",
}

# DNS timer
DNS_PROBE_HOST = "www.google.com"
DNS_PROBE_URL = f"https://{DNS_PROBE_HOST}"
DNS_FALLBACK_MS = 500.0
DNS_TIMEOUT = 10.0

# External speedtest utility
SPEEDTEST_BIN = "speedtest-cli"
SPEEDTEST_LIST_TIMEOUT = 10.0
SPEEDTEST_LIST_LINES = 30
SPEEDTEST_RUN_TIMEOUT = 120.0

# --list-servers filter
SERVER_FILTER_KEYWORDS = ("philippines", "davao", "cebu", "manila")
SERVER_FILTER_LIMIT = 20
SERVER_UNFILTERED_LIMIT = 30

# Direct CDN download endpoints, tried in order
DOWNLOAD_URLS = [
    "https://speed.cloudflare.com/__down?bytes=50000000",
    "https://speed.hetzner.de/100MB.bin",
    "https://proof.ovh.net/files/100Mb.dat",
    "https://ash-bug-common-cfg.hashicdn-aws.com/100MB.bin",
    "https://sin-sg-bw1.becomecloud.co.id/file/100MB.bin",
]

UPLOAD_URL = "https://speed.cloudflare.com/__up"
UPLOAD_SIZE_BYTES = 10 * 1024 * 1024
UPLOAD_CHUNK_BYTES = 256 * 1024
UPLOAD_MIN_MBPS = 10.0

HTTP_CONNECT_TIMEOUT = 15.0
HTTP_TOTAL_TIMEOUT = 120.0

# Samples shorter than this are too noisy to report
MIN_SAMPLE_SECONDS = 1.0

# Bandwidth sources
SOURCE_SPEEDTEST = "speedtest-cli"
SOURCE_CDN = "CDN"

# Tip section is shown below this loss percentage
TIP_LOSS_THRESHOLD = 10

# User agent for HTTP requests
USER_AGENT = "netquality/0.1.0"
