DEFAULT_INSTANCE_URL = "https://ega.elixir.no"
DEFAULT_TSD_BASE_URL = "https://api.tsd.usit.no"
DEFAULT_TSD_API_VERSION = "v1"
DEFAULT_TSD_PROJECT = "p969"
DEFAULT_TSD_SERVICE = "ega"
DEFAULT_CHUNK_SIZE_MB = 50
DEFAULT_NTP_SERVERS = ("no.pool.ntp.org", "0.pool.ntp.org", "1.pool.ntp.org", "2.pool.ntp.org")
DEFAULT_TOKEN_MARGIN_MINUTES = 5

SUCCESS_STATUS_CODES = (200, 201)

GREEN = "\033[32m"
RESET = "\033[0m"
