"""Runtime settings resolved through ConfigLoader (env > config.json > defaults)."""

from config_loader import get_config_loader

_config = get_config_loader()

# Server
PORT = _config.get("PORT", "server.port", 8081)
BIND_ADDRESS = _config.get("BIND_ADDRESS", "server.bind_address", "127.0.0.1")
LOG_LEVEL = _config.get("LOG_LEVEL", "server.log_level", "info")

# Upstream
UPSTREAM_BASE_URL = _config.get("UPSTREAM_BASE_URL", "upstream.base_url", "https://cloudcode-pa.googleapis.com")
UPSTREAM_ACCESS_TOKEN = _config.get("UPSTREAM_ACCESS_TOKEN", "upstream.access_token", "")
UPSTREAM_PROJECT_ID = _config.get("UPSTREAM_PROJECT_ID", "upstream.project_id", "")
UPSTREAM_USER_AGENT = _config.get("UPSTREAM_USER_AGENT", "upstream.user_agent", "antigravity")

# Timeouts (seconds)
REQUEST_TIMEOUT = _config.get("REQUEST_TIMEOUT", "timeouts.request", 120.0)
STREAM_TIMEOUT = _config.get("STREAM_TIMEOUT", "timeouts.stream", 600.0)
CONNECT_TIMEOUT = _config.get("CONNECT_TIMEOUT", "timeouts.connect", 10.0)
READ_TIMEOUT = _config.get("READ_TIMEOUT", "timeouts.read", 300.0)

# Thinking / signatures
MIN_SIGNATURE_LENGTH = _config.get("MIN_SIGNATURE_LENGTH", "thinking.min_signature_length", 50)
SIGNATURE_CACHE_MAX_ENTRIES = _config.get("SIGNATURE_CACHE_MAX_ENTRIES", "thinking.cache_max_entries", 1000)
SIGNATURE_CACHE_TTL = _config.get("SIGNATURE_CACHE_TTL", "thinking.cache_ttl_seconds", 3600)

# Decoder object pools
LINE_BUFFER_POOL_SIZE = _config.get("LINE_BUFFER_POOL_SIZE", "memory.line_buffer_pool_size", 64)
TOOL_CALL_POOL_SIZE = _config.get("TOOL_CALL_POOL_SIZE", "memory.tool_call_pool_size", 256)

# Request defaults
SYSTEM_INSTRUCTION = _config.get("SYSTEM_INSTRUCTION", "defaults.system_instruction", "")
DEFAULT_MAX_TOKENS = _config.get("DEFAULT_MAX_TOKENS", "defaults.max_tokens", 8192)
DEFAULT_THINKING_BUDGET = _config.get("DEFAULT_THINKING_BUDGET", "defaults.thinking_budget", 16000)
DEFAULT_TEMPERATURE = _config.get("DEFAULT_TEMPERATURE", "defaults.temperature", None)
DEFAULT_TOP_P = _config.get("DEFAULT_TOP_P", "defaults.top_p", None)
DEFAULT_TOP_K = _config.get("DEFAULT_TOP_K", "defaults.top_k", None)
