from enum import Enum


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    JSON = "json"
    CONSOLE = "console"


class LLMProvider(str, Enum):
    """Model backend variants selectable at configuration time."""
    HOSTED_CHAT = "hosted_chat"
    HOSTED_COMPLETION = "hosted_completion"
    LOCAL_WEIGHTS = "local_weights"


class GROQ_LLM_MODELS(str, Enum):
    LLAMA_33_70B_VERSATILE = "llama-3.3-70b-versatile"
    LLAMA_31_8B_INSTANT = "llama-3.1-8b-instant"


class OLLAMA_LLM_MODELS(str, Enum):
    CODELLAMA_13B = "codellama:13b"
    SQLCODER_7B = "sqlcoder:7b"


GROQ_API_URL = "https://api.groq.com/openai/v1"
OLLAMA_API_URL = "http://localhost:11434"

DEFAULT_GGUF_MODEL_FILE = "sqlcoder-7b.Q4_K_M.gguf"

DEFAULT_SYSTEM_PROMPT = "You are an expert SQL analyst. Generate accurate T-SQL queries."

# Stop sequences for raw completion backends; the model tends to keep
# writing a fake dialogue after the answer.
DEFAULT_STOP_SEQUENCES = ["\n\nUser:", "\n\nHuman:", "###END###", "\n\nQuestion:"]

# -------------------------
# Console Constants
# -------------------------

SELF_TEST_SENTINEL = "test"
EXIT_COMMANDS = ("exit", "quit")
MULTI_STEP_PREFIX = "/multi"

SELF_TEST_QUESTIONS = [
    "How many orders do we have?",
    "What is the total freight cost?",
    "Show me all products with their category names",
    "List orders from last month",
    "What are the top 5 products by revenue?",
    "How many orders does each customer have?",
    "Show products in the Electronics category with more than 100 units in stock",
]

# Rows and cell width shown when rendering a result table
DISPLAY_MAX_ROWS = 20
DISPLAY_MAX_CELL_CHARS = 50
