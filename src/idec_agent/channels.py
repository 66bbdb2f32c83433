# Request/response channels (UI -> host).
AI_REQUEST_STREAM = "ai-request-stream"
AI_REQUEST = "ai-request"
AI_STREAM_STOP = "ai-stream-stop"
FETCH_MODELS = "fetch-models"
READ_FILE = "read-file"
WRITE_FILE = "write-file"
CREATE_FILE = "create-file"
READ_DIRECTORY = "read-directory"

# Push channels (host -> UI).
AI_STREAM_CHUNK = "ai-stream-chunk"
AI_STREAM_DONE = "ai-stream-done"
AI_STREAM_ERROR = "ai-stream-error"
OUTPUT_LOG = "output-log"
FS_CHANGE = "fs-change"
TERMINAL_DATA = "terminal-data"

EXPOSED_CHANNELS: frozenset[str] = frozenset({
    AI_REQUEST_STREAM,
    AI_REQUEST,
    AI_STREAM_STOP,
    FETCH_MODELS,
    READ_FILE,
    WRITE_FILE,
    CREATE_FILE,
    READ_DIRECTORY,
})


def is_streaming_channel(channel: str) -> bool:
    return channel.startswith("ai-stream") or channel == AI_REQUEST_STREAM
