"""Turn execution: the model/tool loop and the SSE emitter."""

from evassist.llm_stream.services.emitter import StreamingResponseEmitter, error_event, split_into_words
from evassist.llm_stream.services.stream_orchestrator import StreamOrchestrator, to_provider_messages

__all__ = [
    "StreamOrchestrator",
    "StreamingResponseEmitter",
    "error_event",
    "split_into_words",
    "to_provider_messages",
]
