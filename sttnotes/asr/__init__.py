"""
Audio acquisition and speech recognition for sttnotes.

Design intent:
- Resolve and fetch session recordings into scoped scratch files.
- Keep recognizer-specific error codes out of the pipeline.
- Return ordered transcript segments plus the billed duration.
"""
