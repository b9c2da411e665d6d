# src/api/__init__.py
# =====================
# API Layer — ScribeRelay
#
#   POST /transcribe         — batch: {"success": true, "transcription": ...}
#   POST /transcribe/stream  — Server-Sent Events: chunk events + terminal event
#   GET  /, GET /health      — service info and liveness
