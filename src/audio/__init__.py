# src/audio/__init__.py
# ======================
# Audio Handling Layer — ScribeRelay
#
#   size_gate — single-shot vs split-required against the STT byte ceiling
#   formats   — MIME allow-list and container extension resolution
#   segmenter — ffmpeg stream-copy segmentation into seg_NNN<ext> files
#   workspace — per-job temporary directory lifecycle
#
# No decoding or re-encoding happens here.
