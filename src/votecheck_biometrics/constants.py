"""
Constants and security parameters for the VoteCheck biometric gate.

This module centralizes the parameters that decide whether a voter passes
the biometric gate. The quality threshold, sample count and inter-sample
delay are security parameters: changing them changes the attack surface
of the capture pipeline.
"""

from typing import Dict, Final, Tuple

# =============================================================================
# Capture Session
# =============================================================================

# Number of accepted samples required to complete a capture session
REQUIRED_SAMPLES: Final[int] = 7

# Minimum delay between two captured samples (seconds)
INTER_SAMPLE_DELAY_SECONDS: Final[float] = 0.8

# Interval at which frames are pulled into the history while waiting (seconds)
FRAME_INTERVAL_SECONDS: Final[float] = 0.1

# Capacity of the frame history ring buffer
FRAME_HISTORY_SIZE: Final[int] = 10

# Share of the progress bar covered by sample collection (percent)
CAPTURE_PROGRESS_SHARE: Final[float] = 80.0

# Progress checkpoints for the post-capture phase (percent)
ANTI_SPOOFING_PROGRESS: Final[float] = 85.0
AGGREGATION_PROGRESS: Final[float] = 95.0
COMPLETED_PROGRESS: Final[float] = 100.0

# =============================================================================
# Quality Gate
# =============================================================================

# Minimum acceptable per-sample quality score (0.0 to 1.0)
QUALITY_THRESHOLD: Final[float] = 0.6

# =============================================================================
# Liveness Detection
# =============================================================================

# Minimum number of frames in history before liveness can be judged
MIN_LIVENESS_FRAMES: Final[int] = 3

# Mean normalized inter-frame difference below which a frame pair is static
MOTION_THRESHOLD: Final[float] = 0.01

# Motion level treated as fully saturated evidence of movement
MOTION_SATURATION: Final[float] = 0.05

# Weights for combining motion and micro-movement evidence
LIVENESS_WEIGHTS: Final[Dict[str, float]] = {"motion": 0.6, "micro_movement": 0.4}

# Combined liveness score required to accept a frame
LIVENESS_THRESHOLD: Final[float] = 0.5

# =============================================================================
# Anti-Spoofing
# =============================================================================

# Fraction of anti-spoofing sub-checks that must pass
ANTI_SPOOFING_PASS_SCORE: Final[float] = 0.6

# Minimum Laplacian variance of the final frame (printed photos blur texture)
MIN_TEXTURE_VARIANCE: Final[float] = 50.0

# Minimum mean per-pixel temporal deviation across the history (0..255 scale)
MIN_TEMPORAL_DEVIATION: Final[float] = 2.0

# Intensity at or above which a pixel counts as a specular highlight
SPECULAR_INTENSITY: Final[int] = 250

# Maximum fraction of specular pixels before glare indicates a screen
MAX_SPECULAR_RATIO: Final[float] = 0.05

# Maximum share of spectral energy a single frequency may hold (moire patterns)
MAX_SPECTRAL_PEAK_RATIO: Final[float] = 0.05

# Names of the anti-spoofing sub-checks, in execution order
ANTI_SPOOFING_CHECKS: Final[Tuple[str, ...]] = (
    "texture_analysis",
    "depth_estimation",
    "reflection_detection",
    "frequency_analysis",
)

# =============================================================================
# Matching
# =============================================================================

# Default decision threshold on normalized cosine similarity
DEFAULT_SIMILARITY_THRESHOLD: Final[float] = 0.6

# Weights for landmark-aware comparison
COMPARISON_WEIGHTS: Final[Dict[str, float]] = {
    "embedding": 0.6,
    "landmark": 0.25,
    "geometric": 0.15,
}

# =============================================================================
# Extraction
# =============================================================================

# Upper bound for a single embedding extraction (seconds)
EXTRACTION_TIMEOUT_SECONDS: Final[float] = 30.0

# Number of extraction worker threads
EXTRACTION_WORKERS: Final[int] = 2

# Embedding dimension produced by the reference extractor
EMBEDDING_DIM: Final[int] = 128

# Square size frames are resized to before sampling
EXTRACTION_INPUT_SIZE: Final[int] = 224

# =============================================================================
# Security Checks
# =============================================================================

LIVENESS_CHECK: Final[str] = "Liveness Detection"
ANTI_SPOOFING_CHECK: Final[str] = "Anti-Spoofing"
QUALITY_CHECK: Final[str] = "Quality Assessment"
FACE_MATCHING_CHECK: Final[str] = "Face Matching"

DEFAULT_SECURITY_CHECKS: Final[Tuple[Tuple[str, str], ...]] = (
    (LIVENESS_CHECK, "Verifying live human presence"),
    (ANTI_SPOOFING_CHECK, "Detecting photo/video attacks"),
    (QUALITY_CHECK, "Analyzing image quality"),
    (FACE_MATCHING_CHECK, "Compare with registered face"),
)

# =============================================================================
# File and Directory Constants
# =============================================================================

# Expected file extensions for frame images
FRAME_EXTENSIONS: Final[tuple] = (".jpg", ".jpeg", ".png", ".bmp")

# Default template store file name
DEFAULT_TEMPLATE_STORE_FILE: Final[str] = "enrolled_templates.json"
