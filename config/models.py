"""Model tiers, sampling profiles and the tier selection policy."""

from __future__ import annotations

from dataclasses import dataclass

from config.defaults import DEFAULTS

# Above either threshold a fix request goes to the pro tier (both exclusive).
ERROR_LENGTH_THRESHOLD = 500
FILE_COUNT_THRESHOLD = 5


@dataclass(frozen=True)
class SamplingParams:
    temperature: float
    top_p: float
    top_k: int


@dataclass(frozen=True)
class ModelConfig:
    identifier: str
    sampling: SamplingParams
    tier: str           # "fast" | "pro"
    profile: str        # "precision" | "creative"


PROFILES = {
    "fast": {
        "precision": SamplingParams(temperature=0.1, top_p=0.95, top_k=64),
        "creative": SamplingParams(temperature=1.0, top_p=0.95, top_k=64),
    },
    "pro": {
        "precision": SamplingParams(temperature=0.1, top_p=0.95, top_k=64),
        "creative": SamplingParams(temperature=0.7, top_p=0.95, top_k=64),
    },
}

TASK_PROFILES = {
    "fix": "precision",
    "generate": "creative",
}


def model_config(tier, profile):
    """Build the ModelConfig for a tier/profile pair."""
    if tier not in PROFILES:
        raise ValueError(f"Unknown model tier: {tier}")
    if profile not in PROFILES[tier]:
        raise ValueError(f"Unknown sampling profile: {profile}")
    identifier = DEFAULTS["pro_model"] if tier == "pro" else DEFAULTS["fast_model"]
    return ModelConfig(
        identifier=identifier,
        sampling=PROFILES[tier][profile],
        tier=tier,
        profile=profile,
    )


def select_model(error_text_length, file_count, task="fix"):
    """Pick the model for a request from the size of its input.

    Long error transcripts or many files need the stronger model; small
    repairs go to the fast one. Fixing always samples with the precision
    profile, original generation with the creative one.
    """
    if task not in TASK_PROFILES:
        raise ValueError(f"Unknown task: {task}")
    complex_input = (
        error_text_length > ERROR_LENGTH_THRESHOLD
        or file_count > FILE_COUNT_THRESHOLD
    )
    tier = "pro" if complex_input else "fast"
    return model_config(tier, TASK_PROFILES[task])
