"""Logit-space probability model for persona simulation.

Every function here is pure. Randomness comes from an explicit seed so a
simulation over the same questions, profile and ability level always
draws the same answers.
"""

import math
import random
from typing import Dict, Iterable

from src.utils.constants import DifficultyLevel, SimulationConstants, SimulationProfile
from src.utils.helper import clamp

_INT32 = 1 << 32


def _wrap(value: int, bits: int) -> int:
    """Wrap an integer to a signed two's complement range."""
    modulus = 1 << bits
    value %= modulus
    return value - modulus if value >= modulus >> 1 else value


def stable_hash(text: str) -> int:
    """32-bit string hash that is stable across processes."""
    value = 0
    for char in text or "":
        value = (value * 31 + ord(char)) % _INT32
    return _wrap(value, 32)


def logit(p: float) -> float:
    p = clamp(p, SimulationConstants.LOGIT_INPUT_FLOOR, SimulationConstants.LOGIT_INPUT_CEILING)
    return math.log(p / (1.0 - p))


def sigmoid(x: float) -> float:
    return 1.0 / (1.0 + math.exp(-x))


def apply_logit_shift(probability: float, shift: float) -> float:
    """Shift a probability in logit space, clamped to [0.01, 0.99]."""
    shifted = sigmoid(logit(probability) + shift)
    return clamp(shifted, SimulationConstants.PROBABILITY_FLOOR, SimulationConstants.PROBABILITY_CEILING)


def ability_modifier(ability_level: int) -> float:
    """Map the 0-100 ability slider linearly onto roughly +/-2 logits."""
    return (ability_level - SimulationConstants.ABILITY_MIDPOINT) / SimulationConstants.ABILITY_SCALE


def compute_seed(profile: SimulationProfile, ability_level: int, question_ids: Iterable[str]) -> int:
    """Seed for one simulation run.

    The fold is order dependent, so the same questions in a different
    order produce a different run.
    """
    multiplier = SimulationConstants.SEED_MULTIPLIER
    seed = SimulationProfile(profile).ordinal * multiplier + ability_level
    for question_id in question_ids:
        seed = _wrap(seed * multiplier + stable_hash(str(question_id)), 64)
    return seed


def competency_noise(base_seed: int, competency_ids: Iterable[str]) -> Dict[str, float]:
    """Per-competency logit offset in [-0.1, 0.1], fixed for the whole run."""
    amplitude = SimulationConstants.COMPETENCY_NOISE_AMPLITUDE
    noise: Dict[str, float] = {}
    for competency_id in competency_ids:
        if competency_id is None or competency_id in noise:
            continue
        rng = random.Random(base_seed ^ stable_hash(str(competency_id)))
        noise[competency_id] = (rng.random() * 2.0 - 1.0) * amplitude
    return noise


def calculate_probability(
    profile: SimulationProfile,
    difficulty: DifficultyLevel,
    ability_level: int,
    noise: float = 0.0,
) -> float:
    """Probability that the persona answers a question correctly.

    Args:
        profile: Simulated persona
        difficulty: Question difficulty
        ability_level: Ability slider value, 0 to 100
        noise: Competency noise in logits

    Returns:
        float: Probability in [0.01, 0.99]
    """
    base = SimulationProfile(profile).get_base_probability(difficulty)
    adjusted = apply_logit_shift(base, ability_modifier(ability_level))
    return apply_logit_shift(adjusted, noise)
