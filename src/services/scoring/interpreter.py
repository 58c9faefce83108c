"""Proficiency interpretation of percentage scores."""

from typing import List, Optional, Tuple

from src.models.result import CompetencyScore
from src.utils.constants import ProficiencyLevel, ScoringConstants

PROFICIENCY_BANDS: List[Tuple[float, ProficiencyLevel, str]] = [
    (ScoringConstants.EXPERT_THRESHOLD, ProficiencyLevel.EXPERT, "Expert"),
    (ScoringConstants.ADVANCED_THRESHOLD, ProficiencyLevel.ADVANCED, "Advanced"),
    (ScoringConstants.PROFICIENT_THRESHOLD, ProficiencyLevel.PROFICIENT, "Proficient"),
    (ScoringConstants.DEVELOPING_THRESHOLD, ProficiencyLevel.DEVELOPING, "Developing"),
]


class ScoreInterpreter:
    """Maps percentages onto proficiency bands."""

    @staticmethod
    def interpret(percentage: Optional[float]) -> Tuple[str, ProficiencyLevel]:
        """Get the proficiency label and level for a percentage.

        Args:
            percentage: Score in [0, 100]; None is treated as 0

        Returns:
            Tuple[str, ProficiencyLevel]: Display label and level
        """
        value = percentage or 0.0
        for threshold, level, label in PROFICIENCY_BANDS:
            if value >= threshold:
                return label, level
        return "Beginning", ProficiencyLevel.BEGINNING

    def apply(self, scores: List[CompetencyScore]) -> None:
        """Set proficiency fields on competencies and their indicators."""
        for score in scores:
            score.proficiency_label, level = self.interpret(score.percentage)
            score.proficiency_level = level.value
            for indicator in score.indicator_scores:
                indicator.proficiency_label, indicator_level = self.interpret(indicator.percentage)
                indicator.proficiency_level = indicator_level.value
