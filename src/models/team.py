"""Team analytics and occupation benchmark models."""

from typing import Any, Dict, List, Optional

from pydantic import Field

from src.models.base import BaseDocument


class Team(BaseDocument):
    """A team and how well each competency is covered by its members.

    ``competency_saturation`` maps competency ids to a 0..1 coverage value;
    low saturation marks a gap.
    """

    name: str
    competency_saturation: Dict[str, float] = Field(default_factory=dict)
    member_count: int = Field(default=0, ge=0)
    personality_profile: Dict[str, float] = Field(default_factory=dict)

    def get_undersaturated(self, threshold: float) -> List[str]:
        """Competency ids whose saturation is below the threshold, in stored order."""
        return [
            competency_id
            for competency_id, saturation in self.competency_saturation.items()
            if saturation < threshold
        ]


class OnetProfile(BaseDocument):
    """O*NET occupation with competency benchmarks on a 1..5 scale."""

    soc_code: str
    occupation_title: Optional[str] = None
    benchmarks: Dict[str, float] = Field(default_factory=dict)

    @classmethod
    def create_index_keys(cls) -> List[Dict[str, Any]]:
        return [
            {"keys": [("soc_code", 1)], "unique": True},
        ]
