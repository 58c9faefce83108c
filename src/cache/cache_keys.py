"""Cache key definitions for the assessment server.

This module defines all cache key patterns and helper functions for generating
consistent cache keys across the services.
"""

from enum import Enum


class CacheNamespace(str, Enum):
    """Cache namespaces for different data types."""

    RESULT = "result"
    SCORING = "scoring"
    TEMPLATE = "template"
    SIMULATION = "simulation"
    PSYCHOMETRICS = "psychometrics"
    ONET = "onet"
    TEAM = "team"


class CacheKeys:
    """Cache key generation and management."""

    PATTERNS = {
        # Scoring
        "result_by_session": "{namespace}:session:{session_id}",
        "scoring_lock": "{namespace}:{session_id}",

        # Templates
        "template_by_id": "{namespace}:{template_id}",

        # Simulation
        "simulation_result": "{namespace}:{template_id}:{profile}:{seed_hash}",

        # Psychometrics
        "audit_lock": "{namespace}:audit",

        # Reference data used by assemblers
        "onet_profile": "{namespace}:{soc_code}",
        "team_profile": "{namespace}:{team_id}:profile",
    }

    @classmethod
    def result_by_session(cls, session_id: str) -> str:
        """Get cache key for the scored result of a session."""
        return cls.PATTERNS["result_by_session"].format(
            namespace=CacheNamespace.RESULT.value,
            session_id=session_id
        )

    @classmethod
    def scoring_lock(cls, session_id: str) -> str:
        """Get lock resource name guarding a session's scoring run."""
        return cls.PATTERNS["scoring_lock"].format(
            namespace=CacheNamespace.SCORING.value,
            session_id=session_id
        )

    @classmethod
    def template_by_id(cls, template_id: str) -> str:
        return cls.PATTERNS["template_by_id"].format(
            namespace=CacheNamespace.TEMPLATE.value,
            template_id=template_id
        )

    @classmethod
    def simulation_result(cls, template_id: str, profile: str, seed_hash: str) -> str:
        """Get cache key for a deterministic simulation run.

        A simulation is reproducible for a given blueprint and ability level,
        so their hash is part of the key alongside template and profile.
        """
        return cls.PATTERNS["simulation_result"].format(
            namespace=CacheNamespace.SIMULATION.value,
            template_id=template_id,
            profile=profile,
            seed_hash=seed_hash
        )

    @classmethod
    def audit_lock(cls) -> str:
        """Get lock resource name for the nightly psychometric audit."""
        return cls.PATTERNS["audit_lock"].format(
            namespace=CacheNamespace.PSYCHOMETRICS.value
        )

    @classmethod
    def onet_profile(cls, soc_code: str) -> str:
        return cls.PATTERNS["onet_profile"].format(
            namespace=CacheNamespace.ONET.value,
            soc_code=soc_code
        )

    @classmethod
    def team_profile(cls, team_id: str) -> str:
        return cls.PATTERNS["team_profile"].format(
            namespace=CacheNamespace.TEAM.value,
            team_id=team_id
        )
