"""
AgentScore — Scoring Package
Re-exports for convenience.
"""
from agentscore.scoring.calculator import (
    calculate_score, create_empty_agent_data, get_grade, validate_agent_data,
)
from agentscore.scoring.models import AgentData, FactorScore, ScoreBreakdown, ScoreGrade, ScoreResult
from agentscore.scoring.reason_codes import ReasonCode, filter_by_impact, get_reason_code_info, sort_reason_codes
