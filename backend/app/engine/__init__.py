"""Workflow Engine - The brain of the system"""
from .engine import WorkflowEngine
from .condition_evaluator import ConditionEvaluator
from .rule_engine import RuleEngine, build_context
from .step_graph import StepGraph
from .form_validator import validate_submission

__all__ = [
    "WorkflowEngine",
    "ConditionEvaluator",
    "RuleEngine",
    "StepGraph",
    "build_context",
    "validate_submission",
]
