from .engine import BakeRuleEngine, CaptureDecision
from .planner import PLAN_FILE, TRACE_FILE, Planner
from .trace import NodeTrace, RuleTrace, RuleTraceToken
from .validate import validate_rules_trace

__all__ = [
    "PLAN_FILE",
    "TRACE_FILE",
    "BakeRuleEngine",
    "CaptureDecision",
    "NodeTrace",
    "Planner",
    "RuleTrace",
    "RuleTraceToken",
    "validate_rules_trace",
]
