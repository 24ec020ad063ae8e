"""
Cost Tracking Module

Per-session token and cost accounting for completion calls, grouped by the
step that made them (extract_question, regenerate_question, grade_difficulty).
"""

from dataclasses import dataclass, field

import streamlit as st

# $ per 1M tokens
MODEL_PRICING = {
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
    "gpt-4.1": {"input": 2.00, "output": 8.00},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "claude-sonnet-4-20250514": {"input": 3.00, "output": 15.00},
    "claude-haiku-4-5-20251001": {"input": 1.00, "output": 5.00},
}

DEFAULT_PRICING = {"input": 2.00, "output": 8.00}


def get_model_pricing(model_id: str) -> dict:
    """Price table entry for model_id; dated snapshots use their family's price."""
    for prefix in sorted(MODEL_PRICING, key=len, reverse=True):
        if model_id.startswith(prefix):
            return MODEL_PRICING[prefix]
    return DEFAULT_PRICING


def calculate_cost(model_id: str, input_tokens: int, output_tokens: int) -> float:
    pricing = get_model_pricing(model_id)
    return (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000


@dataclass
class StepUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    calls: int = 0
    models: set = field(default_factory=set)


@dataclass
class UsageLedger:
    """Running totals for one session, independent of Streamlit."""
    steps: dict = field(default_factory=dict)

    def record(self, step_name: str, model_id: str, usage: dict) -> float:
        input_tokens = usage.get("input_tokens", 0) or 0
        output_tokens = usage.get("output_tokens", 0) or 0
        cost = calculate_cost(model_id, input_tokens, output_tokens)

        step = self.steps.setdefault(step_name, StepUsage())
        step.input_tokens += input_tokens
        step.output_tokens += output_tokens
        step.cost += cost
        step.calls += 1
        step.models.add(model_id)
        return cost

    @property
    def total_input_tokens(self) -> int:
        return sum(s.input_tokens for s in self.steps.values())

    @property
    def total_output_tokens(self) -> int:
        return sum(s.output_tokens for s in self.steps.values())

    @property
    def total_cost(self) -> float:
        return sum(s.cost for s in self.steps.values())


# =============================================================================
# Session State
# =============================================================================

def _has_session_state() -> bool:
    """True inside a Streamlit script run (not in worker threads or tests)."""
    from streamlit.runtime.scriptrunner import get_script_run_ctx
    return get_script_run_ctx() is not None


def get_usage_ledger() -> UsageLedger:
    """The session's ledger; a throwaway one outside a script run."""
    if not _has_session_state():
        return UsageLedger()
    if "usage_ledger" not in st.session_state:
        st.session_state.usage_ledger = UsageLedger()
    return st.session_state.usage_ledger


def track_api_call(step_name: str, model_id: str, usage: dict):
    """Record one call against the session ledger."""
    get_usage_ledger().record(step_name, model_id, usage)


def reset_cost_tracker():
    if _has_session_state():
        st.session_state.usage_ledger = UsageLedger()


def format_tokens(tokens: int) -> str:
    """125000 -> '125.0k'"""
    if tokens >= 1_000_000:
        return f"{tokens / 1_000_000:.1f}M"
    if tokens >= 1_000:
        return f"{tokens / 1_000:.1f}k"
    return str(tokens)


def format_cost(cost: float) -> str:
    return f"${cost:.2f}" if cost >= 0.01 else f"${cost:.4f}"
