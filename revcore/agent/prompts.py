"""
Prompt templates for the agent.

Planning templates are keyed by Specialization and formatted with the
target, the objective and the serialized run context. The verification and
strategy prompts carry fixed phrases ("Has the goal been accomplished",
"alternative strategy") that the offline heuristics key on; keep them stable.
"""

from typing import Dict

from revcore.base.models import Specialization

PLANNING_TEMPLATES: Dict[Specialization, str] = {
    Specialization.API_DISCOVERY: (
        "You are an API discovery agent. Your goal is to find hidden APIs, endpoints, and undocumented "
        "functionality on {target}.\n"
        "Objective: {objective}\n"
        "Context: {context}\n"
        "Reason through: What network requests should I intercept? What scripts should I inject to discover "
        "APIs? What patterns indicate hidden endpoints?"
    ),
    Specialization.VULNERABILITY_SCANNING: (
        "You are a vulnerability scanning agent. Your goal is to find security vulnerabilities on {target}.\n"
        "Objective: {objective}\n"
        "Context: {context}\n"
        "Reason through: What security issues should I check? What injection points exist? What "
        "authentication mechanisms can be bypassed?"
    ),
    Specialization.SCRIPT_GENERATION: (
        "You are a script generation agent. Your goal is to create JavaScript code to accomplish "
        "{objective} on {target}.\n"
        "Context: {context}\n"
        "Reason through: What JavaScript code will accomplish this? What APIs need to be intercepted? What "
        "DOM manipulation is needed? Put the script in a ```javascript fenced block."
    ),
    Specialization.UI_REPLICATION: (
        "You are a UI replication agent. Your goal is to extract and replicate UI components from {target}.\n"
        "Objective: {objective}\n"
        "Context: {context}\n"
        "Reason through: What elements should I extract? What CSS is needed? What JavaScript interactions "
        "must be replicated?"
    ),
    Specialization.AUTHENTICATION_BYPASS: (
        "You are an authentication bypass agent. Your goal is to find ways around authentication on {target}.\n"
        "Objective: {objective}\n"
        "Context: {context}\n"
        "Reason through: What authentication mechanisms exist? What tokens or sessions are used? What "
        "endpoints can be accessed without auth?"
    ),
    Specialization.DATA_EXTRACTION: (
        "You are a data extraction agent. Your goal is to extract specific data from {target}.\n"
        "Objective: {objective}\n"
        "Context: {context}\n"
        "Reason through: Where is the data located? What APIs provide it? What scripts can extract it?"
    ),
    Specialization.ENDPOINT_ENUMERATION: (
        "You are an endpoint enumeration agent. Your goal is to discover all API endpoints on {target}.\n"
        "Objective: {objective}\n"
        "Context: {context}\n"
        "Reason through: What endpoints exist? How can I discover them? What patterns indicate API routes?"
    ),
    Specialization.GENERAL: (
        "You are a reverse engineering agent. Your goal is to accomplish {objective} on {target}.\n"
        "Context: {context}\n"
        "Reason through: What steps are needed? What tools should I use? What strategies might work?"
    ),
}

VERIFICATION_TEMPLATE = (
    "Goal: {objective}\n"
    "Target: {target}\n"
    "Steps taken: {steps}\n"
    "Has the goal been accomplished? Answer yes or no with reasoning and state your confidence (0-1)."
)

STRATEGY_TEMPLATE = (
    "Previous attempts failed. Goal: {objective}.\n"
    "Previous steps: {steps}.\n"
    "What alternative strategy should I try? Answer with a short strategy name on the first line."
)


def planning_prompt(specialization: Specialization, target: str, objective: str, context: str) -> str:
    template = PLANNING_TEMPLATES.get(specialization, PLANNING_TEMPLATES[Specialization.GENERAL])
    return template.format(target=target, objective=objective, context=context)
