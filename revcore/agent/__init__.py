"""Module __init__: the goal-directed agent loop."""
#
# PURPOSE:
# Plans, dispatches and verifies capability calls until a goal is met or the
# attempt budget runs out.
#
# MODULES IN THIS PACKAGE:
# - **prompts.py**: per-specialization planning prompts
# - **planner.py**: oracle answer -> ordered Actions (keyword rules)
# - **dispatcher.py**: Action -> capability call
# - **verifier.py**: local result check, then oracle judgement
# - **orchestrator.py**: the planning/executing/verifying state machine
#
# WORKFLOW:
# Orchestrator -> Planner -> Dispatcher (per Action) -> Verifier -> done or next strategy
#
