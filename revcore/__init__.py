# ============================================================================
# revcore/__init__.py
# Package Marker for the Agent Engine
# ============================================================================
#
# PURPOSE:
# Marks "revcore" as the importable engine package. The public entry point is
# revcore.agent.orchestrator.run_orchestration; everything else is wiring.
#
# LAYOUT:
# - base/     configuration and the run data model
# - ai/       reasoning oracle adapter and its backends
# - agent/    planner, dispatcher, verifier, orchestrator
# - toolkit/  capability registry and the built-in headless tools
# - utils/    signals and async helpers
#
# ============================================================================
