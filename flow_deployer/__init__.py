"""Flow Deployer — compile conversation flows and deploy them to voice agents.

Architecture Overview
=====================

A conversation flow is an ordered list of typed nodes authored in the
portal's flow editor.  Deploying a flow runs a short, strictly sequential
pipeline:

1. **discover** — read the Retell agent to find where its LLM configuration
   lives (a separate LLM object, or inline on the agent) and which tools it
   already has.  Read failures degrade to "no existing tools".
2. **compile** — turn the nodes into a numbered instruction script and the
   set of integration providers the script relies on.
3. **resolve** — expand providers into tool descriptors and synthesize one
   tool per webhook / transfer node.
4. **merge** — keep the agent's other tools; flow tools win on name clashes.
5. **push** — exactly one PATCH to the remote agent.
6. **commit** — bump the flow's version and mark it active, only after the
   push succeeded and only if nobody else committed in the meantime.

Key Design Decisions
--------------------
- **Pure core**: compiler, resolver and merger do no I/O and keep their
  counters local to one call, so concurrent deploys never interfere.
- **Tagged-union nodes**: every node type has its own payload model; the
  compiler dispatch table is checked for exhaustiveness at import time.
- **Resilience**: the RetellClient retries reads with exponential backoff
  and sends writes exactly once.
- **No partial success**: any failure from the push onward is surfaced and
  leaves the stored flow untouched.

Package Structure
-----------------
- ``flow_deployer/models.py`` — Flow and node models
- ``flow_deployer/compiler.py`` — nodes → instruction script + providers
- ``flow_deployer/prompts.py`` — fixed script text
- ``flow_deployer/deployer.py`` — deploy orchestration
- ``flow_deployer/errors.py`` — deploy error taxonomy
- ``flow_deployer/config.py`` — configuration from environment variables
- ``flow_deployer/server.py`` — FastAPI application
- ``flow_deployer/main.py`` — CLI compile / deploy
- ``flow_deployer/services/`` — Retell client, remote config adapter, flow store, metrics
- ``flow_deployer/tools/`` — tool templates, resolver, merger
- ``flow_deployer/api/`` — FastAPI routes and Pydantic schemas
"""
